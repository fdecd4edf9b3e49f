"""Track-related domain entities.

Canonical catalog tracks and the transient records that carry them through
reconciliation. Zero external dependencies beyond attrs.
"""

from datetime import datetime

from attrs import define, field, validators

from .shared import to_utc


@define(frozen=True, slots=True)
class CanonicalTrack:
    """Provider-verified track metadata.

    Only the catalog client creates these. ``id`` is the provider's stable
    identifier and is what the cache keys on.
    """

    id: str = field(validator=[validators.instance_of(str), validators.min_len(1)])
    name: str = field(validator=validators.instance_of(str))
    artist: str = field(validator=validators.instance_of(str))
    album: str = field(default="")
    genre: str | None = field(default=None)
    duration_ms: int = field(default=0)
    popularity: int | None = field(default=None)
    image_url: str | None = field(default=None)


@define(frozen=True, slots=True)
class AuthoritativePlayRecord:
    """A catalog track together with the time the provider says it was played."""

    track: CanonicalTrack
    played_at: datetime = field(converter=to_utc)

    @property
    def name(self) -> str:
        return self.track.name

    @property
    def artist(self) -> str:
        return self.track.artist


@define(frozen=True, slots=True)
class SearchQuery:
    """One text lookup inside a batch, tagged with the request it answers."""

    track: str
    artist: str
    request_id: str
