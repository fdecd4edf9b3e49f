"""Listening event entities.

Partial events come in from the capture collaborator; terminal
``ListeningEvent`` values go back out. Enriched and fallback events share the
same shape so callers never have to special-case either one.
"""

from datetime import datetime
from enum import StrEnum
from uuid import uuid4

from attrs import define, field, validators

from .shared import to_utc
from .track import CanonicalTrack

FALLBACK_ID_PREFIX = "local:"


class SessionMode(StrEnum):
    """How the surrounding session captured location."""

    MANUAL = "manual"  # user picked a building/region on a map
    PASSIVE = "passive"  # one GPS ping pinned for the whole session
    ACTIVE = "active"  # continuous tracking with partial events
    UNKNOWN = "unknown"


class EnrichmentSource(StrEnum):
    """Cascade stage at which an event reached its terminal state."""

    CACHE = "cache"
    BATCH = "batch"
    HISTORY = "history"
    SEARCH = "search"
    FALLBACK = "fallback"


@define(frozen=True, slots=True)
class PartialListeningEvent:
    """A locally observed play with unreliable text metadata and no canonical id."""

    timestamp: datetime = field(converter=to_utc)
    track_name: str = field(validator=validators.instance_of(str))
    artist_name: str = field(validator=validators.instance_of(str))
    latitude: float = field(default=0.0)
    longitude: float = field(default=0.0)
    location_label: str | None = field(default=None)
    album_name: str | None = field(default=None)
    id: str = field(factory=lambda: uuid4().hex)


@define(frozen=True, slots=True)
class ListeningEvent:
    """Terminal output for one partial event, enriched or fallback."""

    event_id: str
    timestamp: datetime
    latitude: float
    longitude: float
    location_label: str | None
    track_name: str
    artist_name: str
    album_name: str | None
    genre: str | None
    track_id: str
    session_mode: SessionMode = SessionMode.UNKNOWN
    source: EnrichmentSource = EnrichmentSource.FALLBACK

    @property
    def is_fallback(self) -> bool:
        return self.track_id.startswith(FALLBACK_ID_PREFIX)


def create_enriched_event(
    partial: PartialListeningEvent,
    track: CanonicalTrack,
    session_mode: SessionMode,
    source: EnrichmentSource,
) -> ListeningEvent:
    """Merge the partial's time and place with the canonical naming fields."""
    return ListeningEvent(
        event_id=partial.id,
        timestamp=partial.timestamp,
        latitude=partial.latitude,
        longitude=partial.longitude,
        location_label=partial.location_label,
        track_name=track.name,
        artist_name=track.artist,
        album_name=track.album,
        genre=track.genre,
        track_id=track.id,
        session_mode=session_mode,
        source=source,
    )


def create_fallback_event(
    partial: PartialListeningEvent,
    session_mode: SessionMode,
) -> ListeningEvent:
    """Build a terminal event from the raw partial fields."""
    return ListeningEvent(
        event_id=partial.id,
        timestamp=partial.timestamp,
        latitude=partial.latitude,
        longitude=partial.longitude,
        location_label=partial.location_label,
        track_name=partial.track_name,
        artist_name=partial.artist_name,
        album_name=partial.album_name,
        genre=None,
        track_id=f"{FALLBACK_ID_PREFIX}{partial.id}",
        session_mode=session_mode,
        source=EnrichmentSource.FALLBACK,
    )
