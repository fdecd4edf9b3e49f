"""Domain interfaces for the track cache and catalog client.

These interfaces define the contracts the orchestrator relies on without
depending on infrastructure implementations, so tests and alternate stores
(durable caches, other providers) can be swapped in.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Protocol

from loci.domain.entities import AuthoritativePlayRecord, CanonicalTrack, SearchQuery


class TrackCacheProtocol(Protocol):
    """Key/value contract: normalized (title, artist) -> track id -> track."""

    def get(self, key: str) -> CanonicalTrack | None:
        """Return the cached track for a normalized key."""
        ...

    def lookup(self, title: str, artist: str) -> CanonicalTrack | None:
        """Normalize ``title``/``artist`` and return the cached track."""
        ...

    def put(
        self, track: CanonicalTrack, aliases: Iterable[tuple[str, str]] = ()
    ) -> None:
        """Store a track, indexed by its own name/artist plus any aliases."""
        ...


class CatalogClientProtocol(Protocol):
    """Remote catalog operations. Failures surface as absence, never as exceptions."""

    async def resolve(self, title: str, artist: str) -> CanonicalTrack | None:
        """Search, detail and genre lookups composed into one track."""
        ...

    async def resolve_batch(
        self, queries: Sequence[SearchQuery]
    ) -> dict[str, CanonicalTrack]:
        """Resolve queries serially; result is keyed by ``request_id``."""
        ...

    async def fetch_recent_history(
        self, start: datetime, end: datetime
    ) -> list[AuthoritativePlayRecord]:
        """Provider play history between ``start`` and ``end``."""
        ...
