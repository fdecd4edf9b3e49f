"""Core domain entities representing listening events and catalog tracks."""

from .events import (
    FALLBACK_ID_PREFIX,
    EnrichmentSource,
    ListeningEvent,
    PartialListeningEvent,
    SessionMode,
    create_enriched_event,
    create_fallback_event,
)
from .shared import seconds_between, to_utc
from .track import AuthoritativePlayRecord, CanonicalTrack, SearchQuery

__all__ = [
    # Event entities
    "FALLBACK_ID_PREFIX",
    "EnrichmentSource",
    "ListeningEvent",
    "PartialListeningEvent",
    "SessionMode",
    "create_enriched_event",
    "create_fallback_event",
    # Track entities
    "AuthoritativePlayRecord",
    "CanonicalTrack",
    "SearchQuery",
    # Shared utilities
    "seconds_between",
    "to_utc",
]
