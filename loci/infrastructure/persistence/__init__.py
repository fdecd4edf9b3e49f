"""Key/value stores backing the enrichment engine."""

from .track_cache import CacheStats, TrackCache, make_cache_key

__all__ = ["CacheStats", "TrackCache", "make_cache_key"]
