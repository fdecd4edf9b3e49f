"""In-memory track cache.

Maps a normalized (title, artist) key to a canonical track id, and a track id
to its CanonicalTrack. Pure lookup and store: nothing in here touches the
network.

Entries are bounded by ``cache.max_entries`` with least-recently-used
eviction, and optionally expire after ``cache.ttl_seconds``. With the default
ttl of None a track lives until evicted or the process exits.
"""

from collections import OrderedDict
from collections.abc import Callable, Iterable
import threading
import time

from attrs import define, field

from loci.config import get_logger, settings
from loci.domain.entities import CanonicalTrack

logger = get_logger(__name__).bind(service="cache")

# ASCII unit separator, removed from inputs so it only ever joins the two parts
KEY_DELIMITER = "\x1f"


def _normalize(part: str) -> str:
    return part.replace(KEY_DELIMITER, "").strip().lower()


def make_cache_key(title: str, artist: str) -> str:
    """Lowercase, trim and join title and artist with the fixed delimiter."""
    return f"{_normalize(title)}{KEY_DELIMITER}{_normalize(artist)}"


@define(frozen=True, slots=True)
class CacheStats:
    """Point-in-time cache counters."""

    hits: int
    misses: int
    entries: int
    keys: int
    evictions: int

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        if lookups == 0:
            return 0.0
        return round(self.hits / lookups, 4)


@define(frozen=True, slots=True)
class _CacheEntry:
    track: CanonicalTrack
    stored_at: float


@define(slots=True)
class TrackCache:
    """Thread-safe LRU cache of canonical tracks.

    ``put`` is last-writer-wins: writing a track id again replaces the stored
    track and refreshes its age.
    """

    max_entries: int | None = field(factory=lambda: settings.cache.max_entries)
    ttl_seconds: float | None = field(factory=lambda: settings.cache.ttl_seconds)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    _tracks: "OrderedDict[str, _CacheEntry]" = field(init=False, factory=OrderedDict)
    _keys: dict[str, str] = field(init=False, factory=dict)
    _keys_by_id: dict[str, set[str]] = field(init=False, factory=dict)
    _lock: threading.RLock = field(init=False, factory=threading.RLock, repr=False)
    _hits: int = field(init=False, default=0)
    _misses: int = field(init=False, default=0)
    _evictions: int = field(init=False, default=0)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, key: str) -> CanonicalTrack | None:
        """Return the track indexed under a normalized key, if still live."""
        with self._lock:
            track_id = self._keys.get(key)
            entry = self._live_entry(track_id) if track_id is not None else None
            if entry is None:
                self._misses += 1
                logger.debug("Cache miss", key=key)
                return None

            self._tracks.move_to_end(entry.track.id)
            self._hits += 1
            return entry.track

    def lookup(self, title: str, artist: str) -> CanonicalTrack | None:
        return self.get(make_cache_key(title, artist))

    def get_by_id(self, track_id: str) -> CanonicalTrack | None:
        with self._lock:
            entry = self._live_entry(track_id)
            return entry.track if entry else None

    def __contains__(self, key: str) -> bool:
        with self._lock:
            track_id = self._keys.get(key)
            return track_id is not None and self._live_entry(track_id) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._tracks)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def put(
        self, track: CanonicalTrack, aliases: Iterable[tuple[str, str]] = ()
    ) -> None:
        """Store ``track`` under its id, its own name/artist key and every alias.

        Aliases are the raw (title, artist) pairs that resolved to this track,
        so a repeat lookup with the same misspelling is a hit.
        """
        keys = {make_cache_key(track.name, track.artist)}
        keys.update(make_cache_key(title, artist) for title, artist in aliases)

        with self._lock:
            self._tracks[track.id] = _CacheEntry(track=track, stored_at=self.clock())
            self._tracks.move_to_end(track.id)
            for key in keys:
                previous_id = self._keys.get(key)
                if previous_id is not None and previous_id != track.id:
                    self._keys_by_id.get(previous_id, set()).discard(key)
                self._keys[key] = track.id
            self._keys_by_id.setdefault(track.id, set()).update(keys)
            self._evict_overflow()

    def remove(self, track_id: str) -> bool:
        """Drop a track and every key pointing at it."""
        with self._lock:
            return self._drop(track_id)

    def clear(self) -> None:
        with self._lock:
            self._tracks.clear()
            self._keys.clear()
            self._keys_by_id.clear()

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                entries=len(self._tracks),
                keys=len(self._keys),
                evictions=self._evictions,
            )

    # -------------------------------------------------------------------------
    # Internals (caller holds the lock)
    # -------------------------------------------------------------------------

    def _live_entry(self, track_id: str) -> _CacheEntry | None:
        entry = self._tracks.get(track_id)
        if entry is None:
            return None
        if self.ttl_seconds is not None and (
            self.clock() - entry.stored_at > self.ttl_seconds
        ):
            logger.debug("Cache entry expired", track_id=track_id)
            self._drop(track_id)
            return None
        return entry

    def _evict_overflow(self) -> None:
        if self.max_entries is None:
            return
        while len(self._tracks) > self.max_entries:
            oldest_id = next(iter(self._tracks))
            self._drop(oldest_id)
            self._evictions += 1
            logger.debug("Evicted cache entry", track_id=oldest_id)

    def _drop(self, track_id: str) -> bool:
        removed = self._tracks.pop(track_id, None) is not None
        for key in self._keys_by_id.pop(track_id, set()):
            if self._keys.get(key) == track_id:
                del self._keys[key]
        return removed
