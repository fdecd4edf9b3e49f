"""Spotify catalog client with domain model conversion.

This module wraps the spotipy library (https://spotipy.readthedocs.io/) to
answer the three questions the enrichment engine asks the catalog:

- search by title/artist, then fetch track detail and artist genre, composed
  into one CanonicalTrack (``resolve``)
- the same for a batch of queries, serialized with a fixed delay between
  calls to stay under Spotify's rate limits (``resolve_batch``)
- what the user actually played recently (``fetch_recent_history``)

Every public operation reports failure as absence (None or an empty
collection). Raw spotipy calls raise the taxonomy in ``loci.domain.errors``;
``resilient_operation`` absorbs it at the public boundary.
"""

import asyncio
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

from attrs import define, field
import backoff
import requests
import spotipy
from spotipy.oauth2 import SpotifyOAuth

from loci.config import get_logger, resilient_operation, settings
from loci.domain.entities import (
    AuthoritativePlayRecord,
    CanonicalTrack,
    SearchQuery,
    to_utc,
)
from loci.domain.errors import (
    CatalogError,
    DecodeFailure,
    NetworkFailure,
    NoMatchFound,
    RateLimited,
)

# Get contextual logger with service binding
logger = get_logger(__name__).bind(service="spotify")

SPOTIFY_SCOPES = ["user-read-recently-played"]

# Statuses worth another attempt. Auth failures (401/403) are never retried.
RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


def _is_permanent(error: Exception) -> bool:
    return getattr(error, "http_status", None) not in RETRYABLE_STATUSES


def _on_backoff(details: dict[str, Any]) -> None:
    logger.warning(
        f"Backing off {details['target'].__name__} (attempt {details['tries']})",
        retry_delay=f"{details['wait']:.2f}s",
    )


@backoff.on_exception(
    backoff.expo,
    spotipy.SpotifyException,
    max_tries=lambda: settings.api.spotify_retry_count,
    max_value=settings.api.spotify_retry_max_delay,
    giveup=_is_permanent,
    on_backoff=_on_backoff,
)
async def _call_spotify(method: Callable[..., Any], *args, **kwargs) -> Any:
    """Run a blocking spotipy call off the event loop, retrying transient errors."""
    return await asyncio.to_thread(method, *args, **kwargs)


def _default_client() -> spotipy.Spotify:
    credentials = settings.credentials
    return spotipy.Spotify(
        auth_manager=SpotifyOAuth(
            client_id=credentials.spotify_client_id or None,
            client_secret=credentials.spotify_client_secret or None,
            redirect_uri=credentials.spotify_redirect_uri,
            scope=SPOTIFY_SCOPES,
            open_browser=False,
            cache_handler=spotipy.CacheFileHandler(cache_path=".spotify_cache"),
        ),
    )


@define(slots=True)
class SpotifyCatalogClient:
    """Thin async wrapper around spotipy speaking CanonicalTrack.

    The bearer credential lives in the spotipy client's auth manager. This
    class only reads it through spotipy and never refreshes or retries on
    auth failure.
    """

    client: spotipy.Spotify = field(factory=_default_client, repr=False)
    request_delay: float = field(factory=lambda: settings.api.spotify_request_delay)
    history_limit: int = field(factory=lambda: settings.api.spotify_history_limit)
    market: str = field(factory=lambda: settings.api.spotify_market)

    # -------------------------------------------------------------------------
    # Public operations (never raise CatalogError)
    # -------------------------------------------------------------------------

    @resilient_operation("spotify_resolve", fallback=None, absorb=(CatalogError,))
    async def resolve(self, title: str, artist: str) -> CanonicalTrack | None:
        """Search, then detail, then artist genre, composed into one track.

        Args:
            title: Raw track title as captured on device
            artist: Raw artist string as captured on device

        Returns:
            CanonicalTrack for the top search hit, or None if any step fails
        """
        hit = await self.search_track(title, artist)
        detail = await self.get_track(hit["id"])

        artist_id = _first_artist(detail).get("id")
        genre = await self.get_artist_genre(artist_id) if artist_id else None

        track = convert_spotify_track(detail, genre=genre)
        logger.debug(
            "Resolved track",
            query_title=title,
            query_artist=artist,
            track_id=track.id,
            genre=genre,
        )
        return track

    async def resolve_batch(
        self, queries: Sequence[SearchQuery]
    ) -> dict[str, CanonicalTrack]:
        """Resolve each query in order, one at a time.

        The delay between calls is deliberate: a flush trades latency for
        staying clear of provider throttling.

        Returns:
            Mapping of ``request_id`` to resolved track; misses are absent.
        """
        results: dict[str, CanonicalTrack] = {}
        if not queries:
            return results

        logger.debug(f"Resolving batch of {len(queries)} queries")
        for index, query in enumerate(queries):
            if index and self.request_delay > 0:
                await asyncio.sleep(self.request_delay)
            try:
                track = await self.resolve(query.track, query.artist)
            except Exception as e:
                # Traceback already logged by resolve
                logger.warning(
                    f"Skipping query after unexpected error: {e}",
                    request_id=query.request_id,
                )
                continue
            if track is not None:
                results[query.request_id] = track

        logger.info(f"Resolved {len(results)}/{len(queries)} queries in batch")
        return results

    @resilient_operation(
        "spotify_recent_history", fallback=list, absorb=(CatalogError,)
    )
    async def fetch_recent_history(
        self, start: datetime, end: datetime
    ) -> list[AuthoritativePlayRecord]:
        """Fetch recently-played records between ``start`` and ``end``.

        Spotify caps this endpoint at 50 items and a short retention window,
        so long sessions may only be partially covered.

        Returns:
            Records ordered by ``played_at``; empty on any failure.
        """
        start, end = to_utc(start), to_utc(end)
        response = await self._call(
            "recently_played",
            self.client.current_user_recently_played,
            limit=self.history_limit,
            after=int(start.timestamp() * 1000),
        )

        items = response.get("items") if isinstance(response, dict) else None
        if not isinstance(items, list):
            raise DecodeFailure("recently-played response has no items list")

        records = []
        for item in items:
            try:
                record = convert_recent_item(item)
            except DecodeFailure as e:
                logger.warning(f"Skipping malformed history item: {e}")
                continue
            if start <= record.played_at <= end:
                records.append(record)

        records.sort(key=lambda record: record.played_at)
        logger.info(
            f"Fetched {len(records)} history records",
            window_start=start.isoformat(),
            window_end=end.isoformat(),
            raw_items=len(items),
        )
        return records

    # -------------------------------------------------------------------------
    # Individual lookups (raise CatalogError)
    # -------------------------------------------------------------------------

    async def search_track(self, title: str, artist: str) -> dict[str, Any]:
        """Top search hit for a title/artist pair.

        Raises:
            NoMatchFound: search returned no items
        """
        query = f"track:{title} artist:{artist}"
        logger.debug(f"Searching Spotify with query: {query}")
        results = await self._call(
            "search",
            self.client.search,
            query,
            type="track",
            limit=1,
            market=self.market,
        )

        try:
            items = (results or {}).get("tracks", {}).get("items", [])
        except AttributeError as e:
            raise DecodeFailure(f"unexpected search payload: {e}") from e
        if not isinstance(items, list):
            raise DecodeFailure(f"search items is {type(items).__name__}, not a list")

        if not items or not isinstance(items[0], dict) or "id" not in items[0]:
            raise NoMatchFound(f"no search results for {title!r} by {artist!r}")
        return items[0]

    async def get_track(self, track_id: str) -> dict[str, Any]:
        detail = await self._call("track", self.client.track, track_id, market=self.market)
        if not isinstance(detail, dict):
            raise DecodeFailure(f"unexpected track payload for {track_id}")
        return detail

    async def get_artist_genre(self, artist_id: str) -> str | None:
        """First genre listed on the artist; None when the artist lists none.

        Spotify does not put genres on track objects, so this is a separate call.
        """
        artist = await self._call("artist", self.client.artist, artist_id)
        if not isinstance(artist, dict):
            raise DecodeFailure(f"unexpected artist payload for {artist_id}")
        genres = artist.get("genres") or []
        if not isinstance(genres, list) or not all(isinstance(g, str) for g in genres):
            raise DecodeFailure(f"unexpected genres for {artist_id}: {genres!r}")
        return genres[0] if genres else None

    async def _call(
        self, operation: str, method: Callable[..., Any], *args, **kwargs
    ) -> Any:
        """Invoke spotipy and translate its failures into the catalog taxonomy."""
        try:
            return await _call_spotify(method, *args, **kwargs)
        except spotipy.SpotifyException as e:
            if e.http_status == 429:
                retry_after = (e.headers or {}).get("Retry-After")
                raise RateLimited(
                    f"{operation} rate limited",
                    retry_after=float(retry_after) if retry_after else None,
                ) from e
            raise NetworkFailure(
                f"{operation} failed: {e.msg}", status=e.http_status
            ) from e
        except requests.RequestException as e:
            raise NetworkFailure(f"{operation} transport error: {e}") from e
        except ValueError as e:
            # Undecodable JSON bodies surface from requests as ValueError
            raise DecodeFailure(f"{operation} returned undecodable body: {e}") from e


# =============================================================================
# CONVERSION UTILITIES
# =============================================================================


def _first_artist(spotify_track: dict[str, Any]) -> dict[str, Any]:
    artists = spotify_track.get("artists") or []
    return artists[0] if artists and isinstance(artists[0], dict) else {}


def convert_spotify_track(
    spotify_track: dict[str, Any], genre: str | None = None
) -> CanonicalTrack:
    """Convert a Spotify track object to a CanonicalTrack.

    Raises:
        DecodeFailure: required fields are missing or malformed
    """
    try:
        album = spotify_track.get("album") or {}
        images = album.get("images") or []
        return CanonicalTrack(
            id=spotify_track["id"],
            name=spotify_track["name"],
            artist=_first_artist(spotify_track).get("name", "Unknown"),
            album=album.get("name", ""),
            genre=genre,
            duration_ms=int(spotify_track.get("duration_ms") or 0),
            popularity=spotify_track.get("popularity"),
            image_url=images[0].get("url") if images else None,
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise DecodeFailure(f"malformed track object: {e!r}") from e


def parse_spotify_timestamp(value: str) -> datetime:
    """Parse Spotify's ISO 8601 timestamps ("2023-09-21T15:48:56.123Z")."""
    try:
        return to_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except (AttributeError, ValueError) as e:
        raise DecodeFailure(f"could not parse timestamp {value!r}") from e


def convert_recent_item(item: dict[str, Any]) -> AuthoritativePlayRecord:
    """Convert a recently-played item ({track, played_at}) to a play record.

    The history endpoint never carries genre, so ``genre`` is always None here.
    """
    if not isinstance(item, dict) or "track" not in item or "played_at" not in item:
        raise DecodeFailure("history item lacks track or played_at")
    return AuthoritativePlayRecord(
        track=convert_spotify_track(item["track"]),
        played_at=parse_spotify_timestamp(item["played_at"]),
    )
