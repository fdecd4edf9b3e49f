"""Enrichment orchestration for partial listening events.

Two call patterns share one cache and one catalog client:

- ``enrich``: real time. Cache hit returns at once; a miss waits in the
  pending queue for the next batch flush.
- ``reconcile``: end of session. Match against the provider's
  recently-played history, search individually for what is left, and fall
  back to the raw partial data for anything still unresolved.

Every partial event yields exactly one terminal ``ListeningEvent``. Failures
from the catalog only decide which kind.
"""

import asyncio
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any

from loci.application.utilities.batching import BatchScheduler, PendingEnrichment
from loci.config import get_logger, settings
from loci.domain.entities import (
    CanonicalTrack,
    EnrichmentSource,
    ListeningEvent,
    PartialListeningEvent,
    SearchQuery,
    SessionMode,
    create_enriched_event,
    create_fallback_event,
)
from loci.domain.matching import match_events, score_candidate
from loci.domain.repositories import CatalogClientProtocol, TrackCacheProtocol
from loci.infrastructure.persistence import TrackCache, make_cache_key

logger = get_logger(__name__)

_UNSET: Any = object()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class EnrichmentEngine:
    """Attaches canonical catalog metadata to partial listening events.

    Construct one per application with its collaborators; nothing here is a
    process-wide singleton. Use as an async context manager, or call
    ``start``/``stop`` explicitly, to bound the lifetime of the batch timer.
    """

    def __init__(
        self,
        catalog: CatalogClientProtocol,
        cache: TrackCacheProtocol | None = None,
        *,
        batch_size: int | None = None,
        batch_interval: float | None = None,
        match_window_seconds: float | None = None,
        match_threshold: float | None = None,
        reconcile_timeout: float | None = _UNSET,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize with catalog, cache and scheduling policy.

        Args:
            catalog: Catalog client used for search and history
            cache: Track cache; a fresh in-memory TrackCache when omitted
            batch_size: Size trigger and per-flush cap, never above the
                provider's maximum batch size
            batch_interval: Seconds between timer-driven flushes
            match_window_seconds: Time window for history matching
            match_threshold: Scores must be strictly above this to match
            reconcile_timeout: Deadline for ``reconcile`` in seconds, None for none
            clock: Source of "now" for enqueue timestamps
        """
        config = settings.enrichment
        self.catalog = catalog
        self.cache = cache if cache is not None else TrackCache()
        self.match_window_seconds = (
            config.match_window_seconds
            if match_window_seconds is None
            else match_window_seconds
        )
        self.match_threshold = (
            config.match_threshold if match_threshold is None else match_threshold
        )
        self.reconcile_timeout = (
            config.reconcile_timeout_seconds
            if reconcile_timeout is _UNSET
            else reconcile_timeout
        )
        self._clock = clock
        self.scheduler = BatchScheduler(
            handler=self._process_batch,
            batch_size=min(
                batch_size or config.batch_size, settings.api.spotify_batch_size
            ),
            interval=config.batch_interval_seconds
            if batch_interval is None
            else batch_interval,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "EnrichmentEngine":
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    def start(self) -> None:
        self.scheduler.start()

    async def stop(self) -> None:
        """Stop the batch timer, resolving everything still pending first."""
        await self.scheduler.stop(drain=True)

    async def flush(self) -> int:
        """Force a batch flush now; returns how many events it processed."""
        return await self.scheduler.flush()

    @property
    def pending_count(self) -> int:
        return len(self.scheduler.queue)

    # -------------------------------------------------------------------------
    # Real-time enrichment
    # -------------------------------------------------------------------------

    def submit(
        self,
        partial: PartialListeningEvent,
        session_mode: SessionMode = SessionMode.UNKNOWN,
        callback: Callable[[ListeningEvent], Any] | None = None,
    ) -> "asyncio.Future[ListeningEvent]":
        """Start enriching ``partial`` and return a future for its terminal event.

        Must be called from a running event loop. ``callback``, if given, runs
        on that same loop once the event is terminal.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[ListeningEvent] = loop.create_future()
        if callback is not None:
            future.add_done_callback(
                lambda done: None if done.cancelled() else callback(done.result())
            )

        cached = self.cache.lookup(partial.track_name, partial.artist_name)
        if cached is not None:
            logger.debug("Cache hit", event_id=partial.id, track_id=cached.id)
            future.set_result(
                create_enriched_event(
                    partial, cached, session_mode, EnrichmentSource.CACHE
                )
            )
            return future

        if not self.scheduler.is_running:
            self.scheduler.start()
        self.scheduler.submit(
            PendingEnrichment(
                event=partial,
                session_mode=session_mode,
                future=future,
                enqueued_at=self._clock(),
            )
        )
        return future

    async def enrich(
        self,
        partial: PartialListeningEvent,
        session_mode: SessionMode = SessionMode.UNKNOWN,
        callback: Callable[[ListeningEvent], Any] | None = None,
    ) -> ListeningEvent:
        """Enrich one partial event, waiting for batch resolution on a cache miss."""
        return await self.submit(partial, session_mode, callback)

    async def _process_batch(self, batch: list[PendingEnrichment]) -> None:
        """Resolve a drained batch; every entry ends up completed."""
        try:
            await self._resolve_pending(batch)
        finally:
            unresolved = [pending for pending in batch if not pending.completed]
            if unresolved:
                logger.warning(
                    f"Falling back for {len(unresolved)} unresolved events",
                    batch_size=len(batch),
                )
            for pending in unresolved:
                pending.complete(
                    create_fallback_event(pending.event, pending.session_mode)
                )

    async def _resolve_pending(self, batch: list[PendingEnrichment]) -> None:
        # Same (title, artist) inside one batch costs one lookup
        groups: dict[str, list[PendingEnrichment]] = {}
        for pending in batch:
            key = make_cache_key(pending.event.track_name, pending.event.artist_name)
            groups.setdefault(key, []).append(pending)

        queries: list[SearchQuery] = []
        for key, members in groups.items():
            first = members[0].event
            cached = self.cache.lookup(first.track_name, first.artist_name)
            if cached is not None:
                self._complete_group(members, cached, EnrichmentSource.CACHE)
                continue
            queries.append(
                SearchQuery(
                    track=first.track_name, artist=first.artist_name, request_id=key
                )
            )

        if not queries:
            return

        now = self._clock()
        oldest_wait = max((now - pending.enqueued_at).total_seconds() for pending in batch)
        logger.info(
            f"Resolving {len(queries)} queries for {len(batch)} pending events",
            oldest_wait_seconds=round(oldest_wait, 2),
        )
        results = await self.catalog.resolve_batch(queries)

        for query in queries:
            track = results.get(query.request_id)
            if track is None:
                continue
            self.cache.put(track, aliases=[(query.track, query.artist)])
            self._complete_group(groups[query.request_id], track, EnrichmentSource.BATCH)

    @staticmethod
    def _complete_group(
        members: list[PendingEnrichment],
        track: CanonicalTrack,
        source: EnrichmentSource,
    ) -> None:
        for pending in members:
            pending.complete(
                create_enriched_event(pending.event, track, pending.session_mode, source)
            )

    # -------------------------------------------------------------------------
    # Session reconciliation
    # -------------------------------------------------------------------------

    async def reconcile(
        self,
        session_start: datetime,
        session_end: datetime,
        partials: Iterable[PartialListeningEvent],
        session_mode: SessionMode = SessionMode.ACTIVE,
        timeout: float | None = _UNSET,
    ) -> list[ListeningEvent]:
        """Reconcile a finished session's partial events.

        1. Fetch authoritative history for the session window.
        2. Fuzzy-match every partial against it.
        3. Search individually for partials the history did not explain.
        4. Build fallback events for whatever is still unresolved.

        Args:
            session_start: Start of the session window
            session_end: End of the session window
            partials: Partial events captured during the session
            session_mode: Carried into every terminal event
            timeout: Seconds before remaining partials become fallbacks;
                defaults to the configured reconcile timeout, None waits forever

        Returns:
            One terminal event per input partial, in input order
        """
        partials = list(partials)
        if not partials:
            return []

        deadline = self.reconcile_timeout if timeout is _UNSET else timeout
        resolved: dict[str, ListeningEvent] = {}
        try:
            async with asyncio.timeout(deadline):
                await self._reconcile_into(
                    resolved, session_start, session_end, partials, session_mode
                )
        except TimeoutError:
            logger.warning(
                f"Reconciliation timed out after {deadline}s",
                resolved=len(resolved),
                total=len(partials),
            )

        events = [
            resolved.get(partial.id) or create_fallback_event(partial, session_mode)
            for partial in partials
        ]
        counts: dict[str, int] = {}
        for event in events:
            source = str(event.source)
            counts[source] = counts.get(source, 0) + 1
        logger.info(f"Reconciled {len(events)} events", **counts)
        return events

    async def _reconcile_into(
        self,
        resolved: dict[str, ListeningEvent],
        session_start: datetime,
        session_end: datetime,
        partials: list[PartialListeningEvent],
        session_mode: SessionMode,
    ) -> None:
        try:
            history = await self.catalog.fetch_recent_history(session_start, session_end)
        except Exception as e:
            logger.exception(f"History fetch failed unexpectedly: {e}")
            history = []

        matches = match_events(
            partials,
            history,
            window_seconds=self.match_window_seconds,
            threshold=self.match_threshold,
        )
        for partial in partials:
            record = matches.get(partial.id)
            if record is None:
                continue
            logger.debug(
                "History match",
                event_id=partial.id,
                track_id=record.track.id,
                **score_candidate(partial, record).as_dict(),
            )
            self.cache.put(record.track, aliases=[(partial.track_name, partial.artist_name)])
            resolved[partial.id] = create_enriched_event(
                partial, record.track, session_mode, EnrichmentSource.HISTORY
            )

        leftovers = [partial for partial in partials if partial.id not in resolved]
        logger.debug(
            "History matching complete",
            history_records=len(history),
            matched=len(resolved),
            leftovers=len(leftovers),
        )

        for partial in leftovers:
            cached = self.cache.lookup(partial.track_name, partial.artist_name)
            if cached is not None:
                resolved[partial.id] = create_enriched_event(
                    partial, cached, session_mode, EnrichmentSource.CACHE
                )
                continue

            try:
                track = await self.catalog.resolve(partial.track_name, partial.artist_name)
            except Exception as e:
                logger.exception(f"Search fallback failed unexpectedly: {e}")
                track = None

            if track is None:
                continue
            self.cache.put(track, aliases=[(partial.track_name, partial.artist_name)])
            resolved[partial.id] = create_enriched_event(
                partial, track, session_mode, EnrichmentSource.SEARCH
            )
