"""Pending-enrichment queue and its batch scheduler.

Events that miss the cache wait here until a flush hands them to the catalog.
A flush fires on whichever comes first:

- the periodic timer (``enrichment.batch_interval_seconds``)
- the pending count reaching ``batch_size``, checked on every submit

One background task owns all flushes, so batches run one at a time. The
pending map itself sits behind a single lock covering insert and drain, so an
entry is never handed to two batches.
"""

import asyncio
from collections.abc import Awaitable, Callable
import contextlib
from datetime import UTC, datetime
import threading

from attrs import define, field, validators

from loci.config import get_logger, settings
from loci.domain.entities import ListeningEvent, PartialListeningEvent, SessionMode

logger = get_logger(__name__).bind(service="batching")


@define(slots=True)
class PendingEnrichment:
    """A partial event waiting for batch resolution.

    ``future`` belongs to the caller's event loop; ``complete`` always resolves
    it on that loop, whichever thread the batch ran on.
    """

    event: PartialListeningEvent
    session_mode: SessionMode
    future: "asyncio.Future[ListeningEvent]"
    enqueued_at: datetime = field(factory=lambda: datetime.now(UTC))
    followers: list["asyncio.Future[ListeningEvent]"] = field(factory=list)
    completed: bool = field(init=False, default=False)

    @property
    def id(self) -> str:
        return self.event.id

    def complete(self, result: ListeningEvent) -> bool:
        """Deliver the terminal event. Only the first call has any effect."""
        if self.completed:
            return False
        self.completed = True
        for future in (self.future, *self.followers):
            _deliver(future, result)
        return True


def _deliver(future: "asyncio.Future[ListeningEvent]", result: ListeningEvent) -> None:
    def _set() -> None:
        if not future.done():
            future.set_result(result)

    loop = future.get_loop()
    try:
        running = asyncio.get_running_loop()
    except RuntimeError:
        running = None

    if running is loop:
        _set()
    else:
        loop.call_soon_threadsafe(_set)


@define(slots=True)
class PendingQueue:
    """Insertion-ordered map of pending enrichments keyed by event id."""

    _entries: dict[str, PendingEnrichment] = field(init=False, factory=dict)
    _lock: threading.Lock = field(init=False, factory=threading.Lock, repr=False)

    def enqueue(self, pending: PendingEnrichment) -> int:
        """Insert ``pending`` and return the new pending count.

        Re-submitting an id that is already waiting attaches the new future to
        the existing entry, so both callers get the same terminal event.
        """
        with self._lock:
            existing = self._entries.get(pending.id)
            if existing is not None:
                existing.followers.append(pending.future)
            else:
                self._entries[pending.id] = pending
            return len(self._entries)

    def drain(self, max_items: int) -> list[PendingEnrichment]:
        """Atomically remove and return up to ``max_items`` entries, oldest first."""
        with self._lock:
            batch_ids = list(self._entries)[:max_items]
            return [self._entries.pop(event_id) for event_id in batch_ids]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def is_empty(self) -> bool:
        return len(self) == 0


BatchHandler = Callable[[list[PendingEnrichment]], Awaitable[None]]


@define(slots=True)
class BatchScheduler:
    """Drives flushes of a PendingQueue from one background asyncio task.

    Attributes:
        handler: Coroutine that resolves a drained batch. It must complete
            every entry it receives.
        batch_size: Maximum entries per flush, also the size trigger
        interval: Seconds between timer-driven flushes
    """

    handler: BatchHandler
    batch_size: int = field(
        factory=lambda: settings.enrichment.batch_size,
        validator=[validators.instance_of(int), validators.ge(1)],
    )
    interval: float = field(factory=lambda: settings.enrichment.batch_interval_seconds)
    queue: PendingQueue = field(factory=PendingQueue)

    _wakeup: asyncio.Event = field(init=False, factory=asyncio.Event, repr=False)
    _flush_lock: asyncio.Lock = field(init=False, factory=asyncio.Lock, repr=False)
    _loop: asyncio.AbstractEventLoop | None = field(init=False, default=None, repr=False)
    _worker: "asyncio.Task[None] | None" = field(init=False, default=None, repr=False)
    _stopping: bool = field(init=False, default=False)

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        """Start the timer task on the running event loop."""
        if self.is_running:
            return
        self._loop = asyncio.get_running_loop()
        self._stopping = False
        # Fresh primitives in case a previous run used another loop
        self._wakeup = asyncio.Event()
        self._flush_lock = asyncio.Lock()
        self._worker = self._loop.create_task(self._run(), name="loci-batch-scheduler")
        logger.debug(
            "Batch scheduler started",
            batch_size=self.batch_size,
            interval=self.interval,
        )

    async def stop(self, drain: bool = True) -> None:
        """Stop the timer task; with ``drain`` flush everything still pending."""
        if self._worker is not None:
            self._stopping = True
            self._request_flush()
            await self._worker
            self._worker = None

        if drain:
            while not self.queue.is_empty:
                await self.flush()
        logger.debug("Batch scheduler stopped", remaining=len(self.queue))

    def submit(self, pending: PendingEnrichment) -> int:
        """Queue an enrichment; trigger an immediate flush at ``batch_size``."""
        count = self.queue.enqueue(pending)
        if count >= self.batch_size:
            logger.debug("Size trigger reached", pending=count)
            self._request_flush()
        return count

    async def flush(self) -> int:
        """Drain up to ``batch_size`` entries and hand them to the handler.

        Returns:
            Number of entries processed by this flush
        """
        async with self._flush_lock:
            batch = self.queue.drain(self.batch_size)
            if not batch:
                return 0

            logger.debug(
                f"Flushing batch of {len(batch)}",
                remaining=len(self.queue),
            )
            try:
                await self.handler(batch)
            except Exception as e:
                # The handler guarantees terminal events; keep the worker alive
                logger.exception(
                    "Batch handler failed",
                    batch_size=len(batch),
                    error=str(e),
                    error_type=type(e).__name__,
                )
            return len(batch)

    def _request_flush(self) -> None:
        if self._loop is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._wakeup.set)

    async def _run(self) -> None:
        while True:
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._wakeup.wait(), timeout=self.interval)
            self._wakeup.clear()

            await self.flush()
            # Sustained overload: keep pace without waiting for the timer
            while len(self.queue) >= self.batch_size:
                await self.flush()

            if self._stopping:
                return
