"""Priority request queue and batch scheduler.

Requests wait in the queue until a tick selects an admissible batch. Ticks
are driven by a periodic loop and, when the queue is idle, by an eager
trigger on enqueue. Only one batch is in flight at a time.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import List, Optional, Set

from translation_gateway.core.exceptions import (
    RequestTooLargeError,
    SchedulerStoppedError,
)
from translation_gateway.metrics.translation_metrics import (
    translation_batch_size,
    translation_batches_dispatched_total,
    translation_queue_length,
)
from translation_gateway.services.translation.cache import TranslationCache
from translation_gateway.services.translation.deduplicator import (
    Deduplicator,
    DispatchReport,
)
from translation_gateway.services.translation.queued_request import (
    PRIORITY_STANDARD,
    QueuedRequest,
)
from translation_gateway.services.translation.rate_limiter import (
    RateLimitConfig,
    SlidingWindowRateLimiter,
)
from translation_gateway.services.translation.token_estimator import estimate_tokens

logger = logging.getLogger(__name__)


class TranslationScheduler:
    """Holds pending requests and dispatches them in rate-limited batches.

    Lifecycle:
    - ``start()`` launches the tick loop and the cache sweep loop
    - ``stop()`` cancels both and rejects everything still queued
    - also usable as ``async with TranslationScheduler(...)``

    All state is mutated from the event loop only; no locking is needed.
    """

    def __init__(
        self,
        limiter: SlidingWindowRateLimiter,
        deduplicator: Deduplicator,
        cache: TranslationCache,
        tick_interval_seconds: float = 1.0,
        sweep_interval_seconds: float = 300.0,
    ):
        """Initialize the scheduler.

        Args:
            limiter: Admission control shared with the stats endpoint.
            deduplicator: Dispatcher for selected batches.
            cache: Cache swept periodically by the sweep loop.
            tick_interval_seconds: Delay between periodic ticks.
            sweep_interval_seconds: Delay between cache sweeps.
        """
        self.limiter = limiter
        self.deduplicator = deduplicator
        self.cache = cache
        self.tick_interval_seconds = tick_interval_seconds
        self.sweep_interval_seconds = sweep_interval_seconds

        self._queue: List[QueuedRequest] = []
        self._processing = False
        self._running = False
        self._tick_task: Optional[asyncio.Task] = None
        self._sweep_task: Optional[asyncio.Task] = None
        self._eager_ticks: Set[asyncio.Task] = set()

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def is_running(self) -> bool:
        return self._running

    async def __aenter__(self) -> TranslationScheduler:
        await self.start()
        return self

    async def __aexit__(self, *args) -> None:
        await self.stop()

    async def start(self) -> None:
        """Start the tick and cache sweep loops."""
        if self._running:
            return
        self._running = True
        self._tick_task = asyncio.create_task(self._tick_loop())
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.info(
            f"Translation scheduler started (tick={self.tick_interval_seconds}s, "
            f"sweep={self.sweep_interval_seconds}s)"
        )

    async def stop(self) -> None:
        """Stop both loops and reject requests that were never dispatched."""
        self._running = False
        tasks = [
            task
            for task in (self._tick_task, self._sweep_task, *self._eager_ticks)
            if task is not None
        ]
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
        self._tick_task = None
        self._sweep_task = None
        self._eager_ticks.clear()

        pending, self._queue = self._queue, []
        for request in pending:
            request.reject(SchedulerStoppedError("Translation scheduler stopped"))
        translation_queue_length.set(0)
        logger.info(
            f"Translation scheduler stopped ({len(pending)} queued request(s) rejected)"
        )

    def enqueue(
        self,
        text: str,
        target_language: str,
        priority: int = PRIORITY_STANDARD,
    ) -> asyncio.Future:
        """Queue a translation and return the future it will settle.

        Must be called from the event loop. If no batch is in flight and the
        request alone would be admitted, a tick runs right away instead of
        waiting for the next interval.
        """
        future = asyncio.get_running_loop().create_future()
        tokens = estimate_tokens(text)

        tpm = self.limiter.config.tpm
        if tokens > tpm:
            # Could never be admitted, even with an empty window
            future.set_exception(RequestTooLargeError(tokens, tpm))
            return future

        request = QueuedRequest(
            text=text,
            target_language=target_language,
            priority=priority,
            estimated_tokens=tokens,
            completion=future,
        )
        self._queue.append(request)
        translation_queue_length.set(len(self._queue))

        if not self._processing and self.limiter.try_admit(tokens):
            self._schedule_tick()
        return future

    def reconfigure(self, config: RateLimitConfig) -> None:
        """Replace the limiter config and drop requests it can never admit."""
        self.limiter.reconfigure(config)
        self._reject_oversized()

    def _reject_oversized(self) -> None:
        tpm = self.limiter.config.tpm
        oversized = [r for r in self._queue if r.estimated_tokens > tpm]
        if not oversized:
            return
        self._queue = [r for r in self._queue if r.estimated_tokens <= tpm]
        for request in oversized:
            request.reject(RequestTooLargeError(request.estimated_tokens, tpm))
        translation_queue_length.set(len(self._queue))
        logger.warning(
            f"Rejected {len(oversized)} queued request(s) above the {tpm} tokens/minute budget"
        )

    def _schedule_tick(self) -> None:
        task = asyncio.create_task(self.process_queue())
        self._eager_ticks.add(task)
        task.add_done_callback(self._eager_ticks.discard)

    def _select_batch(self) -> List[QueuedRequest]:
        """Walk the queue in priority order and collect an admissible batch.

        The walk stops at the first request that does not fit; requests
        behind it wait for a later tick even if they would fit on their own.
        """
        self._reject_oversized()
        self._queue.sort(key=lambda request: request.sort_key)

        config = self.limiter.config
        # Keep one batch from draining the whole per-minute budget
        token_guard = config.tpm / 4

        batch: List[QueuedRequest] = []
        batch_tokens = 0
        for request in self._queue:
            if len(batch) >= config.batch_size:
                break
            candidate_tokens = batch_tokens + request.estimated_tokens
            if batch and candidate_tokens > token_guard:
                break
            if not self.limiter.try_admit(candidate_tokens):
                break
            batch.append(request)
            batch_tokens = candidate_tokens
        return batch

    async def process_queue(self) -> Optional[DispatchReport]:
        """Run one scheduling tick.

        Never raises: a failure rejects every unresolved request of the
        attempted batch and releases the in-flight flag.

        Returns:
            Dispatch report, or None if nothing was dispatched.
        """
        if self._processing or not self._queue:
            return None

        self._processing = True
        batch: List[QueuedRequest] = []
        admitted = False
        try:
            batch = self._select_batch()
            if not batch:
                logger.debug(
                    f"No admissible requests this tick ({len(self._queue)} queued)"
                )
                return None

            batch_tokens = sum(request.estimated_tokens for request in batch)
            self.limiter.record_admission(batch_tokens)
            admitted = True
            translation_batches_dispatched_total.inc()
            translation_batch_size.observe(len(batch))
            logger.debug(
                f"Dispatching batch of {len(batch)} request(s), ~{batch_tokens} tokens"
            )
            return await self.deduplicator.dispatch(batch)
        except asyncio.CancelledError:
            for request in batch:
                request.reject(SchedulerStoppedError("Translation scheduler stopped"))
            raise
        except Exception as e:
            logger.exception("Translation queue processing error")
            for request in batch:
                request.reject(e)
            return None
        finally:
            if batch:
                dispatched = set(batch)
                self._queue = [r for r in self._queue if r not in dispatched]
                translation_queue_length.set(len(self._queue))
            if admitted:
                self.limiter.record_completion()
            self._processing = False

    async def _tick_loop(self) -> None:
        while self._running:
            try:
                await self.process_queue()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Translation tick failed; continuing")
            await asyncio.sleep(self.tick_interval_seconds)

    async def _sweep_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                self.cache.sweep_expired()
            except Exception:
                logger.exception("Translation cache sweep failed; continuing")
