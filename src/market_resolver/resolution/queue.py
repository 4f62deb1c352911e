"""Bounded-concurrency job queue with per-market deduplication."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

import structlog

from market_resolver.events.models import ResolutionResult, ResolutionState

logger = structlog.get_logger(__name__)

ResolutionHandler = Callable[[str], Awaitable[ResolutionResult]]


@dataclass(slots=True)
class QueueStats:
    submitted: int = 0
    coalesced: int = 0
    completed: int = 0
    failed: int = 0


class ResolutionQueue:
    """Runs resolution jobs keyed by market id.

    A market is either absent, queued or running; submitting it again in the
    latter two states is a no-op, so at most one job per market is active.
    At most ``concurrency`` jobs run at once and at most ``concurrency`` jobs
    start per ``interval_seconds``.
    """

    def __init__(
        self,
        handler: ResolutionHandler,
        *,
        concurrency: int = 10,
        interval_seconds: float = 1.0,
        follow_up_grace_seconds: float = 5.0,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._handler = handler
        self.concurrency = concurrency
        self.interval_seconds = interval_seconds
        self.follow_up_grace_seconds = follow_up_grace_seconds

        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._queued: set[str] = set()
        self._running: set[str] = set()
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._workers: list[asyncio.Task[None]] = []
        self._closed = False
        self._stats = QueueStats()

        self._rate_lock = asyncio.Lock()
        self._window_started = 0.0
        self._window_starts = 0

    @property
    def size(self) -> int:
        """Jobs admitted but not yet started."""
        return len(self._queued)

    @property
    def pending(self) -> int:
        """Jobs currently running."""
        return len(self._running)

    @property
    def scheduled(self) -> int:
        return len(self._timers)

    @property
    def closed(self) -> bool:
        return self._closed

    def stats(self) -> dict[str, int]:
        return {
            "submitted": self._stats.submitted,
            "coalesced": self._stats.coalesced,
            "completed": self._stats.completed,
            "failed": self._stats.failed,
        }

    def start(self) -> None:
        """Spawn worker tasks on the running event loop."""

        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"resolution-worker-{index}")
            for index in range(self.concurrency)
        ]
        logger.info(
            "resolution_queue_started",
            concurrency=self.concurrency,
            interval_seconds=self.interval_seconds,
        )

    def submit(self, market_id: str) -> bool:
        """Admit a job for ``market_id`` without waiting for it.

        Returns False when the queue is draining or the market already has a
        queued or running job.
        """

        if self._closed:
            logger.warning("resolution_submit_rejected_draining", market_id=market_id)
            return False
        if market_id in self._queued or market_id in self._running:
            self._stats.coalesced += 1
            logger.debug("resolution_submit_coalesced", market_id=market_id)
            return False

        self.start()
        self._queued.add(market_id)
        self._queue.put_nowait(market_id)
        self._stats.submitted += 1
        logger.debug("resolution_submitted", market_id=market_id, queue_size=self.size)
        return True

    def submit_later(self, market_id: str, delay_seconds: float) -> None:
        """Submit ``market_id`` after ``delay_seconds``; replaces an earlier timer."""

        if self._closed:
            return
        existing = self._timers.pop(market_id, None)
        if existing is not None:
            existing.cancel()

        loop = asyncio.get_running_loop()
        self._timers[market_id] = loop.call_later(
            max(delay_seconds, 0.0), self._fire_timer, market_id
        )
        logger.info("resolution_follow_up_scheduled", market_id=market_id, delay_seconds=delay_seconds)

    def _fire_timer(self, market_id: str) -> None:
        self._timers.pop(market_id, None)
        self.submit(market_id)

    async def drain(self, timeout: float | None = None) -> None:
        """Stop admissions, let admitted jobs finish, then stop the workers.

        Follow-up timers are dropped; running jobs are never cancelled.
        """

        self._closed = True
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()

        logger.info("resolution_queue_draining", queued=self.size, running=self.pending)
        if self._workers:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)

        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("resolution_queue_drained", **self.stats())

    async def join(self) -> None:
        """Wait until every admitted job has finished."""
        await self._queue.join()

    async def _acquire_start_slot(self) -> None:
        async with self._rate_lock:
            now = time.monotonic()
            if now - self._window_started >= self.interval_seconds:
                self._window_started = now
                self._window_starts = 0
            if self._window_starts >= self.concurrency:
                await asyncio.sleep(self._window_started + self.interval_seconds - now)
                self._window_started = time.monotonic()
                self._window_starts = 0
            self._window_starts += 1

    async def _worker(self, index: int) -> None:
        while True:
            market_id = await self._queue.get()
            try:
                await self._acquire_start_slot()
                self._queued.discard(market_id)
                self._running.add(market_id)
                await self._run(market_id)
            finally:
                self._queued.discard(market_id)
                self._running.discard(market_id)
                self._queue.task_done()

    async def _run(self, market_id: str) -> None:
        log = logger.bind(market_id=market_id)
        try:
            result = await self._handler(market_id)
        except Exception:
            self._stats.failed += 1
            log.exception("resolution_job_crashed")
            return

        if result.success:
            self._stats.completed += 1
            log.info(
                "resolution_job_finished",
                state=result.state.value,
                outcome=result.outcome,
                tx_hash=result.transaction_hash,
                attempts=result.attempts,
            )
        elif result.state is ResolutionState.AWAITING_DISPUTE:
            self._stats.completed += 1
            log.info("resolution_job_waiting", retry_after=result.retry_after)
        else:
            self._stats.failed += 1
            log.warning("resolution_job_failed", reason=result.reason, attempts=result.attempts)

        if result.retry_after is not None and not self._closed:
            self.submit_later(market_id, result.retry_after + self.follow_up_grace_seconds)


__all__ = ["QueueStats", "ResolutionHandler", "ResolutionQueue"]
