"""
FIFO request throttle for a single downstream API.

Every call is queued and dispatched by one draining worker, spaced at least
``1 / requests_per_second`` apart (measured dispatch-to-dispatch). Nothing
is ever dropped or retried: callers get exactly what their task produced.

Usage:
    limiter = RateLimiter(requests_per_second=5)
    payload = await limiter.execute(lambda: client.post(url, json=body))
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimiterCleared(Exception):
    """Raised to callers whose queued task was discarded by ``clear()``."""


@dataclass
class _QueuedRequest:
    task: Callable[[], Awaitable[Any]]
    future: asyncio.Future


class RateLimiter:
    """Single-worker FIFO throttle; each instance keeps its own pace."""

    def __init__(self, requests_per_second: float = 5, *, clock: Callable[[], float] = time.monotonic) -> None:
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        self.requests_per_second = requests_per_second
        self.min_interval = 1.0 / requests_per_second
        self._clock = clock
        self._queue: Deque[_QueuedRequest] = deque()
        self._processing = False
        self._last_dispatch: Optional[float] = None
        self._worker: Optional[asyncio.Task] = None

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    @property
    def processing(self) -> bool:
        return self._processing

    async def execute(self, task: Callable[[], Awaitable[T]]) -> T:
        """Queue ``task`` and return its own result once it has been dispatched."""

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._queue.append(_QueuedRequest(task=task, future=future))
        self._ensure_worker()
        return await future

    def clear(self) -> None:
        """Reject every queued, not yet dispatched request."""

        pending = list(self._queue)
        self._queue.clear()
        for request in pending:
            if not request.future.done():
                request.future.set_exception(RateLimiterCleared("Rate limiter cleared"))
        if pending:
            logger.info("Rate limiter cleared %d queued request(s)", len(pending))

    def _ensure_worker(self) -> None:
        if self._processing:
            return
        self._processing = True
        self._worker = asyncio.create_task(self._drain())

    @staticmethod
    def _settle(future: asyncio.Future, job: asyncio.Future) -> None:
        if job.cancelled():
            if not future.done():
                future.cancel()
            return
        exc = job.exception()
        if future.done():
            return
        if exc is not None:
            future.set_exception(exc)
        else:
            future.set_result(job.result())

    async def _drain(self) -> None:
        try:
            while self._queue:
                if self._last_dispatch is not None:
                    wait = self.min_interval - (self._clock() - self._last_dispatch)
                    if wait > 0:
                        await asyncio.sleep(wait)

                # clear() may have emptied the queue while we slept
                if not self._queue:
                    break
                request = self._queue.popleft()
                if request.future.done():
                    # Caller gave up before dispatch
                    continue

                self._last_dispatch = self._clock()
                # A task's own CancelledError belongs to its caller, not to the worker
                try:
                    job = asyncio.ensure_future(request.task())
                except Exception as exc:
                    request.future.set_exception(exc)
                    continue
                try:
                    await asyncio.wait({job})
                except asyncio.CancelledError:
                    job.cancel()
                    request.future.cancel()
                    raise
                self._settle(request.future, job)
        finally:
            self._processing = False
            self._worker = None
            # Only non-empty when the worker itself was cancelled
            if self._queue:
                self.clear()
