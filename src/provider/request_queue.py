"""
Rate-Limited Request Queue.

Every outbound provider request goes through one RateLimitedQueue:
- FIFO order, one request in flight at a time
- At most ``max_per_window`` requests per ``window_seconds`` window
- When the window is full the worker sleeps until the window ends

Each submit() resolves (or raises) with exactly the outcome of the request
it submitted. A failing request never affects the requests queued behind it.
A caller that is cancelled (for example by a job timeout) aborts its request,
even one already in flight, and closing the queue cancels every waiting caller.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")

# API-Football free tier
DEFAULT_MAX_PER_WINDOW = 100
DEFAULT_WINDOW_SECONDS = 60.0


@dataclass
class RateWindow:
    """Requests sent in the current window and when the window opened."""

    request_count: int = 0
    window_start: float = 0.0

    def reset(self, now: float) -> None:
        self.request_count = 0
        self.window_start = now


class RateLimitedQueue:
    """
    Serializes requests and caps them per time window.

    The worker task is started lazily by the first submit() and exits when the
    queue drains; it is never shared between event loops.
    """

    def __init__(
        self,
        max_per_window: int = DEFAULT_MAX_PER_WINDOW,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize RateLimitedQueue.

        Args:
            max_per_window: Request ceiling per window
            window_seconds: Window length in seconds
            clock: Monotonic time source (injectable for testing)
            sleep: Coroutine used to wait out a full window
        """
        if max_per_window < 1:
            raise ValueError("max_per_window must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_per_window = max_per_window
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep

        self.window = RateWindow(window_start=clock())
        self._pending: deque[tuple[Callable[[], Awaitable], asyncio.Future]] = deque()
        self._worker: Optional[asyncio.Task] = None
        self.total_sent = 0

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def submit(self, request: Callable[[], Awaitable[T]]) -> T:
        """
        Enqueue a request and wait for its own result.

        Args:
            request: Zero-argument coroutine function performing the call

        Returns:
            Whatever the request returned

        Raises:
            Whatever the request raised
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._pending.append((request, future))

        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._drain())

        return await future

    async def _drain(self) -> None:
        while self._pending:
            request, future = self._pending.popleft()
            if future.done():
                # Caller gave up (cancelled or timed out); spend no budget
                continue

            try:
                await self._wait_for_slot()
            except asyncio.CancelledError:
                future.cancel()
                raise
            if future.done():
                continue
            self._count_request()

            # A caller that gives up mid-request aborts the request itself
            call = asyncio.ensure_future(request())
            abort = lambda f: call.cancel() if f.cancelled() else None
            future.add_done_callback(abort)

            try:
                await asyncio.wait({call})
            except asyncio.CancelledError:
                call.cancel()
                future.cancel()
                raise
            finally:
                future.remove_done_callback(abort)

            if call.cancelled():
                if not future.done():
                    future.cancel()
                continue
            error = call.exception()
            if future.done():
                continue
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(call.result())

    async def _wait_for_slot(self) -> None:
        now = self._clock()
        if now - self.window.window_start > self.window_seconds:
            self.window.reset(now)

        if self.window.request_count >= self.max_per_window:
            wait = max(0.0, self.window.window_start + self.window_seconds - now)
            logger.info(
                f"Rate limit reached ({self.max_per_window}/{self.window_seconds:.0f}s), "
                f"waiting {wait:.1f}s"
            )
            await self._sleep(wait)
            self.window.reset(self._clock())

    def _count_request(self) -> None:
        self.window.request_count += 1
        self.total_sent += 1

    async def close(self) -> None:
        """Stop the worker and cancel every request still waiting."""
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None

        while self._pending:
            _, future = self._pending.popleft()
            if not future.done():
                future.cancel()
