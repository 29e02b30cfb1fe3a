"""
Rate-limited request queue for outbound data provider calls.

Every provider call is funnelled through a single FIFO queue that dispatches
at most ``max_requests`` calls per rate window. When the quota is used up the
drain loop exits and a single timer resumes it when the window resets, so
no coroutine ever busy-waits on the limit.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, asdict
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, Set

from sopr_tracker.models.core import RateLimitState
from sopr_tracker.utils.errors import RequestQueueClosedError

logger = logging.getLogger(__name__)


@dataclass
class QueueMetrics:
    """Counters describing queue behaviour."""
    submitted: int = 0
    dispatched: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    deferrals: int = 0
    window_resets: int = 0
    max_wait_seconds: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass
class QueuedRequest:
    """A pending call and the future its caller is awaiting."""
    operation: Callable[..., Awaitable[Any]]
    args: tuple
    kwargs: Dict[str, Any]
    future: asyncio.Future
    timeout: Optional[float] = None
    label: str = "request"
    enqueued_at: float = 0.0


class RateLimitedRequestQueue:
    """
    FIFO request queue that throttles dispatch to a fixed quota per window.

    Features:
    - At most ``max_requests`` dispatches per ``window_seconds``
    - Fixed inter-request delay to smooth bursts within the quota
    - One drain loop at a time, resumed by a single deferred timer
    - Per-request outcomes: one failure never blocks the rest of the queue
    - Optional per-request timeout
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        inter_request_delay: float = 0.1,
        default_timeout: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None
    ):
        """
        Initialize the request queue.

        Args:
            max_requests: Maximum dispatches per rate window
            window_seconds: Rate window length in seconds
            inter_request_delay: Pause after each dispatch while more requests wait
            default_timeout: Timeout applied to requests that do not set one
            clock: Monotonic clock returning seconds (defaults to time.monotonic)
        """
        if inter_request_delay < 0:
            raise ValueError(f"inter_request_delay must be non-negative, got {inter_request_delay}")

        self._clock = clock or time.monotonic
        self.state = RateLimitState(
            max_requests=max_requests,
            window_seconds=window_seconds,
            window_start=self._clock()
        )
        self.inter_request_delay = inter_request_delay
        self.default_timeout = default_timeout
        self.metrics = QueueMetrics()

        self._pending: Deque[QueuedRequest] = deque()
        self._draining = False
        self._drain_task: Optional[asyncio.Task] = None
        self._resume_handle: Optional[asyncio.TimerHandle] = None
        self._in_flight: Set[asyncio.Task] = set()
        self._closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def is_deferred(self) -> bool:
        """True while dispatch is paused waiting for the next rate window."""
        return self._resume_handle is not None

    async def submit(
        self,
        operation: Callable[..., Awaitable[Any]],
        *args,
        timeout: Optional[float] = None,
        label: Optional[str] = None,
        **kwargs
    ) -> Any:
        """
        Queue a call and wait for its outcome.

        Args:
            operation: Coroutine function performing the provider call
            *args: Positional arguments for the operation
            timeout: Seconds before the call is abandoned (overrides default)
            label: Short description used in log messages
            **kwargs: Keyword arguments for the operation

        Returns:
            Whatever the operation returns

        Raises:
            RequestQueueClosedError: If the queue is closed
            Exception: Whatever the operation raised, or asyncio.TimeoutError
        """
        if self._closed:
            raise RequestQueueClosedError("Request queue is closed")

        loop = asyncio.get_running_loop()
        request = QueuedRequest(
            operation=operation,
            args=args,
            kwargs=kwargs,
            future=loop.create_future(),
            timeout=timeout if timeout is not None else self.default_timeout,
            label=label or getattr(operation, "__name__", "request"),
            enqueued_at=self._clock()
        )
        self._pending.append(request)
        self.metrics.submitted += 1

        self._schedule_drain()
        return await request.future

    def get_status(self) -> Dict[str, Any]:
        """Get current queue status."""
        now = self._clock()
        return {
            "max_requests": self.state.max_requests,
            "window_seconds": self.state.window_seconds,
            "window_count": self.state.count,
            "seconds_until_reset": self.state.seconds_until_reset(now),
            "pending": len(self._pending),
            "in_flight": len(self._in_flight),
            "deferred": self.is_deferred,
            "closed": self._closed,
            "metrics": self.metrics.to_dict()
        }

    async def close(self) -> None:
        """
        Tear the queue down.

        Cancels the deferred resumption, rejects requests still waiting and
        cancels those already dispatched.
        """
        if self._closed:
            return
        self._closed = True

        if self._resume_handle is not None:
            self._resume_handle.cancel()
            self._resume_handle = None

        if self._drain_task is not None and not self._drain_task.done():
            self._drain_task.cancel()

        rejected = 0
        while self._pending:
            request = self._pending.popleft()
            if not request.future.done():
                request.future.set_exception(
                    RequestQueueClosedError(f"Queue closed before '{request.label}' was dispatched")
                )
                rejected += 1

        in_flight = list(self._in_flight)
        for task in in_flight:
            task.cancel()
        if in_flight:
            await asyncio.gather(*in_flight, return_exceptions=True)

        if rejected or in_flight:
            logger.info(
                f"Request queue closed: {rejected} pending rejected, "
                f"{len(in_flight)} in-flight cancelled"
            )

    def _schedule_drain(self) -> None:
        """Start the drain loop unless it is running or waiting on the timer."""
        if self._closed or self._draining or self._resume_handle is not None:
            return
        self._draining = True
        self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    def _resume(self) -> None:
        """Timer callback fired when the rate window resets."""
        self._resume_handle = None
        logger.debug("Rate window reset, resuming request dispatch")
        self._schedule_drain()

    async def _drain(self) -> None:
        """Dispatch queued requests until the queue is empty or the quota is used."""
        try:
            while self._pending and not self._closed:
                now = self._clock()
                if self.state.window_expired(now):
                    self.state.reset(now)
                    self.metrics.window_resets += 1

                if self.state.quota_exhausted:
                    delay = self.state.seconds_until_reset(now)
                    self.metrics.deferrals += 1
                    logger.info(
                        f"Rate limit of {self.state.max_requests} requests per "
                        f"{self.state.window_seconds}s reached, deferring "
                        f"{len(self._pending)} requests for {delay:.2f}s"
                    )
                    self._resume_handle = asyncio.get_running_loop().call_later(delay, self._resume)
                    return

                request = self._pending.popleft()
                if request.future.done():
                    # Caller stopped waiting; do not spend quota on it
                    self.metrics.skipped += 1
                    continue

                self.state.count += 1
                self._dispatch(request)

                if self._pending and self.inter_request_delay > 0:
                    await asyncio.sleep(self.inter_request_delay)
        finally:
            self._draining = False

    def _dispatch(self, request: QueuedRequest) -> None:
        waited = max(0.0, self._clock() - request.enqueued_at)
        self.metrics.dispatched += 1
        self.metrics.max_wait_seconds = max(self.metrics.max_wait_seconds, waited)
        logger.debug(
            f"Dispatching '{request.label}' after {waited:.3f}s in queue "
            f"({self.state.count}/{self.state.max_requests} in window)"
        )
        task = asyncio.get_running_loop().create_task(self._execute(request))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _execute(self, request: QueuedRequest) -> None:
        """Run one request and settle its future exactly once."""
        try:
            call = request.operation(*request.args, **request.kwargs)
            if request.timeout is not None:
                result = await asyncio.wait_for(call, timeout=request.timeout)
            else:
                result = await call
        except asyncio.CancelledError:
            if not request.future.done():
                if self._closed:
                    request.future.set_exception(
                        RequestQueueClosedError(f"Queue closed while '{request.label}' was in flight")
                    )
                else:
                    request.future.cancel()
            raise
        except Exception as e:
            self.metrics.failed += 1
            logger.warning(f"Request '{request.label}' failed: {e}")
            if not request.future.done():
                request.future.set_exception(e)
        else:
            self.metrics.succeeded += 1
            if not request.future.done():
                request.future.set_result(result)
