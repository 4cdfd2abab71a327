"""
Rate limited, concurrency bounded dispatch of card lookups.

Pending lookups sit in an explicit deque drained by a single dispatcher
task. The dispatcher reserves each request's start time in queue order
before sleeping, so a slow request can never let later requests burst
past the rate limit. All shared state is mutated between awaits only.
"""

import asyncio
import collections
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Set

from ..models import EnrichmentStatus, LookupResult
from .clock import Clock
from .retry import RetryController

LOGGER = logging.getLogger(__name__)

CardOperation = Callable[[], Awaitable[Mapping[str, Any]]]


@dataclass(eq=False)
class QueueEntry:
    """A pending lookup and the future its caller is waiting on."""

    key: str
    context: str
    operation: CardOperation
    future: "asyncio.Future[LookupResult]"
    attempt: int = 0
    last_error: Optional[BaseException] = None

    def resolve(self, result: LookupResult) -> None:
        """
        Hand the terminal result to whoever is waiting
        :param result: Terminal lookup result
        """
        if not self.future.done():
            self.future.set_result(result)


class RateLimiter:
    """
    Minimum spacing between request starts
    """

    def __init__(self, min_interval: float, clock: Clock) -> None:
        self.min_interval = min_interval
        self._clock = clock
        self._last_dispatch: Optional[float] = None

    def reserve(self) -> float:
        """
        Claim the next start slot, synchronously
        :return: Seconds the caller has to wait before starting
        """
        now = self._clock.now()
        start = now
        if self._last_dispatch is not None:
            start = max(now, self._last_dispatch + self.min_interval)
        self._last_dispatch = start
        return start - now

    async def acquire(self) -> None:
        """
        Wait until a new request can be started
        """
        delay = self.reserve()
        if delay > 0:
            await self._clock.sleep(delay)

    def reset(self) -> None:
        """Forget the last dispatch time."""
        self._last_dispatch = None


class RequestScheduler:
    """
    FIFO queue of lookups, dispatched under a rate limit and a concurrency ceiling.
    Retries re-enter at the front of the queue.
    """

    def __init__(
        self,
        limiter: RateLimiter,
        max_concurrency: int,
        retry_controller: RetryController,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.limiter = limiter
        self.max_concurrency = max_concurrency
        self.retry_controller = retry_controller
        self._pending: "collections.deque[QueueEntry]" = collections.deque()
        self._in_flight = 0
        self._slot_freed = asyncio.Event()
        self._runner: Optional["asyncio.Task[None]"] = None
        self._tasks: Set["asyncio.Task[None]"] = set()
        self.dispatched = 0

    @property
    def in_flight(self) -> int:
        """Requests currently holding a concurrency slot."""
        return self._in_flight

    @property
    def pending(self) -> int:
        """Entries waiting for dispatch."""
        return len(self._pending)

    def submit(
        self, key: str, context: str, operation: CardOperation
    ) -> "asyncio.Future[LookupResult]":
        """
        Queue a lookup behind everything already pending
        :param key: Cache key of the lookup
        :param context: Display name for logs and notes
        :param operation: Coroutine factory performing one attempt
        :return: Future resolved with the terminal result
        """
        future: "asyncio.Future[LookupResult]" = (
            asyncio.get_running_loop().create_future()
        )
        self._enqueue(QueueEntry(key, context, operation, future))
        return future

    def _enqueue(self, entry: QueueEntry, front: bool = False) -> None:
        if front:
            self._pending.appendleft(entry)
        else:
            self._pending.append(entry)
        self._ensure_running()

    def _requeue(self, entry: QueueEntry) -> None:
        self._enqueue(entry, front=True)

    def _ensure_running(self) -> None:
        if self._runner is None or self._runner.done():
            self._runner = asyncio.ensure_future(self._dispatch_loop())

    async def _dispatch_loop(self) -> None:
        try:
            while self._pending:
                if self._in_flight >= self.max_concurrency:
                    self._slot_freed.clear()
                    await self._slot_freed.wait()
                    continue

                entry = self._pending.popleft()
                self._in_flight += 1
                await self.limiter.acquire()

                self.dispatched += 1
                task = asyncio.ensure_future(self._execute(entry))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
        finally:
            self._runner = None

    async def _execute(self, entry: QueueEntry) -> None:
        entry.attempt += 1
        failure: Optional[Exception] = None
        card: Optional[Mapping[str, Any]] = None
        try:
            card = await entry.operation()
        except Exception as error:
            failure = error
        finally:
            self._in_flight -= 1
            self._slot_freed.set()

        if failure is None:
            entry.resolve(
                LookupResult(
                    status=EnrichmentStatus.ENRICHED,
                    note="Enriched from card data service",
                    attempts=entry.attempt,
                    card=card,
                )
            )
            return

        result = self.retry_controller.handle_failure(entry, failure, self._requeue)
        if result is not None:
            entry.resolve(result)

    def reset(self) -> None:
        """
        Drop every entry that has not been dispatched yet, failing it
        """
        while self._pending:
            entry = self._pending.popleft()
            entry.resolve(
                LookupResult(
                    status=EnrichmentStatus.FAILED,
                    note="Lookup cancelled before dispatch",
                    attempts=entry.attempt,
                )
            )
        self.retry_controller.cancel()
        self.limiter.reset()
