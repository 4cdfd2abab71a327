"""
Failure classification and exponential backoff for card lookups
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional, Set

import aiohttp

from ..errors import (
    CardNotFoundError,
    FatalServiceError,
    RateLimitedError,
    TransientServiceError,
)
from ..models import EnrichmentStatus, LookupResult
from .clock import Clock
from .settings import EnrichmentSettings

if TYPE_CHECKING:
    from .scheduler import QueueEntry

LOGGER = logging.getLogger(__name__)


class FailureKind(enum.Enum):
    """How a failed lookup should be handled."""

    NOT_FOUND_PERMANENT = "not_found_permanent"
    TRANSIENT = "transient"
    FATAL = "fatal"


def classify_failure(error: BaseException) -> FailureKind:
    """
    Sort a lookup error into not-found, retryable, or fatal
    :param error: Error raised by the card fetcher
    :return: Failure kind
    """
    if isinstance(error, CardNotFoundError):
        return FailureKind.NOT_FOUND_PERMANENT
    if isinstance(error, TransientServiceError):
        return FailureKind.TRANSIENT
    if isinstance(error, FatalServiceError):
        return FailureKind.FATAL

    if isinstance(error, aiohttp.ClientResponseError):
        if error.status == 404:
            return FailureKind.NOT_FOUND_PERMANENT
        if error.status == 429 or error.status >= 500:
            return FailureKind.TRANSIENT
        return FailureKind.FATAL

    if isinstance(
        error, (aiohttp.ClientError, asyncio.TimeoutError, ConnectionError, TimeoutError)
    ):
        return FailureKind.TRANSIENT

    return FailureKind.FATAL


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempt ceiling and backoff curve.
    delay(attempt) = base_delay * multiplier ** (attempt - 1), capped at max_delay
    """

    max_attempts: int = 4
    base_delay: float = 0.5
    multiplier: float = 2.0
    max_delay: float = 10.0

    @classmethod
    def from_settings(cls, settings: EnrichmentSettings) -> "RetryPolicy":
        """
        Build the policy from pipeline settings
        :param settings: Enrichment settings
        :return: Retry policy
        """
        return cls(
            max_attempts=settings.max_attempts,
            base_delay=settings.base_delay,
            multiplier=settings.backoff_multiplier,
            max_delay=settings.max_delay,
        )

    def delay_for(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """
        How long to wait after a failed attempt
        :param attempt: 1-based number of the attempt that just failed
        :param retry_after: Server advisory wait, from a 429
        :return: Seconds to wait before re-queueing
        """
        delay = min(self.base_delay * self.multiplier ** (attempt - 1), self.max_delay)
        if retry_after is not None and retry_after > delay:
            delay = retry_after
        return delay

    def can_retry(self, attempt: int) -> bool:
        """Are there attempts left after this one?"""
        return attempt < self.max_attempts


class RetryController:
    """
    Decides the fate of failed queue entries and drives backoff re-submission
    """

    def __init__(self, policy: RetryPolicy, clock: Clock) -> None:
        self.policy = policy
        self._clock = clock
        self._backoffs: Set["asyncio.Task[None]"] = set()
        self._waiting: Set["QueueEntry"] = set()
        self.retries = 0

    @property
    def backing_off(self) -> int:
        """Entries currently sleeping before re-submission."""
        return len(self._waiting)

    def handle_failure(
        self,
        entry: "QueueEntry",
        error: BaseException,
        resubmit: Callable[["QueueEntry"], None],
    ) -> Optional[LookupResult]:
        """
        Classify a failure and either produce a terminal result or schedule a retry
        :param entry: Entry whose attempt just failed
        :param error: The failure
        :param resubmit: Puts an entry back at the front of the pending queue
        :return: Terminal result, or None when a retry has been scheduled
        """
        entry.last_error = error
        kind = classify_failure(error)

        if kind == FailureKind.NOT_FOUND_PERMANENT:
            LOGGER.debug(f"{entry.context} not found")
            return LookupResult(
                status=EnrichmentStatus.NOT_FOUND,
                note=f"No card data found for {entry.context}",
                attempts=entry.attempt,
            )

        if kind == FailureKind.FATAL:
            LOGGER.warning(f"Fatal error looking up {entry.context}: {error}")
            return LookupResult(
                status=EnrichmentStatus.FAILED,
                note=f"Lookup failed: {error}",
                attempts=entry.attempt,
            )

        if not self.policy.can_retry(entry.attempt):
            LOGGER.warning(
                f"Giving up on {entry.context} after {entry.attempt} attempts: {error}"
            )
            return LookupResult(
                status=EnrichmentStatus.FAILED,
                note=f"Gave up after {entry.attempt} attempts: {error}",
                attempts=entry.attempt,
            )

        retry_after = error.retry_after if isinstance(error, RateLimitedError) else None
        delay = self.policy.delay_for(entry.attempt, retry_after)
        LOGGER.debug(
            f"Retry {entry.attempt}/{self.policy.max_attempts} for {entry.context} "
            f"in {delay:.2f}s: {error}"
        )
        self.retries += 1
        self._waiting.add(entry)
        task = asyncio.ensure_future(self._backoff(entry, delay, resubmit))
        self._backoffs.add(task)
        task.add_done_callback(self._backoffs.discard)
        return None

    async def _backoff(
        self,
        entry: "QueueEntry",
        delay: float,
        resubmit: Callable[["QueueEntry"], None],
    ) -> None:
        try:
            await self._clock.sleep(delay)
        finally:
            self._waiting.discard(entry)
        resubmit(entry)

    def cancel(self) -> None:
        """
        Abandon every pending backoff, failing its entry
        """
        for entry in list(self._waiting):
            entry.resolve(
                LookupResult(
                    status=EnrichmentStatus.FAILED,
                    note="Lookup cancelled while backing off",
                    attempts=entry.attempt,
                )
            )
        for task in list(self._backoffs):
            task.cancel()
        self._waiting.clear()
