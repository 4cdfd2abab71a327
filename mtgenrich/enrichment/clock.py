"""
Time source for the scheduler and retry controller.

Everything that waits goes through a Clock so the pipeline can be driven
by a fake clock in tests.
"""

import abc
import asyncio
import time


class Clock(abc.ABC):
    """
    Monotonic time plus a cooperative sleep
    """

    @abc.abstractmethod
    def now(self) -> float:
        """
        Current monotonic time, in seconds
        """

    @abc.abstractmethod
    async def sleep(self, seconds: float) -> None:
        """
        Suspend the calling task
        :param seconds: How long to wait
        """


class SystemClock(Clock):
    """
    Real time, backed by time.monotonic and asyncio.sleep
    """

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))
