"""
Abort signalling for in-flight remote loads.

An AbortController is created per load and aborted when a newer load
supersedes it. Awaiting code races its work against the signal and
raises CancellationError when the signal fires first.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

from .exceptions import CancellationError

T = TypeVar("T")


class AbortSignal:
    """Read side of an AbortController."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    def throw_if_aborted(self) -> None:
        if self.aborted:
            raise CancellationError(reason=self.reason)

    async def wait(self) -> None:
        await self._event.wait()

    async def race(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` unless the signal fires first.

        Args:
            awaitable: Work to run

        Returns:
            The awaitable's result

        Raises:
            CancellationError: If the signal was aborted before the work finished
        """
        if self.aborted:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise CancellationError(reason=self.reason)

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if work.done():
            return work.result()

        work.cancel()
        raise CancellationError(reason=self.reason)


class AbortController:
    """Write side: owns a signal and aborts it at most once."""

    def __init__(self) -> None:
        self.signal = AbortSignal()

    def abort(self, reason: Optional[str] = None) -> None:
        if self.signal.aborted:
            return
        self.signal.reason = reason
        self.signal._event.set()
