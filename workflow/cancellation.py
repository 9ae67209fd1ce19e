"""Cooperative cancellation for generation-class operations."""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from config.exceptions import GenerationCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """Abort signal shared by every backend call and loop of one operation.

    Cancellation is cooperative: holders check ``cancelled`` at fragment
    boundaries and loop iterations. Delays go through :meth:`sleep` so they
    end as soon as the token is cancelled.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason = ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()
            logger.debug("Token cancelled%s", f": {reason}" if reason else "")

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise GenerationCancelled()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()

    async def sleep(self, seconds: float) -> bool:
        """Sleep for ``seconds`` unless cancelled first.

        Returns:
            True if the full delay elapsed, False if cancelled.
        """
        if self.cancelled:
            return False
        if seconds <= 0:
            return True

        sleeper = asyncio.ensure_future(asyncio.sleep(seconds))
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sleeper.cancel()
            waiter.cancel()
        return not self.cancelled


class OperationGuard:
    """Allows at most one generation-class operation at a time.

    Starting a new operation cancels the token of the previous one first.
    """

    def __init__(self):
        self._current: Optional[CancellationToken] = None

    @property
    def active(self) -> bool:
        return self._current is not None and not self._current.cancelled

    @property
    def current(self) -> Optional[CancellationToken]:
        return self._current

    def begin(self) -> CancellationToken:
        if self._current is not None:
            self._current.cancel("superseded by a new operation")
        self._current = CancellationToken()
        return self._current

    def end(self, token: CancellationToken) -> None:
        # A superseded operation must not clear its successor's token
        if self._current is token:
            self._current = None

    def cancel(self, reason: str = "stopped by user") -> bool:
        """Cancel the active operation. Returns False if none was running."""
        if self._current is None:
            return False
        self._current.cancel(reason)
        return True


async def gather_cancellable(token: CancellationToken, *coros: Awaitable[T]) -> list[T]:
    """Run ``coros`` concurrently and return their results in order.

    The first failure, or cancellation of ``token``, cancels every call still
    in flight, so no backend call outlives the operation that started it.

    Raises:
        GenerationCancelled: If ``token`` is cancelled before all calls finish.
    """
    tasks = [asyncio.ensure_future(c) for c in coros]
    waiter = asyncio.ensure_future(token.wait())
    try:
        token.raise_if_cancelled()
        pending = set(tasks)
        while pending:
            done, _ = await asyncio.wait(pending | {waiter}, return_when=asyncio.FIRST_COMPLETED)
            token.raise_if_cancelled()
            pending -= done
            for task in done:
                if task.exception() is not None:
                    raise task.exception()
        return [task.result() for task in tasks]
    finally:
        waiter.cancel()
        for task in tasks:
            task.cancel()
        # Let cancelled calls unwind before the caller resets any state
        await asyncio.gather(*tasks, waiter, return_exceptions=True)
