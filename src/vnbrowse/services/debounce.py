"""Restartable quiet-period timer for live-typed input."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Debouncer(Generic[T]):
    """Run ``callback`` with the latest value once input has been quiet.

    Each :meth:`schedule` swaps out the previous timer. Only the sleep is
    ever cancelled: once the quiet period has elapsed the callback runs in
    its own task and is left to finish.

    Args:
        delay: Quiet period in seconds
        callback: Coroutine function receiving the last scheduled value
    """

    def __init__(self, delay: float, callback: Callable[[T], Awaitable[None]]) -> None:
        self.delay = delay
        self.callback = callback
        self._timer: asyncio.Task[None] | None = None
        self._fired: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def busy(self) -> bool:
        """A timer is pending or a fired callback is still running."""
        return self.pending or bool(self._fired)

    def schedule(self, value: T) -> None:
        old_timer = self._timer
        self._timer = asyncio.get_running_loop().create_task(self._wait_then_fire(value))
        if old_timer is not None and not old_timer.done():
            old_timer.cancel()

    def cancel(self) -> None:
        timer = self._timer
        self._timer = None
        if timer is not None and not timer.done():
            timer.cancel()

    async def _wait_then_fire(self, value: T) -> None:
        await asyncio.sleep(self.delay)
        self._timer = None
        task = asyncio.get_running_loop().create_task(self._run(value))
        self._fired.add(task)
        task.add_done_callback(self._fired.discard)

    async def _run(self, value: T) -> None:
        try:
            await self.callback(value)
        except Exception:
            logger.exception("Debounced callback failed")

    async def wait(self) -> None:
        """Wait for a pending timer and any callbacks it has started."""
        while self.busy:
            timer = self._timer
            if timer is not None and not timer.done():
                await asyncio.wait({timer})
            if self._fired:
                await asyncio.gather(*list(self._fired), return_exceptions=True)
