"""Timer scheduling used by debounced controllers.

Controllers own a single pending :class:`TimerHandle` and use the atomic
swap pattern: capture and clear the handle before stopping it, then set a
new timer. Production code runs on :class:`AsyncioScheduler`; tests supply a
manual clock with the same interface.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Protocol, runtime_checkable


@runtime_checkable
class TimerHandle(Protocol):
    """A pending one-shot timer."""

    def stop(self) -> None:
        """Cancel the timer. Stopping twice, or after it fired, is a no-op."""
        ...


@runtime_checkable
class Scheduler(Protocol):
    """Factory for one-shot timers."""

    def set_timer(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds unless stopped."""
        ...


class _AsyncioTimer:
    def __init__(self, handle: asyncio.TimerHandle) -> None:
        self._handle = handle

    def stop(self) -> None:
        self._handle.cancel()


class AsyncioScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def set_timer(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return _AsyncioTimer(loop.call_later(max(0.0, delay), callback))


__all__ = ["AsyncioScheduler", "Scheduler", "TimerHandle"]
