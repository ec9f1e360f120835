"""Debounce — collapse a burst of change events into a single trigger.

Editors and build tools write several files per save; each write arrives
as its own event. The debouncer fires its callback once the events have
been quiet for ``quiet_period`` seconds.
"""

from __future__ import annotations

import asyncio
from typing import Callable

DEBOUNCE_SECONDS = 0.1


class Debouncer:
    """Trailing-edge debounce on an asyncio loop.

    ``trigger`` must be called from the loop's thread; use
    ``loop.call_soon_threadsafe(debouncer.trigger)`` from other threads.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        quiet_period: float = DEBOUNCE_SECONDS,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        self.callback = callback
        self.quiet_period = quiet_period
        self._loop = loop or asyncio.get_running_loop()
        self._handle: asyncio.TimerHandle | None = None

    def trigger(self) -> None:
        """Record an event; restarts the quiet period."""
        if self._handle is not None:
            self._handle.cancel()
        self._handle = self._loop.call_later(self.quiet_period, self._fire)

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self.callback()
