"""Keyed timers with cancel-and-replace semantics.

Every debounce, quiescence and fallback timer in the core goes through
``KeyedTimers`` so that starting a timer for a key always clears the
previous one for that key. The clock is injected through ``Scheduler``;
production code uses the running asyncio loop.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Hashable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Clock plus one-shot timer factory."""

    def now(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class LoopScheduler:
    """Scheduler backed by the current asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return self._get_loop().time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return self._get_loop().call_later(max(0.0, delay), callback)


class KeyedTimers:
    """At most one pending timer per key."""

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._handles: dict[Hashable, TimerHandle] = {}

    def schedule(self, key: Hashable, delay: float, callback: Callable[[], None]) -> None:
        """Start a timer for *key*, replacing any pending one."""
        self.cancel(key)

        def _fire() -> None:
            if self._handles.get(key) is handle:
                del self._handles[key]
            callback()

        handle = self._scheduler.call_later(delay, _fire)
        self._handles[key] = handle

    def cancel(self, key: Hashable) -> bool:
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def pending(self, key: Hashable) -> bool:
        return key in self._handles

    def keys(self) -> list[Hashable]:
        return list(self._handles)

    def cancel_all(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()
