# =============================================================================
# Plex Notify -- Restartable Timer
# =============================================================================

from __future__ import annotations

import asyncio

from typing import Any, Callable


class Timer:
    """Single-shot timer on the running event loop.

    ``start()`` always cancels a pending run first, so at most one callback
    is ever scheduled per timer.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._handle: asyncio.TimerHandle | None = None

    @property
    def active(self) -> bool:
        return self._handle is not None

    def start(self, delay: float, callback: Callable[..., Any], *args: Any) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(delay, self._fire, callback, args)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, callback: Callable[..., Any], args: tuple[Any, ...]) -> None:
        self._handle = None
        callback(*args)

    def __repr__(self) -> str:
        return f"Timer({self.name!r}, active={self.active})"
