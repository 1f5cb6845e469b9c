# =============================================================================
# Plex Notify -- Event Emitter
# =============================================================================
#
# Named-event fan-out with multiple independent listeners.  Coroutine
# listeners are scheduled as background tasks; listener errors are logged
# and never reach the emitter.
# =============================================================================

from __future__ import annotations

import asyncio

from collections import defaultdict
from typing import Any, Awaitable, Callable

from ._logging import logger

Listener = Callable[..., Any]
AsyncListener = Callable[..., Awaitable[Any]]


class EventEmitter:
    """Registry of listeners keyed by event name.

    Listeners are called in registration order. Sync listeners run inline,
    coroutine listeners are wrapped in a task, so delivery order across
    listener kinds is not guaranteed.

    Example::

        emitter.on("playing", handle_playing)

        @emitter.on("error")
        def log_error(exc):
            print(exc)
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener | AsyncListener]] = defaultdict(list)
        # per event: listeners owed exactly one more call
        self._once: dict[str, list[Listener | AsyncListener]] = defaultdict(list)
        self._background_tasks: set[asyncio.Task[Any]] = set()

    def on(self, event: str, fn: Listener | AsyncListener | None = None) -> Any:
        """Register *fn* for *event*. Without *fn*, return a decorator."""
        if fn is not None:
            self._listeners[_name(event)].append(fn)
            return fn

        def decorator(func: Listener | AsyncListener) -> Listener | AsyncListener:
            self._listeners[_name(event)].append(func)
            return func

        return decorator

    def once(self, event: str, fn: Listener | AsyncListener) -> Listener | AsyncListener:
        """Register *fn* to run for the next *event* only."""
        self._listeners[_name(event)].append(fn)
        self._once[_name(event)].append(fn)
        return fn

    def off(self, event: str, fn: Listener | AsyncListener) -> None:
        """Remove a specific listener."""
        name = _name(event)
        listeners = self._listeners.get(name, [])
        if fn in listeners:
            listeners.remove(fn)
        once = self._once.get(name, [])
        if fn in once:
            once.remove(fn)

    def remove_all_listeners(self, event: str | None = None) -> None:
        if event is None:
            self._listeners.clear()
            self._once.clear()
        else:
            self._listeners.pop(_name(event), None)
            self._once.pop(_name(event), None)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(_name(event), []))

    def emit(self, event: str, *args: Any) -> bool:
        """Call every listener of *event* with *args*.

        Returns True if the event had listeners.
        """
        listeners = list(self._listeners.get(_name(event), []))
        if not listeners:
            return False

        for listener in listeners:
            if listener in self._once.get(_name(event), ()):
                self.off(event, listener)
            try:
                result = listener(*args)
                if asyncio.iscoroutine(result):
                    self._fire_task(result)
            except Exception as exc:
                logger.error("Listener error for '%s': %s", _name(event), exc)
        return True

    def _fire_task(self, coro: Any) -> asyncio.Task[Any]:
        """Schedule a coroutine with a strong reference to prevent GC."""
        task = asyncio.ensure_future(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task


def _name(event: str) -> str:
    return getattr(event, "value", event)
