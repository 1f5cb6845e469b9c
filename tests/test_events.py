"""Tests for EventEmitter."""

import asyncio

import pytest

from plex_notify.events import EventEmitter
from plex_notify.types import TransportEvent


class TestEventEmitter:
    def test_listeners_called_in_order(self):
        emitter = EventEmitter()
        calls = []
        emitter.on("playing", lambda *a: calls.append(("first", a)))
        emitter.on("playing", lambda *a: calls.append(("second", a)))

        assert emitter.emit("playing", "paused", {"sessionKey": "1"}) is True
        assert calls == [
            ("first", ("paused", {"sessionKey": "1"})),
            ("second", ("paused", {"sessionKey": "1"})),
        ]

    def test_enum_and_string_names_are_the_same_event(self):
        emitter = EventEmitter()
        calls = []
        emitter.on(TransportEvent.PONG_TIMEOUT, lambda: calls.append(1))
        emitter.emit("pong-timeout")
        assert calls == [1]
        assert emitter.listener_count("pong-timeout") == 1

    def test_decorator_form(self):
        emitter = EventEmitter()
        seen = []

        @emitter.on("error")
        def on_error(exc):
            seen.append(exc)

        emitter.emit("error", "boom")
        assert seen == ["boom"]

    def test_once(self):
        emitter = EventEmitter()
        calls = []
        emitter.once("open", lambda: calls.append(1))
        emitter.emit("open")
        emitter.emit("open")
        assert calls == [1]
        assert emitter.listener_count("open") == 0

    def test_once_on_one_event_leaves_other_events_alone(self):
        emitter = EventEmitter()
        calls = []

        def listener():
            calls.append(1)

        emitter.on("open", listener)
        emitter.once("close", listener)
        emitter.emit("open")
        emitter.emit("open")

        assert calls == [1, 1]
        assert emitter.listener_count("open") == 1
        assert emitter.listener_count("close") == 1

    def test_once_and_on_for_same_event(self):
        emitter = EventEmitter()
        calls = []

        def listener():
            calls.append(1)

        emitter.on("pong", listener)
        emitter.once("pong", listener)
        emitter.emit("pong")
        emitter.emit("pong")

        assert calls == [1, 1, 1]
        assert emitter.listener_count("pong") == 1

    def test_remove_all_listeners_forgets_once(self):
        emitter = EventEmitter()
        calls = []

        def listener():
            calls.append(1)

        emitter.once("error", listener)
        emitter.remove_all_listeners("error")
        emitter.on("error", listener)
        emitter.emit("error")
        emitter.emit("error")

        assert calls == [1, 1]

    def test_off(self):
        emitter = EventEmitter()
        calls = []

        def listener():
            calls.append(1)

        emitter.on("close", listener)
        emitter.off("close", listener)
        assert emitter.emit("close") is False
        assert calls == []

    def test_remove_all_listeners(self):
        emitter = EventEmitter()
        emitter.on("a", print)
        emitter.on("b", print)
        emitter.remove_all_listeners("a")
        assert emitter.listener_count("a") == 0
        assert emitter.listener_count("b") == 1
        emitter.remove_all_listeners()
        assert emitter.listener_count("b") == 0

    def test_listener_error_is_logged(self, caplog):
        emitter = EventEmitter()
        calls = []

        def broken(*args):
            raise RuntimeError("listener blew up")

        emitter.on("message", broken)
        emitter.on("message", lambda *a: calls.append(a))

        assert emitter.emit("message", {"x": 1}) is True
        assert calls == [({"x": 1},)]
        assert "Listener error for 'message': listener blew up" in caplog.text

    @pytest.mark.asyncio
    async def test_async_listener_is_scheduled(self):
        emitter = EventEmitter()
        done = asyncio.Event()
        received = []

        async def listener(value):
            received.append(value)
            done.set()

        emitter.on("pong", listener)
        emitter.emit("pong", 42)
        await asyncio.wait_for(done.wait(), timeout=1.0)
        assert received == [42]
