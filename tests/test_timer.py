"""Tests for Timer."""

import asyncio

import pytest

from plex_notify.timer import Timer


class TestTimer:
    @pytest.mark.asyncio
    async def test_fires_once_with_args(self):
        calls = []
        timer = Timer("t")
        timer.start(0.01, calls.append, "x")
        assert timer.active
        await asyncio.sleep(0.05)
        assert calls == ["x"]
        assert not timer.active

    @pytest.mark.asyncio
    async def test_restart_replaces_pending_run(self):
        calls = []
        timer = Timer("t")
        timer.start(0.01, calls.append, "first")
        timer.start(0.02, calls.append, "second")
        await asyncio.sleep(0.06)
        assert calls == ["second"]

    @pytest.mark.asyncio
    async def test_cancel(self):
        calls = []
        timer = Timer("t")
        timer.start(0.01, calls.append, "x")
        timer.cancel()
        timer.cancel()
        await asyncio.sleep(0.03)
        assert calls == []
