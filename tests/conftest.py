"""Shared fixtures for transport and processor tests."""

import pytest
import pytest_asyncio

from plex_notify.sessions import InMemorySessionStore
from plex_notify.transport import NotificationTransport
from plex_notify.types import TransportConfig

from tests.fakes import FakeConnector


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def fast_config():
    return TransportConfig(
        host="plex.local",
        token="secret-token",
        ping_interval=0.05,
        pong_timeout=0.05,
        reconnect_interval=0.05,
        auto_connect=False,
    )


@pytest_asyncio.fixture
async def transport(fast_config, connector):
    t = NotificationTransport(fast_config, connector=connector)
    yield t
    await t.close()


@pytest.fixture
def sessions():
    return InMemorySessionStore()
