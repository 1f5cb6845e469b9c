"""Plex notification client: resilient socket plus filtered playback events.

Usage::

    import asyncio
    from plex_notify import (
        HttpSessionStore,
        NotificationTransport,
        PlayingStreamProcessor,
        load_config,
    )

    async def main():
        config = load_config()
        transport = NotificationTransport(config.server)
        sessions = HttpSessionStore(config.server.http_base_url, config.server.token)
        processor = PlayingStreamProcessor(
            transport, sessions, print, filters=config.filters
        )
        processor.start()
        await asyncio.Event().wait()

    asyncio.run(main())

Optional extras::

    pip install plex-notify[fast]   # orjson frame decoding
"""

from ._version import __version__
from .config import PlexConfig, load_config
from .errors import (
    PlexAuthError,
    PlexConfigError,
    PlexConnectionError,
    PlexFilterError,
    PlexNotifyError,
    PlexProtocolError,
    PlexSessionError,
)
from .events import EventEmitter
from .filters import FilterEngine, load_filters, matches
from .processor import PlayingStreamProcessor
from .sessions import HttpSessionStore, InMemorySessionStore, SessionStore
from .transport import NotificationTransport
from .types import (
    ConnectionState,
    FilterSpec,
    Operator,
    PlayingMessage,
    ProcessorStats,
    ProcessorStatus,
    TransportConfig,
    TransportEvent,
    ValueType,
)

__all__ = [
    "__version__",
    "NotificationTransport",
    "PlayingStreamProcessor",
    "FilterEngine",
    "EventEmitter",
    "matches",
    "load_filters",
    "load_config",
    "PlexConfig",
    "SessionStore",
    "InMemorySessionStore",
    "HttpSessionStore",
    "TransportConfig",
    "TransportEvent",
    "ConnectionState",
    "FilterSpec",
    "ValueType",
    "Operator",
    "PlayingMessage",
    "ProcessorStats",
    "ProcessorStatus",
    "PlexNotifyError",
    "PlexConnectionError",
    "PlexAuthError",
    "PlexProtocolError",
    "PlexSessionError",
    "PlexFilterError",
    "PlexConfigError",
]
