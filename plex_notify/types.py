# =============================================================================
# Plex Notify -- Type Definitions
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, MutableMapping

from .constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    OPEN_TIMEOUT,
    PING_INTERVAL,
    PONG_TIMEOUT,
    RECONNECT_INTERVAL,
    RECONNECT_MAX_RETRIES,
)

# A session record as returned by the session store
Session = MutableMapping[str, Any]


class ConnectionState(str, Enum):
    """Notification socket lifecycle state.

    Typical flow: DISCONNECTED -> CONNECTING -> OPEN -> AWAITING_PONG -> OPEN
    ... -> CLOSING -> DISCONNECTED. An unintentional close goes straight back
    to DISCONNECTED and a reconnect is scheduled.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    AWAITING_PONG = "awaiting-pong"
    CLOSING = "closing"


class TransportEvent(str, Enum):
    """Events emitted by :class:`~plex_notify.transport.NotificationTransport`."""

    OPEN = "open"
    PONG = "pong"
    MESSAGE = "message"
    NOTIFICATION = "notification"
    PLAYING = "playing"
    ERROR = "error"
    UNAUTHORIZED = "unauthorized"
    UNEXPECTED_RESPONSE = "unexpected-response"
    CLOSE = "close"
    PONG_TIMEOUT = "pong-timeout"
    RECONNECT_MAX_RETRIES = "reconnect-max-retries"
    STATE_CHANGE = "state-change"


class ValueType(str, Enum):
    """Coercion applied to both sides of a filter comparison."""

    STR = "str"
    NUM = "num"
    BOOL = "bool"
    DEFAULT = "default"


class Operator(str, Enum):
    """Filter comparison operator."""

    EQ = "eq"
    NEQ = "neq"
    LT = "lt"
    LTE = "lte"
    GT = "gt"
    GTE = "gte"


class ProcessorStatus(str, Enum):
    """Connection status as seen by the playing-stream processor."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    UNAUTHORIZED = "unauthorized"
    RETRYING = "retrying"


@dataclass
class TransportConfig:
    """Configuration for the notification socket.

    Attributes:
        host: Plex Media Server hostname or IP.
        port: Server port (default 32400).
        token: ``X-Plex-Token`` sent with the handshake.
        secure: Use ``wss://`` instead of ``ws://``.
        ping_interval: Idle seconds between a pong and the next ping.
        pong_timeout: Seconds to wait for a pong before dropping the socket.
        reconnect_interval: Seconds between an unintentional close and the
            next connection attempt.
        reconnect_max_retries: Attempts before ``reconnect-max-retries`` is
            emitted, ``-1`` for infinite. Reconnection continues either way.
        auto_connect: Connect as soon as the transport is constructed.
        open_timeout: Seconds allowed for the opening handshake.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    token: str | None = None
    secure: bool = False
    ping_interval: float = PING_INTERVAL
    pong_timeout: float = PONG_TIMEOUT
    reconnect_interval: float = RECONNECT_INTERVAL
    reconnect_max_retries: int = RECONNECT_MAX_RETRIES
    auto_connect: bool = True
    open_timeout: float = OPEN_TIMEOUT

    @property
    def http_base_url(self) -> str:
        scheme = "https" if self.secure else "http"
        return f"{scheme}://{self.host}:{self.port}"


@dataclass(frozen=True, slots=True)
class FilterSpec:
    """A single predicate of the filter chain.

    Attributes:
        key: Dot-separated path into the session record, e.g. ``"Player.state"``.
        value: Literal compared against the resolved session value.
        value_type: Coercion applied to both sides before comparing.
        operator: Comparison operator. The literal is the left-hand operand.
        idx: Sort order within the chain.
    """

    key: str
    value: Any
    value_type: ValueType = ValueType.DEFAULT
    operator: Operator = Operator.EQ
    idx: int = 0


@dataclass(frozen=True, slots=True)
class PlayingMessage:
    """Downstream message for a matching playback state change.

    Attributes:
        payload: The raw playback state, e.g. ``"playing"``.
        plex: The raw ``PlaySessionStateNotification`` entry.
        session: The resolved session record.
    """

    payload: str
    plex: dict[str, Any]
    session: Session

    def as_dict(self) -> dict[str, Any]:
        return {"payload": self.payload, "plex": self.plex, "session": self.session}


@dataclass
class ProcessorStats:
    """Counters for a :class:`~plex_notify.processor.PlayingStreamProcessor`."""

    events_received: int = 0
    messages_emitted: int = 0
    duplicates_suppressed: int = 0
    filtered_out: int = 0
    sessions_deleted: int = 0
    fetch_failures: int = 0
    unknown_sessions: int = 0
    sink_errors: int = 0
