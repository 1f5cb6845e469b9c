# =============================================================================
# Plex Notify -- Notification Transport
# =============================================================================
#
# Socket lifecycle for the Plex notification endpoint: connect, heartbeat,
# reconnect, frame classification.  Every fault becomes an emitted event;
# only a synchronous failure to construct the socket raises.
# =============================================================================

from __future__ import annotations

import asyncio
import dataclasses

from typing import Any, Awaitable, Callable

import websockets.asyncio.client
from websockets.exceptions import (
    ConcurrencyError,
    ConnectionClosed,
    ConnectionClosedError,
    InvalidStatus,
    WebSocketException,
)
from websockets.protocol import State

from ._logging import logger
from .constants import (
    HTTP_UNAUTHORIZED,
    NOTIFICATIONS_PATH,
    PING_DATA,
    TOKEN_HEADER,
)
from .errors import PlexConnectionError, PlexProtocolError
from .events import EventEmitter
from .protocol import extract_notification, is_playing, parse_payload, playing_entries
from .timer import Timer
from .types import ConnectionState, TransportConfig, TransportEvent

# connect(uri, **kwargs) -> awaitable resolving to an open client connection
Connector = Callable[..., Awaitable[Any]]


class _Connection:
    """One connection attempt. Replaced on every ``connect()``."""

    __slots__ = ("generation", "socket", "task", "heartbeat")

    def __init__(self, generation: int) -> None:
        self.generation = generation
        self.socket: Any | None = None
        self.task: asyncio.Task[None] | None = None
        self.heartbeat: asyncio.Task[None] | None = None


class NotificationTransport(EventEmitter):
    """Self-healing client for ``/:/websockets/notifications``.

    Emits the events listed in :class:`~plex_notify.types.TransportEvent`.
    ``playing`` listeners receive ``(state, entry)`` once per entry of a
    ``PlaySessionStateNotification``.

    With ``auto_connect`` (the default) the transport connects from its
    constructor, which must then run inside an event loop.

    Args:
        config: Connection settings. Defaults to :class:`TransportConfig`.
        connector: Factory returning an awaitable socket, defaults to
            :func:`websockets.asyncio.client.connect`.
        **overrides: Individual :class:`TransportConfig` fields.

    Example::

        transport = NotificationTransport(host="10.0.0.5", token="abc")

        @transport.on("playing")
        def handle(state, entry):
            print(entry["sessionKey"], state)
    """

    def __init__(
        self,
        config: TransportConfig | None = None,
        *,
        connector: Connector | None = None,
        **overrides: Any,
    ) -> None:
        super().__init__()
        config = config or TransportConfig()
        if overrides:
            config = dataclasses.replace(config, **overrides)
        self._config = config
        self._connector = connector or websockets.asyncio.client.connect

        self._state = ConnectionState.DISCONNECTED
        self._should_close = False
        self._retries = 0
        self._generation = 0
        self._conn: _Connection | None = None

        # Heartbeat timers are mutually exclusive
        self._pinger = Timer("pinger")
        self._await_pong = Timer("await-pong")
        self._reconnect_timer = Timer("reconnect")

        if self._config.auto_connect:
            self.connect()

    # -- Properties -----------------------------------------------------------

    @property
    def config(self) -> TransportConfig:
        return self._config

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def retries(self) -> int:
        return self._retries

    @property
    def is_ready(self) -> bool:
        """Socket open and not marked for an intentional close."""
        conn = self._conn
        return (
            conn is not None
            and conn.socket is not None
            and conn.socket.state == State.OPEN
            and not self._should_close
        )

    def build_address(self) -> str:
        cfg = self._config
        # Deliberately honours secure; earlier plex-notify releases ignored
        # the flag and always dialled ws://.
        protocol = "wss" if cfg.secure else "ws"
        return f"{protocol}://{cfg.host}:{cfg.port}{NOTIFICATIONS_PATH}"

    # -- Context manager ------------------------------------------------------

    async def __aenter__(self) -> NotificationTransport:
        if self._conn is None:
            self.connect()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    # -- Connect / Close ------------------------------------------------------

    def connect(self) -> None:
        """Open a new socket, replacing any current one.

        Reaching ``reconnect_max_retries`` only emits
        ``reconnect-max-retries``; the attempt is still made.

        Raises:
            PlexConnectionError: The connector failed synchronously. The close
                handler has already run, so a reconnect is scheduled.
        """
        max_retries = self._config.reconnect_max_retries
        if max_retries >= 0 and self._retries >= max_retries:
            logger.warning("Max reconnect retries (%d) reached", max_retries)
            self.emit(TransportEvent.RECONNECT_MAX_RETRIES, max_retries)
        self._retries += 1

        self._should_close = False
        self._reconnect_timer.cancel()
        self._release()

        self._generation += 1
        conn = _Connection(self._generation)
        self._conn = conn
        self._set_state(ConnectionState.CONNECTING)

        url = self.build_address()
        headers = {TOKEN_HEADER: self._config.token} if self._config.token else {}
        logger.info("Connecting to %s (attempt %d)", url, self._retries)

        try:
            opener = self._connector(
                url,
                additional_headers=headers,
                ping_interval=None,  # heartbeat is driven here
                open_timeout=self._config.open_timeout,
            )
        except Exception as exc:
            self._on_close(conn, None, str(exc))
            raise PlexConnectionError(f"Failed to create socket: {exc}") from exc

        conn.task = self._fire_task(self._run(conn, opener))

    async def close(self) -> None:
        """Close intentionally. No reconnect follows."""
        if self._should_close and self._state == ConnectionState.DISCONNECTED:
            return
        self._should_close = True
        self._reconnect_timer.cancel()
        self._pinger.cancel()
        self._await_pong.cancel()

        conn = self._conn
        if conn is None:
            self._set_state(ConnectionState.DISCONNECTED)
            return

        self._set_state(ConnectionState.CLOSING)
        socket, conn.socket = conn.socket, None
        if conn.heartbeat is not None:
            conn.heartbeat.cancel()

        task = conn.task
        if socket is not None:
            await socket.close()
        elif task is not None:
            task.cancel()

        if task is not None and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)

        if self._state == ConnectionState.CLOSING:
            # receive loop never reached its close handler
            self._set_state(ConnectionState.DISCONNECTED)
            self.emit(TransportEvent.CLOSE, None, None)

    def _release(self) -> None:
        """Drop the current connection; its close event becomes stale."""
        conn, self._conn = self._conn, None
        if conn is None:
            return
        socket, conn.socket = conn.socket, None
        if conn.heartbeat is not None:
            conn.heartbeat.cancel()
        if conn.task is not None and not conn.task.done():
            conn.task.cancel()
        if socket is not None:
            self._fire_task(socket.close())

    def _is_current(self, generation: int) -> bool:
        return self._conn is not None and self._conn.generation == generation

    # -- Internal: receive loop -----------------------------------------------

    async def _run(self, conn: _Connection, opener: Awaitable[Any]) -> None:
        code: int | None = None
        reason: str | None = None
        try:
            try:
                socket = await opener
            except InvalidStatus as exc:
                reason = str(exc)
                self._on_unexpected_response(exc.response)
                return
            except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
                reason = str(exc)
                self._on_error(exc)
                return

            if not self._is_current(conn.generation):
                await socket.close()
                return

            conn.socket = socket
            self._on_open(conn)
            try:
                async for message in socket:
                    self._on_message(message)
            except ConnectionClosedError as exc:
                logger.debug("Notification socket dropped: %s", exc)
            except Exception as exc:
                logger.warning("Receive loop error: %s", exc)
                self._on_error(exc)
            code, reason = socket.close_code, socket.close_reason
        finally:
            self._on_close(conn, code, reason)

    def _on_open(self, conn: _Connection) -> None:
        self._retries = 0
        self._set_state(ConnectionState.OPEN)
        logger.info("Connected to %s", self.build_address())
        self.emit(TransportEvent.OPEN)
        self.ping()

    def _on_close(self, conn: _Connection, code: int | None, reason: str | None) -> None:
        if not self._is_current(conn.generation):
            return

        self._pinger.cancel()
        self._await_pong.cancel()
        if conn.heartbeat is not None:
            conn.heartbeat.cancel()
            conn.heartbeat = None
        conn.socket = None
        self._set_state(ConnectionState.DISCONNECTED)

        if self._should_close:
            logger.info("Connection closed: code=%s reason=%s", code, reason)
            self.emit(TransportEvent.CLOSE, code, reason)
            return

        logger.info(
            "Connection lost (code=%s reason=%s), reconnecting in %.1fs",
            code,
            reason,
            self._config.reconnect_interval,
        )
        self._reconnect_timer.start(
            self._config.reconnect_interval, self._reconnect, conn.generation
        )

    def _reconnect(self, generation: int) -> None:
        if not self._is_current(generation) or self._should_close:
            return
        try:
            self.connect()
        except Exception as exc:
            logger.error("Reconnect attempt failed: %s", exc)
            self.emit(TransportEvent.ERROR, exc)

    # -- Internal: heartbeat --------------------------------------------------

    def ping(self) -> bool:
        """Send a ping and arm the pong deadline.

        Returns False if the socket is not ready or a pong is still pending.
        """
        if not self.is_ready or self._await_pong.active:
            return False
        conn = self._conn
        assert conn is not None

        self._pinger.cancel()
        self._await_pong.start(
            self._config.pong_timeout, self._on_pong_timeout, conn.generation
        )
        self._set_state(ConnectionState.AWAITING_PONG)
        conn.heartbeat = self._fire_task(self._send_ping(conn))
        return True

    async def _send_ping(self, conn: _Connection) -> None:
        socket = conn.socket
        if socket is None:
            return
        try:
            pong_waiter = await socket.ping(PING_DATA)
            await pong_waiter
        except ConnectionClosed:
            # close handler takes over
            return
        except ConcurrencyError as exc:
            # an earlier ping is still waiting; its deadline stays armed
            logger.debug("Ping skipped: %s", exc)
            return
        self._on_pong(conn.generation)

    def _on_pong(self, generation: int) -> None:
        if not self._is_current(generation) or self._should_close:
            return
        self._await_pong.cancel()
        self._pinger.start(self._config.ping_interval, self._on_ping_due, generation)
        self._set_state(ConnectionState.OPEN)
        self.emit(TransportEvent.PONG)

    def _on_ping_due(self, generation: int) -> None:
        if self._is_current(generation):
            self.ping()

    def _on_pong_timeout(self, generation: int) -> None:
        if not self._is_current(generation):
            return
        logger.warning(
            "No pong within %.1fs, terminating connection", self._config.pong_timeout
        )
        self.emit(TransportEvent.PONG_TIMEOUT)
        conn = self._conn
        if conn is not None and conn.socket is not None:
            conn.socket.transport.abort()

    # -- Internal: frames -----------------------------------------------------

    def _on_message(self, data: str | bytes) -> None:
        try:
            payload = parse_payload(data)
        except PlexProtocolError as exc:
            self.emit(TransportEvent.ERROR, exc)
            return

        if not payload:
            return

        self.emit(TransportEvent.MESSAGE, payload)
        container = extract_notification(payload)
        if container is not None:
            self._on_notification(container)

    def _on_notification(self, container: dict[str, Any]) -> None:
        self.emit(TransportEvent.NOTIFICATION, container)
        if is_playing(container):
            self._on_playing(container)

    def _on_playing(self, container: dict[str, Any]) -> None:
        try:
            entries = playing_entries(container)
        except PlexProtocolError as exc:
            self.emit(TransportEvent.ERROR, exc)
            return
        for entry in entries:
            self.emit(TransportEvent.PLAYING, entry.get("state"), entry)

    def _on_unexpected_response(self, response: Any) -> None:
        status = getattr(response, "status_code", None)
        if status == HTTP_UNAUTHORIZED:
            logger.error("Plex rejected the token (401)")
            self.emit(TransportEvent.UNAUTHORIZED, response)
            return
        logger.warning("Unexpected handshake response: %s", status)
        self.emit(TransportEvent.UNEXPECTED_RESPONSE, response)

    def _on_error(self, exc: BaseException) -> None:
        logger.debug("Socket error: %s", exc)
        self.emit(TransportEvent.ERROR, exc)

    # -- State management -----------------------------------------------------

    def _set_state(self, new_state: ConnectionState) -> None:
        if new_state == self._state:
            return
        old = self._state
        self._state = new_state
        logger.debug("State: %s -> %s", old.value, new_state.value)
        self.emit(TransportEvent.STATE_CHANGE, new_state)
