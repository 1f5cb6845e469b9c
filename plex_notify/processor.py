# =============================================================================
# Plex Notify -- Playing Stream Processor
# =============================================================================
#
# Consumes ``playing`` events, resolves the session, suppresses repeated
# states, applies the filter chain and forwards matches to a sink.
# =============================================================================

from __future__ import annotations

import asyncio

from typing import Any, Callable, Iterable, Mapping

from ._logging import logger
from .constants import PREV_STATE_KEY, SESSION_KEY, STATE_STOPPED
from .events import EventEmitter
from .filters import FilterEngine
from .sessions import SessionStore
from .types import (
    FilterSpec,
    PlayingMessage,
    ProcessorStats,
    ProcessorStatus,
    TransportEvent,
)

Sink = Callable[[PlayingMessage], Any]


class PlayingStreamProcessor:
    """Turns transport ``playing`` events into filtered :class:`PlayingMessage`.

    For each event the session is fetched from *sessions*. When its
    ``prevState`` differs from the new state the filter chain runs, a match
    is sent to *sink*, and ``prevState`` is updated either way. A
    ``stopped`` state always removes the session from the store.

    Fetch failures are logged as warnings and drop only that event.

    Args:
        transport: Event source, normally a
            :class:`~plex_notify.transport.NotificationTransport`.
        sessions: Session lookup.
        sink: Receives matching messages. May be sync or async.
        filters: Filter chain (config dicts or :class:`FilterSpec`).
    """

    def __init__(
        self,
        transport: EventEmitter,
        sessions: SessionStore,
        sink: Sink,
        *,
        filters: Iterable[Mapping[str, Any] | FilterSpec] | None = None,
    ) -> None:
        self._transport = transport
        self._sessions = sessions
        self._sink = sink
        self._engine = FilterEngine(filters)
        self._status = ProcessorStatus.CONNECTING
        self._stats = ProcessorStats()
        self._started = False
        self._background_tasks: set[asyncio.Task[Any]] = set()

        # transport event -> handler
        self._bindings: dict[TransportEvent, Callable[..., Any]] = {
            TransportEvent.PLAYING: self._on_playing,
            TransportEvent.OPEN: self._on_open,
            TransportEvent.CLOSE: self._on_disconnect,
            TransportEvent.PONG_TIMEOUT: self._on_disconnect,
            TransportEvent.UNAUTHORIZED: self._on_unauthorized,
            TransportEvent.RECONNECT_MAX_RETRIES: self._on_max_retries,
        }

    # -- Properties -----------------------------------------------------------

    @property
    def filters(self) -> tuple[FilterSpec, ...]:
        return self._engine.filters

    @property
    def status(self) -> ProcessorStatus:
        return self._status

    @property
    def stats(self) -> ProcessorStats:
        return self._stats

    # -- Lifecycle ------------------------------------------------------------

    def start(self) -> None:
        """Subscribe to the transport."""
        if self._started:
            return
        for event, handler in self._bindings.items():
            self._transport.on(event, handler)
        self._started = True

    def stop(self) -> None:
        """Unsubscribe from the transport. In-flight events still finish."""
        if not self._started:
            return
        for event, handler in self._bindings.items():
            self._transport.off(event, handler)
        self._started = False

    async def drain(self) -> None:
        """Wait for every in-flight event to finish."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def close(self) -> None:
        self.stop()
        await self.drain()

    # -- Event handling -------------------------------------------------------

    def _on_playing(self, state: str, notification: dict[str, Any]) -> None:
        self._fire_task(self.process(state, notification))

    async def process(
        self, state: str, notification: dict[str, Any]
    ) -> PlayingMessage | None:
        """Handle one ``playing`` event. Returns the message sent, if any."""
        self._stats.events_received += 1
        session_key = notification.get(SESSION_KEY)

        try:
            session = await self._sessions.fetch(session_key)
        except Exception as exc:
            self._stats.fetch_failures += 1
            logger.warning("failed to fetch session details from Plex: %s", exc)
            return None

        message: PlayingMessage | None = None
        if session is None:
            self._stats.unknown_sessions += 1
            logger.debug("No session details for %s", session_key)
        elif session.get(PREV_STATE_KEY) == state:
            self._stats.duplicates_suppressed += 1
        else:
            if self._engine.matches(session):
                message = PlayingMessage(
                    payload=state, plex=notification, session=session
                )
                self._send(message)
            else:
                self._stats.filtered_out += 1
            session[PREV_STATE_KEY] = state

        if state == STATE_STOPPED:
            self._sessions.delete(session_key)
            self._stats.sessions_deleted += 1

        return message

    def _send(self, message: PlayingMessage) -> None:
        self._stats.messages_emitted += 1
        try:
            result = self._sink(message)
            if asyncio.iscoroutine(result):
                self._fire_task(self._await_sink(result))
        except Exception as exc:
            self._stats.sink_errors += 1
            logger.error(
                "Sink error for session %s: %s", message.plex.get(SESSION_KEY), exc
            )

    async def _await_sink(self, result: Any) -> None:
        try:
            await result
        except Exception as exc:
            self._stats.sink_errors += 1
            logger.error("Sink error: %s", exc)

    def _fire_task(self, coro: Any) -> None:
        """Schedule a coroutine with a strong reference to prevent GC."""
        task = asyncio.ensure_future(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    # -- Connection status ----------------------------------------------------

    def _on_open(self) -> None:
        self._set_status(ProcessorStatus.CONNECTED)

    def _on_disconnect(self, *args: Any) -> None:
        self._set_status(ProcessorStatus.DISCONNECTED)

    def _on_unauthorized(self, *args: Any) -> None:
        self._set_status(ProcessorStatus.UNAUTHORIZED)

    def _on_max_retries(self, max_retries: int) -> None:
        self._set_status(ProcessorStatus.RETRYING)

    def _set_status(self, status: ProcessorStatus) -> None:
        if status == self._status:
            return
        logger.info("Processor status: %s -> %s", self._status.value, status.value)
        self._status = status
