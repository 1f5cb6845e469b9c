# =============================================================================
# Plex Notify -- Session Stores
# =============================================================================
#
# The processor only needs ``fetch(key)`` and ``delete(key)``.  Records are
# handed out by reference: the processor writes ``prevState`` into them, so
# a store must return the same object for the same key until it is deleted.
# =============================================================================

from __future__ import annotations

import asyncio

from typing import Any, Protocol, runtime_checkable

import aiohttp

from ._logging import logger
from .constants import (
    HTTP_UNAUTHORIZED,
    SESSION_FETCH_TIMEOUT,
    SESSION_KEY,
    SESSIONS_PATH,
    TOKEN_HEADER,
)
from .errors import PlexAuthError, PlexSessionError
from .types import Session


@runtime_checkable
class SessionStore(Protocol):
    """Session lookup used by :class:`~plex_notify.processor.PlayingStreamProcessor`."""

    async def fetch(self, session_key: str) -> Session | None: ...

    def delete(self, session_key: str) -> None: ...


class InMemorySessionStore:
    """Dict-backed store. Sessions are added explicitly with :meth:`put`."""

    def __init__(self, sessions: dict[str, Session] | None = None) -> None:
        self._sessions: dict[str, Session] = {
            str(key): value for key, value in (sessions or {}).items()
        }

    def put(self, session_key: str, session: Session) -> None:
        self._sessions[str(session_key)] = session

    async def fetch(self, session_key: str) -> Session | None:
        return self._sessions.get(str(session_key))

    def delete(self, session_key: str) -> None:
        self._sessions.pop(str(session_key), None)

    def __contains__(self, session_key: object) -> bool:
        return str(session_key) in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


class HttpSessionStore:
    """Cache of active sessions backed by ``GET /status/sessions``.

    A cache miss refreshes the whole session list; records already cached
    are kept as-is so state written into them survives the refresh.
    Concurrent misses share one request.

    Args:
        base_url: Server URL, e.g. ``"http://10.0.0.5:32400"``.
        token: ``X-Plex-Token`` for the request.
        http_session: Shared ``aiohttp.ClientSession``. When omitted the
            store creates one lazily and closes it in :meth:`close`.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        http_session: aiohttp.ClientSession | None = None,
        timeout: float = SESSION_FETCH_TIMEOUT,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._http = http_session
        self._owns_http = http_session is None
        self._timeout = timeout
        self._cache: dict[str, Session] = {}
        self._refresh: asyncio.Task[dict[str, Session]] | None = None

    @property
    def cached_keys(self) -> set[str]:
        return set(self._cache)

    async def fetch(self, session_key: str) -> Session | None:
        """Return the cached session or refresh from the server.

        Raises:
            PlexAuthError: The token was rejected.
            PlexSessionError: The request failed or returned garbage.
        """
        key = str(session_key)
        session = self._cache.get(key)
        if session is not None:
            return session

        if self._refresh is None or self._refresh.done():
            self._refresh = asyncio.ensure_future(self._fetch_sessions())
        sessions = await asyncio.shield(self._refresh)

        for active_key, record in sessions.items():
            self._cache.setdefault(active_key, record)
        return self._cache.get(key)

    def delete(self, session_key: str) -> None:
        self._cache.pop(str(session_key), None)

    async def close(self) -> None:
        if self._owns_http and self._http is not None:
            await self._http.close()
            self._http = None

    async def _fetch_sessions(self) -> dict[str, Session]:
        if self._http is None:
            self._http = aiohttp.ClientSession()

        url = f"{self._base_url}{SESSIONS_PATH}"
        headers = {"Accept": "application/json"}
        if self._token:
            headers[TOKEN_HEADER] = self._token

        try:
            async with self._http.get(
                url, headers=headers, timeout=aiohttp.ClientTimeout(total=self._timeout)
            ) as resp:
                if resp.status == HTTP_UNAUTHORIZED:
                    raise PlexAuthError("Plex rejected the token (401)")
                resp.raise_for_status()
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise PlexSessionError(f"GET {SESSIONS_PATH} failed: {exc}") from exc
        except ValueError as exc:
            raise PlexSessionError(f"GET {SESSIONS_PATH} returned invalid JSON") from exc

        if not isinstance(data, dict):
            raise PlexSessionError(f"GET {SESSIONS_PATH} returned {type(data).__name__}")
        container = data.get("MediaContainer") or {}
        metadata: list[Any] = container.get("Metadata") or []

        sessions = {
            str(item[SESSION_KEY]): item
            for item in metadata
            if isinstance(item, dict) and SESSION_KEY in item
        }
        logger.debug("Fetched %d active sessions", len(sessions))
        return sessions
