# =============================================================================
# Plex Notify -- Notification Frame Parsing
# =============================================================================
#
# Frames arrive as JSON text:
#
#   {"NotificationContainer": {
#       "type": "playing",
#       "size": 1,
#       "PlaySessionStateNotification": [
#           {"sessionKey": "12", "state": "playing", "viewOffset": 4000, ...}
#       ]
#   }}
#
# Other container types (timeline, activity, status, ...) are surfaced as
# plain notifications.
# =============================================================================

from __future__ import annotations

import json

from typing import Any

from .constants import (
    NOTIFICATION_CONTAINER,
    NOTIFICATION_TYPE_PLAYING,
    PLAY_SESSION_STATE,
)
from .errors import PlexProtocolError

try:
    import orjson

    def _json_loads(data: str | bytes) -> Any:
        return orjson.loads(data)

    _DECODE_ERRORS: tuple[type[Exception], ...] = (orjson.JSONDecodeError,)

except ImportError:

    def _json_loads(data: str | bytes) -> Any:
        return json.loads(data)

    _DECODE_ERRORS = (json.JSONDecodeError, UnicodeDecodeError)


def parse_payload(data: str | bytes) -> Any:
    """Decode a text or binary frame as JSON.

    Raises:
        PlexProtocolError: If the frame is not valid JSON.
    """
    try:
        return _json_loads(data)
    except _DECODE_ERRORS as exc:
        raise PlexProtocolError(f"Unparsable notification frame: {exc}") from exc


def extract_notification(payload: Any) -> dict[str, Any] | None:
    """Return the ``NotificationContainer`` of a decoded frame, if any."""
    if not isinstance(payload, dict):
        return None
    container = payload.get(NOTIFICATION_CONTAINER)
    if not container or not isinstance(container, dict):
        return None
    return container


def is_playing(container: dict[str, Any]) -> bool:
    return container.get("type") == NOTIFICATION_TYPE_PLAYING


def playing_entries(container: dict[str, Any]) -> list[dict[str, Any]]:
    """Per-session state records of a ``playing`` notification.

    Raises:
        PlexProtocolError: If the list is absent or empty.
    """
    entries = container.get(PLAY_SESSION_STATE)
    if not entries or not isinstance(entries, list):
        raise PlexProtocolError(
            f"expected playing notification to have {PLAY_SESSION_STATE}"
        )
    if not all(isinstance(entry, dict) for entry in entries):
        raise PlexProtocolError(f"{PLAY_SESSION_STATE} entries must be objects")
    return entries
