"""
Configuration loader for plex-notify.

Loads a single JSON file.  Search order:
  1. the path passed to ``load_config()``
  2. $PLEX_NOTIFY_CONFIG
  3. config.json                          (CWD, handy for local dev)
  4. ~/.config/plex-notify/config.json

The token is a secret and is normally supplied through $PLEX_TOKEN, which
overrides ``server.token``.

Layout::

    {
      "server": {"host": "10.0.0.5", "port": 32400, "secure": false,
                 "ping_interval": 10, "reconnect_interval": 10},
      "filters": [
        {"key": "Player.state", "value": "playing", "valueType": "str",
         "operator": "eq", "idx": 0}
      ]
    }
"""

from __future__ import annotations

import dataclasses
import json
import os

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ._logging import logger
from .constants import CONFIG_ENV, TOKEN_ENV
from .errors import PlexConfigError, PlexFilterError
from .filters import load_filters
from .types import FilterSpec, TransportConfig

_SEARCH_PATHS = [
    Path("config.json"),
    Path("~/.config/plex-notify/config.json"),
]

_SERVER_FIELDS = {f.name for f in dataclasses.fields(TransportConfig)}


@dataclass
class PlexConfig:
    """Transport settings plus the filter chain."""

    server: TransportConfig = field(default_factory=TransportConfig)
    filters: list[FilterSpec] = field(default_factory=list)
    source: Path | None = None


def _candidates(path: str | os.PathLike[str] | None) -> list[Path]:
    if path is not None:
        return [Path(path)]
    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        return [Path(env_path)]
    return [p.expanduser() for p in _SEARCH_PATHS]


def _read(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise PlexConfigError(f"Invalid JSON in {path}: {e}") from e
    except FileNotFoundError:
        raise
    except OSError as e:
        raise PlexConfigError(f"Cannot read config {path}: {e}") from e
    if not isinstance(data, dict):
        raise PlexConfigError(f"Config {path}: top level must be an object")
    return data


def parse_config(data: dict[str, Any], source: Path | None = None) -> PlexConfig:
    """Build a :class:`PlexConfig` from an already-decoded mapping."""
    server = data.get("server") or {}
    if not isinstance(server, dict):
        raise PlexConfigError("'server' must be an object")
    unknown = set(server) - _SERVER_FIELDS
    if unknown:
        raise PlexConfigError(f"Unknown server settings: {', '.join(sorted(unknown))}")

    transport = TransportConfig(**server)
    token = os.environ.get(TOKEN_ENV)
    if token:
        transport = dataclasses.replace(transport, token=token)
    if not transport.token:
        logger.warning("No Plex token configured, the server will likely answer 401")

    raw_filters = data.get("filters") or []
    if not isinstance(raw_filters, list):
        raise PlexConfigError("'filters' must be a list")
    try:
        filters = load_filters(raw_filters)
    except PlexFilterError as e:
        raise PlexConfigError(str(e)) from e

    return PlexConfig(server=transport, filters=filters, source=source)


def load_config(path: str | os.PathLike[str] | None = None) -> PlexConfig:
    """Load config from the first JSON file found.

    An explicit *path* (or $PLEX_NOTIFY_CONFIG) must exist. Without one,
    missing files fall back to defaults.

    Raises:
        PlexConfigError: Unreadable file, invalid JSON or unknown settings.
    """
    explicit = path is not None or bool(os.environ.get(CONFIG_ENV))
    for candidate in _candidates(path):
        try:
            data = _read(candidate)
        except FileNotFoundError:
            if explicit:
                raise PlexConfigError(f"Config file not found: {candidate}") from None
            continue
        logger.info("Config loaded from %s", candidate)
        return parse_config(data, source=candidate)

    logger.warning("No config.json found, using defaults")
    return parse_config({})
