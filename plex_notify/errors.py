# =============================================================================
# Plex Notify -- Error Types
# =============================================================================


class PlexNotifyError(Exception):
    """Base exception for all plex-notify errors."""


class PlexConnectionError(PlexNotifyError):
    """Connection-related errors (failed to open, lost connection)."""


class PlexAuthError(PlexNotifyError):
    """The server rejected the token (HTTP 401)."""


class PlexProtocolError(PlexNotifyError):
    """Unparsable frames or notifications missing their expected payload."""


class PlexSessionError(PlexNotifyError):
    """Session details could not be fetched from the server."""


class PlexFilterError(PlexNotifyError):
    """Filter configuration is invalid (unknown operator, missing key)."""


class PlexConfigError(PlexNotifyError):
    """Configuration file is unreadable or contains unknown settings."""
