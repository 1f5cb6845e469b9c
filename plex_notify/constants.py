# =============================================================================
# Plex Notify -- Constants
# =============================================================================
#
# Defaults mirror the Plex Media Server notification endpoint.
# =============================================================================

# -- Endpoint ------------------------------------------------------------------

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 32400
NOTIFICATIONS_PATH = "/:/websockets/notifications"
SESSIONS_PATH = "/status/sessions"
TOKEN_HEADER = "X-Plex-Token"

# -- Timing (seconds) --------------------------------------------------------

PING_INTERVAL = 10.0
PONG_TIMEOUT = 5.0
RECONNECT_INTERVAL = 10.0
RECONNECT_MAX_RETRIES = -1  # -1 = infinite
OPEN_TIMEOUT = 10.0
SESSION_FETCH_TIMEOUT = 10.0

# -- Heartbeat payloads --------------------------------------------------------

PING_DATA = b"Hi?"

# -- Notification payload keys -------------------------------------------------

NOTIFICATION_CONTAINER = "NotificationContainer"
NOTIFICATION_TYPE_PLAYING = "playing"
PLAY_SESSION_STATE = "PlaySessionStateNotification"
SESSION_KEY = "sessionKey"
PREV_STATE_KEY = "prevState"

# -- Playback states -----------------------------------------------------------

STATE_STOPPED = "stopped"

# -- HTTP ----------------------------------------------------------------------

HTTP_UNAUTHORIZED = 401

# -- Config --------------------------------------------------------------------

CONFIG_ENV = "PLEX_NOTIFY_CONFIG"
TOKEN_ENV = "PLEX_TOKEN"
