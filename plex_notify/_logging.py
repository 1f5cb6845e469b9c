# =============================================================================
# Plex Notify -- Package Logger
# =============================================================================

import logging

logger = logging.getLogger("plex_notify")
