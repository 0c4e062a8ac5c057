# =============================================================================
# Realtime Client -- Package Logger
# =============================================================================

import logging

logger = logging.getLogger("realtime_client")
