"""
Legajos Toolkit Global Constants
"""

from datetime import datetime, timezone


def get_current_timestamp() -> datetime:
    """Get current timestamp with UTC timezone."""
    return datetime.now(timezone.utc)


# Application Constants
APP_NAME = "Legajos Toolkit"
APP_VERSION = "1.0.0"

# Cache keys for loaded records are LEGAJO_CACHE_PREFIX + record id
LEGAJO_CACHE_PREFIX = "legajo_"
