"""System-wide constants and enumerations for the bar cache.

This module defines the default values used when no configuration is
supplied, plus the enumerations shared between the window maintainer,
the refresh task and the CLI.
"""

from enum import Enum


# ============================================================================
# Enumerations
# ============================================================================

class RefreshAction(str, Enum):
    """Enumeration of the outcomes of a single refresh tick.

    - BACKFILL: Window was below capacity and history was prepended
    - REPLACE: Same minute re-observed, newest bar replaced in place
    - ROLL: New minute started, oldest bar evicted and newest appended
    - SKIP: Oldest bar evicted but the new minute had no data
    - IDLE: Nothing could be fetched (gap at the newest backfill minute)
    """
    BACKFILL = "BACKFILL"
    REPLACE = "REPLACE"
    ROLL = "ROLL"
    SKIP = "SKIP"
    IDLE = "IDLE"


class Environment(str, Enum):
    """Run environments selectable from the CLI."""
    DEV = "dev"
    REPLAY = "replay"


# ============================================================================
# Time Constants
# ============================================================================

MINUTES_PER_HOUR = 60
HOURS_PER_DAY = 24
SESSION_START_HOUR = 0


# ============================================================================
# Cache Defaults
# ============================================================================

DEFAULT_CAPACITY = 50
DEFAULT_REFRESH_INTERVAL_SEC = 1.0
DEFAULT_FETCH_TIMEOUT_SEC = 2.0
DEFAULT_TIMEZONE = "America/New_York"
DEFAULT_SMA_OFFSETS = (32, 50)
DEFAULT_EMA_OFFSETS = (12,)


# ============================================================================
# Monitoring Defaults
# ============================================================================

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FILE = "data/logs/barcache.log"
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 5
