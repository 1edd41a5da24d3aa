"""
Configuration module for the sync job observability engine
"""

import os


def env_bool(key: str, default: bool = False) -> bool:
    """Get boolean value from environment variable"""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")


# Version information
APP_VERSION = os.getenv("SYNCWATCH_VERSION", "0.3.0")

# Database configuration
SQLITE_PATH = os.getenv("SQLITE_PATH", "./syncwatch.db")
DATABASE_URL = os.getenv("SYNCWATCH_DATABASE_URL", os.getenv("DATABASE_URL", f"sqlite:///{SQLITE_PATH}"))

# Logging configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")
LOG_MEMORY_MAX = int(os.getenv("LOG_MEMORY_MAX", "10000"))

# Stall detection
STALL_CHECK_INTERVAL_SECONDS = float(os.getenv("STALL_CHECK_INTERVAL_SECONDS", "30"))
STALL_THRESHOLD_MS = int(os.getenv("STALL_THRESHOLD_MS", "30000"))
RECALC_ON_TICK: bool = env_bool("SYNCWATCH_RECALC_ON_TICK", True)

# Rolling metrics
ROLLING_WINDOW_MS = int(os.getenv("ROLLING_WINDOW_MS", "60000"))

# Active job lookup (dashboard job picker)
ACTIVE_JOB_WINDOW_SECONDS = int(os.getenv("ACTIVE_JOB_WINDOW_SECONDS", "300"))

# Event history pagination
EVENTS_PAGE_DEFAULT = int(os.getenv("EVENTS_PAGE_DEFAULT", "100"))
EVENTS_PAGE_MAX = int(os.getenv("EVENTS_PAGE_MAX", "200"))
EVENTS_POLL_DEFAULT = int(os.getenv("EVENTS_POLL_DEFAULT", "50"))
DEBUG_RECENT_EVENTS = int(os.getenv("DEBUG_RECENT_EVENTS", "20"))

# Persistence dispatcher
PERSIST_QUEUE_MAX_DEPTH = int(os.getenv("PERSIST_QUEUE_MAX_DEPTH", "10000"))
PERSIST_FLUSH_TIMEOUT_SECONDS = float(os.getenv("PERSIST_FLUSH_TIMEOUT_SECONDS", "10"))

# Snapshot defaults
DEFAULT_WORKSPACE_ID = int(os.getenv("DEFAULT_WORKSPACE_ID", "1"))
DEFAULT_THROTTLE_MIN_DELAY_MS = int(os.getenv("DEFAULT_THROTTLE_MIN_DELAY_MS", "1000"))
DEFAULT_THROTTLE_CONCURRENCY = int(os.getenv("DEFAULT_THROTTLE_CONCURRENCY", "100"))

# Event field limits (characters)
ERROR_MESSAGE_MAX = 500
PAYLOAD_SUMMARY_MAX = 200
RESPONSE_SNIPPET_MAX = 1000
