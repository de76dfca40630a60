"""Application-wide constants for reqscope.

Constants that define pipeline behavior.
For user-configurable settings per deployment, see config.py.
"""

__all__ = [
    # Application identity
    "APP_NAME",
    # Environment
    "ENV_VAR_ENVIRONMENT",
    "ENV_VAR_LOG_DIR",
    "ENVIRONMENTS",
    # Sentinels
    "MISSING",
    "ANONYMOUS",
    "NO_REQUEST_ID",
    "UNKNOWN_ERROR",
    # Tokens
    "USER_AGENT_SHORT_LENGTH",
    # Filters
    "HEALTH_CHECK_PATHS",
    "STATIC_PREFIXES",
    "API_PREFIX",
    "STREAMING_MARKERS",
    # Monitors
    "SLOW_REQUEST_THRESHOLD_MS",
    "MEMORY_INCREASE_THRESHOLD_BYTES",
    "LARGE_REQUEST_THRESHOLD_BYTES",
    "READ_ONLY_METHOD",
    # Sinks and rotation
    "FILE_SINK_CATEGORIES",
    "LOG_FILE_NAMES",
    "ROTATION_PERIOD_SECONDS",
    "RECENT_RECORDS_DEFAULT_LIMIT",
]

# ============================================================================
# Application identity
# ============================================================================

APP_NAME: str = "reqscope"

# ============================================================================
# Environment selection
# ============================================================================

# Overrides for LoggingConfig.environment / LoggingConfig.log_dir
ENV_VAR_ENVIRONMENT: str = "REQSCOPE_ENV"
ENV_VAR_LOG_DIR: str = "REQSCOPE_LOG_DIR"

ENVIRONMENTS: tuple[str, ...] = ("development", "production")

# ============================================================================
# Token sentinels
# ============================================================================

MISSING: str = "-"
ANONYMOUS: str = "anonymous"
NO_REQUEST_ID: str = "no-id"
UNKNOWN_ERROR: str = "Unknown error"

USER_AGENT_SHORT_LENGTH: int = 50

# ============================================================================
# Filter constants
# ============================================================================

HEALTH_CHECK_PATHS: frozenset[str] = frozenset({"/health", "/ping"})
STATIC_PREFIXES: tuple[str, ...] = ("/static", "/assets")
API_PREFIX: str = "/api"
STREAMING_MARKERS: tuple[str, ...] = ("/stream", "/video")

# ============================================================================
# Side monitor thresholds
# ============================================================================

SLOW_REQUEST_THRESHOLD_MS: int = 1000
MEMORY_INCREASE_THRESHOLD_BYTES: int = 50 * 1024 * 1024  # 52,428,800
LARGE_REQUEST_THRESHOLD_BYTES: int = 10 * 1024 * 1024  # 10,485,760

# Activity tracking ignores pure reads
READ_ONLY_METHOD: str = "GET"

# ============================================================================
# Sinks and rotation
# ============================================================================

FILE_SINK_CATEGORIES: tuple[str, ...] = ("access", "error", "api")

LOG_FILE_NAMES: dict[str, str] = {
    "access": "access.log",
    "error": "error.log",
    "api": "api.log",
}

ROTATION_PERIOD_SECONDS: int = 24 * 60 * 60

RECENT_RECORDS_DEFAULT_LIMIT: int = 50
