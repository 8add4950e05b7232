"""Core application constants."""

# Time constants
MILLISECONDS_PER_SECOND = 1000

# Pipeline defaults
DEFAULT_RATE_LIMIT_WINDOW_MS = 15 * 60 * MILLISECONDS_PER_SECOND
DEFAULT_RATE_LIMIT_MAX = 100
DEFAULT_BODY_LIMIT_BYTES = 10 * 1024
DEFAULT_CORS_MAX_AGE = 86400
DEFAULT_HSTS_MAX_AGE = 31536000  # 1 year in seconds
DEFAULT_SHUTDOWN_TIMEOUT_MS = 30 * MILLISECONDS_PER_SECOND

# Paths that are never rate limited and stay reachable while draining
HEALTH_PATHS = ("/health", "/api/health")

# Security and redaction
REDACTED = "[REDACTED]"
PATH_REDACTED = "[PATH_REDACTED]"
STACK_REDACTED = "[STACK_REDACTED]"

# Client-facing messages
BAD_REQUEST_MESSAGE = "Bad Request: Invalid input provided"
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"
