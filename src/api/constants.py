"""API-related constants."""

# Request handling
REQUEST_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})

# Content types
JSON_CONTENT_TYPES = frozenset({"application/json", "text/json"})
FORM_CONTENT_TYPES = frozenset({"application/x-www-form-urlencoded"})

# Rate limit headers (draft-ietf-httpapi-ratelimit-headers)
RATE_LIMIT_LIMIT_HEADER = "RateLimit-Limit"
RATE_LIMIT_REMAINING_HEADER = "RateLimit-Remaining"
RATE_LIMIT_RESET_HEADER = "RateLimit-Reset"
RETRY_AFTER_HEADER = "Retry-After"
RATE_LIMIT_HEADERS = (
    RATE_LIMIT_LIMIT_HEADER,
    RATE_LIMIT_REMAINING_HEADER,
    RATE_LIMIT_RESET_HEADER,
)

# CORS
CORS_ALLOWED_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS")
CORS_ALLOWED_HEADERS = (
    "Content-Type",
    "Authorization",
    "X-Requested-With",
    "Accept",
    "Origin",
)
CORS_EXPOSED_HEADERS = RATE_LIMIT_HEADERS

# Headers that identify the server implementation
FRAMEWORK_HEADERS = ("server", "x-powered-by")
