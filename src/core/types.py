"""Type aliases for dynamic data structures throughout the application.

All types defined here should be JSON-serializable to support logging
and API responses.
"""

from collections.abc import Awaitable, Callable

# JSON-compatible type that represents any valid JSON value
# Used for request bodies, query maps and response payloads
type JsonValue = (
    dict[str, "JsonValue"] | list["JsonValue"] | str | int | float | bool | None
)

# Async callback run as the last step of the drain sequence
type CleanupHook = Callable[[], Awaitable[None]]

# Receives the process exit code once shutdown finishes
type ExitHandler = Callable[[int], None]
