"""Structured logging built on Loguru.

Every pipeline stage and the shutdown controller log through the single
Loguru logger configured here. Records carry their context as bound extra
fields, so one failure produces one self-contained line that can be
correlated with the client response through its ``reference_id``.

Formatter types:
- **console**: Human-readable with inline context (development)
- **json**: One JSON object per line (every other environment)

Standard library loggers, uvicorn's included, are routed into Loguru by
``InterceptHandler`` so the whole process shares one output format.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Final, Protocol, cast

from loguru import logger

from src.core.constants import REDACTED


class _LoggingState:
    """Simple state holder to track if logging has been configured."""

    def __init__(self) -> None:
        self.configured = False


_state = _LoggingState()


class LogConfigProtocol(Protocol):
    """Protocol for log configuration objects."""

    @property
    def log_level(self) -> str:
        """Logging level."""
        ...

    @property
    def log_formatter_type(self) -> str | None:
        """Log formatter type."""
        ...


class SettingsProtocol(Protocol):
    """Protocol for settings objects that setup_logging can accept."""

    @property
    def debug(self) -> bool:
        """Debug mode flag."""
        ...

    @property
    def log_config(self) -> LogConfigProtocol:
        """Log configuration."""
        ...


DEFAULT_LOG_FORMAT: Final[str] = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{message}"
)
REFERENCE_ID_DISPLAY_LENGTH: Final[int] = 8
MAX_FIELD_VALUE_LENGTH: Final[int] = 100

# Extra fields never printed in clear text
SENSITIVE_FIELDS: Final[frozenset[str]] = frozenset(
    {"authorization", "cookie", "password", "token", "secret", "api_key"}
)

# Fields shown first, in this order, by the console formatter
PRIORITY_FIELDS: Final[tuple[str, ...]] = (
    "reference_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "client_ip",
)


def _escape(value: object) -> str:
    # Values are embedded in the format string, so braces and markup are escaped
    return str(value).replace("{", "{{").replace("}", "}}").replace("<", r"\<")


def _format_priority_field(field: str, value: object) -> str | None:
    """Format a priority field for display.

    Args:
        field: The field name.
        value: The field value.

    Returns:
        str | None: Formatted value or None if formatting fails.
    """
    try:
        if field == "reference_id" and len(str(value)) > REFERENCE_ID_DISPLAY_LENGTH:
            value = str(value)[:REFERENCE_ID_DISPLAY_LENGTH]
        elif field == "duration_ms":
            value = f"{value}ms"
        elif field == "status_code":
            status_str = str(value)
            if status_str.startswith("2"):
                value = f"<green>{value}</green>"
            elif status_str.startswith("3"):
                value = f"<yellow>{value}</yellow>"
            elif status_str.startswith("4"):
                value = f"<red>{value}</red>"
            elif status_str.startswith("5"):
                value = f"<red><bold>{value}</bold></red>"
        return _escape(value)
    except (AttributeError, TypeError, ValueError) as e:
        logger.trace(f"Failed to format priority field {field}: {e}")
        return None


def _format_extra_field(key: str, value: object) -> str | None:
    """Format a non-priority extra field as ``key=value``."""
    try:
        str_value = str(value)
        if key.lower() in SENSITIVE_FIELDS:
            str_value = REDACTED
        elif len(str_value) > MAX_FIELD_VALUE_LENGTH:
            str_value = str_value[: MAX_FIELD_VALUE_LENGTH - 3] + "..."
    except (AttributeError, TypeError, ValueError) as e:
        logger.trace(f"Failed to format extra field {key}: {e}")
        return None
    else:
        return f"{_escape(key)}={_escape(str_value)}"


def _format_context_fields(extra: dict[str, Any]) -> list[str]:
    context_parts = []

    for field in PRIORITY_FIELDS:
        if extra.get(field) is not None:
            formatted = _format_priority_field(field, extra[field])
            if formatted:
                context_parts.append(f"<yellow>{formatted}</yellow>")

    for key, value in extra.items():
        if key in PRIORITY_FIELDS or key.startswith("_") or value is None:
            continue
        # Stacks are appended after the message, not inlined
        if key == "stack":
            continue
        formatted = _format_extra_field(key, value)
        if formatted:
            context_parts.append(f"<dim>{formatted}</dim>")

    return context_parts


def format_console_with_context(record: dict[str, Any]) -> str:
    """Format log record for console with all context fields visible.

    Args:
        record: Loguru record to format.

    Returns:
        str: Formatted log string with context.
    """
    try:
        timestamp = record.get("time")
        time_str = (
            str(timestamp.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3])
            if timestamp
            else "unknown"
        )
        level = record.get("level", {})
        level_name = getattr(level, "name", str(level))

        parts = [
            f"<green>{time_str}</green>",
            f"<level>{level_name: <8}</level>",
            f"<cyan>{record.get('name', '')}:{record.get('function', '')}:"
            f"{record.get('line', '')}</cyan>",
        ]

        extra = record.get("extra", {})
        context_parts = _format_context_fields(extra)
        if context_parts:
            parts.append(" ".join(f"[{part}]" for part in context_parts))

        parts.append("{message}")
        line = " | ".join(parts)

        if extra.get("stack"):
            line += "\n" + _escape(extra["stack"])
        if record.get("exception"):
            line += "\n{exception}"
        return line + "\n"
    except (AttributeError, TypeError, ValueError, KeyError) as e:
        logger.trace(f"Failed to format log record: {e}")
        return DEFAULT_LOG_FORMAT + "\n"


class InterceptHandler(logging.Handler):
    """Intercept standard logging and redirect to Loguru.

    This handler captures logs from libraries using standard logging
    and forwards them to Loguru for consistent formatting.
    """

    def emit(self, record: logging.LogRecord) -> None:
        """Forward log record to Loguru.

        Args:
            record: Standard library LogRecord to forward.
        """
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        extra: dict[str, Any] = {}
        if record.name == "uvicorn.access" and hasattr(record, "scope"):
            scope = record.scope
            extra["method"] = scope.get("method", "")
            extra["path"] = scope.get("path", "")
            client = scope.get("client") or ("unknown",)
            extra["client_ip"] = client[0]

        logger.opt(depth=depth, exception=record.exc_info).bind(**extra).log(
            level, record.getMessage()
        )


def serialize_for_json(record: dict[str, Any]) -> str:
    """Format log record as a single JSON line.

    Args:
        record: Loguru record to format.

    Returns:
        str: JSON-formatted log entry with newline.
    """
    log_entry: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "logger": record["name"],
        "function": record["function"],
        "line": record["line"],
    }

    if extra := record.get("extra", {}):
        log_entry.update(
            {
                k: REDACTED if k.lower() in SENSITIVE_FIELDS else v
                for k, v in extra.items()
                if not k.startswith("_")
            }
        )

    if exc := record.get("exception"):
        log_entry["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value) if exc.value else None,
        }

    return json.dumps(log_entry, default=str) + "\n"


# Formatter registry
LOG_FORMATTERS: dict[str, Any] = {
    "console": format_console_with_context,
    "json": serialize_for_json,
}


def setup_logging(settings: SettingsProtocol) -> None:
    """Configure Loguru and route standard logging into it.

    Args:
        settings: Application settings containing log configuration.

    Note:
        This function ensures it's only called once using module state.
    """
    if _state.configured:
        return

    logger.remove()

    formatter_type = settings.log_config.log_formatter_type or "console"

    if formatter_type == "console":
        logger.add(
            sys.stdout,
            format=cast("Any", format_console_with_context),
            level=settings.log_config.log_level,
            enqueue=True,
            colorize=True,
            diagnose=settings.debug,
            backtrace=settings.debug,
        )
    else:
        formatter = LOG_FORMATTERS[formatter_type]

        def structured_sink(message: object) -> None:
            """Custom sink that formats and writes structured logs."""
            if hasattr(message, "record"):
                sys.stdout.write(formatter(message.record))
                sys.stdout.flush()

        logger.add(
            structured_sink,
            level=settings.log_config.log_level,
            enqueue=True,
            diagnose=False,
            backtrace=False,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(logger_name)
        uvicorn_logger.handlers = [InterceptHandler()]
        uvicorn_logger.propagate = False

    logger.info(
        "Logging configured with {} formatter",
        formatter_type,
        formatter_type=formatter_type,
        log_level=settings.log_config.log_level,
    )

    _state.configured = True


def reset_logging() -> None:
    """Allow ``setup_logging`` to run again, used between tests."""
    _state.configured = False
