"""Scrubbing of failure details before they reach logs or clients.

Production logs must not contain filesystem paths or stack frames, and
production responses must never echo what the client submitted. This
module holds the small set of rules that enforce both.

Security considerations:
- Message scrubbing is pattern based and applied at logging time
- Submitted values are replaced by a fixed placeholder, never truncated
- Original exceptions remain unchanged, only rendered copies are scrubbed
"""

from __future__ import annotations

import re
from re import Pattern
from typing import TYPE_CHECKING, Any, Final

from src.core.constants import PATH_REDACTED, REDACTED, STACK_REDACTED

if TYPE_CHECKING:
    from collections.abc import Iterable

    from src.core.exceptions import FieldViolation

# Stack frames are removed before paths so that a frame collapses to one marker
STACK_FRAME_PATTERNS: Final[tuple[Pattern[str], ...]] = (
    re.compile(r'File "[^"]+", line \d+(?:, in \S+)?'),
    re.compile(r"at\s+\S+\s+\([^)]+\)"),
)
PATH_PATTERNS: Final[tuple[Pattern[str], ...]] = (
    re.compile(r"[A-Za-z]:\\\S+"),
    re.compile(r"/\S+"),
)


def scrub_message(message: str | None) -> str:
    """Remove path-like and stack-frame-like substrings from a message.

    Args:
        message: The raw exception message.

    Returns:
        str: The message with sensitive fragments replaced by markers.
    """
    if not message:
        return "Unknown error"

    for pattern in STACK_FRAME_PATTERNS:
        message = pattern.sub(STACK_REDACTED, message)
    for pattern in PATH_PATTERNS:
        message = pattern.sub(PATH_REDACTED, message)
    return message


def describe_violations(
    violations: Iterable[FieldViolation], *, redact: bool
) -> list[dict[str, Any]]:
    """Render validation violations for a client response.

    Args:
        violations: The collected violations.
        redact: Replace submitted values with a placeholder when True.

    Returns:
        list[dict[str, Any]]: One entry per violation, in order.
    """
    rendered: list[dict[str, Any]] = []
    for violation in violations:
        entry: dict[str, Any] = {
            "field": violation.field,
            "message": violation.message,
            "rule": violation.rule,
        }
        entry["value"] = REDACTED if redact else violation.value
        rendered.append(entry)
    return rendered
