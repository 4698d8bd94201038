"""
Logging redaction helpers.
Redacts broker credentials from log messages.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable


_PATTERNS: Iterable[tuple[re.Pattern, str]] = (
    # Authorization: Bearer <token>
    (re.compile(r"(Bearer\s+)([A-Za-z0-9\-\._]+)"), r"\1[REDACTED]"),
    # Broker API key/secret headers or config output
    (re.compile(r"(?i)(api[_-]?key|api[_-]?secret)\s*[:=]\s*([A-Za-z0-9\-\._]+)"), r"\1=[REDACTED]"),
    # Signed wallet material
    (re.compile(r"(?i)(private[_-]?key|signature)\s*[:=]\s*([A-Za-z0-9\-\._]+)"), r"\1=[REDACTED]"),
)


def redact_message(message: str) -> str:
    redacted = message
    for pattern, replacement in _PATTERNS:
        redacted = pattern.sub(replacement, redacted)
    return redacted


class RedactingFilter(logging.Filter):
    """Filter that redacts sensitive data from log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # Malformed format args; leave the record for the handler to report
            return True
        record.msg = redact_message(message)
        record.args = ()
        return True


def install_redaction_filter(handlers: Iterable[logging.Handler]) -> None:
    for handler in handlers:
        if any(isinstance(existing, RedactingFilter) for existing in handler.filters):
            continue
        handler.addFilter(RedactingFilter())
