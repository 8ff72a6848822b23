"""Logging configuration utilities."""

from __future__ import annotations

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Attributes present on every LogRecord; anything else arrived through ``extra=``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime", "taskName"}


def _needs_quoting(value: str) -> bool:
    # Control characters such as newlines would split one record across lines.
    return " " in value or not value.isprintable()


class ExtraFieldsFormatter(logging.Formatter):
    """Formatter that appends ``extra=`` fields as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        fields = [
            f"{key}={value!r}" if isinstance(value, str) and _needs_quoting(value) else f"{key}={value}"
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        ]
        if not fields:
            return base
        return f"{base} | {' '.join(fields)}"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logger with a structured, concise format."""

    root_logger = logging.getLogger()
    if root_logger.handlers:
        # When running under uvicorn there will already be handlers; update their levels instead.
        for handler in root_logger.handlers:
            handler.setLevel(level)
        root_logger.setLevel(level)
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ExtraFieldsFormatter(LOG_FORMAT))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a module logger."""

    return logging.getLogger(name if name else __name__)


__all__ = ["ExtraFieldsFormatter", "LOG_FORMAT", "configure_logging", "get_logger"]
