"""Console logging for the weather access layer: JSON lines or rich text."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

from .redaction import sanitize_for_logging, sanitize_text

# Structured fields components pass through `extra=`.
EXTRA_FIELDS = ("error_kind", "endpoint", "cache_key", "generation", "attempt", "delay_ms")


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    extras: dict[str, Any] = {}
    for field in EXTRA_FIELDS:
        value = getattr(record, field, None)
        if value is not None:
            extras[field] = sanitize_for_logging(value)
    return extras


class JsonConsoleFormatter(logging.Formatter):
    """One JSON object per line, with structured extras as top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, Any] = {
            "ts": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": sanitize_text(record.getMessage()),
        }
        event.update(_extras(record))
        if record.exc_info:
            event["exception"] = sanitize_text(self.formatException(record.exc_info))
        return json.dumps(event, default=str)


class TextConsoleFormatter(logging.Formatter):
    """Human-readable message with extras appended as `key=value` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        extras = _extras(record)
        if extras:
            text += " [" + " ".join(f"{key}={value}" for key, value in extras.items()) + "]"
        return sanitize_text(text)


def setup_logger(
    name: str = "weather_access",
    level: int | str = logging.INFO,
    *,
    log_format: str = "json",
) -> logging.Logger:
    """Create and configure a process-wide logger.

    `log_format="rich"` renders colored text on stderr; anything else emits JSON.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    if logger.handlers:
        return logger

    handler: logging.Handler
    if log_format == "rich":
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            markup=False,
            rich_tracebacks=False,
        )
        handler.setFormatter(TextConsoleFormatter("%(message)s"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(JsonConsoleFormatter())
    logger.addHandler(handler)
    return logger
