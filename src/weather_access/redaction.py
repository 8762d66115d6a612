"""Mask API keys and tokens before they reach logs or error records."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

import httpx

REDACTED = "[REDACTED]"

_SENSITIVE_NAME_RE = re.compile(r"(api[_-]?key|token|secret|password|authorization)", re.I)
_BEARER_RE = re.compile(r"(?i)\b(bearer)\s+[A-Za-z0-9\-._~+/]+=*")
# `apikey=...` inside URLs, exception text and response bodies.
_ASSIGNMENT_RE = re.compile(
    r"(?i)\b(api[_-]?key|token|secret|password|authorization)\s*[:=]\s*([^\s,;&\"']+)"
)


def is_sensitive_key(name: str) -> bool:
    return bool(_SENSITIVE_NAME_RE.search(name))


def sanitize_text(text: str) -> str:
    """Redact credentials embedded in free text such as URLs or upstream bodies."""
    masked = _BEARER_RE.sub(rf"\1 {REDACTED}", text)
    return _ASSIGNMENT_RE.sub(lambda m: f"{m.group(1)}={REDACTED}", masked)


def redact_params(params: Mapping[str, Any] | None) -> dict[str, Any]:
    """Copy request query params with credential values replaced."""
    return {
        key: REDACTED if is_sensitive_key(str(key)) else value
        for key, value in (params or {}).items()
    }


def redact_url(url: str | httpx.URL) -> str:
    """Render a request URL with sensitive query params masked."""
    parsed = httpx.URL(str(url))
    base = str(parsed).split("?", 1)[0]
    if not parsed.params:
        return base
    pairs = [
        f"{key}={REDACTED if is_sensitive_key(key) else value}"
        for key, value in parsed.params.multi_items()
    ]
    return f"{base}?{'&'.join(pairs)}"


def sanitize_for_logging(value: Any) -> Any:
    """Recursively redact sensitive values in log `extra` payloads."""
    if isinstance(value, Mapping):
        return {
            key: REDACTED if is_sensitive_key(str(key)) else sanitize_for_logging(child)
            for key, child in value.items()
        }
    if isinstance(value, list | tuple):
        return type(value)(sanitize_for_logging(item) for item in value)
    if isinstance(value, httpx.URL):
        return redact_url(value)
    if isinstance(value, str):
        return sanitize_text(value)
    return value
