"""Sanitizing and bounds-checking for externally supplied input.

All functions are pure: they either return a cleaned value / None or raise
InputValidationError.
"""

from __future__ import annotations

import math
import unicodedata
from datetime import date

from .exceptions import InputValidationError

MAX_QUERY_LENGTH = 100

_HTML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
}


def normalize_query(text: str, *, max_length: int = MAX_QUERY_LENGTH) -> str:
    """Trim, drop control characters and truncate a search query.

    This is the form sent to the geocoding service.
    """
    if not isinstance(text, str):
        raise InputValidationError("Search text must be a string.", reason="EmptyInput")
    cleaned = "".join(
        " " if ch.isspace() else ch
        for ch in text
        if ch.isspace() or unicodedata.category(ch)[0] != "C"
    ).strip()
    if not cleaned:
        raise InputValidationError("Search text is empty.", reason="EmptyInput")
    return cleaned[:max_length].rstrip()


def sanitize_query(text: str, *, max_length: int = MAX_QUERY_LENGTH) -> str:
    """Return the query with markup characters escaped, never longer than max_length."""
    normalized = normalize_query(text, max_length=max_length)
    parts: list[str] = []
    length = 0
    for ch in normalized:
        piece = _HTML_ESCAPES.get(ch, ch)
        # Stop before an entity would be cut in half.
        if length + len(piece) > max_length:
            break
        parts.append(piece)
        length += len(piece)
    return "".join(parts)


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_coordinates(lat: float, lon: float) -> None:
    """Raise OutOfRange unless lat in [-90, 90] and lon in [-180, 180]."""
    if not _is_number(lat) or not math.isfinite(lat) or not (-90 <= lat <= 90):
        raise InputValidationError(
            f"Invalid latitude {lat!r}; expected between -90 and 90.", reason="OutOfRange"
        )
    if not _is_number(lon) or not math.isfinite(lon) or not (-180 <= lon <= 180):
        raise InputValidationError(
            f"Invalid longitude {lon!r}; expected between -180 and 180.", reason="OutOfRange"
        )


def validate_date_range(start: date, end: date, *, today: date | None = None) -> None:
    """Raise InvalidDateRange if start > end or either date lies in the future."""
    today = today or date.today()
    if start > end:
        raise InputValidationError(
            f"Start date {start.isoformat()} is after end date {end.isoformat()}.",
            reason="InvalidDateRange",
        )
    if start > today or end > today:
        raise InputValidationError(
            f"Date range {start.isoformat()}..{end.isoformat()} extends past "
            f"{today.isoformat()}.",
            reason="InvalidDateRange",
        )
