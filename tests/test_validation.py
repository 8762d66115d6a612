"""Tests for query sanitizing and coordinate/date validation."""

from __future__ import annotations

from datetime import date

import pytest

from weather_access.exceptions import InputValidationError
from weather_access.validation import (
    normalize_query,
    sanitize_query,
    validate_coordinates,
    validate_date_range,
)


@pytest.mark.parametrize("text", ["", "   ", "\t\n  ", "\x00\x07"])
def test_blank_query_is_empty_input(text: str) -> None:
    with pytest.raises(InputValidationError, match="empty") as exc_info:
        sanitize_query(text)
    assert exc_info.value.reason == "EmptyInput"


def test_non_string_query_is_empty_input() -> None:
    with pytest.raises(InputValidationError) as exc_info:
        normalize_query(None)  # type: ignore[arg-type]
    assert exc_info.value.reason == "EmptyInput"


def test_query_is_trimmed_and_control_characters_removed() -> None:
    assert normalize_query("  Spring\x00field\n") == "Springfield"
    assert normalize_query("New\tYork") == "New York"


def test_long_query_is_truncated_to_max_length() -> None:
    result = sanitize_query("a" * 500)
    assert len(result) == 100

    assert normalize_query("abc " * 50, max_length=10) == "abc abc ab"


def test_markup_is_escaped() -> None:
    assert (
        sanitize_query("<b>Tom & Jerry's</b>")
        == "&lt;b&gt;Tom &amp; Jerry&#x27;s&lt;/b&gt;"
    )


@pytest.mark.parametrize("text", ["<" * 60, "&" * 60, "a<" * 80, "'" * 40])
def test_escaping_never_exceeds_limit_or_splits_entities(text: str) -> None:
    result = sanitize_query(text)
    assert len(result) <= 100
    # Every '&' must start a complete entity.
    for index, ch in enumerate(result):
        if ch == "&":
            assert result.find(";", index) != -1
    assert not result.endswith(("&", "&l", "&lt", "&am", "&#x2"))


def test_escaping_respects_custom_limit() -> None:
    assert sanitize_query("<<<", max_length=9) == "&lt;&lt;"


@pytest.mark.parametrize(
    ("lat", "lon"),
    [(0, 0), (90, 180), (-90, -180), (39.80172, -89.64371)],
)
def test_valid_coordinates_pass(lat: float, lon: float) -> None:
    validate_coordinates(lat, lon)


@pytest.mark.parametrize(
    ("lat", "lon"),
    [
        (90.1, 0),
        (-90.5, 0),
        (0, 180.01),
        (0, -181),
        (float("nan"), 0),
        (0, float("inf")),
        (True, 0),
        ("45", 0),
        (None, 10),
    ],
)
def test_out_of_range_coordinates_fail(lat: object, lon: object) -> None:
    with pytest.raises(InputValidationError) as exc_info:
        validate_coordinates(lat, lon)  # type: ignore[arg-type]
    assert exc_info.value.reason == "OutOfRange"


def test_date_range_start_after_end_fails() -> None:
    with pytest.raises(InputValidationError, match="after end date") as exc_info:
        validate_date_range(date(2026, 10, 10), date(2026, 10, 1), today=date(2026, 10, 19))
    assert exc_info.value.reason == "InvalidDateRange"


def test_date_range_in_future_fails() -> None:
    with pytest.raises(InputValidationError, match="extends past") as exc_info:
        validate_date_range(date(2026, 10, 15), date(2026, 10, 20), today=date(2026, 10, 19))
    assert exc_info.value.reason == "InvalidDateRange"


def test_date_range_ending_today_passes() -> None:
    validate_date_range(date(2026, 10, 13), date(2026, 10, 19), today=date(2026, 10, 19))
