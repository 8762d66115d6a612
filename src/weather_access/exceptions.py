"""Application exception classes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from .errors.models import ErrorRecord

ValidationReason = Literal["EmptyInput", "OutOfRange", "InvalidDateRange"]
RequestCategory = Literal["network", "rate_limit", "server", "client"]


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""


class WeatherAccessError(Exception):
    """Base class for failures raised by the weather access layer."""


class InputValidationError(WeatherAccessError):
    """Raised when externally supplied input fails validation."""

    def __init__(self, message: str, *, reason: ValidationReason) -> None:
        super().__init__(message)
        self.reason = reason


class UpstreamRequestError(WeatherAccessError):
    """Raised for upstream request failures with category/status metadata."""

    def __init__(
        self,
        message: str,
        *,
        category: RequestCategory,
        status_code: int | None = None,
        endpoint: str | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(message)
        self.category = category
        self.status_code = status_code
        self.endpoint = endpoint
        self.reason = reason


class SchemaError(WeatherAccessError):
    """Raised when an upstream payload is missing fields or has wrong types."""

    def __init__(self, message: str, *, endpoint: str | None = None) -> None:
        super().__init__(message)
        self.endpoint = endpoint


class LocationNotFoundError(WeatherAccessError):
    """Raised when geocoding returns zero results for a query."""

    def __init__(self, message: str, *, query: str) -> None:
        super().__init__(message)
        self.query = query


class ClassifiedError(WeatherAccessError):
    """Carries an ErrorRecord across component boundaries."""

    def __init__(self, record: ErrorRecord) -> None:
        super().__init__(record.detail or record.message)
        self.record = record
