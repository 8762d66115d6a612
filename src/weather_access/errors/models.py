"""Typed error taxonomy and immutable error records."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["INFO", "WARN", "ERROR"]


class ErrorKind(StrEnum):
    """Closed set of failure classes surfaced by the access layer."""

    NETWORK_ERROR = "NetworkError"
    RATE_LIMITED = "RateLimited"
    SERVER_ERROR = "ServerError"
    BAD_REQUEST = "BadRequest"
    NOT_FOUND = "NotFound"
    SCHEMA_ERROR = "SchemaError"
    VALIDATION_ERROR = "ValidationError"


RETRYABLE_KINDS = frozenset(
    {ErrorKind.NETWORK_ERROR, ErrorKind.RATE_LIMITED, ErrorKind.SERVER_ERROR}
)

SEVERITY_BY_KIND: dict[ErrorKind, Severity] = {
    ErrorKind.NETWORK_ERROR: "WARN",
    ErrorKind.RATE_LIMITED: "WARN",
    ErrorKind.SERVER_ERROR: "WARN",
    ErrorKind.SCHEMA_ERROR: "ERROR",
    ErrorKind.BAD_REQUEST: "INFO",
    ErrorKind.NOT_FOUND: "INFO",
    ErrorKind.VALIDATION_ERROR: "INFO",
}

USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.NETWORK_ERROR: "Could not reach the weather service. Check your connection.",
    ErrorKind.RATE_LIMITED: "The weather service is busy. Please try again shortly.",
    ErrorKind.SERVER_ERROR: "The weather service is temporarily unavailable.",
    ErrorKind.BAD_REQUEST: "The weather service could not handle this request.",
    ErrorKind.NOT_FOUND: "Location not found.",
    ErrorKind.SCHEMA_ERROR: "The weather service returned unexpected data.",
    ErrorKind.VALIDATION_ERROR: "Please check your input and try again.",
}


class ErrorContext(BaseModel):
    """Where a failure happened: upstream endpoint and (redacted) request params."""

    model_config = ConfigDict(frozen=True)

    endpoint: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)


class ErrorRecord(BaseModel):
    """Classified failure; never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str
    detail: str | None = None
    context: ErrorContext = Field(default_factory=ErrorContext)
    severity: Severity
    status_code: int | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS
