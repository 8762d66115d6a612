"""Convert raw failures into ErrorRecords from the closed taxonomy."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import (
    ClassifiedError,
    InputValidationError,
    LocationNotFoundError,
    SchemaError,
    UpstreamRequestError,
)
from ..redaction import redact_params, sanitize_text
from .models import SEVERITY_BY_KIND, USER_MESSAGES, ErrorContext, ErrorKind, ErrorRecord

# Exceptions the classifier understands; anything else is a programming error.
CLASSIFIABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (
    ClassifiedError,
    InputValidationError,
    LocationNotFoundError,
    SchemaError,
    UpstreamRequestError,
    PydanticValidationError,
    httpx.HTTPError,
    TimeoutError,
)

_LOG_LEVEL_BY_SEVERITY = {
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}

_DETAIL_MAX_CHARS = 300


def kind_for_status(status_code: int) -> ErrorKind:
    """Map an HTTP status code to an error kind."""
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if status_code >= 500:
        return ErrorKind.SERVER_ERROR
    return ErrorKind.BAD_REQUEST


class ErrorClassifier:
    """Stateless mapping from exceptions to ErrorRecords."""

    def classify(
        self,
        raw_error: BaseException,
        *,
        endpoint: str | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> ErrorRecord:
        """Build an ErrorRecord for `raw_error`.

        Already classified errors keep their original record. Raises TypeError
        for exceptions outside the taxonomy so bugs are not disguised as
        upstream failures.
        """
        if isinstance(raw_error, ClassifiedError):
            return raw_error.record

        kind, status_code = self._kind_and_status(raw_error)
        if endpoint is None:
            endpoint = getattr(raw_error, "endpoint", None)
        if endpoint is None and isinstance(raw_error, httpx.HTTPError):
            try:
                endpoint = str(raw_error.request.url).split("?", 1)[0]
            except RuntimeError:
                endpoint = None

        detail = sanitize_text(str(raw_error) or type(raw_error).__name__)[:_DETAIL_MAX_CHARS]
        return ErrorRecord(
            kind=kind,
            message=USER_MESSAGES[kind],
            detail=detail,
            context=ErrorContext(
                endpoint=sanitize_text(endpoint) if endpoint else None,
                params=redact_params(params),
            ),
            severity=SEVERITY_BY_KIND[kind],
            status_code=status_code,
        )

    @staticmethod
    def _kind_and_status(raw_error: BaseException) -> tuple[ErrorKind, int | None]:
        if isinstance(raw_error, InputValidationError):
            return ErrorKind.VALIDATION_ERROR, None
        if isinstance(raw_error, LocationNotFoundError):
            return ErrorKind.NOT_FOUND, None
        if isinstance(raw_error, (SchemaError, PydanticValidationError)):
            return ErrorKind.SCHEMA_ERROR, None
        if isinstance(raw_error, UpstreamRequestError):
            if raw_error.status_code is not None:
                return kind_for_status(raw_error.status_code), raw_error.status_code
            if raw_error.category == "rate_limit":
                return ErrorKind.RATE_LIMITED, None
            if raw_error.category == "server":
                return ErrorKind.SERVER_ERROR, None
            if raw_error.category == "client":
                return ErrorKind.BAD_REQUEST, None
            return ErrorKind.NETWORK_ERROR, None
        if isinstance(raw_error, httpx.HTTPStatusError):
            status = raw_error.response.status_code
            return kind_for_status(status), status
        if isinstance(raw_error, httpx.DecodingError):
            return ErrorKind.SCHEMA_ERROR, None
        # Transport failures: timeouts, DNS, connection resets, protocol errors.
        if isinstance(raw_error, (httpx.HTTPError, TimeoutError)):
            return ErrorKind.NETWORK_ERROR, None
        raise TypeError(f"Cannot classify exception of type {type(raw_error).__name__}")


def log_error_record(
    logger: logging.Logger,
    record: ErrorRecord,
    *,
    cache_key: str | None = None,
) -> None:
    """Log a record at the level matching its severity."""
    level = _LOG_LEVEL_BY_SEVERITY[record.severity]
    if record.kind is ErrorKind.SCHEMA_ERROR:
        logger.log(
            level,
            "Upstream contract drift (%s) at %s: %s params=%s",
            record.kind.value,
            record.context.endpoint,
            record.detail,
            record.context.params,
            extra={
                "error_kind": record.kind.value,
                "endpoint": record.context.endpoint,
                "cache_key": cache_key,
            },
        )
        return
    logger.log(
        level,
        "%s: %s",
        record.kind.value,
        record.detail or record.message,
        extra={
            "error_kind": record.kind.value,
            "endpoint": record.context.endpoint,
            "cache_key": cache_key,
        },
    )
