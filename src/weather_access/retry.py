"""Bounded exponential-backoff retry for single asynchronous operations."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar

from .errors.classifier import CLASSIFIABLE_EXCEPTIONS, ErrorClassifier
from .errors.models import ErrorRecord
from .exceptions import ClassifiedError

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[Any]]


class RetryPolicy:
    """Retry retryable failures with `base_delay * 2**attempt` waits.

    Holds configuration only; no state survives between `execute` calls.
    """

    def __init__(
        self,
        classifier: ErrorClassifier,
        logger: logging.Logger | None = None,
        *,
        max_attempts: int = 3,
        base_delay_seconds: float = 1.0,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")
        if base_delay_seconds < 0:
            raise ValueError("base_delay_seconds must be >= 0")
        self.classifier = classifier
        self.logger = logger or logging.getLogger(__name__)
        self.max_attempts = max_attempts
        self.base_delay_seconds = base_delay_seconds
        self._sleep = sleep

    def delay_for(self, attempt_index: int, base_delay_seconds: float | None = None) -> float:
        """Wait before the attempt following `attempt_index` (0-based)."""
        base = self.base_delay_seconds if base_delay_seconds is None else base_delay_seconds
        return base * (2**attempt_index)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        max_attempts: int | None = None,
        base_delay_seconds: float | None = None,
        endpoint: str | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> T:
        """Run `operation`, retrying transient failures.

        Raises ClassifiedError on a non-retryable failure or once attempts
        are exhausted.
        """
        attempts = self.max_attempts if max_attempts is None else max_attempts
        if attempts <= 0:
            raise ValueError("max_attempts must be > 0")

        last_record: ErrorRecord | None = None
        last_error: BaseException | None = None
        for attempt in range(attempts):
            try:
                return await operation()
            except CLASSIFIABLE_EXCEPTIONS as exc:
                record = self.classifier.classify(exc, endpoint=endpoint, params=params)
                last_record, last_error = record, exc
                if not record.retryable:
                    raise ClassifiedError(record) from exc
                if attempt + 1 >= attempts:
                    break
                delay = self.delay_for(attempt, base_delay_seconds)
                self.logger.warning(
                    "Upstream call failed; retrying attempt=%d/%d kind=%s status=%s delay_ms=%d",
                    attempt + 1,
                    attempts,
                    record.kind.value,
                    record.status_code,
                    int(delay * 1000),
                    extra={
                        "error_kind": record.kind.value,
                        "endpoint": record.context.endpoint,
                        "attempt": attempt + 1,
                        "delay_ms": int(delay * 1000),
                    },
                )
                if delay > 0:
                    await self._sleep(delay)

        if last_record is None:
            raise RuntimeError("Retry loop exited without an attempt.")
        self.logger.warning(
            "Upstream call failed after %d attempts kind=%s",
            attempts,
            last_record.kind.value,
            extra={"error_kind": last_record.kind.value, "endpoint": last_record.context.endpoint},
        )
        raise ClassifiedError(last_record) from last_error
