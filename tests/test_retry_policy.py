"""Tests for exponential-backoff retry behavior."""

from __future__ import annotations

import logging

import httpx
import pytest
from conftest import SleepRecorder

from weather_access.errors import ErrorClassifier, ErrorKind
from weather_access.exceptions import ClassifiedError, SchemaError, UpstreamRequestError
from weather_access.retry import RetryPolicy


def _make_policy(sleep: SleepRecorder, **kwargs: object) -> RetryPolicy:
    return RetryPolicy(
        ErrorClassifier(),
        logging.getLogger("test_retry_policy"),
        sleep=sleep,
        **kwargs,  # type: ignore[arg-type]
    )


class _Flaky:
    """Operation that raises the queued errors before returning a value."""

    def __init__(self, errors: list[BaseException], result: str = "ok") -> None:
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


def _server_error(status: int = 503) -> UpstreamRequestError:
    return UpstreamRequestError(
        f"status {status}", category="server", status_code=status, endpoint="https://x.test"
    )


async def test_fail_fail_succeed_returns_result_with_exponential_delays(
    sleep_recorder: SleepRecorder,
) -> None:
    policy = _make_policy(sleep_recorder, max_attempts=3, base_delay_seconds=1.0)
    operation = _Flaky([_server_error(), _server_error()])

    assert await policy.execute(operation) == "ok"
    assert operation.calls == 3
    assert sleep_recorder.calls == [1.0, 2.0]


async def test_non_retryable_error_raises_immediately(sleep_recorder: SleepRecorder) -> None:
    policy = _make_policy(sleep_recorder)
    operation = _Flaky(
        [UpstreamRequestError("bad", category="client", status_code=404)]
    )

    with pytest.raises(ClassifiedError) as exc_info:
        await policy.execute(operation)

    assert operation.calls == 1
    assert sleep_recorder.calls == []
    assert exc_info.value.record.kind is ErrorKind.BAD_REQUEST
    assert exc_info.value.record.status_code == 404


async def test_schema_error_is_not_retried(sleep_recorder: SleepRecorder) -> None:
    policy = _make_policy(sleep_recorder)
    operation = _Flaky([SchemaError("missing 'daily'", endpoint="https://x.test")])

    with pytest.raises(ClassifiedError) as exc_info:
        await policy.execute(operation)
    assert operation.calls == 1
    assert exc_info.value.record.kind is ErrorKind.SCHEMA_ERROR


async def test_exhausted_attempts_raise_last_classified_error(
    sleep_recorder: SleepRecorder,
) -> None:
    policy = _make_policy(sleep_recorder, base_delay_seconds=0.5)
    operation = _Flaky([httpx.ConnectError("refused") for _ in range(5)])

    with pytest.raises(ClassifiedError) as exc_info:
        await policy.execute(operation, endpoint="https://forecast.test/v1/forecast")

    assert operation.calls == 3
    assert sleep_recorder.calls == [0.5, 1.0]
    record = exc_info.value.record
    assert record.kind is ErrorKind.NETWORK_ERROR
    assert record.context.endpoint == "https://forecast.test/v1/forecast"
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


async def test_rate_limit_is_retried(sleep_recorder: SleepRecorder) -> None:
    policy = _make_policy(sleep_recorder, base_delay_seconds=2.0)
    operation = _Flaky(
        [UpstreamRequestError("slow down", category="rate_limit", status_code=429)]
    )

    assert await policy.execute(operation) == "ok"
    assert sleep_recorder.calls == [2.0]


async def test_per_call_overrides(sleep_recorder: SleepRecorder) -> None:
    policy = _make_policy(sleep_recorder)
    operation = _Flaky([_server_error() for _ in range(5)])

    with pytest.raises(ClassifiedError):
        await policy.execute(operation, max_attempts=4, base_delay_seconds=0.25)
    assert operation.calls == 4
    assert sleep_recorder.calls == [0.25, 0.5, 1.0]


async def test_zero_base_delay_skips_sleep(sleep_recorder: SleepRecorder) -> None:
    policy = _make_policy(sleep_recorder, base_delay_seconds=0)
    operation = _Flaky([_server_error()])

    assert await policy.execute(operation) == "ok"
    assert sleep_recorder.calls == []


async def test_unexpected_exception_propagates_without_retry(
    sleep_recorder: SleepRecorder,
) -> None:
    policy = _make_policy(sleep_recorder)
    operation = _Flaky([KeyError("bug")])

    with pytest.raises(KeyError):
        await policy.execute(operation)
    assert operation.calls == 1


async def test_retry_is_logged_with_attempt_and_delay(
    sleep_recorder: SleepRecorder, caplog: pytest.LogCaptureFixture
) -> None:
    policy = _make_policy(sleep_recorder)
    operation = _Flaky([_server_error()])

    with caplog.at_level(logging.WARNING, logger="test_retry_policy"):
        await policy.execute(operation)

    retry_records = [r for r in caplog.records if "retrying" in r.getMessage()]
    assert len(retry_records) == 1
    assert retry_records[0].attempt == 1
    assert retry_records[0].delay_ms == 1000
    assert retry_records[0].error_kind == "ServerError"


def test_delay_for_doubles_each_attempt(sleep_recorder: SleepRecorder) -> None:
    policy = _make_policy(sleep_recorder, base_delay_seconds=1.5)
    assert [policy.delay_for(i) for i in range(4)] == [1.5, 3.0, 6.0, 12.0]


def test_invalid_configuration_rejected(sleep_recorder: SleepRecorder) -> None:
    with pytest.raises(ValueError, match="max_attempts"):
        _make_policy(sleep_recorder, max_attempts=0)
    with pytest.raises(ValueError, match="base_delay_seconds"):
        _make_policy(sleep_recorder, base_delay_seconds=-1)
