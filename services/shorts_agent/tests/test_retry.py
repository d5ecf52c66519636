from __future__ import annotations

import pytest

from shorts_agent.exceptions import QuotaExceededError, RetryableProviderError, is_quota_exceeded
from shorts_agent.retry import RetryPolicy, retry


class Flaky:
    def __init__(self, failures: int, error: Exception | None = None) -> None:
        self.failures = failures
        self.calls = 0
        self.error = error or RetryableProviderError("temporarily unavailable")

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "done"


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.mark.asyncio
async def test_retry_succeeds_after_transient_failures() -> None:
    operation = Flaky(failures=2)
    sleep = SleepRecorder()

    result = await retry(operation, attempts=3, min_delay=0.5, max_delay=2.0, sleep=sleep)

    assert result == "done"
    assert operation.calls == 3
    assert sleep.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_retry_reraises_last_error_when_attempts_run_out() -> None:
    operation = Flaky(failures=5)
    sleep = SleepRecorder()

    with pytest.raises(RetryableProviderError):
        await retry(operation, attempts=2, min_delay=0.1, max_delay=1.0, sleep=sleep)

    assert operation.calls == 2
    assert len(sleep.delays) == 1


@pytest.mark.asyncio
async def test_should_retry_false_stops_immediately() -> None:
    operation = Flaky(failures=1, error=QuotaExceededError("acme", "2026-03-01", 1))
    sleep = SleepRecorder()

    with pytest.raises(QuotaExceededError):
        await retry(
            operation,
            attempts=3,
            min_delay=0.1,
            max_delay=1.0,
            should_retry=lambda exc: not is_quota_exceeded(exc),
            sleep=sleep,
        )

    assert operation.calls == 1
    assert sleep.delays == []


@pytest.mark.asyncio
@pytest.mark.parametrize("kwargs", [{"attempts": 0}, {"attempts": 2, "jitter": 1.5}, {"attempts": 2, "jitter": -0.1}])
async def test_invalid_policy_is_rejected_before_calling(kwargs: dict[str, float]) -> None:
    operation = Flaky(failures=0)

    with pytest.raises(ValueError):
        await retry(operation, min_delay=0.1, max_delay=1.0, **kwargs)

    assert operation.calls == 0


def test_delay_is_capped_and_jittered() -> None:
    policy = RetryPolicy(attempts=5, min_delay=0.5, max_delay=2.0)
    assert [policy.delay_for(n) for n in range(1, 5)] == [0.5, 1.0, 2.0, 2.0]

    jittered = RetryPolicy(attempts=2, min_delay=1.0, max_delay=1.0, jitter=0.5)
    assert jittered.delay_for(1, rng=lambda: 0.0) == pytest.approx(0.75)
    assert jittered.delay_for(1, rng=lambda: 1.0) == pytest.approx(1.25)


def test_quota_detection_by_type_and_message() -> None:
    assert is_quota_exceeded(QuotaExceededError("acme", "2026-03-01"))
    assert is_quota_exceeded(RuntimeError("YouTube: Quota Exceeded for project"))
    assert not is_quota_exceeded(RuntimeError("network down"))
