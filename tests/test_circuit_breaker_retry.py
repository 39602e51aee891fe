"""Tests for the circuit breaker and retry helpers."""

import asyncio

import pytest

from vaultlibs.common.circuit_breaker import CircuitBreaker, CircuitBreakerError, CircuitBreakerState
from vaultlibs.common.retry import backoff_delay, call_with_retry


class Flaky:
    """Async callable failing ``failures`` times before succeeding."""

    def __init__(self, failures, error=ConnectionError):
        self.failures = failures
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error("transient")
        return "ok"


@pytest.mark.asyncio
async def test_breaker_opens_after_threshold():
    breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60.0, name="test")
    func = Flaky(failures=10)

    for _ in range(2):
        with pytest.raises(ConnectionError):
            await breaker.call(func)

    assert breaker.get_state() == CircuitBreakerState.OPEN
    with pytest.raises(CircuitBreakerError):
        await breaker.call(func)
    assert func.calls == 2


@pytest.mark.asyncio
async def test_breaker_half_open_trial_closes_on_success():
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0.0)
    func = Flaky(failures=1)

    with pytest.raises(ConnectionError):
        await breaker.call(func)
    assert breaker.get_state() == CircuitBreakerState.OPEN

    assert await breaker.call(func) == "ok"
    assert breaker.get_state() == CircuitBreakerState.CLOSED
    assert breaker.get_stats()["failure_count"] == 0


@pytest.mark.asyncio
async def test_breaker_half_open_trial_failure_reopens():
    breaker = CircuitBreaker(failure_threshold=3, recovery_timeout=0.0)
    breaker.state = CircuitBreakerState.OPEN

    with pytest.raises(ConnectionError):
        await breaker.call(Flaky(failures=1))
    assert breaker.get_state() == CircuitBreakerState.OPEN


@pytest.mark.asyncio
async def test_breaker_ignores_unexpected_exceptions():
    breaker = CircuitBreaker(failure_threshold=1, expected_exception=ConnectionError)

    with pytest.raises(ValueError):
        await breaker.call(Flaky(failures=1, error=ValueError))
    assert breaker.get_state() == CircuitBreakerState.CLOSED


@pytest.mark.asyncio
async def test_retry_succeeds_after_transient_failures():
    func = Flaky(failures=2)
    assert await call_with_retry(func, "test", max_attempts=3, base_delay=0.0) == "ok"
    assert func.calls == 3


@pytest.mark.asyncio
async def test_retry_gives_up_after_max_attempts():
    func = Flaky(failures=5)
    with pytest.raises(ConnectionError):
        await call_with_retry(func, "test", max_attempts=2, base_delay=0.0)
    assert func.calls == 2


@pytest.mark.asyncio
async def test_retry_only_on_listed_errors():
    func = Flaky(failures=1, error=ValueError)
    with pytest.raises(ValueError):
        await call_with_retry(func, "test", max_attempts=3, base_delay=0.0, retry_on=(ConnectionError,))
    assert func.calls == 1


@pytest.mark.asyncio
async def test_retry_aborts_on_open_breaker():
    calls = []

    async def rejected():
        calls.append(1)
        raise CircuitBreakerError("embedding_provider", 30.0)

    with pytest.raises(CircuitBreakerError):
        await call_with_retry(rejected, "test", max_attempts=3, base_delay=0.0)
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_open_breaker_reports_retry_after():
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=30.0, name="embedding_provider")

    with pytest.raises(ConnectionError):
        await breaker.call(Flaky(failures=1))

    with pytest.raises(CircuitBreakerError) as excinfo:
        await breaker.call(Flaky(failures=0))
    assert excinfo.value.name == "embedding_provider"
    assert 0 < excinfo.value.retry_after <= 30.0
    assert breaker.get_stats()["state"] == "open"


def test_backoff_delay_doubles_up_to_cap():
    assert [backoff_delay(n, 0.2, 1.0) for n in (1, 2, 3, 4)] == [0.2, 0.4, 0.8, 1.0]


@pytest.mark.asyncio
async def test_half_open_breaker_admits_one_trial_call():
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0.0, name="embedding_provider")
    with pytest.raises(ConnectionError):
        await breaker.call(Flaky(failures=1))

    release = asyncio.Event()

    async def slow_success():
        await release.wait()
        return "ok"

    trial = asyncio.create_task(breaker.call(slow_success))
    await asyncio.sleep(0)
    assert breaker.get_state() == CircuitBreakerState.HALF_OPEN

    with pytest.raises(CircuitBreakerError):
        await breaker.call(Flaky(failures=0))

    release.set()
    assert await trial == "ok"
    assert breaker.get_state() == CircuitBreakerState.CLOSED
    assert await breaker.call(Flaky(failures=0)) == "ok"


@pytest.mark.asyncio
async def test_cancelled_trial_lets_next_caller_try():
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0.0)
    with pytest.raises(ConnectionError):
        await breaker.call(Flaky(failures=1))

    trial = asyncio.create_task(breaker.call(asyncio.sleep, 10))
    await asyncio.sleep(0)
    trial.cancel()
    with pytest.raises(asyncio.CancelledError):
        await trial

    assert await breaker.call(Flaky(failures=0)) == "ok"
    assert breaker.get_state() == CircuitBreakerState.CLOSED
