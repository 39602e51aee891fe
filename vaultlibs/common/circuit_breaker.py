"""Async circuit breaker for calls to remote dependencies.

Used in front of the query embedding provider: after ``failure_threshold``
consecutive failures the breaker opens and rejects calls outright until
``recovery_timeout`` seconds have passed, then lets a single trial call
through. Calls arriving while the trial is in flight are rejected. A
successful trial closes the breaker; a failed one re-opens it.
"""

import asyncio
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger("circuit_breaker")


class CircuitBreakerState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerError(Exception):
    """Raised instead of calling through while the breaker is open."""

    def __init__(self, name: str, retry_after: float):
        super().__init__(f"Circuit breaker {name} is open; retry in {retry_after:.1f}s")
        self.name = name
        self.retry_after = retry_after


class CircuitBreaker:
    """Tracks consecutive failures of one dependency."""

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        expected_exception: type = Exception,
        name: str = "circuit_breaker"
    ):
        """Configure a circuit breaker.

        Parameters
        - failure_threshold: Consecutive failures that open the breaker
        - recovery_timeout: Seconds an open breaker waits before a trial call
        - expected_exception: Exception type(s) counted as failures; anything
          else passes through without touching the failure count
        - name: Identifier used in logs and errors
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception
        self.name = name

        self.state = CircuitBreakerState.CLOSED
        self.failure_count = 0
        self.last_failure_time: Optional[float] = None
        self._trial_in_flight = False
        self._lock = asyncio.Lock()

    def _transition(self, state: CircuitBreakerState) -> None:
        if state != self.state:
            logger.info(
                "Circuit breaker state changed",
                name=self.name,
                from_state=self.state.value,
                to_state=state.value,
                failure_count=self.failure_count
            )
            self.state = state

    def retry_after(self) -> float:
        """Seconds until an open breaker admits a trial call (0 when it would now)."""
        if self.last_failure_time is None:
            return 0.0
        elapsed = time.monotonic() - self.last_failure_time
        return max(0.0, self.recovery_timeout - elapsed)

    async def _admit(self) -> bool:
        """Admit a call or raise; returns True when the call is the half-open trial."""
        async with self._lock:
            if self.state == CircuitBreakerState.CLOSED:
                return False
            if self.state == CircuitBreakerState.HALF_OPEN and not self._trial_in_flight:
                self._trial_in_flight = True
                return True
            wait = self.retry_after()
            if self.state == CircuitBreakerState.OPEN and wait <= 0:
                self._transition(CircuitBreakerState.HALF_OPEN)
                self._trial_in_flight = True
                return True
            logger.warning("Circuit breaker rejecting call", name=self.name, state=self.state.value, retry_after=wait)
            raise CircuitBreakerError(self.name, wait)

    async def _record(self, succeeded: bool, trial: bool) -> None:
        async with self._lock:
            if trial:
                self._trial_in_flight = False
            if succeeded:
                self.failure_count = 0
                self._transition(CircuitBreakerState.CLOSED)
                return

            self.failure_count += 1
            self.last_failure_time = time.monotonic()
            half_open = self.state == CircuitBreakerState.HALF_OPEN
            if half_open or self.failure_count >= self.failure_threshold:
                self._transition(CircuitBreakerState.OPEN)

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Await ``func(*args, **kwargs)`` unless the breaker is open."""
        trial = await self._admit()
        try:
            result = await func(*args, **kwargs)
        except self.expected_exception:
            await self._record(succeeded=False, trial=trial)
            raise
        except BaseException:
            # Not counted as a failure; the next caller may try again.
            if trial:
                self._trial_in_flight = False
            raise
        await self._record(succeeded=True, trial=trial)
        return result

    def get_state(self) -> CircuitBreakerState:
        return self.state

    def get_stats(self) -> dict:
        """Snapshot for health and debug endpoints."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
            "recovery_timeout": self.recovery_timeout,
            "retry_after": self.retry_after() if self.state == CircuitBreakerState.OPEN else 0.0,
        }
