"""
Circuit breaker guarding the completion service.

- CLOSED: calls pass through; outcomes are kept over a sliding time window
- OPEN: once the error rate over the window reaches the threshold, calls are
  rejected immediately for `open_duration_seconds`
- HALF_OPEN: a single trial call is let through; success closes the circuit,
  failure reopens it
"""
import time
from collections import deque
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Optional, Tuple

from taskrank.core.logging import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpenError(Exception):
    """Raised when the circuit rejects a call without attempting it."""


class CircuitBreaker:
    """Error-rate circuit breaker for async calls."""

    def __init__(
        self,
        name: str,
        failure_threshold: float = 0.5,
        time_window_seconds: float = 60.0,
        open_duration_seconds: float = 30.0,
        min_requests_for_threshold: int = 5,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.time_window_seconds = time_window_seconds
        self.open_duration_seconds = open_duration_seconds
        self.min_requests_for_threshold = min_requests_for_threshold
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._outcomes: Deque[Tuple[float, bool]] = deque()
        self._opened_at: Optional[float] = None
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitState:
        self._refresh()
        return self._state

    def _refresh(self) -> None:
        now = self._clock()
        cutoff = now - self.time_window_seconds
        while self._outcomes and self._outcomes[0][0] < cutoff:
            self._outcomes.popleft()

        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if now - self._opened_at >= self.open_duration_seconds:
                self._state = CircuitState.HALF_OPEN
                self._trial_in_flight = False
                logger.info("circuit_breaker_half_open", circuit_breaker=self.name)

    def _open(self, reason: str) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        self._outcomes.clear()
        logger.warning("circuit_breaker_opened", circuit_breaker=self.name, reason=reason)

    def _record(self, success: bool) -> None:
        if self._state == CircuitState.HALF_OPEN:
            self._trial_in_flight = False
            if success:
                self._state = CircuitState.CLOSED
                self._opened_at = None
                logger.info("circuit_breaker_closed", circuit_breaker=self.name)
            else:
                self._open("half_open_trial_failed")
            return

        self._outcomes.append((self._clock(), success))
        total = len(self._outcomes)
        if total < self.min_requests_for_threshold:
            return
        failures = sum(1 for _, ok in self._outcomes if not ok)
        if failures / total >= self.failure_threshold:
            self._open(f"error_rate={failures}/{total}")

    async def call_async(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """
        Run `func` under circuit breaker protection.

        Raises:
            CircuitBreakerOpenError: if the circuit is open, or half-open with
                a trial already in flight.
        """
        state = self.state
        if state == CircuitState.OPEN:
            raise CircuitBreakerOpenError(f"Circuit breaker {self.name} is OPEN")
        if state == CircuitState.HALF_OPEN:
            if self._trial_in_flight:
                raise CircuitBreakerOpenError(f"Circuit breaker {self.name} is HALF_OPEN, trial call in flight")
            self._trial_in_flight = True

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self._record(False)
            raise
        self._record(True)
        return result

    def get_metrics(self) -> dict:
        self._refresh()
        failures = sum(1 for _, ok in self._outcomes if not ok)
        total = len(self._outcomes)
        return {
            "name": self.name,
            "state": self._state.value,
            "recent_requests": total,
            "recent_failures": failures,
            "error_rate": failures / total if total else 0.0,
            "opened_at": self._opened_at,
        }
