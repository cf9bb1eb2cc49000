"""
Circuit breaker shared by every caller of one upstream service.

After `failure_threshold` consecutive upstream failures the circuit opens and
calls fail fast with CircuitOpenError. Once `recovery_timeout` has elapsed a
single probe call is let through; its outcome closes or reopens the circuit.
"""

import threading
import time
from enum import Enum
from typing import Any, Callable, TypeVar

from config.settings import (
    CIRCUIT_FAILURE_THRESHOLD,
    CIRCUIT_RECOVERY_TIMEOUT_SECONDS,
)
from resilience.errors import CLIENT_ERROR_KINDS, CircuitOpenError, classify_error

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Thread-safe circuit breaker for one upstream service."""

    def __init__(
        self,
        name: str,
        failure_threshold: int = CIRCUIT_FAILURE_THRESHOLD,
        recovery_timeout: float = CIRCUIT_RECOVERY_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: float | None = None
        self._probe_in_flight = False

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run fn through the breaker, recording its outcome."""
        self._acquire()
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            self.record_failure(e)
            raise
        self.record_success()
        return result

    def _acquire(self) -> None:
        with self._lock:
            if self._state == CircuitState.CLOSED:
                return

            if self._state == CircuitState.OPEN:
                assert self._opened_at is not None
                if self._clock() - self._opened_at < self.recovery_timeout:
                    raise CircuitOpenError(self.name)
                self._state = CircuitState.HALF_OPEN
                self._probe_in_flight = True
                print(f"  ⚠ Circuit breaker for {self.name} half-open, probing")
                return

            # Half-open admits exactly one probe at a time
            if self._probe_in_flight:
                raise CircuitOpenError(self.name)
            self._probe_in_flight = True

    def record_success(self) -> None:
        with self._lock:
            if self._state != CircuitState.CLOSED:
                print(f"  ✓ Circuit breaker for {self.name} closed")
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._opened_at = None
            self._probe_in_flight = False

    def record_failure(self, error: BaseException) -> None:
        # The service answered, the request itself was bad. Neutral while
        # closed; a half-open probe that got an answer closes the circuit.
        if classify_error(error).kind in CLIENT_ERROR_KINDS:
            if self.state == CircuitState.HALF_OPEN:
                self.record_success()
            return

        with self._lock:
            self._failure_count += 1
            if (
                self._state == CircuitState.HALF_OPEN
                or self._failure_count >= self.failure_threshold
            ):
                if self._state != CircuitState.OPEN:
                    print(
                        f"  ✗ Circuit breaker for {self.name} opened "
                        f"after {self._failure_count} consecutive failures"
                    )
                self._state = CircuitState.OPEN
                self._opened_at = self._clock()
                self._probe_in_flight = False


_breakers: dict[str, CircuitBreaker] = {}
_registry_lock = threading.Lock()


def get_circuit_breaker(name: str) -> CircuitBreaker:
    """Get the process-wide breaker for an upstream service ("github", "resend")."""
    with _registry_lock:
        if name not in _breakers:
            _breakers[name] = CircuitBreaker(name)
        return _breakers[name]


def reset_circuit_breakers() -> None:
    """Forget all breakers (used between test cases)."""
    with _registry_lock:
        _breakers.clear()
