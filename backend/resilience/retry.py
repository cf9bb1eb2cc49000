"""
Retry with exponential backoff, parameterised by error kind.

Each ErrorKind has its own base delay and attempt budget. The delay for
failed attempt n is base * 2^(n-1) plus up to 10% jitter, capped at
RETRY_MAX_DELAY_SECONDS. A rate-limit retry-after hint can only lengthen the
wait, never push it past the cap.
"""

import random
import time
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from tenacity import RetryCallState, Retrying

from config.settings import RETRY_MAX_DELAY_SECONDS
from resilience.errors import ErrorKind, classify_error

T = TypeVar("T")

JITTER_RATIO = 0.1


@dataclass(frozen=True)
class RetryPolicy:
    base_delay: float  # seconds
    max_attempts: int


RETRY_POLICIES: dict[ErrorKind, RetryPolicy] = {
    ErrorKind.RATE_LIMIT: RetryPolicy(base_delay=5.0, max_attempts=5),
    ErrorKind.UPSTREAM: RetryPolicy(base_delay=2.0, max_attempts=3),
    ErrorKind.STORAGE: RetryPolicy(base_delay=0.5, max_attempts=5),
    ErrorKind.NETWORK: RetryPolicy(base_delay=1.5, max_attempts=4),
}
DEFAULT_POLICY = RetryPolicy(base_delay=1.0, max_attempts=2)


def get_policy(kind: ErrorKind) -> RetryPolicy:
    return RETRY_POLICIES.get(kind, DEFAULT_POLICY)


def compute_delay(
    kind: ErrorKind,
    attempt: int,
    retry_after: float | None = None,
    jitter: float | None = None,
) -> float:
    """
    Seconds to wait after failed attempt number `attempt` (1-based).

    Args:
        kind: Kind of the error that failed the attempt
        attempt: Attempt number that just failed
        retry_after: Server-provided wait hint in seconds, if any
        jitter: Fixed jitter in seconds (random when omitted)

    Returns:
        Delay in seconds, never above RETRY_MAX_DELAY_SECONDS
    """
    exponential = get_policy(kind).base_delay * (2 ** (attempt - 1))
    if jitter is None:
        jitter = random.uniform(0, JITTER_RATIO * exponential)
    delay = min(exponential + jitter, RETRY_MAX_DELAY_SECONDS)
    if retry_after:
        delay = min(max(delay, retry_after), RETRY_MAX_DELAY_SECONDS)
    return delay


def _last_error(retry_state: RetryCallState) -> BaseException | None:
    if retry_state.outcome is None:
        return None
    return retry_state.outcome.exception()


def _should_retry(retry_state: RetryCallState) -> bool:
    error = _last_error(retry_state)
    return error is not None and classify_error(error).retryable


def _should_stop(retry_state: RetryCallState) -> bool:
    error = _last_error(retry_state)
    if error is None:
        return True
    policy = get_policy(classify_error(error).kind)
    return retry_state.attempt_number >= policy.max_attempts


def _wait(retry_state: RetryCallState) -> float:
    error = _last_error(retry_state)
    if error is None:
        return 0.0
    info = classify_error(error)
    return compute_delay(info.kind, retry_state.attempt_number, info.retry_after)


def _make_logger(description: str) -> Callable[[RetryCallState], None]:
    def _log_retry(retry_state: RetryCallState) -> None:
        error = _last_error(retry_state)
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        kind = classify_error(error).kind.value if error else "unknown"
        print(
            f"  ⚠ {description} failed (attempt {retry_state.attempt_number}, "
            f"{kind}): {error}. Retrying in {delay:.1f}s"
        )

    return _log_retry


def retry_call(
    fn: Callable[..., T],
    *args: Any,
    description: str = "Call",
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any,
) -> T:
    """
    Call fn, retrying classified transient failures.

    Non-retryable errors propagate immediately. When the attempt budget for
    the error's kind is exhausted the last error is re-raised.

    Args:
        fn: Callable to run
        description: Label used in retry log lines
        sleep: Sleep function (injectable for tests)

    Returns:
        Whatever fn returns
    """
    retryer = Retrying(
        retry=_should_retry,
        stop=_should_stop,
        wait=_wait,
        sleep=sleep,
        before_sleep=_make_logger(description),
        reraise=True,
    )
    return retryer(fn, *args, **kwargs)
