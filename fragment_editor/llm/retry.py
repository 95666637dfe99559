from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar
import logging
import time

logger = logging.getLogger(__name__)

T = TypeVar("T")


def status_code_of(error: BaseException) -> Optional[int]:
    status = getattr(error, "status_code", None)
    return status if isinstance(status, int) else None


def is_retryable_error(error: BaseException) -> bool:
    """429, 5xx and connection failures are transient; anything else is final."""
    status = status_code_of(error)
    if status is not None:
        return status == 429 or 500 <= status < 600
    import anthropic
    return isinstance(error, (anthropic.APIConnectionError, ConnectionError, TimeoutError))


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    retryable: Callable[[BaseException], bool] = field(default=is_retryable_error)

    def backoff(self, attempt: int) -> float:
        """Delay after the failed attempt number `attempt` (0-based): base, 2x base, 4x base..."""
        return self.base_delay * (2 ** attempt)


def run_with_retry(
    call: Callable[[], T],
    policy: RetryPolicy,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "request",
) -> T:
    """
    Run `call` under `policy`.

    Returns the first successful result. Re-raises the error immediately when
    it is not retryable, or after the last attempt otherwise.
    """
    for attempt in range(policy.max_attempts):
        try:
            return call()
        except Exception as e:
            if not policy.retryable(e):
                logger.warning(f"{label} failed (not retryable): {type(e).__name__}: {e}")
                raise
            if attempt + 1 >= policy.max_attempts:
                logger.warning(f"{label} failed after {policy.max_attempts} attempts: {type(e).__name__}: {e}")
                raise
            delay = policy.backoff(attempt)
            logger.warning(f"{label} hit {status_code_of(e) or type(e).__name__}, retry {attempt + 1}/{policy.max_attempts - 1} in {delay:.1f}s")
            sleep(delay)
    raise RuntimeError("retry policy allows no attempts")
