"""
Bounded exponential backoff for transient provider failures.

RetryPolicy is a value object: it only knows how many attempts are allowed
and how long to wait between them. The same policy drives two execution
modes:

1. Synchronous - run() calls the operation in-process and sleeps between
   attempts. Used by short provider calls (balance, cancel) where the
   caller is already off the request path.
2. Deferred - countdown() feeds Celery's retry(countdown=...) so a task
   is re-queued instead of blocking a worker thread.

Only errors flagged retryable (transport failures, provider 5xx) are
retried. Business errors decoded from the provider are raised immediately.

Usage:
    from settlements.retry import RetryPolicy

    policy = RetryPolicy(max_attempts=3, base_delay=1.0, multiplier=2.0, max_delay=10.0)

    # Synchronous
    balance = policy.run(gateway.fetch_balance, operation_name="get_balance")

    # Deferred (inside a bound Celery task)
    if policy.should_retry(error, attempt):
        raise self.retry(exc=error, countdown=policy.countdown(attempt))
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from settlements.conf import SettlementConfig


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry bounds and backoff curve.

    Attributes:
        max_attempts: Total attempts including the first one
        base_delay: Delay in seconds before the second attempt
        multiplier: Growth factor between consecutive delays
        max_delay: Upper bound for any single delay

    Delays for the defaults: 1s, 2s, 4s, 8s, 10s, 10s ...
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 10.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must not be negative")
        if self.multiplier < 1:
            raise ValueError("multiplier must be at least 1")

    @classmethod
    def from_config(cls, config: SettlementConfig) -> RetryPolicy:
        return cls(
            max_attempts=config.retry_max_attempts,
            base_delay=config.retry_base_delay,
            multiplier=config.retry_multiplier,
            max_delay=config.retry_max_delay,
        )

    def delay(self, attempt: int) -> float:
        """
        Seconds to wait after the given (1-indexed) failed attempt.

        Example:
            RetryPolicy().delay(1)  # 1.0
            RetryPolicy().delay(3)  # 4.0
        """
        if attempt < 1:
            raise ValueError("attempt is 1-indexed")
        return min(self.max_delay, self.base_delay * self.multiplier ** (attempt - 1))

    def countdown(self, attempt: int) -> int:
        """Delay rounded up to whole seconds for Celery's countdown."""
        return max(1, math.ceil(self.delay(attempt)))

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        """
        Whether another attempt should follow the given failed attempt.

        Args:
            error: The failure raised by the attempt
            attempt: 1-indexed number of the attempt that just failed
        """
        return bool(getattr(error, "retryable", False)) and attempt < self.max_attempts

    def run(
        self,
        operation: Callable[[], T],
        *,
        operation_name: str = "operation",
        sleep: Callable[[float], None] = time.sleep,
    ) -> T:
        """
        Execute an operation, retrying retryable failures in-process.

        Args:
            operation: Zero-argument callable to execute
            operation_name: Label used in log records
            sleep: Sleep function (injected in tests)

        Returns:
            The operation's result

        Raises:
            The last error once it is not retryable or attempts are spent
        """
        attempt = 1
        while True:
            try:
                result = operation()
            except Exception as e:
                if not self.should_retry(e, attempt):
                    log = logger.error if attempt > 1 else logger.warning
                    log(
                        f"{operation_name} failed, giving up",
                        extra={
                            "operation": operation_name,
                            "attempt": attempt,
                            "max_attempts": self.max_attempts,
                            "retryable": bool(getattr(e, "retryable", False)),
                            "error": str(e),
                        },
                    )
                    raise

                wait = self.delay(attempt)
                logger.warning(
                    f"{operation_name} failed, retrying",
                    extra={
                        "operation": operation_name,
                        "attempt": attempt,
                        "max_attempts": self.max_attempts,
                        "delay_seconds": wait,
                        "error": str(e),
                    },
                )
                sleep(wait)
                attempt += 1
                continue

            if attempt > 1:
                logger.info(
                    f"{operation_name} succeeded after retry",
                    extra={"operation": operation_name, "attempt": attempt},
                )
            return result


__all__ = ["RetryPolicy"]
