"""
Concurrency control for settlement writers.

Settlements have two independent writers: the synchronous process path and
the asynchronous webhook path. Two mechanisms keep them from stepping on
each other:

1. **Distributed Locks** (DistributedLock)
   - Redis-based mutual exclusion across workers
   - Held around process_settlement, which spans a provider call and
     therefore cannot hold a database row lock for its whole duration
   - TTL prevents deadlocks from crashed workers

2. **Row Locks** (lock_for_update)
   - select_for_update() on the target row inside transaction.atomic()
   - Optional expected_version turns the read into an optimistic check
   - Used by every read-check-write on Settlement and SellerAccount

Usage:
    from settlements.locks import DistributedLock, lock_for_update

    with DistributedLock(f"settlement:{settlement_id}", ttl=60):
        process(settlement_id)

    with transaction.atomic():
        settlement = lock_for_update(Settlement, settlement_id, expected_version=3)
        settlement.cancel()
        settlement.save()  # Version auto-increments
"""

from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING, TypeVar

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import models

from django_redis import get_redis_connection

from settlements.exceptions import (
    ErrorKind,
    LockAcquisitionError,
    SettlementError,
    StaleRecordError,
)

if TYPE_CHECKING:
    from typing import Any

    from redis import Redis

T = TypeVar("T", bound=models.Model)


# =============================================================================
# Distributed Locks
# =============================================================================


class DistributedLock:
    """
    Redis-based distributed lock with TTL.

    Features:
        - Token-based ownership, so a worker never releases a lock that
          expired and was taken by another worker
        - Blocking (with timeout) and non-blocking acquisition
        - Context manager support

    Args:
        key: Lock identifier (prefixed with "lock:")
        ttl: Lock TTL in seconds, longer than the provider read timeout
        blocking: If True, acquire() waits until the lock is available
        timeout: Maximum wait in seconds (only if blocking=True)
    """

    # Atomic check-and-delete
    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    def __init__(
        self,
        key: str,
        ttl: int = 60,
        blocking: bool = False,
        timeout: float = 5.0,
    ) -> None:
        self.key = f"lock:{key}"
        self.ttl = ttl
        self.blocking = blocking
        self.timeout = timeout
        self._token: str | None = None
        self._redis: Redis | None = None

    def _get_redis(self) -> Redis:
        if self._redis is None:
            self._redis = get_redis_connection("default")
        return self._redis

    def _try_acquire(self, redis: Redis) -> bool:
        return bool(redis.set(self.key, self._token, nx=True, ex=self.ttl))

    def acquire(self) -> bool:
        """
        Acquire the lock.

        Returns:
            True once the lock is held

        Raises:
            LockAcquisitionError: If another worker holds the lock
        """
        self._token = str(uuid.uuid4())
        redis = self._get_redis()

        if self.blocking:
            deadline = time.monotonic() + self.timeout
            while time.monotonic() < deadline:
                if self._try_acquire(redis):
                    return True
                time.sleep(0.05)
            self._token = None
            raise LockAcquisitionError(
                f"Failed to acquire lock '{self.key}' within {self.timeout}s",
                details={"key": self.key, "timeout": self.timeout},
            )

        if not self._try_acquire(redis):
            self._token = None
            raise LockAcquisitionError(
                f"Lock '{self.key}' is already held",
                details={"key": self.key},
            )
        return True

    def release(self) -> bool:
        """
        Release the lock if we still own it.

        Safe to call multiple times.
        """
        if self._token is None:
            return False
        result = self._get_redis().eval(self.RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None
        return bool(result)

    @property
    def is_held(self) -> bool:
        return self._token is not None

    def __enter__(self) -> DistributedLock:
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.release()
        return False


# =============================================================================
# Row Locks
# =============================================================================


def lock_for_update(
    model_class: type[T],
    pk: Any,
    expected_version: int | None = None,
) -> T:
    """
    Load a record with a row lock, optionally checking its version.

    Must be called inside transaction.atomic(); the lock is held until the
    surrounding transaction ends.

    Args:
        model_class: Model with a 'version' field
        pk: Primary key of the record
        expected_version: Version the caller last saw, or None to skip
            the optimistic check

    Returns:
        The locked instance

    Raises:
        SettlementError(kind=NOT_FOUND): If the record doesn't exist
        StaleRecordError: If the version moved on since the caller read it
    """
    try:
        instance = model_class.objects.select_for_update().filter(pk=pk).first()
    except (DjangoValidationError, ValueError):
        # Malformed primary key
        instance = None
    model_name = model_class.__name__

    if instance is None:
        raise SettlementError(
            f"{model_name} {pk} not found",
            kind=ErrorKind.NOT_FOUND,
            details={"pk": str(pk)},
        )

    if expected_version is not None and instance.version != expected_version:
        raise StaleRecordError(
            f"{model_name} {pk} has been modified "
            f"(expected version {expected_version}, current {instance.version})",
            details={
                "pk": str(pk),
                "expected_version": expected_version,
                "current_version": instance.version,
            },
        )

    return instance


__all__ = [
    "DistributedLock",
    "lock_for_update",
]
