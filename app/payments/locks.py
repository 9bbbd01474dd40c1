"""
Concurrency control utilities for escrow and payout operations.

Two complementary mechanisms:

1. **Distributed Locks** (DistributedLock)
   - Redis-based mutual exclusion across web and worker processes
   - TTL so a crashed worker cannot hold a payout forever
   - Use for: one transfer attempt per payout, one sweep at a time

2. **Optimistic Locking** (check_version)
   - Version-based conflict detection on Booking, EscrowPayment and Payout
   - Use for: client-supplied versions on single-record updates

Usage:

    from payments.locks import DistributedLock, payout_lock_key

    with DistributedLock(payout_lock_key(payout.id), ttl=120, blocking=False):
        PayoutService.process_single(payout.id)

    with transaction.atomic():
        booking = check_version(Booking, booking_id, expected_version=3)
"""

from __future__ import annotations

import time
import uuid as uuid_module
from typing import TYPE_CHECKING, TypeVar

from django.db import models, transaction

from django_redis import get_redis_connection

from core.exceptions import NotFoundError
from payments.exceptions import LockAcquisitionError, StaleRecordError

if TYPE_CHECKING:
    from typing import Any

    from redis import Redis

T = TypeVar("T", bound=models.Model)

SWEEP_LOCK_KEY = "payouts:sweep"


def payout_lock_key(payout_id) -> str:
    return f"payout:{payout_id}"


# =============================================================================
# Distributed Locks
# =============================================================================


class DistributedLock:
    """
    Redis-based distributed lock with TTL.

    A random token identifies the owner, so only the process that acquired
    the lock can release or extend it.

    Example:
        # Single-flight: skip if another worker is already sweeping
        lock = DistributedLock(SWEEP_LOCK_KEY, ttl=600, blocking=False)
        try:
            with lock:
                run_sweep()
        except LockAcquisitionError:
            logger.info("Sweep already running")

    Args:
        key: Lock identifier (prefixed with "lock:")
        ttl: Seconds before Redis expires the lock
        blocking: Wait for the lock instead of failing immediately
        timeout: Maximum wait in seconds when blocking
    """

    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    EXTEND_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("expire", KEYS[1], ARGV[2])
    else
        return 0
    end
    """

    POLL_INTERVAL_SECONDS = 0.05

    def __init__(
        self,
        key: str,
        ttl: int = 30,
        blocking: bool = True,
        timeout: float = 10.0,
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

    def acquire(self) -> bool:
        """
        Acquire the lock.

        Returns:
            True once the lock is held

        Raises:
            LockAcquisitionError: Lock held elsewhere (non-blocking) or not
                obtained within the timeout (blocking)
        """
        token = str(uuid_module.uuid4())
        redis = self._get_redis()
        deadline = time.monotonic() + self.timeout

        while True:
            if redis.set(self.key, token, nx=True, ex=self.ttl):
                self._token = token
                return True
            if not self.blocking:
                raise LockAcquisitionError(
                    f"Lock '{self.key}' is already held",
                    details={"key": self.key},
                )
            if time.monotonic() >= deadline:
                raise LockAcquisitionError(
                    f"Failed to acquire lock '{self.key}' within {self.timeout}s",
                    details={"key": self.key, "timeout": self.timeout},
                )
            time.sleep(self.POLL_INTERVAL_SECONDS)

    def release(self) -> bool:
        """
        Release the lock if this instance holds it.

        Safe to call more than once; returns False when nothing was released.
        """
        if self._token is None:
            return False

        result = self._get_redis().eval(self.RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None
        return bool(result)

    def extend(self, ttl: int | None = None) -> bool:
        """Reset the TTL (to ttl or the original) while still holding the lock."""
        if self._token is None:
            return False

        result = self._get_redis().eval(
            self.EXTEND_SCRIPT, 1, self.key, self._token, ttl or self.ttl
        )
        return bool(result)

    @property
    def is_held(self) -> bool:
        return self._token is not None

    def __enter__(self) -> DistributedLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> bool:
        self.release()
        return False


# =============================================================================
# Optimistic Locking
# =============================================================================


def check_version(
    model_class: type[T],
    pk: Any,
    expected_version: int,
) -> T:
    """
    Lock a record for update, failing if its version moved on.

    Args:
        model_class: Model with a ``version`` field incremented on save
        pk: Primary key of the record
        expected_version: Version the caller last read

    Returns:
        The row-locked instance

    Raises:
        NotFoundError: Record doesn't exist
        StaleRecordError: Version doesn't match (concurrent modification)

    Note:
        Call inside a transaction; the row lock lasts until it ends.
    """
    model_name = model_class.__name__
    with transaction.atomic():
        instance = (
            model_class.objects.select_for_update()
            .filter(pk=pk, version=expected_version)
            .first()
        )
        if instance is not None:
            return instance

        current_version = (
            model_class.objects.filter(pk=pk).values_list("version", flat=True).first()
        )
        if current_version is None:
            raise NotFoundError(
                f"{model_name} {pk} not found",
                error_code=f"{model_name.upper()}_NOT_FOUND",
                details={"pk": str(pk)},
            )

        raise StaleRecordError(
            f"{model_name} {pk} has been modified "
            f"(expected version {expected_version}, current {current_version})",
            details={
                "pk": str(pk),
                "expected_version": expected_version,
                "current_version": current_version,
            },
        )


__all__ = [
    "DistributedLock",
    "SWEEP_LOCK_KEY",
    "check_version",
    "payout_lock_key",
]
