"""
Redis-based distributed lock for vault background work.

Settlement correctness never depends on this lock: releases are guarded by
a compare-and-swap on the escrow status and withdrawals by a conditional
balance decrement. The lock only keeps two celery-beat instances (or a
manual trigger and the schedule) from scanning the same expired holds at
the same moment, which would queue duplicate release tasks.

Usage:
    from vault.locks import DistributedLock

    # Skip the run when another process holds the lock
    lock = DistributedLock("vault:sweep", ttl=300, blocking=False)
    if not lock.try_acquire():
        return
    try:
        sweep()
    finally:
        lock.release()

    # Or wait for it
    with DistributedLock("vault:audit", ttl=600, timeout=5.0):
        audit()
"""

from __future__ import annotations

import time
import uuid as uuid_module
from typing import TYPE_CHECKING

from django_redis import get_redis_connection

from vault.exceptions import LockAcquisitionError

if TYPE_CHECKING:
    from typing import Any

    from redis import Redis


class DistributedLock:
    """
    Redis lock with TTL and token-based ownership.

    Acquisition is a single SET NX EX; release and extension are Lua scripts
    that only act when the stored token is ours, so a lock that expired and
    was taken by another process is never released by the old owner.

    Args:
        key: Lock identifier (will be prefixed with "lock:")
        ttl: Lock TTL in seconds (auto-releases after this time)
        blocking: If True, acquire() waits until the lock is available
        timeout: Maximum wait time in seconds (only if blocking=True)
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

    # Pause between attempts in blocking mode (seconds)
    RETRY_INTERVAL = 0.05

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
        """Get Redis connection (lazy initialization)."""
        if self._redis is None:
            self._redis = get_redis_connection("default")
        return self._redis

    def _set_if_absent(self, redis: Redis, token: str) -> bool:
        return bool(redis.set(self.key, token, nx=True, ex=self.ttl))

    def acquire(self) -> bool:
        """
        Acquire the lock.

        Returns:
            True once the lock is held

        Raises:
            LockAcquisitionError: If the lock is held elsewhere (non-blocking)
                or could not be acquired within the timeout (blocking)
        """
        token = str(uuid_module.uuid4())
        redis = self._get_redis()

        if self.blocking:
            deadline = time.monotonic() + self.timeout
            while time.monotonic() < deadline:
                if self._set_if_absent(redis, token):
                    self._token = token
                    return True
                time.sleep(self.RETRY_INTERVAL)

            raise LockAcquisitionError(
                f"Failed to acquire lock '{self.key}' within {self.timeout}s",
                details={"key": self.key, "timeout": self.timeout},
            )

        if not self._set_if_absent(redis, token):
            raise LockAcquisitionError(
                f"Lock '{self.key}' is already held",
                details={"key": self.key},
            )
        self._token = token
        return True

    def try_acquire(self) -> bool:
        """Acquire the lock, returning False instead of raising on contention."""
        try:
            return self.acquire()
        except LockAcquisitionError:
            return False

    def release(self) -> bool:
        """
        Release the lock if we hold it.

        Returns:
            True if the lock was released, False if we didn't hold it

        Note:
            Safe to call multiple times.
        """
        if self._token is None:
            return False

        result = self._get_redis().eval(self.RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None
        return bool(result)

    def extend(self, ttl: int | None = None) -> bool:
        """
        Reset the lock TTL if we still hold it.

        Args:
            ttl: New TTL in seconds (defaults to the original TTL)

        Returns:
            True if the lock was extended, False if we no longer hold it
        """
        if self._token is None:
            return False

        result = self._get_redis().eval(
            self.EXTEND_SCRIPT, 1, self.key, self._token, ttl or self.ttl
        )
        return bool(result)

    @property
    def is_held(self) -> bool:
        """Check if we currently hold the lock."""
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


__all__ = ["DistributedLock"]
