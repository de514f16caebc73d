"""
Tests for distributed locking utilities.

Tests the DistributedLock class which keeps concurrent sweeper and audit
runs from scanning the same rows at the same moment.
"""

import pytest

from vault.exceptions import LockAcquisitionError
from vault.locks import DistributedLock


class TestDistributedLock:
    """Tests for DistributedLock class."""

    def test_acquire_success(self, mock_redis):
        """Should acquire lock when available."""
        lock = DistributedLock("test:key", ttl=30, blocking=False)
        result = lock.acquire()

        assert result is True
        assert lock.is_held is True
        mock_redis.set.assert_called_once()
        call_args = mock_redis.set.call_args
        assert call_args[0][0] == "lock:test:key"
        assert call_args[1]["nx"] is True
        assert call_args[1]["ex"] == 30

    def test_acquire_generates_unique_token(self, mock_redis):
        """Should generate unique token for each acquisition."""
        lock1 = DistributedLock("test:key1", ttl=30, blocking=False)
        lock2 = DistributedLock("test:key2", ttl=30, blocking=False)

        lock1.acquire()
        lock2.acquire()

        assert lock1._token is not None
        assert lock1._token != lock2._token

    def test_acquire_non_blocking_raises_when_held(self, mock_redis):
        """Non-blocking mode should raise immediately if lock unavailable."""
        mock_redis.set.return_value = False

        lock = DistributedLock("test:key", ttl=30, blocking=False)

        with pytest.raises(LockAcquisitionError) as exc_info:
            lock.acquire()

        assert "already held" in str(exc_info.value)
        assert exc_info.value.details["key"] == "lock:test:key"
        assert lock.is_held is False
        mock_redis.set.assert_called_once()

    def test_try_acquire_returns_false_when_held(self, mock_redis):
        mock_redis.set.return_value = False

        lock = DistributedLock("test:key", blocking=False)

        assert lock.try_acquire() is False
        assert lock.is_held is False

    def test_blocking_acquire_retries_until_free(self, mock_redis, mocker):
        """Blocking mode should keep trying until SET NX succeeds."""
        sleep = mocker.patch("vault.locks.time.sleep")
        mock_redis.set.side_effect = [False, False, True]

        lock = DistributedLock("test:key", ttl=30, blocking=True, timeout=5.0)

        assert lock.acquire() is True
        assert mock_redis.set.call_count == 3
        assert sleep.call_count == 2

    def test_blocking_acquire_times_out(self, mock_redis):
        mock_redis.set.return_value = False

        lock = DistributedLock("test:key", ttl=30, blocking=True, timeout=0.1)

        with pytest.raises(LockAcquisitionError) as exc_info:
            lock.acquire()

        assert exc_info.value.details["timeout"] == 0.1

    def test_release_runs_owner_checked_script(self, mock_redis):
        """Release should delete the key only through the token check."""
        lock = DistributedLock("test:key", ttl=30, blocking=False)
        lock.acquire()
        token = lock._token

        assert lock.release() is True

        mock_redis.eval.assert_called_once_with(
            DistributedLock.RELEASE_SCRIPT, 1, "lock:test:key", token
        )
        assert lock.is_held is False

    def test_release_only_if_owned(self, mock_redis):
        """Release reports False when the key now belongs to someone else."""
        mock_redis.eval.return_value = 0

        lock = DistributedLock("test:key", ttl=30, blocking=False)
        lock.acquire()

        assert lock.release() is False

    def test_release_without_acquire_is_noop(self, mock_redis):
        lock = DistributedLock("test:key", blocking=False)

        assert lock.release() is False
        mock_redis.eval.assert_not_called()

    def test_extend_uses_original_ttl(self, mock_redis):
        lock = DistributedLock("test:key", ttl=30, blocking=False)
        lock.acquire()

        assert lock.extend() is True
        assert mock_redis.eval.call_args[0][4] == 30

    def test_extend_with_custom_ttl(self, mock_redis):
        lock = DistributedLock("test:key", ttl=30, blocking=False)
        lock.acquire()

        lock.extend(ttl=90)

        assert mock_redis.eval.call_args[0][0] == DistributedLock.EXTEND_SCRIPT
        assert mock_redis.eval.call_args[0][4] == 90

    def test_extend_without_acquire_returns_false(self, mock_redis):
        lock = DistributedLock("test:key", blocking=False)

        assert lock.extend() is False

    def test_context_manager_releases_on_exception(self, mock_redis):
        """The lock is released even when the body raises."""
        with pytest.raises(RuntimeError):
            with DistributedLock("test:key", blocking=False) as lock:
                assert lock.is_held is True
                raise RuntimeError("boom")

        assert lock.is_held is False
        mock_redis.eval.assert_called_once()

    def test_redis_connection_is_lazy(self, mocker):
        get_connection = mocker.patch("vault.locks.get_redis_connection")

        lock = DistributedLock("test:key", blocking=False)
        get_connection.assert_not_called()

        lock.try_acquire()
        lock.release()

        get_connection.assert_called_once_with("default")
