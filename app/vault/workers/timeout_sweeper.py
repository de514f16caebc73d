"""
Timeout sweeper for expired escrow holds.

This module provides Celery tasks that release escrow holds whose timeout
has passed without a delivery confirmation.

Tasks:
- sweep_expired_escrows: Periodic task that scans for and queues expired holds
- release_expired_escrow: Task that auto-releases a single hold

Usage:
    # Typically called via celery-beat schedule
    from vault.workers import sweep_expired_escrows

    # Or manually trigger processing
    sweep_expired_escrows.delay()

    # Release a specific hold
    release_expired_escrow.delay(str(escrow.id))

Note:
    Correctness does not depend on the sweep lock: every release goes
    through the status compare-and-swap, so a hold queued twice, or
    confirmed by the buyer while queued, is still paid out exactly once.
"""

from __future__ import annotations

import logging
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.utils import timezone
from redis.exceptions import RedisError

from vault.exceptions import InvalidState, LedgerUnavailable, NotFound
from vault.locks import DistributedLock
from vault.models import EscrowTransaction
from vault.services import EscrowService
from vault.state_machines import EscrowStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

SWEEP_LOCK_KEY = "vault:escrow-sweep"

# Lock TTL for a sweep run (seconds); longer than any realistic scan
SWEEP_LOCK_TTL = 120


# =============================================================================
# Periodic Task: Scan for Expired Holds
# =============================================================================


@shared_task(bind=True)
def sweep_expired_escrows(self) -> dict:
    """
    Scan for expired escrow holds and queue release tasks.

    This task runs periodically (via celery-beat) to find holds that
    have passed their timeout and queues one release task per hold.

    The task:
    1. Takes the sweep lock without waiting (skips the run if held)
    2. Queries held escrows where timeout_date <= now, oldest first
    3. Limits the scan to ESCROW_SWEEP_BATCH_SIZE rows
    4. Queues a release_expired_escrow task for each one

    Returns:
        Dict with:
        - status: "completed" or "skipped"
        - queued_count: Number of holds queued for release
        - failed_count: Number of holds that could not be queued
    """
    lock = DistributedLock(SWEEP_LOCK_KEY, ttl=SWEEP_LOCK_TTL, blocking=False)

    try:
        if not lock.try_acquire():
            logger.info("Escrow sweep already running elsewhere, skipping")
            return {"status": "skipped", "queued_count": 0, "failed_count": 0}
    except RedisError as e:
        logger.warning(
            "Sweep lock backend unavailable, sweeping without lock",
            extra={"error": str(e)},
        )

    try:
        return _queue_expired_escrows()
    finally:
        if lock.is_held:
            lock.release()


def _queue_expired_escrows() -> dict:
    now = timezone.now()
    batch_size = settings.ESCROW_SWEEP_BATCH_SIZE

    logger.info("Starting expired escrow scan", extra={"batch_size": batch_size})

    expired = (
        EscrowTransaction.objects.filter(
            status=EscrowStatus.HELD,
            timeout_date__lte=now,
        )
        .order_by("timeout_date")
        .values_list("id", "timeout_date")[:batch_size]
    )

    queued_count = 0
    failed_count = 0
    for escrow_id, timeout_date in expired:
        try:
            release_expired_escrow.delay(str(escrow_id))
            queued_count += 1

            logger.info(
                "Queued expired escrow for release",
                extra={
                    "escrow_id": str(escrow_id),
                    "timeout_date": timeout_date.isoformat(),
                },
            )
        except Exception as e:
            failed_count += 1
            logger.error(
                f"Failed to queue escrow for release: {e}",
                extra={
                    "escrow_id": str(escrow_id),
                    "error": str(e),
                },
            )

    logger.info(
        f"Expired escrow scan complete: queued {queued_count} holds",
        extra={"queued_count": queued_count, "failed_count": failed_count},
    )

    return {
        "status": "completed",
        "queued_count": queued_count,
        "failed_count": failed_count,
    }


# =============================================================================
# Individual Release Task
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(LedgerUnavailable,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": 5},
    acks_late=True,
)
def release_expired_escrow(self, escrow_id: str) -> dict:
    """
    Auto-release a single expired escrow hold.

    Args:
        escrow_id: UUID of the EscrowTransaction to release

    Returns:
        Dict with:
        - status: One of "released", "already_released", "not_found",
                  "not_expired", "invalid_id"
        - escrow_id: The escrow ID processed

    Raises:
        LedgerUnavailable: Retried by Celery with exponential backoff
        Exception: Any other failure, after it is recorded on the escrow row
    """
    try:
        escrow_uuid = UUID(str(escrow_id))
    except ValueError:
        logger.error(f"Invalid escrow_id format: {escrow_id}")
        return {
            "status": "invalid_id",
            "escrow_id": escrow_id,
            "error": "Invalid UUID format",
        }

    logger.info("Processing escrow auto-release", extra={"escrow_id": str(escrow_uuid)})

    try:
        result = EscrowService.auto_release(escrow_uuid)
    except NotFound:
        logger.warning("Escrow not found", extra={"escrow_id": str(escrow_uuid)})
        return {"status": "not_found", "escrow_id": str(escrow_uuid)}
    except InvalidState as e:
        logger.info(
            "Escrow not expired, skipping",
            extra={"escrow_id": str(escrow_uuid), "details": e.details},
        )
        return {"status": "not_expired", "escrow_id": str(escrow_uuid)}
    except LedgerUnavailable:
        logger.warning(
            "Ledger unavailable during auto-release, will retry",
            extra={"escrow_id": str(escrow_uuid), "retries": self.request.retries},
        )
        raise
    except Exception as e:
        logger.exception(
            f"Unexpected error during escrow auto-release: {e}",
            extra={"escrow_id": str(escrow_uuid)},
        )
        _record_failure(escrow_uuid, f"{type(e).__name__}: {e}")
        raise

    if result.already_released:
        return {"status": "already_released", "escrow_id": str(escrow_uuid)}

    return {
        "status": "released",
        "escrow_id": str(escrow_uuid),
        "released_amounts": result.amounts.as_dict(),
    }


def _record_failure(escrow_id: UUID, error: str) -> None:
    """Store the failure on the escrow row; the original error is re-raised by the caller."""
    try:
        EscrowService.record_release_failure(escrow_id, error)
    except Exception:
        logger.exception(
            "Could not record auto-release failure",
            extra={"escrow_id": str(escrow_id)},
        )


__all__ = [
    "release_expired_escrow",
    "sweep_expired_escrows",
]
