"""
Wallet ledger audit.

Rebuilds every wallet balance from its transaction entries and reports the
wallets whose stored balance disagrees. Nothing is corrected automatically;
mismatches are logged at ERROR level as "ledger_mismatch" for an operator.

Usage:
    from vault.workers import audit_wallet_ledgers

    audit_wallet_ledgers.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task

from vault.exceptions import LockAcquisitionError
from vault.ledger import LedgerService, WalletAccount
from vault.locks import DistributedLock

logger = logging.getLogger(__name__)

AUDIT_LOCK_KEY = "vault:ledger-audit"
AUDIT_LOCK_TTL = 600


@shared_task(bind=True)
def audit_wallet_ledgers(self) -> dict:
    """
    Compare every wallet's balance with the sum of its entries.

    Returns:
        Dict with:
        - checked: Number of wallets checked
        - mismatched: IDs of wallets whose balance differs from their entries
        - status: "skipped" when another audit holds the lock
    """
    try:
        with DistributedLock(AUDIT_LOCK_KEY, ttl=AUDIT_LOCK_TTL, blocking=False):
            return _audit_all_wallets()
    except LockAcquisitionError:
        logger.info("Ledger audit already running elsewhere, skipping")
        return {"status": "skipped", "checked": 0, "mismatched": []}


def _audit_all_wallets() -> dict:
    checked = 0
    mismatched: list[str] = []

    for wallet in WalletAccount.objects.order_by("id").iterator(chunk_size=500):
        check = LedgerService.verify_wallet(wallet)
        checked += 1
        if not check.is_consistent:
            mismatched.append(str(wallet.id))
            logger.error(
                "ledger_mismatch",
                extra={
                    "wallet_id": str(wallet.id),
                    "balance": check.balance,
                    "reconstructed": check.reconstructed,
                    "drift": check.drift,
                },
            )

    logger.info(
        f"Ledger audit complete: {checked} wallets, {len(mismatched)} mismatched",
        extra={"checked": checked, "mismatched_count": len(mismatched)},
    )
    return {"status": "completed", "checked": checked, "mismatched": mismatched}


__all__ = ["audit_wallet_ledgers"]
