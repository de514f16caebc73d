"""
Workers for background settlement processing.

This module contains Celery tasks for background vault operations:
- TimeoutSweeper: Auto-releases escrow holds past their timeout
- LedgerAuditor: Checks wallet balances against their entries

Usage:
    from vault.workers import (
        audit_wallet_ledgers,
        release_expired_escrow,
        sweep_expired_escrows,
    )

    sweep_expired_escrows.delay()
    release_expired_escrow.delay(str(escrow_id))
    audit_wallet_ledgers.delay()
"""

from vault.workers.ledger_auditor import audit_wallet_ledgers
from vault.workers.timeout_sweeper import (
    release_expired_escrow,
    sweep_expired_escrows,
)

__all__ = [
    # Timeout Sweeper
    "release_expired_escrow",
    "sweep_expired_escrows",
    # Ledger Auditor
    "audit_wallet_ledgers",
]
