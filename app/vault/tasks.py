"""
Celery tasks for the vault.

Celery's autodiscovery imports this module; the task bodies live in
vault.workers. Schedules are stored by django-celery-beat (see migration
0002_add_periodic_schedules).

Registered tasks:
    vault.workers.timeout_sweeper.sweep_expired_escrows
    vault.workers.timeout_sweeper.release_expired_escrow
    vault.workers.ledger_auditor.audit_wallet_ledgers
"""

from vault.workers import (
    audit_wallet_ledgers,
    release_expired_escrow,
    sweep_expired_escrows,
)

__all__ = [
    "audit_wallet_ledgers",
    "release_expired_escrow",
    "sweep_expired_escrows",
]
