"""
State machine enums for vault models.

This module defines the state enums used by vault models with django-fsm.
"""

from vault.state_machines.states import (
    EscrowStatus,
    NotificationType,
    WithdrawalMethod,
    WithdrawalStatus,
)

__all__ = [
    "EscrowStatus",
    "NotificationType",
    "WithdrawalMethod",
    "WithdrawalStatus",
]
