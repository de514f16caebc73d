"""
Vault domain models.

This module contains all settlement models:
- EscrowTransaction: Funds held for an order until release
- WithdrawalRequest: Money leaving a user's wallet
- EscrowNotification: Outbox of settlement events per user
- WalletAccount / WalletTransactionEntry: Wallet ledger (see vault.ledger)
"""

from vault.ledger.models import (
    AccountType,
    EntryType,
    WalletAccount,
    WalletTransactionEntry,
)
from vault.models.escrow_transaction import EscrowTransaction
from vault.models.notification import EscrowNotification
from vault.models.withdrawal_request import WithdrawalRequest

__all__ = [
    "AccountType",
    "EntryType",
    "EscrowNotification",
    "EscrowTransaction",
    "WalletAccount",
    "WalletTransactionEntry",
    "WithdrawalRequest",
]
