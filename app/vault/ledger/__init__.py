"""
Ledger - Wallet balances with an append-only transaction history.

Every wallet balance change is a conditional UPDATE on the wallet row and one
WalletTransactionEntry written in the same transaction. The entries of a
wallet always sum to its balance.

Public API:
    Models:
        WalletAccount - A user's (or the platform's) balance in one currency
        WalletTransactionEntry - Append-only record of one balance change
        AccountType - Enum of wallet categories
        EntryType - Enum of entry categories

    Service:
        LedgerService - Class with all ledger operations

    Types:
        Money - Monetary amount in the smallest currency unit
        PostingParams - Parameters for one posting
        BalanceCheck - Stored vs. reconstructed balance

Usage:
    from vault.ledger import LedgerService, EntryType, PostingParams

    wallet = LedgerService.get_or_create_wallet(driver)
    LedgerService.credit(PostingParams(
        wallet_id=wallet.id,
        amount=1500,
        entry_type=EntryType.DELIVERY_EARNING,
        idempotency_key=f"escrow:{escrow.id}:release:driver",
    ))

    print(LedgerService.get_balance(wallet.id))  # "1,500 CDF"
"""

from .models import AccountType, EntryType, WalletAccount, WalletTransactionEntry
from .services import LedgerService
from .types import BalanceCheck, Money, PostingParams

__all__ = [
    # Models
    "WalletAccount",
    "WalletTransactionEntry",
    "AccountType",
    "EntryType",
    # Service
    "LedgerService",
    # Types
    "Money",
    "PostingParams",
    "BalanceCheck",
]
