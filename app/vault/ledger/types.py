"""
Data types for wallet ledger operations.

Types:
    Money: A monetary amount in the smallest currency unit with its currency
    PostingParams: Parameters for one guarded balance change plus its entry
    BalanceCheck: Stored balance next to the balance rebuilt from entries

Usage:
    from vault.ledger.types import Money, PostingParams

    Money(amount=8000, currency="CDF")  # "8,000 CDF"

    params = PostingParams(
        wallet_id=wallet.id,
        amount=8000,
        entry_type=EntryType.ESCROW_RELEASE,
        idempotency_key=f"escrow:{escrow.id}:release:seller",
    )
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Money:
    """
    Represents a monetary amount.

    Amounts are integers in the smallest currency unit. CDF has no minor
    unit in circulation, so one unit is one franc.

    Attributes:
        amount: Amount in the smallest currency unit (may be negative)
        currency: ISO 4217 currency code (default: 'CDF')
    """

    amount: int
    currency: str = "CDF"

    def __str__(self) -> str:
        """Format with thousands separators (e.g., '8,000 CDF')."""
        return f"{self.amount:,} {self.currency.upper()}"

    def __add__(self, other: Money) -> Money:
        """Add two Money objects (must have same currency)."""
        if not isinstance(other, Money):
            return NotImplemented
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot add Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )
        return Money(amount=self.amount + other.amount, currency=self.currency)


@dataclass
class PostingParams:
    """
    Parameters for a single wallet posting.

    A posting is a conditional balance UPDATE paired with one
    WalletTransactionEntry. The amount is always positive; whether it is
    added or removed depends on the LedgerService method used.

    Required Attributes:
        wallet_id: UUID of the wallet to change
        amount: Positive amount in the smallest currency unit
        entry_type: Category of the entry (see EntryType)
        idempotency_key: Unique key; reposting the same key is a no-op

    Optional Attributes:
        reference_type: Type of the business record (e.g., 'escrow_transaction')
        reference_id: UUID of the business record
        description: Human-readable description
        metadata: Arbitrary JSON-serializable data
        created_by: Identifier of the service/user creating the entry
    """

    wallet_id: uuid.UUID
    amount: int
    entry_type: str
    idempotency_key: str

    reference_type: str | None = None
    reference_id: uuid.UUID | None = None
    description: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    created_by: str | None = None

    def __post_init__(self) -> None:
        """Validate params after initialization."""
        if self.amount <= 0:
            raise ValueError("amount must be positive")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")


@dataclass(frozen=True)
class BalanceCheck:
    """
    Result of comparing a wallet's stored balance with its entries.

    Attributes:
        wallet_id: UUID of the checked wallet
        balance: Balance column as stored
        reconstructed: Sum of the wallet's entry amounts
    """

    wallet_id: uuid.UUID
    balance: int
    reconstructed: int

    @property
    def is_consistent(self) -> bool:
        return self.balance == self.reconstructed

    @property
    def drift(self) -> int:
        """Stored balance minus reconstructed balance."""
        return self.balance - self.reconstructed
