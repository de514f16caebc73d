"""
Wallet ledger models.

This module defines the money-holding side of the vault:
- WalletAccount: A balance owned by a user, or the platform revenue wallet
- WalletTransactionEntry: Append-only record of every balance change

Every balance change is a single conditional UPDATE on WalletAccount paired
with one WalletTransactionEntry written in the same database transaction,
so a wallet's balance always equals the sum of its entries.

Usage:
    from vault.ledger.models import WalletAccount, WalletTransactionEntry

    wallet = WalletAccount.objects.get(owner=user, currency="CDF")
    wallet.entries.order_by("created_at")
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F, Q

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from vault.exceptions import ImmutableLedgerEntry


class AccountType(models.TextChoices):
    """
    Types of wallet accounts.

    Values:
        USER: A marketplace user's spendable balance (sellers, drivers, buyers)
        PLATFORM: Platform revenue wallet, one per currency, no owner
    """

    USER = "user", "User Wallet"
    PLATFORM = "platform", "Platform Revenue"


class EntryType(models.TextChoices):
    """
    Types of wallet ledger entries.

    Values:
        ESCROW_RELEASE: Seller share credited when a hold is released
        DELIVERY_EARNING: Driver share credited when a hold is released
        PLATFORM_FEE: Platform share of a released hold or a completed withdrawal
        WITHDRAWAL_PENDING: Balance removed for a withdrawal awaiting payout
        WITHDRAWAL_REVERSAL: Compensating credit after a failed payout
        ADJUSTMENT: Manual correction by an operator
    """

    ESCROW_RELEASE = "escrow_release", "Escrow Release"
    DELIVERY_EARNING = "delivery_earning", "Delivery Earning"
    PLATFORM_FEE = "platform_fee", "Platform Fee"
    WITHDRAWAL_PENDING = "withdrawal_pending", "Withdrawal Pending"
    WITHDRAWAL_REVERSAL = "withdrawal_reversal", "Withdrawal Reversal"
    ADJUSTMENT = "adjustment", "Adjustment"


class WalletAccount(UUIDPrimaryKeyMixin, BaseModel):
    """
    A wallet holding a non-negative balance in one currency.

    The balance column is only written by LedgerService through conditional
    UPDATE statements (balance = balance + x, or balance = balance - x
    WHERE balance >= x), never by saving a model instance.

    Fields:
        id: UUID primary key
        account_type: USER or PLATFORM
        owner: Owning user (null for the platform wallet)
        currency: ISO 4217 currency code
        balance: Current balance in the smallest currency unit

    Constraints:
        - One user wallet per (owner, currency)
        - One platform wallet per currency
        - User wallets have an owner, the platform wallet has none
        - balance >= 0
    """

    account_type = models.CharField(
        max_length=20,
        choices=AccountType.choices,
        default=AccountType.USER,
        help_text="Category of this wallet",
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="wallets",
        help_text="User owning this wallet (empty for the platform wallet)",
    )
    currency = models.CharField(
        max_length=3,
        default="CDF",
        help_text="ISO 4217 currency code",
    )
    balance = models.BigIntegerField(
        default=0,
        help_text="Current balance in the smallest currency unit",
    )

    class Meta:
        db_table = "vault_wallet_account"
        ordering = ["-created_at"]
        verbose_name = "Wallet"
        verbose_name_plural = "Wallets"
        constraints = [
            models.UniqueConstraint(
                fields=["owner", "currency"],
                condition=Q(account_type=AccountType.USER),
                name="unique_user_wallet_per_currency",
            ),
            models.UniqueConstraint(
                fields=["currency"],
                condition=Q(account_type=AccountType.PLATFORM),
                name="unique_platform_wallet_per_currency",
            ),
            models.CheckConstraint(
                condition=(
                    Q(account_type=AccountType.USER, owner__isnull=False)
                    | Q(account_type=AccountType.PLATFORM, owner__isnull=True)
                ),
                name="wallet_owner_matches_type",
            ),
            models.CheckConstraint(
                condition=Q(balance__gte=0),
                name="wallet_balance_non_negative",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation."""
        if self.account_type == AccountType.PLATFORM:
            return f"Platform wallet ({self.currency})"
        return f"Wallet {self.owner_id} ({self.balance:,} {self.currency})"


class WalletTransactionEntry(UUIDPrimaryKeyMixin, models.Model):
    """
    One balance change of one wallet.

    Entries are append-only: saving an existing entry or deleting one raises
    ImmutableLedgerEntry. Corrections are made with new ADJUSTMENT entries.

    Fields:
        wallet: Wallet whose balance changed
        user: Wallet owner at the time of the entry (null for platform)
        entry_type: Category of the change
        amount: Signed change (positive credit, negative debit, never zero)
        balance_before: Wallet balance immediately before the change
        balance_after: Wallet balance immediately after the change
        currency: ISO 4217 currency code
        reference_type / reference_id: Business record that caused the change
        description: Human-readable description
        metadata: Arbitrary JSON data
        created_by: Service or user that caused the change
        idempotency_key: Unique key that makes reposting a no-op
        created_at: When the entry was recorded

    Constraints:
        - amount != 0
        - balance_after == balance_before + amount
        - idempotency_key is unique
    """

    wallet = models.ForeignKey(
        WalletAccount,
        on_delete=models.PROTECT,
        related_name="entries",
        help_text="Wallet whose balance changed",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="wallet_entries",
        help_text="Wallet owner (empty for the platform wallet)",
    )
    entry_type = models.CharField(
        max_length=30,
        choices=EntryType.choices,
        help_text="Category of this entry",
    )
    amount = models.BigIntegerField(
        help_text="Signed balance change (credit > 0, debit < 0)",
    )
    balance_before = models.BigIntegerField(
        help_text="Balance immediately before this entry",
    )
    balance_after = models.BigIntegerField(
        help_text="Balance immediately after this entry",
    )
    currency = models.CharField(
        max_length=3,
        default="CDF",
        help_text="ISO 4217 currency code",
    )

    reference_type = models.CharField(
        max_length=50,
        null=True,
        blank=True,
        help_text="Type of related record (e.g., 'escrow_transaction')",
    )
    reference_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="UUID of related record",
    )
    description = models.TextField(
        blank=True,
        default="",
        help_text="Human-readable description of this entry",
    )
    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON data for extensibility",
    )
    created_by = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Identifier of service/user that created this entry",
    )
    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Unique key to prevent duplicate entries",
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this entry was recorded",
    )

    class Meta:
        db_table = "vault_wallet_transaction_entry"
        ordering = ["-created_at"]
        verbose_name = "Wallet transaction"
        verbose_name_plural = "Wallet transactions"
        indexes = [
            models.Index(
                fields=["reference_type", "reference_id"],
                name="vault_entry_reference_idx",
            ),
            models.Index(
                fields=["wallet", "created_at"],
                name="vault_entry_wallet_created_idx",
            ),
            models.Index(fields=["entry_type"], name="vault_entry_type_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(amount=0),
                name="wallet_entry_amount_non_zero",
            ),
            models.CheckConstraint(
                condition=Q(balance_after=F("balance_before") + F("amount")),
                name="wallet_entry_balance_arithmetic",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation."""
        return f"{self.get_entry_type_display()}: {self.amount:+,} {self.currency}"

    def save(self, *args, **kwargs):
        """Insert only; existing entries are never rewritten."""
        if not self._state.adding:
            raise ImmutableLedgerEntry(
                "Ledger entries cannot be modified",
                details={"entry_id": str(self.pk)},
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        """Ledger entries are never deleted."""
        raise ImmutableLedgerEntry(
            "Ledger entries cannot be deleted",
            details={"entry_id": str(self.pk)},
        )
