"""
Ledger service layer for wallet balances.

This module provides the LedgerService class which encapsulates every write
to a wallet balance. Each posting is one conditional single-statement UPDATE
on the wallet row plus one WalletTransactionEntry, both inside the caller's
transaction, so the balance and its history can never drift apart.

Usage:
    from vault.ledger.services import LedgerService
    from vault.ledger.types import PostingParams

    wallet = LedgerService.get_or_create_wallet(seller)

    # Credit (idempotent on the key)
    entry = LedgerService.credit(PostingParams(
        wallet_id=wallet.id,
        amount=8000,
        entry_type=EntryType.ESCROW_RELEASE,
        idempotency_key=f"escrow:{escrow.id}:release:seller",
    ))

    # Guarded debit
    try:
        LedgerService.debit_if_sufficient(PostingParams(...))
    except InsufficientFunds as e:
        print(f"Need {e.required}, have {e.available}")
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F, Sum
from django.utils import timezone

from vault.exceptions import InsufficientFunds, NotFound

from .models import AccountType, WalletAccount, WalletTransactionEntry
from .types import BalanceCheck, Money, PostingParams

if TYPE_CHECKING:
    from authentication.models import User

logger = logging.getLogger(__name__)


class LedgerService:
    """
    Service class for wallet ledger operations.

    Key features:
    - Single-statement conditional updates (no read-modify-write)
    - Idempotency via unique entry keys (safe to retry)
    - Guarded debits that never take a balance below zero
    - Balance reconstruction from entries for audits

    All methods are static - no instance state is maintained.
    Callers own the surrounding transaction.atomic() block.
    """

    @staticmethod
    def get_or_create_wallet(
        user: User,
        currency: str | None = None,
    ) -> WalletAccount:
        """
        Get the user's wallet for a currency, creating it empty if needed.

        Args:
            user: Wallet owner
            currency: ISO 4217 code (defaults to settings.VAULT_DEFAULT_CURRENCY)

        Returns:
            The existing or newly created WalletAccount
        """
        wallet, created = WalletAccount.objects.get_or_create(
            account_type=AccountType.USER,
            owner=user,
            currency=currency or settings.VAULT_DEFAULT_CURRENCY,
        )
        if created:
            logger.info(
                "Created wallet",
                extra={"wallet_id": str(wallet.id), "user_id": user.pk},
            )
        return wallet

    @staticmethod
    def get_platform_wallet(currency: str | None = None) -> WalletAccount:
        """
        Get the platform revenue wallet for a currency, creating it if needed.

        Args:
            currency: ISO 4217 code (defaults to settings.VAULT_DEFAULT_CURRENCY)
        """
        wallet, _ = WalletAccount.objects.get_or_create(
            account_type=AccountType.PLATFORM,
            owner=None,
            currency=currency or settings.VAULT_DEFAULT_CURRENCY,
        )
        return wallet

    @staticmethod
    def get_wallet(wallet_id: uuid.UUID) -> WalletAccount:
        """
        Get wallet by ID.

        Raises:
            NotFound: If wallet doesn't exist
        """
        try:
            return WalletAccount.objects.get(id=wallet_id)
        except WalletAccount.DoesNotExist:
            raise NotFound(
                f"Wallet {wallet_id} not found",
                details={"wallet_id": str(wallet_id)},
            )

    @staticmethod
    def find_user_wallet(
        user: User,
        currency: str | None = None,
    ) -> WalletAccount | None:
        """
        Get the user's wallet for a currency without creating one.

        Returns:
            The WalletAccount if found, None otherwise
        """
        return WalletAccount.objects.filter(
            account_type=AccountType.USER,
            owner=user,
            currency=currency or settings.VAULT_DEFAULT_CURRENCY,
        ).first()

    @staticmethod
    def _existing_entry(idempotency_key: str) -> WalletTransactionEntry | None:
        return WalletTransactionEntry.objects.filter(
            idempotency_key=idempotency_key
        ).first()

    @staticmethod
    def _post(params: PostingParams, signed_amount: int) -> WalletTransactionEntry:
        """
        Apply a signed change to a wallet and record its entry.

        The UPDATE has already been guarded by the caller; the row lock it
        took makes the follow-up read return exactly the post-update balance.
        """
        wallet = WalletAccount.objects.get(id=params.wallet_id)
        return WalletTransactionEntry.objects.create(
            wallet=wallet,
            user_id=wallet.owner_id,
            entry_type=params.entry_type,
            amount=signed_amount,
            balance_before=wallet.balance - signed_amount,
            balance_after=wallet.balance,
            currency=wallet.currency,
            reference_type=params.reference_type,
            reference_id=params.reference_id,
            description=params.description,
            metadata=params.metadata or {},
            created_by=params.created_by,
            idempotency_key=params.idempotency_key,
        )

    @staticmethod
    def credit(params: PostingParams) -> WalletTransactionEntry:
        """
        Add an amount to a wallet and record the entry.

        Idempotent - if an entry with the same idempotency_key exists, it is
        returned and the balance is left untouched.

        Args:
            params: Posting parameters (amount must be positive)

        Returns:
            The created or existing WalletTransactionEntry

        Raises:
            NotFound: If the wallet doesn't exist
        """
        # Check idempotency FIRST so a repost never touches the balance
        existing = LedgerService._existing_entry(params.idempotency_key)
        if existing is not None:
            return existing

        try:
            with transaction.atomic():
                updated = WalletAccount.objects.filter(id=params.wallet_id).update(
                    balance=F("balance") + params.amount,
                    updated_at=timezone.now(),
                )
                if updated == 0:
                    raise NotFound(
                        f"Wallet {params.wallet_id} not found",
                        details={"wallet_id": str(params.wallet_id)},
                    )
                entry = LedgerService._post(params, params.amount)
        except IntegrityError:
            # Another process recorded the same key between check and insert;
            # the savepoint rolled our balance change back.
            existing = LedgerService._existing_entry(params.idempotency_key)
            if existing is None:
                raise
            return existing

        logger.debug(
            "Wallet credited",
            extra={
                "wallet_id": str(params.wallet_id),
                "amount": params.amount,
                "entry_type": params.entry_type,
                "idempotency_key": params.idempotency_key,
            },
        )
        return entry

    @staticmethod
    def debit_if_sufficient(params: PostingParams) -> WalletTransactionEntry:
        """
        Remove an amount from a wallet only if the balance covers it.

        The guard is part of the UPDATE itself
        (balance = balance - x WHERE balance >= x), so two concurrent debits
        can never both pass it against the same funds.

        Args:
            params: Posting parameters (amount must be positive)

        Returns:
            The created or existing WalletTransactionEntry (amount negative)

        Raises:
            InsufficientFunds: If the wallet is missing or its balance is too low;
                the balance is left unchanged
        """
        existing = LedgerService._existing_entry(params.idempotency_key)
        if existing is not None:
            return existing

        try:
            with transaction.atomic():
                updated = WalletAccount.objects.filter(
                    id=params.wallet_id,
                    balance__gte=params.amount,
                ).update(
                    balance=F("balance") - params.amount,
                    updated_at=timezone.now(),
                )
                if updated == 0:
                    available = (
                        WalletAccount.objects.filter(id=params.wallet_id)
                        .values_list("balance", flat=True)
                        .first()
                    )
                    raise InsufficientFunds(
                        wallet_id=params.wallet_id,
                        required=params.amount,
                        available=available or 0,
                    )
                entry = LedgerService._post(params, -params.amount)
        except IntegrityError:
            existing = LedgerService._existing_entry(params.idempotency_key)
            if existing is None:
                raise
            return existing

        logger.debug(
            "Wallet debited",
            extra={
                "wallet_id": str(params.wallet_id),
                "amount": params.amount,
                "entry_type": params.entry_type,
                "idempotency_key": params.idempotency_key,
            },
        )
        return entry

    @staticmethod
    def get_balance(wallet_id: uuid.UUID) -> Money:
        """
        Get current balance for a wallet.

        Raises:
            NotFound: If wallet doesn't exist
        """
        wallet = LedgerService.get_wallet(wallet_id)
        return Money(amount=wallet.balance, currency=wallet.currency)

    @staticmethod
    def reconstruct_balance(wallet_id: uuid.UUID) -> int:
        """
        Rebuild a wallet balance from its entries.

        Returns:
            Sum of all entry amounts for the wallet (0 without entries)
        """
        total = WalletTransactionEntry.objects.filter(wallet_id=wallet_id).aggregate(
            total=Sum("amount")
        )["total"]
        return total or 0

    @staticmethod
    def verify_wallet(wallet: WalletAccount) -> BalanceCheck:
        """
        Compare a wallet's stored balance with the sum of its entries.

        Args:
            wallet: The wallet to check (balance is re-read from the database)

        Returns:
            BalanceCheck with both figures
        """
        balance = (
            WalletAccount.objects.filter(id=wallet.id)
            .values_list("balance", flat=True)
            .get()
        )
        return BalanceCheck(
            wallet_id=wallet.id,
            balance=balance,
            reconstructed=LedgerService.reconstruct_balance(wallet.id),
        )

    @staticmethod
    def get_entries_for_wallet(
        wallet_id: uuid.UUID,
        limit: int = 100,
        offset: int = 0,
    ) -> list[WalletTransactionEntry]:
        """
        Get a wallet's entries, newest first.

        Args:
            wallet_id: UUID of the wallet
            limit: Maximum number of entries to return (default: 100)
            offset: Number of entries to skip (default: 0)
        """
        return list(
            WalletTransactionEntry.objects.filter(wallet_id=wallet_id).order_by(
                "-created_at"
            )[offset : offset + limit]
        )

    @staticmethod
    def get_entries_by_reference(
        reference_type: str,
        reference_id: uuid.UUID,
    ) -> list[WalletTransactionEntry]:
        """
        Get all entries for a given business record.

        Useful for auditing every balance change caused by one escrow
        transaction or withdrawal request.

        Returns:
            List of WalletTransactionEntry objects ordered by created_at ascending
        """
        return list(
            WalletTransactionEntry.objects.filter(
                reference_type=reference_type,
                reference_id=reference_id,
            ).order_by("created_at")
        )
