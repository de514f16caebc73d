"""
Tests for LedgerService.

Tests cover:
- Wallet lookup and lazy creation
- Credits and their entries
- Guarded debits (never below zero)
- Idempotent reposting
- Balance reconstruction and verification
- Entry queries
"""

import uuid

import pytest
from django.db.models import F

from vault.exceptions import InsufficientFunds, NotFound
from vault.ledger import (
    AccountType,
    EntryType,
    LedgerService,
    Money,
    PostingParams,
    WalletAccount,
    WalletTransactionEntry,
)


# =============================================================================
# Wallet lookups
# =============================================================================


class TestWalletLookup:
    """Tests for wallet creation and retrieval."""

    def test_get_or_create_wallet_creates_empty_wallet(self, wallet_owner):
        wallet = LedgerService.get_or_create_wallet(wallet_owner)

        assert wallet.account_type == AccountType.USER
        assert wallet.owner == wallet_owner
        assert wallet.currency == "CDF"
        assert wallet.balance == 0

    def test_get_or_create_wallet_is_stable(self, wallet):
        again = LedgerService.get_or_create_wallet(wallet.owner)

        assert again.id == wallet.id
        assert WalletAccount.objects.filter(owner=wallet.owner).count() == 1

    def test_currency_selects_a_separate_wallet(self, wallet):
        usd = LedgerService.get_or_create_wallet(wallet.owner, currency="USD")

        assert usd.id != wallet.id
        assert usd.currency == "USD"

    def test_platform_wallet_is_a_singleton(self, db):
        first = LedgerService.get_platform_wallet()
        second = LedgerService.get_platform_wallet()

        assert first.id == second.id
        assert first.owner_id is None
        assert first.account_type == AccountType.PLATFORM

    def test_find_user_wallet_does_not_create(self, wallet_owner):
        assert LedgerService.find_user_wallet(wallet_owner) is None
        assert not WalletAccount.objects.filter(owner=wallet_owner).exists()

    def test_get_wallet_not_found(self, db):
        with pytest.raises(NotFound) as exc_info:
            LedgerService.get_wallet(uuid.uuid4())

        assert exc_info.value.http_status == 404


# =============================================================================
# Credits
# =============================================================================


class TestCredit:
    """Tests for LedgerService.credit."""

    def test_credit_increases_balance(self, wallet, make_posting):
        entry = LedgerService.credit(make_posting(wallet, 8000))

        wallet.refresh_from_db()
        assert wallet.balance == 8000
        assert entry.amount == 8000
        assert entry.balance_before == 0
        assert entry.balance_after == 8000

    def test_credit_records_reference(self, wallet, make_posting):
        reference_id = uuid.uuid4()

        entry = LedgerService.credit(
            make_posting(
                wallet,
                1500,
                entry_type=EntryType.DELIVERY_EARNING,
                reference_type="escrow_transaction",
                reference_id=reference_id,
                created_by="escrow_service",
            )
        )

        assert entry.entry_type == EntryType.DELIVERY_EARNING
        assert entry.reference_type == "escrow_transaction"
        assert entry.reference_id == reference_id
        assert entry.created_by == "escrow_service"
        assert entry.user_id == wallet.owner_id

    def test_credit_is_idempotent(self, wallet, make_posting):
        """Reposting the same key returns the first entry, balance unchanged."""
        params = make_posting(wallet, 500, key="escrow:abc:release:seller")

        first = LedgerService.credit(params)
        second = LedgerService.credit(params)

        wallet.refresh_from_db()
        assert first.id == second.id
        assert wallet.balance == 500
        assert WalletTransactionEntry.objects.filter(wallet=wallet).count() == 1

    def test_credit_unknown_wallet(self, db):
        params = PostingParams(
            wallet_id=uuid.uuid4(),
            amount=100,
            entry_type=EntryType.ADJUSTMENT,
            idempotency_key="test:missing",
        )

        with pytest.raises(NotFound):
            LedgerService.credit(params)

        assert not WalletTransactionEntry.objects.filter(
            idempotency_key="test:missing"
        ).exists()

    def test_successive_credits_chain_balances(self, wallet, make_posting):
        first = LedgerService.credit(make_posting(wallet, 300))
        second = LedgerService.credit(make_posting(wallet, 200))

        assert second.balance_before == first.balance_after == 300
        assert second.balance_after == 500


# =============================================================================
# Guarded debits
# =============================================================================


class TestDebitIfSufficient:
    """Tests for LedgerService.debit_if_sufficient."""

    def test_debit_decreases_balance(self, funded_wallet, make_posting):
        entry = LedgerService.debit_if_sufficient(
            make_posting(funded_wallet, 4000, entry_type=EntryType.WITHDRAWAL_PENDING)
        )

        funded_wallet.refresh_from_db()
        assert funded_wallet.balance == 6000
        assert entry.amount == -4000
        assert entry.balance_before == 10000
        assert entry.balance_after == 6000

    def test_debit_of_entire_balance(self, funded_wallet, make_posting):
        LedgerService.debit_if_sufficient(make_posting(funded_wallet, 10000))

        funded_wallet.refresh_from_db()
        assert funded_wallet.balance == 0

    def test_insufficient_balance_leaves_wallet_unchanged(self, funded_wallet, make_posting):
        with pytest.raises(InsufficientFunds) as exc_info:
            LedgerService.debit_if_sufficient(
                make_posting(funded_wallet, 10001, key="test:too-much")
            )

        funded_wallet.refresh_from_db()
        assert funded_wallet.balance == 10000
        assert exc_info.value.required == 10001
        assert exc_info.value.available == 10000
        assert exc_info.value.wallet_id == funded_wallet.id
        assert exc_info.value.http_status == 422
        assert not WalletTransactionEntry.objects.filter(
            idempotency_key="test:too-much"
        ).exists()

    def test_debit_unknown_wallet_reports_zero_available(self, db):
        params = PostingParams(
            wallet_id=uuid.uuid4(),
            amount=1,
            entry_type=EntryType.WITHDRAWAL_PENDING,
            idempotency_key="test:ghost",
        )

        with pytest.raises(InsufficientFunds) as exc_info:
            LedgerService.debit_if_sufficient(params)

        assert exc_info.value.available == 0

    def test_debit_is_idempotent(self, funded_wallet, make_posting):
        params = make_posting(funded_wallet, 2500, key="withdrawal:abc:debit")

        first = LedgerService.debit_if_sufficient(params)
        second = LedgerService.debit_if_sufficient(params)

        funded_wallet.refresh_from_db()
        assert first.id == second.id
        assert funded_wallet.balance == 7500


# =============================================================================
# Balances and audit
# =============================================================================


class TestBalances:
    """Tests for balance queries and reconstruction."""

    def test_get_balance_returns_money(self, funded_wallet):
        balance = LedgerService.get_balance(funded_wallet.id)

        assert balance == Money(10000, "CDF")
        assert str(balance) == "10,000 CDF"

    def test_reconstruct_balance_of_empty_wallet(self, wallet):
        assert LedgerService.reconstruct_balance(wallet.id) == 0

    def test_reconstruct_balance_sums_entries(self, funded_wallet, make_posting):
        LedgerService.debit_if_sufficient(make_posting(funded_wallet, 3000))
        LedgerService.credit(make_posting(funded_wallet, 500))

        assert LedgerService.reconstruct_balance(funded_wallet.id) == 7500

    def test_verify_wallet_consistent(self, funded_wallet):
        check = LedgerService.verify_wallet(funded_wallet)

        assert check.is_consistent
        assert check.drift == 0

    def test_verify_wallet_detects_drift(self, funded_wallet):
        """A balance written outside the ledger shows up as drift."""
        WalletAccount.objects.filter(id=funded_wallet.id).update(
            balance=F("balance") + 42
        )

        check = LedgerService.verify_wallet(funded_wallet)

        assert not check.is_consistent
        assert check.balance == 10042
        assert check.reconstructed == 10000
        assert check.drift == 42


# =============================================================================
# Queries
# =============================================================================


class TestEntryQueries:
    """Tests for entry listing."""

    def test_get_entries_for_wallet_paginates(self, wallet, make_posting):
        for _ in range(5):
            LedgerService.credit(make_posting(wallet, 100))

        assert len(LedgerService.get_entries_for_wallet(wallet.id)) == 5
        assert len(LedgerService.get_entries_for_wallet(wallet.id, limit=2)) == 2
        assert len(LedgerService.get_entries_for_wallet(wallet.id, limit=10, offset=4)) == 1

    def test_get_entries_by_reference(self, wallet, platform_wallet, make_posting):
        reference_id = uuid.uuid4()
        for target in (wallet, platform_wallet):
            LedgerService.credit(
                make_posting(
                    target,
                    250,
                    reference_type="escrow_transaction",
                    reference_id=reference_id,
                )
            )
        LedgerService.credit(make_posting(wallet, 999))

        entries = LedgerService.get_entries_by_reference("escrow_transaction", reference_id)

        assert len(entries) == 2
        assert {e.wallet_id for e in entries} == {wallet.id, platform_wallet.id}


class TestPostingParams:
    """Tests for PostingParams validation."""

    @pytest.mark.parametrize("amount", [0, -5])
    def test_amount_must_be_positive(self, amount):
        with pytest.raises(ValueError, match="positive"):
            PostingParams(
                wallet_id=uuid.uuid4(),
                amount=amount,
                entry_type=EntryType.ADJUSTMENT,
                idempotency_key="k",
            )

    def test_idempotency_key_required(self):
        with pytest.raises(ValueError, match="idempotency_key"):
            PostingParams(
                wallet_id=uuid.uuid4(),
                amount=1,
                entry_type=EntryType.ADJUSTMENT,
                idempotency_key="",
            )

    def test_money_addition_requires_same_currency(self):
        assert Money(100) + Money(50) == Money(150)
        with pytest.raises(ValueError):
            Money(100, "CDF") + Money(1, "USD")
