"""
Tests for vault model constraints and helpers.

Tests cover:
- Database check constraints on wallets, entries, escrows and withdrawals
- Append-only ledger entries
- Protected escrow status and withdrawal transitions
- Model helper properties
"""

from datetime import timedelta

import pytest
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone
from django_fsm import TransitionNotAllowed

from authentication.tests.factories import UserFactory
from vault.exceptions import ImmutableLedgerEntry
from vault.ledger import (
    AccountType,
    EntryType,
    LedgerService,
    PostingParams,
    WalletAccount,
    WalletTransactionEntry,
)
from vault.models import EscrowTransaction, WithdrawalRequest
from vault.state_machines import EscrowStatus, WithdrawalStatus
from vault.tests.factories import (
    EscrowTransactionFactory,
    WalletAccountFactory,
    WithdrawalRequestFactory,
)


# =============================================================================
# WalletAccount
# =============================================================================


class TestWalletAccountConstraints:
    """Tests for wallet database constraints."""

    def test_balance_cannot_go_negative(self, db):
        wallet = WalletAccountFactory(balance=100)

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                WalletAccount.objects.filter(id=wallet.id).update(
                    balance=F("balance") - 101
                )

    def test_one_user_wallet_per_currency(self, db):
        wallet = WalletAccountFactory()

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                WalletAccountFactory(owner=wallet.owner, currency=wallet.currency)

    def test_user_may_hold_wallets_in_several_currencies(self, db):
        wallet = WalletAccountFactory(currency="CDF")

        other = WalletAccountFactory(owner=wallet.owner, currency="USD")

        assert other.pk != wallet.pk

    def test_platform_wallet_has_no_owner(self, db):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                WalletAccount.objects.create(
                    account_type=AccountType.PLATFORM,
                    owner=UserFactory(),
                    currency="CDF",
                )

    def test_user_wallet_requires_owner(self, db):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                WalletAccount.objects.create(
                    account_type=AccountType.USER,
                    owner=None,
                    currency="CDF",
                )

    def test_one_platform_wallet_per_currency(self, db):
        WalletAccount.objects.create(account_type=AccountType.PLATFORM, currency="CDF")

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                WalletAccount.objects.create(
                    account_type=AccountType.PLATFORM, currency="CDF"
                )


# =============================================================================
# WalletTransactionEntry
# =============================================================================


class TestWalletTransactionEntry:
    """Tests for append-only ledger entries."""

    @pytest.fixture
    def entry(self, db):
        wallet = WalletAccountFactory()
        return LedgerService.credit(
            PostingParams(
                wallet_id=wallet.id,
                amount=2500,
                entry_type=EntryType.ADJUSTMENT,
                idempotency_key="test:entry",
            )
        )

    def test_entry_records_balance_arithmetic(self, entry):
        assert entry.balance_before == 0
        assert entry.balance_after == 2500
        assert entry.amount == 2500
        assert entry.user_id == entry.wallet.owner_id

    def test_entry_cannot_be_modified(self, entry):
        entry.description = "rewritten"

        with pytest.raises(ImmutableLedgerEntry):
            entry.save()

    def test_entry_cannot_be_deleted(self, entry):
        with pytest.raises(ImmutableLedgerEntry):
            entry.delete()

        assert WalletTransactionEntry.objects.filter(id=entry.id).exists()

    def test_idempotency_key_is_unique(self, entry):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                WalletTransactionEntry.objects.create(
                    wallet=entry.wallet,
                    entry_type=EntryType.ADJUSTMENT,
                    amount=1,
                    balance_before=2500,
                    balance_after=2501,
                    currency="CDF",
                    idempotency_key=entry.idempotency_key,
                )

    def test_balance_arithmetic_is_enforced(self, entry):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                WalletTransactionEntry.objects.create(
                    wallet=entry.wallet,
                    entry_type=EntryType.ADJUSTMENT,
                    amount=10,
                    balance_before=2500,
                    balance_after=2600,
                    currency="CDF",
                    idempotency_key="test:bad-arithmetic",
                )

    def test_zero_amount_rejected(self, entry):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                WalletTransactionEntry.objects.create(
                    wallet=entry.wallet,
                    entry_type=EntryType.ADJUSTMENT,
                    amount=0,
                    balance_before=2500,
                    balance_after=2500,
                    currency="CDF",
                    idempotency_key="test:zero",
                )


# =============================================================================
# EscrowTransaction
# =============================================================================


class TestEscrowTransaction:
    """Tests for escrow constraints and helpers."""

    def test_split_must_sum_to_total(self, db):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                EscrowTransactionFactory(
                    total_amount=10000,
                    seller_amount=9000,
                    platform_fee=500,
                )

    def test_completed_requires_timestamp(self, db):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                EscrowTransactionFactory(status=EscrowStatus.COMPLETED, completed_at=None)

    def test_one_escrow_per_order(self, db):
        escrow = EscrowTransactionFactory()

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                EscrowTransactionFactory(order=escrow.order)

    def test_status_cannot_be_assigned(self, db):
        """Status only changes through the release compare-and-swap."""
        escrow = EscrowTransactionFactory()

        with pytest.raises(AttributeError):
            escrow.status = EscrowStatus.COMPLETED

    def test_is_expired(self, db):
        now = timezone.now()
        escrow = EscrowTransactionFactory(timeout_date=now + timedelta(minutes=1))

        assert escrow.is_expired(now) is False
        assert escrow.is_expired(now + timedelta(minutes=1)) is True
        assert escrow.is_expired(now + timedelta(days=1)) is True

    def test_state_helpers(self, db):
        held = EscrowTransactionFactory()
        completed = EscrowTransactionFactory(completed=True)

        assert held.is_held and not held.is_completed
        assert completed.is_completed and not completed.is_held

    def test_is_party(self, db):
        escrow = EscrowTransactionFactory()

        assert escrow.is_party(escrow.buyer)
        assert escrow.is_party(escrow.seller)
        assert not escrow.is_party(UserFactory())

    def test_str_includes_amount(self, db):
        escrow = EscrowTransactionFactory()

        assert "10,000 CDF" in str(escrow)
        assert EscrowTransaction.objects.get(id=escrow.id).status == EscrowStatus.HELD


# =============================================================================
# WithdrawalRequest
# =============================================================================


class TestWithdrawalRequest:
    """Tests for withdrawal constraints and transitions."""

    def test_net_amount_must_equal_amount_minus_fee(self, db):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                WithdrawalRequestFactory(amount=5000, fee=100, net_amount=5000)

    def test_amount_must_be_positive(self, db):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                WithdrawalRequestFactory(amount=0, fee=0, net_amount=0)

    def test_complete_sets_processed_at(self, db):
        withdrawal = WithdrawalRequestFactory()

        withdrawal.complete()
        withdrawal.save()

        stored = WithdrawalRequest.objects.get(id=withdrawal.id)
        assert stored.status == WithdrawalStatus.COMPLETED
        assert stored.processed_at is not None

    def test_fail_records_reason(self, db):
        withdrawal = WithdrawalRequestFactory()

        withdrawal.fail(reason="Account closed")
        withdrawal.save()

        stored = WithdrawalRequest.objects.get(id=withdrawal.id)
        assert stored.status == WithdrawalStatus.FAILED
        assert stored.failure_reason == "Account closed"

    def test_terminal_states_cannot_transition(self, db):
        withdrawal = WithdrawalRequestFactory(status=WithdrawalStatus.COMPLETED)

        with pytest.raises(TransitionNotAllowed):
            withdrawal.fail()
