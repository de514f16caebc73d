"""
Pytest fixtures for ledger tests.

Sections:
    - Wallet Fixtures: Empty and funded wallets
    - Helper Fixtures: Posting builders
"""

import uuid

import pytest

from authentication.tests.factories import UserFactory
from vault.ledger import EntryType, LedgerService, PostingParams


# ==========================================================================
# Wallet Fixtures
# ==========================================================================


@pytest.fixture
def wallet_owner(db):
    """User owning the test wallet."""
    return UserFactory()


@pytest.fixture
def wallet(wallet_owner):
    """Empty CDF wallet."""
    return LedgerService.get_or_create_wallet(wallet_owner)


@pytest.fixture
def funded_wallet(wallet, make_posting):
    """Wallet holding 10,000 CDF through one adjustment entry."""
    LedgerService.credit(make_posting(wallet, 10000, key="test:funding"))
    wallet.refresh_from_db()
    return wallet


@pytest.fixture
def platform_wallet(db):
    """Platform revenue wallet."""
    return LedgerService.get_platform_wallet()


# ==========================================================================
# Helper Fixtures
# ==========================================================================


@pytest.fixture
def make_posting():
    """
    Return a builder for PostingParams with sensible defaults.

    Example:
        params = make_posting(wallet, 500)
        params = make_posting(wallet, 500, key="escrow:1:release:seller")
    """

    def _make(wallet, amount, key=None, entry_type=EntryType.ADJUSTMENT, **kwargs):
        return PostingParams(
            wallet_id=wallet.id,
            amount=amount,
            entry_type=entry_type,
            idempotency_key=key or f"test:{uuid.uuid4()}",
            **kwargs,
        )

    return _make
