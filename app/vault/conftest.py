"""
Pytest fixtures shared by the vault test packages.

vault/tests, vault/ledger/tests, vault/services/tests and vault/workers/tests
all see these fixtures.

Parties and orders are created with factories; escrow holds and funded
wallets go through the services so they carry real ledger entries.

Usage:
    def test_release_credits_seller(held_escrow, buyer):
        EscrowService.confirm_and_release(
            held_escrow.id, confirmation_code="A1B2C3", confirmed_by=buyer
        )
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from marketplace.tests.factories import OrderFactory
from vault.ledger import EntryType, LedgerService, PostingParams
from vault.services import EscrowService


# =============================================================================
# Party Fixtures
# =============================================================================


@pytest.fixture
def buyer(db):
    """Create the buyer of the test orders."""
    return UserFactory()


@pytest.fixture
def seller(db):
    """Create the seller of the test orders."""
    return UserFactory()


@pytest.fixture
def driver(db):
    """Create a delivery agent."""
    return UserFactory()


@pytest.fixture
def outsider(db):
    """Create a user who is not a party to any test order."""
    return UserFactory()


@pytest.fixture
def staff_user(db):
    """Create an operator with staff access."""
    return UserFactory(is_staff=True)


# =============================================================================
# Order and Escrow Fixtures
# =============================================================================


@pytest.fixture
def order(buyer, seller):
    """Create a confirmed 10,000 CDF order without a driver."""
    return OrderFactory(buyer=buyer, seller=seller, total_amount=10000)


@pytest.fixture
def delivery_order(buyer, seller, driver):
    """Create a confirmed 10,000 CDF order with a driver assigned."""
    return OrderFactory(buyer=buyer, seller=seller, driver=driver, total_amount=10000)


@pytest.fixture
def held_escrow(order):
    """Open a hold on the order through the service."""
    return EscrowService.create_hold(order.id)


@pytest.fixture
def held_delivery_escrow(delivery_order):
    """Open a hold on the delivery order through the service."""
    return EscrowService.create_hold(delivery_order.id)


# =============================================================================
# Wallet Fixtures
# =============================================================================


@pytest.fixture
def fund_wallet(db):
    """
    Return a helper that credits a user's wallet with a real ledger entry.

    Example:
        wallet = fund_wallet(seller, 20000)
    """
    counter = {"n": 0}

    def _fund(user, amount):
        counter["n"] += 1
        wallet = LedgerService.get_or_create_wallet(user)
        LedgerService.credit(
            PostingParams(
                wallet_id=wallet.id,
                amount=amount,
                entry_type=EntryType.ADJUSTMENT,
                idempotency_key=f"test:fund:{wallet.id}:{counter['n']}",
                description="Test funding",
                created_by="tests",
            )
        )
        wallet.refresh_from_db()
        return wallet

    return _fund


@pytest.fixture
def seller_wallet(seller, fund_wallet):
    """Seller wallet holding 20,000 CDF."""
    return fund_wallet(seller, 20000)


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def client_for():
    """
    Return a factory for API clients authenticated with a JWT.

    Example:
        response = client_for(buyer).post(url, payload, format="json")
    """

    def _client(user):
        client = APIClient()
        refresh = RefreshToken.for_user(user)
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
        return client

    return _client


# =============================================================================
# Mock Redis Fixture (for lock tests)
# =============================================================================


@pytest.fixture
def mock_redis(mocker):
    """
    Mock Redis client behind DistributedLock.

    Returns a MagicMock configured so locks are free and releases succeed.
    """
    mock_client = mocker.MagicMock()
    mock_client.set.return_value = True
    mock_client.eval.return_value = 1

    mocker.patch("vault.locks.get_redis_connection", return_value=mock_client)

    return mock_client
