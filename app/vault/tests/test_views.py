"""
Tests for the vault action API.

Tests cover:
- Authentication and staff-only actions
- Each action's success response and status code
- Mapping of every error kind to its HTTP status and error_code
- Payload validation

Note: Shared fixtures (buyer, seller, order, held_escrow, client_for, ...)
come from vault/conftest.py.
"""

import uuid

import pytest
from django.db import OperationalError
from django.urls import reverse

from vault.exceptions import LedgerUnavailable
from vault.models import EscrowTransaction, WithdrawalRequest
from vault.state_machines import EscrowStatus, WithdrawalStatus
from vault.tests.factories import EscrowTransactionFactory

URL = reverse("vault:actions")


def confirm_payload(transaction_id, **overrides):
    data = {"confirmationCode": "A1B2C3", "clientConfirmed": True}
    data.update(overrides)
    return {
        "action": "confirm_delivery",
        "transactionId": str(transaction_id),
        "confirmationData": data,
    }


# =============================================================================
# Envelope
# =============================================================================


class TestEnvelope:
    """Tests for authentication and action dispatch."""

    def test_requires_authentication(self, api_client, order):
        response = api_client.post(
            URL, {"action": "create_vault", "orderId": str(order.id)}, format="json"
        )

        assert response.status_code == 401

    def test_unknown_action(self, client_for, buyer):
        response = client_for(buyer).post(URL, {"action": "refund"}, format="json")

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error_code"] == "VALIDATION_ERROR"
        assert "action" in body["details"]

    def test_missing_action(self, client_for, buyer):
        response = client_for(buyer).post(URL, {}, format="json")

        assert response.status_code == 400

    @pytest.mark.parametrize("action", ["auto_release_timeout", "settle_withdrawal"])
    def test_staff_only_actions(self, client_for, buyer, action):
        response = client_for(buyer).post(
            URL,
            {"action": action, "transactionId": str(uuid.uuid4())},
            format="json",
        )

        assert response.status_code == 403
        assert response.json()["error_code"] == "UNAUTHORIZED"

    def test_transient_failure_maps_to_503(self, client_for, buyer, order, mocker):
        mocker.patch(
            "vault.views.EscrowService.create_hold",
            side_effect=LedgerUnavailable("Ledger store is temporarily unavailable"),
        )

        response = client_for(buyer).post(
            URL, {"action": "create_vault", "orderId": str(order.id)}, format="json"
        )

        assert response.status_code == 503
        assert response.json()["error_code"] == "LEDGER_UNAVAILABLE"


# =============================================================================
# create_vault / get_vault_status
# =============================================================================


class TestCreateVault:
    """Tests for the create_vault action."""

    def test_creates_hold(self, client_for, buyer, order):
        response = client_for(buyer).post(
            URL, {"action": "create_vault", "orderId": str(order.id)}, format="json"
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["status"] == EscrowStatus.HELD
        assert body["data"]["seller_amount"] == 9500
        assert body["data"]["platform_fee"] == 500
        assert EscrowTransaction.objects.filter(order=order).exists()

    def test_duplicate_hold(self, client_for, buyer, order, held_escrow):
        response = client_for(buyer).post(
            URL, {"action": "create_vault", "orderId": str(order.id)}, format="json"
        )

        assert response.status_code == 409
        assert response.json()["error_code"] == "ALREADY_EXISTS"

    def test_unknown_order(self, client_for, buyer):
        response = client_for(buyer).post(
            URL, {"action": "create_vault", "orderId": str(uuid.uuid4())}, format="json"
        )

        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    def test_outsider(self, client_for, outsider, order):
        response = client_for(outsider).post(
            URL, {"action": "create_vault", "orderId": str(order.id)}, format="json"
        )

        assert response.status_code == 403

    def test_invalid_order_id(self, client_for, buyer):
        response = client_for(buyer).post(
            URL, {"action": "create_vault", "orderId": "42"}, format="json"
        )

        assert response.status_code == 400
        assert "orderId" in response.json()["details"]


class TestGetVaultStatus:
    """Tests for the get_vault_status action."""

    def test_party_reads_status(self, client_for, seller, order, held_escrow):
        response = client_for(seller).post(
            URL, {"action": "get_vault_status", "orderId": str(order.id)}, format="json"
        )

        assert response.status_code == 200
        assert response.json()["data"]["id"] == str(held_escrow.id)

    def test_outsider_denied(self, client_for, outsider, order, held_escrow):
        response = client_for(outsider).post(
            URL, {"action": "get_vault_status", "orderId": str(order.id)}, format="json"
        )

        assert response.status_code == 403


# =============================================================================
# confirm_delivery
# =============================================================================


class TestConfirmDelivery:
    """Tests for the confirm_delivery action."""

    def test_buyer_releases_funds(self, client_for, buyer, held_escrow):
        response = client_for(buyer).post(URL, confirm_payload(held_escrow.id), format="json")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == EscrowStatus.COMPLETED
        assert data["releasedAmounts"] == {"seller": 9500, "driver": 0, "platform": 500}
        assert data["alreadyReleased"] is False
        assert data["autoReleased"] is False
        assert data["completedAt"] is not None

    def test_repeat_confirmation(self, client_for, buyer, held_escrow):
        client = client_for(buyer)
        client.post(URL, confirm_payload(held_escrow.id), format="json")

        response = client.post(URL, confirm_payload(held_escrow.id), format="json")

        assert response.status_code == 200
        assert response.json()["data"]["alreadyReleased"] is True
        assert response.json()["message"] == "Funds were already released"

    def test_dropped_connection_maps_to_503(self, client_for, buyer, held_escrow, mocker):
        client = client_for(buyer)
        mocker.patch(
            "vault.services.escrow_service.EscrowTransaction.objects.get",
            side_effect=OperationalError("connection refused"),
        )

        response = client.post(URL, confirm_payload(held_escrow.id), format="json")

        assert response.status_code == 503
        assert response.json()["success"] is False
        assert response.json()["error_code"] == "LEDGER_UNAVAILABLE"

    def test_escrow_id_alias(self, client_for, buyer, held_escrow):
        payload = confirm_payload(held_escrow.id)
        payload["escrowId"] = payload.pop("transactionId")

        response = client_for(buyer).post(URL, payload, format="json")

        assert response.status_code == 200

    def test_missing_transaction_id(self, client_for, buyer, held_escrow):
        payload = confirm_payload(held_escrow.id)
        del payload["transactionId"]

        response = client_for(buyer).post(URL, payload, format="json")

        assert response.status_code == 400
        assert "transactionId" in response.json()["details"]

    def test_client_must_confirm(self, client_for, buyer, held_escrow):
        response = client_for(buyer).post(
            URL, confirm_payload(held_escrow.id, clientConfirmed=False), format="json"
        )

        assert response.status_code == 400
        assert EscrowTransaction.objects.get(id=held_escrow.id).is_held

    def test_seller_cannot_confirm(self, client_for, seller, held_escrow):
        response = client_for(seller).post(URL, confirm_payload(held_escrow.id), format="json")

        assert response.status_code == 403
        assert response.json()["error_code"] == "UNAUTHORIZED"


# =============================================================================
# Withdrawals
# =============================================================================


class TestProcessWithdrawal:
    """Tests for the process_withdrawal action."""

    def payload(self, amount, method="mobile_money"):
        return {
            "action": "process_withdrawal",
            "confirmationData": {
                "amount": amount,
                "withdrawalMethod": method,
                "paymentDetails": {"phone": "+243810000000"},
            },
        }

    def test_submits_withdrawal(self, client_for, seller, seller_wallet):
        response = client_for(seller).post(URL, self.payload(5000), format="json")

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == WithdrawalStatus.PENDING
        assert data["fee"] == 100
        assert data["net_amount"] == 4900
        assert data["processingTime"] == "6-24h"

    def test_insufficient_funds(self, client_for, seller, seller_wallet):
        response = client_for(seller).post(URL, self.payload(20001), format="json")

        assert response.status_code == 422
        body = response.json()
        assert body["error_code"] == "INSUFFICIENT_FUNDS"
        assert body["details"]["available"] == 20000
        assert not WithdrawalRequest.objects.exists()

    def test_unknown_method(self, client_for, seller, seller_wallet):
        response = client_for(seller).post(URL, self.payload(100, method="cheque"), format="json")

        assert response.status_code == 400

    def test_non_positive_amount(self, client_for, seller, seller_wallet):
        response = client_for(seller).post(URL, self.payload(0), format="json")

        assert response.status_code == 400


class TestSettleWithdrawal:
    """Tests for the staff-only settle_withdrawal action."""

    def test_failed_payout_refunds_wallet(self, client_for, staff_user, seller, seller_wallet):
        submitted = client_for(seller).post(
            URL,
            {
                "action": "process_withdrawal",
                "confirmationData": {"amount": 5000, "withdrawalMethod": "bank_transfer"},
            },
            format="json",
        )
        withdrawal_id = submitted.json()["data"]["id"]

        response = client_for(staff_user).post(
            URL,
            {
                "action": "settle_withdrawal",
                "withdrawalId": withdrawal_id,
                "succeeded": False,
                "failureReason": "IBAN rejected",
            },
            format="json",
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == WithdrawalStatus.FAILED
        seller_wallet.refresh_from_db()
        assert seller_wallet.balance == 20000


# =============================================================================
# auto_release_timeout
# =============================================================================


class TestAutoReleaseTimeout:
    """Tests for the staff-only auto_release_timeout action."""

    def test_releases_expired_hold(self, client_for, staff_user, db):
        escrow = EscrowTransactionFactory(expired=True)

        response = client_for(staff_user).post(
            URL,
            {"action": "auto_release_timeout", "transactionId": str(escrow.id)},
            format="json",
        )

        assert response.status_code == 200
        assert response.json()["data"]["autoReleased"] is True

    def test_hold_not_due(self, client_for, staff_user, held_escrow):
        response = client_for(staff_user).post(
            URL,
            {"action": "auto_release_timeout", "transactionId": str(held_escrow.id)},
            format="json",
        )

        assert response.status_code == 409
        assert response.json()["error_code"] == "INVALID_STATE"
        assert EscrowTransaction.objects.get(id=held_escrow.id).is_held
