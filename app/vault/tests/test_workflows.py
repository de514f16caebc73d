"""
End-to-end settlement workflows through the action API.

Each test drives a full order lifecycle: hold, release, withdrawal, and
checks the wallet ledgers stay consistent at the end.
"""

from datetime import timedelta

import pytest
from django.urls import reverse
from freezegun import freeze_time

from vault.ledger import LedgerService, WalletAccount
from vault.models import EscrowNotification
from vault.state_machines import NotificationType
from vault.workers import audit_wallet_ledgers, sweep_expired_escrows

pytestmark = pytest.mark.e2e

URL = reverse("vault:actions")


class TestOrderLifecycle:
    """Hold, confirm and withdraw, as the mobile clients do."""

    def test_delivery_order_to_driver_withdrawal(
        self,
        client_for,
        buyer,
        seller,
        driver,
        delivery_order,
        mock_redis,
        django_capture_on_commit_callbacks,
    ):
        with django_capture_on_commit_callbacks(execute=True):
            created = client_for(buyer).post(
                URL,
                {"action": "create_vault", "orderId": str(delivery_order.id)},
                format="json",
            )
            escrow_id = created.json()["data"]["id"]

            confirmed = client_for(buyer).post(
                URL,
                {
                    "action": "confirm_delivery",
                    "transactionId": escrow_id,
                    "confirmationData": {
                        "confirmationCode": "K7P9Q2",
                        "clientConfirmed": True,
                        "comments": "Merci",
                    },
                },
                format="json",
            )

            withdrawn = client_for(driver).post(
                URL,
                {
                    "action": "process_withdrawal",
                    "confirmationData": {
                        "amount": 1500,
                        "withdrawalMethod": "mobile_money",
                        "paymentDetails": {"phone": "+243990000000"},
                    },
                },
                format="json",
            )

        assert created.status_code == 201
        assert confirmed.json()["data"]["releasedAmounts"] == {
            "seller": 8000,
            "driver": 1500,
            "platform": 500,
        }
        assert withdrawn.status_code == 201
        assert withdrawn.json()["data"]["net_amount"] == 1470

        assert LedgerService.find_user_wallet(seller).balance == 8000
        assert LedgerService.find_user_wallet(driver).balance == 0
        assert LedgerService.get_platform_wallet().balance == 500

        driver_types = set(
            EscrowNotification.objects.filter(user=driver).values_list(
                "notification_type", flat=True
            )
        )
        assert driver_types == {
            NotificationType.DELIVERY_PAYMENT,
            NotificationType.WITHDRAWAL_PENDING,
        }

        audit = audit_wallet_ledgers()
        assert audit["mismatched"] == []
        assert audit["checked"] == WalletAccount.objects.count()

    def test_unconfirmed_order_is_released_by_sweeper(
        self, client_for, buyer, seller, order, mock_redis
    ):
        created = client_for(buyer).post(
            URL, {"action": "create_vault", "orderId": str(order.id)}, format="json"
        )
        escrow_id = created.json()["data"]["id"]

        with freeze_time(timedelta(days=7, minutes=1)):
            sweep = sweep_expired_escrows()

        assert sweep["queued_count"] == 1

        status = client_for(seller).post(
            URL, {"action": "get_vault_status", "orderId": str(order.id)}, format="json"
        )
        data = status.json()["data"]
        assert data["id"] == escrow_id
        assert data["status"] == "completed"
        assert data["auto_released"] is True
        assert data["confirmation_code"].startswith("AUTO-TIMEOUT-")
        assert LedgerService.find_user_wallet(seller).balance == 9500

        # A late confirmation from the buyer is a harmless no-op
        late = client_for(buyer).post(
            URL,
            {
                "action": "confirm_delivery",
                "transactionId": escrow_id,
                "confirmationData": {"confirmationCode": "K7P9Q2", "clientConfirmed": True},
            },
            format="json",
        )
        assert late.status_code == 200
        assert late.json()["data"]["alreadyReleased"] is True
        assert LedgerService.find_user_wallet(seller).balance == 9500
