"""
Settlement notifications.

VaultNotifier turns settlement events into EscrowNotification rows. Every
row is written from a transaction.on_commit callback, so work that rolls
back never notifies anyone, and a failure to write a notification is logged
without touching the settlement that caused it.

Usage:
    from vault.notifier import VaultNotifier

    with transaction.atomic():
        escrow = EscrowTransaction.objects.create(...)
        VaultNotifier.vault_secured(escrow)   # written after COMMIT
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db import transaction

from vault.ledger.types import Money
from vault.models import EscrowNotification
from vault.state_machines import NotificationType

if TYPE_CHECKING:
    import uuid

    from vault.models import EscrowTransaction, WithdrawalRequest

logger = logging.getLogger(__name__)


# Title and message templates per notification type.
# Placeholders are filled with str.format(); amounts are pre-formatted Money.
TEMPLATES: dict[str, tuple[str, str]] = {
    NotificationType.VAULT_SECURED: (
        "Payment secured",
        "{amount} is held in the secure vault for order {order_id}.",
    ),
    NotificationType.FUNDS_RELEASED: (
        "Funds released",
        "Delivery confirmed. {amount} was released for order {order_id}.",
    ),
    NotificationType.PAYMENT_RECEIVED: (
        "Payment received",
        "{amount} was credited to your wallet for order {order_id}.",
    ),
    NotificationType.DELIVERY_PAYMENT: (
        "Delivery payment",
        "{amount} was credited to your wallet for delivering order {order_id}.",
    ),
    NotificationType.WITHDRAWAL_PENDING: (
        "Withdrawal in progress",
        "Your withdrawal of {amount} ({net_amount} after fees) is being processed.",
    ),
    NotificationType.WITHDRAWAL_COMPLETED: (
        "Withdrawal completed",
        "{net_amount} was sent via {method}.",
    ),
    NotificationType.WITHDRAWAL_FAILED: (
        "Withdrawal failed",
        "Your withdrawal of {amount} failed and the amount was returned to your wallet.",
    ),
}


class VaultNotifier:
    """
    Writes settlement notifications after the surrounding transaction commits.

    All methods are static. Outside a transaction the row is written
    immediately.
    """

    @staticmethod
    def notify(
        user_id: int,
        notification_type: str,
        escrow_id: uuid.UUID | None = None,
        withdrawal_id: uuid.UUID | None = None,
        **context,
    ) -> None:
        """
        Schedule one notification for after commit.

        Args:
            user_id: Recipient user ID
            notification_type: NotificationType value
            escrow_id: Related escrow transaction, if any
            withdrawal_id: Related withdrawal request, if any
            **context: Values for the type's title/message templates
        """
        title_template, message_template = TEMPLATES[notification_type]
        title = title_template.format(**context)
        message = message_template.format(**context)

        def _write() -> None:
            try:
                EscrowNotification.objects.create(
                    user_id=user_id,
                    escrow_transaction_id=escrow_id,
                    withdrawal_request_id=withdrawal_id,
                    notification_type=notification_type,
                    title=title,
                    message=message,
                )
            except Exception:
                logger.exception(
                    "Failed to write settlement notification",
                    extra={
                        "user_id": user_id,
                        "notification_type": str(notification_type),
                        "escrow_id": str(escrow_id) if escrow_id else None,
                        "withdrawal_id": str(withdrawal_id) if withdrawal_id else None,
                    },
                )

        transaction.on_commit(_write)

    # ==========================================================================
    # Escrow events
    # ==========================================================================

    @staticmethod
    def vault_secured(escrow: EscrowTransaction) -> None:
        """Tell buyer and seller that the payment is held."""
        amount = Money(escrow.total_amount, escrow.currency)
        for user_id in (escrow.buyer_id, escrow.seller_id):
            VaultNotifier.notify(
                user_id,
                NotificationType.VAULT_SECURED,
                escrow_id=escrow.id,
                amount=amount,
                order_id=escrow.order_id,
            )

    @staticmethod
    def funds_released(escrow: EscrowTransaction) -> None:
        """Tell every party about a release: buyer, seller and driver (if any)."""
        currency = escrow.currency
        VaultNotifier.notify(
            escrow.buyer_id,
            NotificationType.FUNDS_RELEASED,
            escrow_id=escrow.id,
            amount=Money(escrow.total_amount, currency),
            order_id=escrow.order_id,
        )
        VaultNotifier.notify(
            escrow.seller_id,
            NotificationType.PAYMENT_RECEIVED,
            escrow_id=escrow.id,
            amount=Money(escrow.seller_amount, currency),
            order_id=escrow.order_id,
        )
        if escrow.driver_id and escrow.driver_amount > 0:
            VaultNotifier.notify(
                escrow.driver_id,
                NotificationType.DELIVERY_PAYMENT,
                escrow_id=escrow.id,
                amount=Money(escrow.driver_amount, currency),
                order_id=escrow.order_id,
            )

    # ==========================================================================
    # Withdrawal events
    # ==========================================================================

    @staticmethod
    def withdrawal_event(withdrawal: WithdrawalRequest, notification_type: str) -> None:
        """Tell the wallet owner about a withdrawal state change."""
        VaultNotifier.notify(
            withdrawal.user_id,
            notification_type,
            withdrawal_id=withdrawal.id,
            amount=Money(withdrawal.amount, withdrawal.currency),
            net_amount=Money(withdrawal.net_amount, withdrawal.currency),
            method=withdrawal.get_method_display(),
        )
