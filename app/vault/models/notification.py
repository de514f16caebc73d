"""
EscrowNotification model: the outbox read by the notification channel.

Rows are written by VaultNotifier after the settlement transaction commits.
Delivery (push, SMS, in-app feed) is done by whatever reads this table.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from vault.state_machines import NotificationType


class EscrowNotification(UUIDPrimaryKeyMixin, BaseModel):
    """
    A settlement event addressed to one user.

    Fields:
        user: Recipient
        escrow_transaction: Related escrow, for hold and release events
        withdrawal_request: Related withdrawal, for withdrawal events
        notification_type: Event category
        title: Short headline
        message: Body text with formatted amounts
        is_read: Whether the recipient has seen it
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="escrow_notifications",
        help_text="Recipient of this notification",
    )
    escrow_transaction = models.ForeignKey(
        "vault.EscrowTransaction",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="notifications",
        help_text="Escrow this notification is about",
    )
    withdrawal_request = models.ForeignKey(
        "vault.WithdrawalRequest",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="notifications",
        help_text="Withdrawal this notification is about",
    )
    notification_type = models.CharField(
        max_length=30,
        choices=NotificationType.choices,
        db_index=True,
        help_text="Settlement event category",
    )
    title = models.CharField(max_length=255)
    message = models.TextField()
    is_read = models.BooleanField(default=False, db_index=True)

    class Meta:
        db_table = "vault_escrow_notification"
        ordering = ["-created_at"]
        verbose_name = "Escrow notification"
        verbose_name_plural = "Escrow notifications"
        indexes = [
            models.Index(fields=["user", "is_read"], name="vault_notif_user_read_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.get_notification_type_display()} -> {self.user_id}"
