"""
WithdrawalRequest model for money leaving a user's wallet.

The wallet is debited when the request is created (pending). The external
payout channel later reports the outcome: completed keeps the debit, failed
credits the full amount back to the wallet.

Usage:
    from vault.models import WithdrawalRequest

    # Settlement (inside select_for_update)
    withdrawal.complete()
    withdrawal.save()

    withdrawal.fail(reason="Mobile money account closed")
    withdrawal.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from vault.state_machines import WithdrawalMethod, WithdrawalStatus


class WithdrawalRequest(UUIDPrimaryKeyMixin, BaseModel):
    """
    A request to pay part of a wallet balance out to an external channel.

    State Flow:
        PENDING -> COMPLETED
        PENDING -> FAILED

    Fields:
        user: Wallet owner requesting the withdrawal
        wallet: Wallet that was debited
        amount: Amount debited from the wallet
        fee: Channel fee kept by the platform
        net_amount: Amount the user receives (amount - fee)
        currency: ISO 4217 currency code
        method: Payout channel
        payout_details: Channel-specific destination (phone number, IBAN, ...)
        status: Current FSM state
        processed_at: When the payout outcome was recorded
        failure_reason: Reason reported for a failed payout
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="withdrawal_requests",
        help_text="User requesting the withdrawal",
    )

    wallet = models.ForeignKey(
        "vault.WalletAccount",
        on_delete=models.PROTECT,
        related_name="withdrawal_requests",
        help_text="Wallet the amount was debited from",
    )

    amount = models.PositiveBigIntegerField(
        help_text="Amount debited from the wallet",
    )

    fee = models.PositiveBigIntegerField(
        default=0,
        help_text="Channel fee in the smallest currency unit",
    )

    net_amount = models.PositiveBigIntegerField(
        help_text="Amount paid out to the user (amount - fee)",
    )

    currency = models.CharField(
        max_length=3,
        default="CDF",
        help_text="ISO 4217 currency code",
    )

    method = models.CharField(
        max_length=20,
        choices=WithdrawalMethod.choices,
        help_text="Payout channel",
    )

    payout_details = models.JSONField(
        default=dict,
        blank=True,
        help_text="Channel-specific destination details",
    )

    status = FSMField(
        default=WithdrawalStatus.PENDING,
        choices=WithdrawalStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the withdrawal (managed by FSM)",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payout outcome was recorded",
    )

    failure_reason = models.TextField(
        blank=True,
        default="",
        help_text="Reason reported for a failed payout",
    )

    class Meta:
        db_table = "vault_withdrawal_request"
        ordering = ["-created_at"]
        verbose_name = "Withdrawal request"
        verbose_name_plural = "Withdrawal requests"
        indexes = [
            models.Index(fields=["user", "status"], name="vault_withdrawal_user_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="withdrawal_amount_positive",
            ),
            models.CheckConstraint(
                condition=Q(net_amount=F("amount") - F("fee")),
                name="withdrawal_net_is_amount_minus_fee",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with ID, status, and amount."""
        return f"WithdrawalRequest({self.id}, {self.status}, {self.amount:,} {self.currency})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=WithdrawalStatus.PENDING,
        target=WithdrawalStatus.COMPLETED,
    )
    def complete(self):
        """
        Mark the payout as delivered.

        Transition: PENDING -> COMPLETED
        """
        self.processed_at = timezone.now()

    @transition(
        field=status,
        source=WithdrawalStatus.PENDING,
        target=WithdrawalStatus.FAILED,
    )
    def fail(self, reason: str | None = None):
        """
        Mark the payout as failed.

        Transition: PENDING -> FAILED

        The caller credits the amount back to the wallet in the same
        transaction.

        Args:
            reason: Optional failure reason reported by the channel
        """
        self.processed_at = timezone.now()
        if reason:
            self.failure_reason = reason

    @property
    def is_pending(self) -> bool:
        """Check if the payout outcome is still unknown."""
        return self.status == WithdrawalStatus.PENDING
