"""
EscrowTransaction model for funds held against a marketplace order.

An EscrowTransaction is opened when the buyer's payment is secured for an
order. The split between seller, driver and platform is fixed at that moment
and paid out exactly once, either on the buyer's delivery confirmation or by
the timeout sweeper once timeout_date has passed.

Usage:
    from vault.models import EscrowTransaction

    escrow = EscrowTransaction.objects.get(order_id=order_id)
    escrow.is_held
    escrow.is_expired()
"""

from __future__ import annotations

from datetime import datetime

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from django_fsm import FSMField

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from vault.state_machines import EscrowStatus


class EscrowTransaction(UUIDPrimaryKeyMixin, BaseModel):
    """
    Funds held for one order until delivery is confirmed or the hold times out.

    State Flow:
        HELD -> COMPLETED

    The status field is protected: the only way it changes is the
    compare-and-swap UPDATE in EscrowService (WHERE status = 'held'), which
    lets exactly one of any number of concurrent release attempts win.

    Fields:
        order: The order these funds belong to (one escrow per order)
        buyer / seller / driver: Parties copied from the order at hold time
        total_amount: Amount held in the smallest currency unit
        seller_amount / driver_amount / platform_fee: Fixed split of the total
        currency: ISO 4217 currency code
        status: HELD or COMPLETED
        timeout_date: When the sweeper may release without confirmation
        completed_at: When funds were released
        auto_released: Whether the sweeper (not the buyer) released the funds
        confirmation_code: Code supplied on release (AUTO-TIMEOUT-<ms> for sweeps)
        confirmed_by: User who confirmed delivery (empty for system releases)
        client_comments: Buyer comments supplied with the confirmation
        release_attempts: Failed automatic release attempts
        last_release_error: Message of the most recent failed attempt

    Constraints:
        - seller_amount + driver_amount + platform_fee == total_amount
        - A completed escrow has completed_at set
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    order = models.OneToOneField(
        "marketplace.Order",
        on_delete=models.PROTECT,
        related_name="escrow",
        help_text="Order these funds are held for",
    )

    buyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="escrows_as_buyer",
        help_text="User whose payment is held",
    )

    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="escrows_as_seller",
        help_text="User receiving the seller share",
    )

    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="escrows_as_driver",
        help_text="Delivery agent receiving the driver share, if any",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    total_amount = models.PositiveBigIntegerField(
        help_text="Amount held in the smallest currency unit",
    )

    seller_amount = models.PositiveBigIntegerField(
        help_text="Share credited to the seller on release",
    )

    driver_amount = models.PositiveBigIntegerField(
        default=0,
        help_text="Share credited to the driver on release",
    )

    platform_fee = models.PositiveBigIntegerField(
        help_text="Share credited to the platform on release",
    )

    currency = models.CharField(
        max_length=3,
        default="CDF",
        help_text="ISO 4217 currency code",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=EscrowStatus.HELD,
        choices=EscrowStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the escrow (changed only by the release CAS)",
    )

    # ==========================================================================
    # Timing & Confirmation
    # ==========================================================================

    timeout_date = models.DateTimeField(
        db_index=True,
        help_text="When the hold may be released automatically",
    )

    completed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When funds were released",
    )

    auto_released = models.BooleanField(
        default=False,
        help_text="Whether the funds were released by the timeout sweeper",
    )

    confirmation_code = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Code supplied with the release",
    )

    confirmed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="confirmed_escrows",
        help_text="User who confirmed delivery (empty for system releases)",
    )

    client_comments = models.TextField(
        blank=True,
        default="",
        help_text="Buyer comments supplied with the confirmation",
    )

    # ==========================================================================
    # Release Failures
    # ==========================================================================

    release_attempts = models.PositiveIntegerField(
        default=0,
        help_text="Number of failed automatic release attempts",
    )

    last_release_error = models.TextField(
        blank=True,
        default="",
        help_text="Error from the most recent failed automatic release",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        db_table = "vault_escrow_transaction"
        ordering = ["-created_at"]
        verbose_name = "Escrow transaction"
        verbose_name_plural = "Escrow transactions"
        indexes = [
            models.Index(
                fields=["status", "timeout_date"],
                name="vault_escrow_status_due_idx",
            ),
            models.Index(
                fields=["buyer", "status"],
                name="vault_escrow_buyer_status_idx",
            ),
            models.Index(
                fields=["seller", "status"],
                name="vault_escrow_seller_status_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(
                    total_amount=F("seller_amount")
                    + F("driver_amount")
                    + F("platform_fee")
                ),
                name="escrow_split_sums_to_total",
            ),
            models.CheckConstraint(
                condition=~Q(status=EscrowStatus.COMPLETED)
                | Q(completed_at__isnull=False),
                name="escrow_completed_has_timestamp",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with ID, status, and amount."""
        return (
            f"EscrowTransaction({self.id}, {self.status}, "
            f"{self.total_amount:,} {self.currency})"
        )

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_held(self) -> bool:
        """Check if funds are still held."""
        return self.status == EscrowStatus.HELD

    @property
    def is_completed(self) -> bool:
        """Check if funds were released."""
        return self.status == EscrowStatus.COMPLETED

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check if the hold has reached its timeout."""
        return self.timeout_date <= (now or timezone.now())

    def is_party(self, user) -> bool:
        """Return True when the user is the buyer, seller or driver."""
        return user.pk in {self.buyer_id, self.seller_id, self.driver_id}
