"""
Marketplace order model.

Order is the record the order workflow creates before asking the vault to
secure the buyer's payment. The settlement core only ever:
- reads an order to open an escrow hold (parties and total)
- flips its status to completed in the same transaction as the release

Usage:
    from marketplace.models import Order

    order = Order.objects.create(
        buyer=buyer,
        seller=seller,
        driver=driver,           # optional delivery assignment
        total_amount=10000,
    )
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class OrderStatus(models.TextChoices):
    """
    Lifecycle of a marketplace order as seen by the settlement core.

    Values:
        PENDING: Created, payment not yet secured
        CONFIRMED: Seller accepted the order
        COMPLETED: Funds released to seller (and driver)
        CANCELLED: Cancelled before settlement
    """

    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class Order(UUIDPrimaryKeyMixin, BaseModel):
    """
    A marketplace order between a buyer and a seller.

    Fields:
        id: UUID primary key
        buyer: User paying for the order
        seller: User receiving the seller share on release
        driver: Delivery agent assigned to the order, if any
        total_amount: Order total in the smallest currency unit
        currency: ISO 4217 currency code
        status: Order lifecycle status
        description: Free-form summary shown in notifications
    """

    buyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders_as_buyer",
        help_text="User paying for the order",
    )
    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders_as_seller",
        help_text="User selling the goods or service",
    )
    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="orders_as_driver",
        help_text="Delivery agent assigned to this order, if any",
    )
    total_amount = models.PositiveBigIntegerField(
        help_text="Order total in the smallest currency unit",
    )
    currency = models.CharField(
        max_length=3,
        default="CDF",
        help_text="ISO 4217 currency code",
    )
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
        db_index=True,
        help_text="Order lifecycle status",
    )
    description = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Short summary of what was ordered",
    )

    class Meta:
        db_table = "marketplace_order"
        ordering = ["-created_at"]
        verbose_name = "Order"
        verbose_name_plural = "Orders"

    def __str__(self) -> str:
        """Return string representation with ID, status, and amount."""
        return f"Order({self.id}, {self.status}, {self.total_amount} {self.currency})"

    def is_party(self, user) -> bool:
        """Return True when the user is the buyer, seller or driver of this order."""
        return user.pk in {self.buyer_id, self.seller_id, self.driver_id}
