"""
State enums for vault models.

These are Django TextChoices for database storage and admin integration,
used with django-fsm where a model has transitions.

State Machines Overview:

EscrowTransaction States:
    held → completed

    The single transition is taken by a compare-and-swap UPDATE in
    EscrowService, never by assigning the field in Python.

WithdrawalRequest States:
    pending → completed
    pending → failed (wallet is credited back)
"""

from django.db import models


class EscrowStatus(models.TextChoices):
    """
    States for the EscrowTransaction lifecycle.

    Terminal states: COMPLETED
    """

    HELD = "held", "Held"
    COMPLETED = "completed", "Completed"


class WithdrawalStatus(models.TextChoices):
    """
    States for the WithdrawalRequest lifecycle.

    Terminal states: COMPLETED, FAILED
    """

    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class WithdrawalMethod(models.TextChoices):
    """
    Payout channels a wallet balance can be withdrawn to.

    Values:
        KWENDA_PAY: In-app wallet transfer (fastest, no fee by default)
        MOBILE_MONEY: Orange Money, M-Pesa, Airtel Money
        BANK_TRANSFER: Bank account transfer
    """

    KWENDA_PAY = "kwenda_pay", "KwendaPay"
    MOBILE_MONEY = "mobile_money", "Mobile Money"
    BANK_TRANSFER = "bank_transfer", "Bank Transfer"


class NotificationType(models.TextChoices):
    """Settlement events delivered to the notification channel."""

    VAULT_SECURED = "vault_secured", "Vault Secured"
    FUNDS_RELEASED = "funds_released", "Funds Released"
    PAYMENT_RECEIVED = "payment_received", "Payment Received"
    DELIVERY_PAYMENT = "delivery_payment", "Delivery Payment"
    WITHDRAWAL_PENDING = "withdrawal_pending", "Withdrawal Pending"
    WITHDRAWAL_COMPLETED = "withdrawal_completed", "Withdrawal Completed"
    WITHDRAWAL_FAILED = "withdrawal_failed", "Withdrawal Failed"
