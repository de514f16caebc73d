"""
Model mixins providing reusable functionality for Django models.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin

    class WithdrawalRequest(UUIDPrimaryKeyMixin, BaseModel):
        amount = models.PositiveBigIntegerField()

Note:
    - Always list mixins before BaseModel in inheritance
    - Mixins are abstract and don't create database tables
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Escrow, wallet and withdrawal identifiers travel through the action API
    and task payloads, so they are non-guessable and never reveal volume.

    Fields:
        id: UUIDField as primary key (auto-generated)

    Usage:
        escrow = EscrowTransaction.objects.create(...)
        print(escrow.id)  # UUID like: 550e8400-e29b-41d4-a716-446655440000
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier (UUID)",
    )

    class Meta:
        abstract = True
