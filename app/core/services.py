"""
Base service layer patterns for business logic encapsulation.

Service Layer Philosophy:
    Services encapsulate business logic separate from views and models.
    Views handle HTTP concerns, models handle data, services handle logic.
    Services raise core.exceptions subclasses for business rule violations;
    views translate them into responses.

Usage:
    from core.services import BaseService

    class EscrowService(BaseService):
        @classmethod
        def create_hold(cls, order_id):
            with cls.atomic():
                escrow = EscrowTransaction.objects.create(...)

            cls.get_logger().info(f"Created hold {escrow.id}")
            return escrow

Related:
    - core.exceptions: Error hierarchy raised by services
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management

    Design Notes:
        - Use @staticmethod or @classmethod (no instance state)
        - Services should be stateless
        - Raise exceptions for failures; never return partial results
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.

        Example:
            class WithdrawalService(BaseService):
                @classmethod
                def request_withdrawal(cls, user, amount):
                    cls.get_logger().info(f"Withdrawal requested: {amount}")
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        All database operations within this context manager are
        wrapped in a transaction. If any operation fails, all
        changes are rolled back.

        Example:
            with cls.atomic():
                escrow.save()
                LedgerService.credit(...)
                # If the credit fails, the escrow change is rolled back too
        """
        with transaction.atomic():
            yield
