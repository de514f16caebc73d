"""
Escrow lifecycle: holds, confirmations and timeout releases.

EscrowService opens a hold for an order and releases it exactly once, either
when the buyer confirms delivery or when the timeout sweeper finds it expired.
Both triggers funnel into the same release path:

    1. CAS      UPDATE escrow SET status='completed' WHERE id=? AND status='held'
    2. Credits  seller (escrow_release), driver (delivery_earning),
                platform (platform_fee), each keyed escrow:<id>:release:<party>
    3. Order    marked completed
    4. Notify   after commit: buyer, seller, driver

Steps 1-3 share one database transaction. When the CAS matches no row, the
escrow was already released by a concurrent trigger and the call reports an
idempotent success with the stored amounts.

Usage:
    from vault.services import EscrowService

    escrow = EscrowService.create_hold(order.id)

    result = EscrowService.confirm_and_release(
        escrow.id,
        confirmation_code="A1B2C3",
        confirmed_by=buyer,
    )
    result.amounts.as_dict()   # {"seller": 8000, "driver": 1500, "platform": 500}
    result.already_released    # False the first time, True on repeats
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from core.services import BaseService
from marketplace.models import Order, OrderStatus
from vault.exceptions import (
    AlreadyExists,
    InvalidState,
    NotFound,
    Unauthorized,
    ValidationFailed,
    translate_database_errors,
)
from vault.ledger import EntryType, LedgerService, PostingParams
from vault.models import EscrowTransaction
from vault.notifier import VaultNotifier
from vault.splits import FundSplit, split
from vault.state_machines import EscrowStatus

if TYPE_CHECKING:
    from authentication.models import User

logger = logging.getLogger(__name__)

AUTO_RELEASE_CODE_PREFIX = "AUTO-TIMEOUT-"


@dataclass(frozen=True)
class ReleaseResult:
    """
    Outcome of a release attempt.

    Attributes:
        escrow: The escrow transaction as stored after the attempt
        already_released: True when an earlier trigger had released the funds
    """

    escrow: EscrowTransaction
    already_released: bool = False

    @property
    def amounts(self) -> FundSplit:
        """Amounts credited by the release (fixed when the hold was opened)."""
        return FundSplit(
            seller_amount=self.escrow.seller_amount,
            driver_amount=self.escrow.driver_amount,
            platform_fee=self.escrow.platform_fee,
        )


class EscrowService(BaseService):
    """
    Service for the escrow hold lifecycle.

    All methods are classmethods; no instance state is kept. Every method
    raises a vault.exceptions subclass on failure.
    """

    # ==========================================================================
    # Lookups
    # ==========================================================================

    @staticmethod
    def _check_access(user: User | None, record) -> None:
        if user is None or user.is_staff or record.is_party(user):
            return
        raise Unauthorized(
            "You are not a party to this order",
            details={"order_id": str(getattr(record, "order_id", record.pk))},
        )

    @classmethod
    def get_transaction(cls, transaction_id: uuid.UUID) -> EscrowTransaction:
        """
        Get an escrow transaction by ID.

        Raises:
            NotFound: If no escrow transaction has this ID
            LedgerUnavailable: On a transient database failure
        """
        with translate_database_errors("get_transaction"):
            try:
                return EscrowTransaction.objects.get(id=transaction_id)
            except EscrowTransaction.DoesNotExist:
                raise NotFound(
                    "Escrow transaction not found",
                    details={"transaction_id": str(transaction_id)},
                )

    @classmethod
    def get_status(
        cls,
        order_id: uuid.UUID,
        requested_by: User | None = None,
    ) -> EscrowTransaction:
        """
        Get the escrow transaction of an order.

        Args:
            order_id: Order the escrow belongs to
            requested_by: When given, must be staff or a party to the order

        Raises:
            NotFound: If the order has no escrow transaction
            Unauthorized: If requested_by is not allowed to see it
            LedgerUnavailable: On a transient database failure
        """
        with translate_database_errors("get_status"):
            try:
                escrow = EscrowTransaction.objects.get(order_id=order_id)
            except EscrowTransaction.DoesNotExist:
                raise NotFound(
                    "No escrow transaction for this order",
                    details={"order_id": str(order_id)},
                )
        cls._check_access(requested_by, escrow)
        return escrow

    # ==========================================================================
    # Hold
    # ==========================================================================

    @classmethod
    def create_hold(
        cls,
        order_id: uuid.UUID,
        requested_by: User | None = None,
    ) -> EscrowTransaction:
        """
        Secure an order's payment in a new escrow hold.

        The order is the idempotency key: a second call for the same order
        raises AlreadyExists instead of opening another hold.

        Args:
            order_id: Order to hold funds for
            requested_by: When given, must be staff or a party to the order

        Returns:
            The new EscrowTransaction in HELD status

        Raises:
            NotFound: If the order doesn't exist
            Unauthorized: If requested_by is not allowed to act on the order
            AlreadyExists: If the order already has an escrow transaction
            InvalidState: If the order is completed or cancelled
            ValidationFailed: If the order total is not positive
            LedgerUnavailable: On a transient database failure
        """
        with translate_database_errors("create_hold"):
            with cls.atomic():
                try:
                    order = Order.objects.select_for_update().get(id=order_id)
                except Order.DoesNotExist:
                    raise NotFound(
                        "Order not found",
                        details={"order_id": str(order_id)},
                    )

                cls._check_access(requested_by, order)

                if EscrowTransaction.objects.filter(order_id=order.id).exists():
                    raise AlreadyExists(
                        "Escrow already exists for this order",
                        details={"order_id": str(order.id)},
                    )

                if order.status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED):
                    raise InvalidState(
                        f"Cannot hold funds for a {order.status} order",
                        details={"order_id": str(order.id), "status": order.status},
                    )

                if order.total_amount <= 0:
                    raise ValidationFailed(
                        "Order total must be positive",
                        details={"order_id": str(order.id)},
                    )

                shares = split(order.total_amount, has_driver=order.driver_id is not None)
                now = timezone.now()

                try:
                    with transaction.atomic():
                        escrow = EscrowTransaction.objects.create(
                            order=order,
                            buyer_id=order.buyer_id,
                            seller_id=order.seller_id,
                            driver_id=order.driver_id,
                            total_amount=order.total_amount,
                            seller_amount=shares.seller_amount,
                            driver_amount=shares.driver_amount,
                            platform_fee=shares.platform_fee,
                            currency=order.currency,
                            timeout_date=now
                            + timedelta(days=settings.ESCROW_TIMEOUT_DAYS),
                        )
                except IntegrityError:
                    # Lost the race against a concurrent create for this order
                    raise AlreadyExists(
                        "Escrow already exists for this order",
                        details={"order_id": str(order.id)},
                    )

                VaultNotifier.vault_secured(escrow)

        logger.info(
            "Escrow hold created",
            extra={
                "escrow_id": str(escrow.id),
                "order_id": str(order.id),
                "total_amount": escrow.total_amount,
                "seller_amount": escrow.seller_amount,
                "driver_amount": escrow.driver_amount,
                "platform_fee": escrow.platform_fee,
                "timeout_date": escrow.timeout_date.isoformat(),
            },
        )
        return escrow

    # ==========================================================================
    # Release triggers
    # ==========================================================================

    @classmethod
    def confirm_and_release(
        cls,
        transaction_id: uuid.UUID,
        confirmation_code: str,
        confirmed_by: User,
        comments: str | None = None,
        client_confirmed: bool = True,
    ) -> ReleaseResult:
        """
        Release funds after the buyer confirms delivery.

        Args:
            transaction_id: Escrow transaction to release
            confirmation_code: Delivery confirmation code
            confirmed_by: The confirming user (must be the buyer)
            comments: Optional buyer comments
            client_confirmed: Explicit confirmation flag from the client

        Returns:
            ReleaseResult (already_released=True if funds were already paid out)

        Raises:
            ValidationFailed: If the client did not confirm or gave no code
            NotFound: If the escrow transaction doesn't exist
            Unauthorized: If confirmed_by is not the buyer
            InvalidState: If the escrow cannot be released
            LedgerUnavailable: On a transient database failure (safe to retry)
        """
        if not client_confirmed:
            raise ValidationFailed(
                "Delivery must be explicitly confirmed by the client",
                details={"transaction_id": str(transaction_id)},
            )
        if not confirmation_code:
            raise ValidationFailed(
                "Confirmation code is required",
                details={"transaction_id": str(transaction_id)},
            )

        escrow = cls.get_transaction(transaction_id)

        if escrow.buyer_id != confirmed_by.pk:
            logger.warning(
                "Release attempted by non-buyer",
                extra={"escrow_id": str(escrow.id), "user_id": confirmed_by.pk},
            )
            raise Unauthorized(
                "Only the buyer can confirm delivery",
                details={"transaction_id": str(escrow.id)},
            )

        if escrow.is_completed:
            logger.info(
                "Escrow already released, returning success (idempotent)",
                extra={"escrow_id": str(escrow.id)},
            )
            return ReleaseResult(escrow=escrow, already_released=True)

        return cls._release(
            escrow.id,
            confirmation_code=confirmation_code,
            confirmed_by_id=confirmed_by.pk,
            comments=comments or "",
            auto_released=False,
            now=timezone.now(),
        )

    @classmethod
    def auto_release(
        cls,
        transaction_id: uuid.UUID,
        now: datetime | None = None,
    ) -> ReleaseResult:
        """
        Release funds of an expired hold without buyer confirmation.

        Called by the timeout sweeper (or staff). No authorization check.

        Args:
            transaction_id: Escrow transaction to release
            now: Current time (defaults to timezone.now())

        Returns:
            ReleaseResult (already_released=True if funds were already paid out)

        Raises:
            NotFound: If the escrow transaction doesn't exist
            InvalidState: If the hold has not reached its timeout yet
            LedgerUnavailable: On a transient database failure (safe to retry)
        """
        now = now or timezone.now()
        escrow = cls.get_transaction(transaction_id)

        if escrow.is_completed:
            return ReleaseResult(escrow=escrow, already_released=True)

        if not escrow.is_expired(now):
            raise InvalidState(
                "Escrow has not reached its timeout yet",
                details={
                    "transaction_id": str(escrow.id),
                    "timeout_date": escrow.timeout_date.isoformat(),
                },
            )

        return cls._release(
            escrow.id,
            confirmation_code=f"{AUTO_RELEASE_CODE_PREFIX}{int(now.timestamp() * 1000)}",
            confirmed_by_id=None,
            comments="",
            auto_released=True,
            now=now,
        )

    @classmethod
    def record_release_failure(cls, transaction_id: uuid.UUID, error: str) -> int:
        """
        Record a failed automatic release on a still-held escrow.

        Status is left unchanged so the next sweep picks the row up again.

        Returns:
            Number of rows updated (0 if the escrow is gone or no longer held)
        """
        return EscrowTransaction.objects.filter(
            id=transaction_id,
            status=EscrowStatus.HELD,
        ).update(
            release_attempts=F("release_attempts") + 1,
            last_release_error=error[:2000],
            updated_at=timezone.now(),
        )

    # ==========================================================================
    # Release path
    # ==========================================================================

    @classmethod
    def _release(
        cls,
        escrow_id: uuid.UUID,
        *,
        confirmation_code: str,
        confirmed_by_id: int | None,
        comments: str,
        auto_released: bool,
        now: datetime,
    ) -> ReleaseResult:
        """
        Move a held escrow to completed and pay every party, exactly once.

        The status CAS is the only guard: whichever caller's UPDATE matches
        the held row does the credits, every other caller sees zero rows.
        """
        with translate_database_errors("release"):
            with cls.atomic():
                won = EscrowTransaction.objects.filter(
                    id=escrow_id,
                    status=EscrowStatus.HELD,
                ).update(
                    status=EscrowStatus.COMPLETED,
                    completed_at=now,
                    confirmation_code=confirmation_code,
                    confirmed_by_id=confirmed_by_id,
                    client_comments=comments,
                    auto_released=auto_released,
                    updated_at=now,
                )

                escrow = EscrowTransaction.objects.get(id=escrow_id)

                if won == 0:
                    if escrow.is_completed:
                        logger.info(
                            "Escrow released by a concurrent trigger",
                            extra={"escrow_id": str(escrow_id)},
                        )
                        return ReleaseResult(escrow=escrow, already_released=True)
                    raise InvalidState(
                        f"Cannot release escrow in status {escrow.status}",
                        details={"transaction_id": str(escrow_id), "status": escrow.status},
                    )

                cls._credit_parties(escrow)

                Order.objects.filter(id=escrow.order_id).update(
                    status=OrderStatus.COMPLETED,
                    updated_at=now,
                )

                VaultNotifier.funds_released(escrow)

        logger.info(
            "Escrow released",
            extra={
                "escrow_id": str(escrow.id),
                "order_id": str(escrow.order_id),
                "auto_released": auto_released,
                "seller_amount": escrow.seller_amount,
                "driver_amount": escrow.driver_amount,
                "platform_fee": escrow.platform_fee,
            },
        )
        return ReleaseResult(escrow=escrow, already_released=False)

    @staticmethod
    def _credit_parties(escrow: EscrowTransaction) -> None:
        """
        Credit seller, driver and platform wallets for a won release.

        Zero shares are skipped, so an order without a driver produces no
        driver entry. Wallets are credited in wallet id order so concurrent
        releases lock rows in the same sequence.
        """
        postings: list[tuple[uuid.UUID, int, str, str]] = []

        if escrow.seller_amount > 0:
            wallet = LedgerService.get_or_create_wallet(escrow.seller, escrow.currency)
            postings.append(
                (wallet.id, escrow.seller_amount, EntryType.ESCROW_RELEASE, "seller")
            )

        if escrow.driver_id and escrow.driver_amount > 0:
            wallet = LedgerService.get_or_create_wallet(escrow.driver, escrow.currency)
            postings.append(
                (wallet.id, escrow.driver_amount, EntryType.DELIVERY_EARNING, "driver")
            )

        if escrow.platform_fee > 0:
            wallet = LedgerService.get_platform_wallet(escrow.currency)
            postings.append(
                (wallet.id, escrow.platform_fee, EntryType.PLATFORM_FEE, "platform")
            )

        postings.sort(key=lambda posting: posting[0])

        for wallet_id, amount, entry_type, party in postings:
            LedgerService.credit(
                PostingParams(
                    wallet_id=wallet_id,
                    amount=amount,
                    entry_type=entry_type,
                    idempotency_key=f"escrow:{escrow.id}:release:{party}",
                    reference_type="escrow_transaction",
                    reference_id=escrow.id,
                    description=f"Escrow release ({party}) for order {escrow.order_id}",
                    metadata={"order_id": str(escrow.order_id)},
                    created_by="escrow_service",
                )
            )
