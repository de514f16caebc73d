"""
Wallet withdrawals.

A withdrawal debits the wallet immediately, guarded by the balance itself
(UPDATE ... SET balance = balance - x WHERE balance >= x), and waits in
PENDING for the payout channel to report back. A completed payout moves the
fee to the platform wallet; a failed payout credits the full amount back
with a compensating entry.

Usage:
    from vault.services import WithdrawalService

    withdrawal = WithdrawalService.request_withdrawal(
        user=seller,
        amount=5000,
        method=WithdrawalMethod.MOBILE_MONEY,
        payout_details={"phone": "+243810000000", "provider": "orange"},
    )
    withdrawal.fee          # 100
    withdrawal.net_amount   # 4900

    # Later, from the payout channel
    WithdrawalService.settle_withdrawal(withdrawal.id, succeeded=False,
                                        failure_reason="Account closed")
"""

from __future__ import annotations

import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

from django.conf import settings

from core.services import BaseService
from vault.exceptions import (
    InsufficientFunds,
    InvalidState,
    NotFound,
    ValidationFailed,
    translate_database_errors,
)
from vault.ledger import EntryType, LedgerService, PostingParams
from vault.models import WithdrawalRequest
from vault.notifier import VaultNotifier
from vault.state_machines import NotificationType, WithdrawalMethod, WithdrawalStatus

if TYPE_CHECKING:
    from authentication.models import User


# Processing time hints shown to the user, per payout channel
PROCESSING_TIMES = {
    WithdrawalMethod.KWENDA_PAY: "2-6h",
}
DEFAULT_PROCESSING_TIME = "6-24h"


def processing_time(method: str) -> str:
    """Return the expected payout delay for a withdrawal method."""
    return PROCESSING_TIMES.get(method, DEFAULT_PROCESSING_TIME)


def calculate_fee(amount: int, method: str) -> int:
    """
    Calculate the channel fee for a withdrawal.

    The percentage comes from settings.WITHDRAWAL_FEE_PERCENT[method],
    rounded half up to the smallest currency unit and never above the amount.

    Example:
        calculate_fee(5000, "mobile_money")  # 100 with the default 2%
        calculate_fee(25, "mobile_money")    # 1 (0.5 rounds up)
    """
    percent = Decimal(str(settings.WITHDRAWAL_FEE_PERCENT.get(method, 0)))
    fee = (Decimal(amount) * percent / 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return min(int(fee), amount)


class WithdrawalService(BaseService):
    """
    Service for wallet withdrawals.

    All methods are classmethods and raise vault.exceptions subclasses.
    """

    @classmethod
    def request_withdrawal(
        cls,
        user: User,
        amount: int,
        method: str,
        payout_details: dict[str, Any] | None = None,
        currency: str | None = None,
    ) -> WithdrawalRequest:
        """
        Debit a wallet and open a pending withdrawal request.

        Args:
            user: Wallet owner
            amount: Amount to withdraw in the smallest currency unit
            method: WithdrawalMethod value
            payout_details: Channel-specific destination details
            currency: Wallet currency (defaults to settings.VAULT_DEFAULT_CURRENCY)

        Returns:
            The WithdrawalRequest in PENDING status

        Raises:
            ValidationFailed: If amount is not positive or method is unknown
            InsufficientFunds: If the user has no wallet or the balance is too low
                (the balance is unchanged)
            LedgerUnavailable: On a transient database failure
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationFailed(
                "Withdrawal amount must be a positive integer",
                details={"amount": amount},
            )
        if method not in WithdrawalMethod.values:
            raise ValidationFailed(
                f"Unknown withdrawal method: {method}",
                details={"method": method, "allowed": list(WithdrawalMethod.values)},
            )

        currency = currency or settings.VAULT_DEFAULT_CURRENCY
        fee = calculate_fee(amount, method)

        with translate_database_errors("request_withdrawal"):
            wallet = LedgerService.find_user_wallet(user, currency)
            if wallet is None:
                raise InsufficientFunds(wallet_id=None, required=amount, available=0)

            with cls.atomic():
                withdrawal = WithdrawalRequest.objects.create(
                    user=user,
                    wallet=wallet,
                    amount=amount,
                    fee=fee,
                    net_amount=amount - fee,
                    currency=currency,
                    method=method,
                    payout_details=payout_details or {},
                )
                # Rolls back the request above when the guard fails
                LedgerService.debit_if_sufficient(
                    PostingParams(
                        wallet_id=wallet.id,
                        amount=amount,
                        entry_type=EntryType.WITHDRAWAL_PENDING,
                        idempotency_key=f"withdrawal:{withdrawal.id}:debit",
                        reference_type="withdrawal_request",
                        reference_id=withdrawal.id,
                        description=f"Withdrawal via {method}",
                        metadata={"fee": fee, "net_amount": amount - fee},
                        created_by="withdrawal_service",
                    )
                )
                VaultNotifier.withdrawal_event(
                    withdrawal, NotificationType.WITHDRAWAL_PENDING
                )

        cls.get_logger().info(
            "Withdrawal requested",
            extra={
                "withdrawal_id": str(withdrawal.id),
                "user_id": user.pk,
                "amount": amount,
                "fee": fee,
                "method": method,
            },
        )
        return withdrawal

    @classmethod
    def settle_withdrawal(
        cls,
        withdrawal_id: uuid.UUID,
        succeeded: bool,
        failure_reason: str | None = None,
    ) -> WithdrawalRequest:
        """
        Record the payout channel's outcome for a pending withdrawal.

        Completed keeps the debit and credits the fee to the platform wallet.
        Failed credits the full amount back to the wallet with a
        withdrawal_reversal entry.

        Args:
            withdrawal_id: Withdrawal request to settle
            succeeded: Whether the payout reached the user
            failure_reason: Reason reported by the channel for a failure

        Returns:
            The settled WithdrawalRequest (unchanged if already in that state)

        Raises:
            NotFound: If the withdrawal request doesn't exist
            InvalidState: If it was already settled with the other outcome
            LedgerUnavailable: On a transient database failure
        """
        target = WithdrawalStatus.COMPLETED if succeeded else WithdrawalStatus.FAILED

        with translate_database_errors("settle_withdrawal"):
            with cls.atomic():
                try:
                    withdrawal = WithdrawalRequest.objects.select_for_update().get(
                        id=withdrawal_id
                    )
                except WithdrawalRequest.DoesNotExist:
                    raise NotFound(
                        "Withdrawal request not found",
                        details={"withdrawal_id": str(withdrawal_id)},
                    )

                if withdrawal.status == target:
                    cls.get_logger().info(
                        "Withdrawal already settled, returning (idempotent)",
                        extra={"withdrawal_id": str(withdrawal.id), "status": target},
                    )
                    return withdrawal

                if not withdrawal.is_pending:
                    raise InvalidState(
                        f"Withdrawal is already {withdrawal.status}",
                        details={
                            "withdrawal_id": str(withdrawal.id),
                            "status": withdrawal.status,
                        },
                    )

                if succeeded:
                    withdrawal.complete()
                    withdrawal.save()
                    if withdrawal.fee > 0:
                        platform_wallet = LedgerService.get_platform_wallet(
                            withdrawal.currency
                        )
                        LedgerService.credit(
                            PostingParams(
                                wallet_id=platform_wallet.id,
                                amount=withdrawal.fee,
                                entry_type=EntryType.PLATFORM_FEE,
                                idempotency_key=f"withdrawal:{withdrawal.id}:fee",
                                reference_type="withdrawal_request",
                                reference_id=withdrawal.id,
                                description=f"Withdrawal fee ({withdrawal.method})",
                                metadata={"user_id": withdrawal.user_id},
                                created_by="withdrawal_service",
                            )
                        )
                    VaultNotifier.withdrawal_event(
                        withdrawal, NotificationType.WITHDRAWAL_COMPLETED
                    )
                else:
                    withdrawal.fail(reason=failure_reason)
                    withdrawal.save()
                    LedgerService.credit(
                        PostingParams(
                            wallet_id=withdrawal.wallet_id,
                            amount=withdrawal.amount,
                            entry_type=EntryType.WITHDRAWAL_REVERSAL,
                            idempotency_key=f"withdrawal:{withdrawal.id}:reversal",
                            reference_type="withdrawal_request",
                            reference_id=withdrawal.id,
                            description="Failed withdrawal returned to wallet",
                            metadata={"failure_reason": failure_reason or ""},
                            created_by="withdrawal_service",
                        )
                    )
                    VaultNotifier.withdrawal_event(
                        withdrawal, NotificationType.WITHDRAWAL_FAILED
                    )

        cls.get_logger().info(
            "Withdrawal settled",
            extra={
                "withdrawal_id": str(withdrawal.id),
                "status": withdrawal.status,
                "failure_reason": failure_reason,
            },
        )
        return withdrawal
