"""
Views for the vault action API.

A single endpoint dispatches on the "action" key of the request body, the
way the marketplace clients already call the vault.

Endpoints:
    POST /api/v1/vault/actions/

Actions:
    create_vault          orderId                         -> escrow (201)
    confirm_delivery      transactionId, confirmationData -> released amounts
    process_withdrawal    confirmationData                -> withdrawal (201)
    get_vault_status      orderId                         -> escrow
    auto_release_timeout  transactionId                   -> released amounts (staff)
    settle_withdrawal     withdrawalId, succeeded         -> withdrawal (staff)

Responses:
    Success: {"success": true, "data": {...}, "message": "..."}
    Failure: {"success": false, "error": "...", "error_code": "...", "details": {...}}

    The HTTP status of a failure comes from the raised exception
    (see vault.exceptions); request validation failures answer 400.

Security:
    - Authentication required (JWT or session)
    - auto_release_timeout and settle_withdrawal are staff only
"""

from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import OpenApiResponse, extend_schema

from core.exceptions import BaseApplicationError
from vault.exceptions import Unauthorized, ValidationFailed
from vault.serializers import (
    ActionResponseSerializer,
    AutoReleaseSerializer,
    ConfirmDeliverySerializer,
    CreateVaultSerializer,
    EscrowTransactionSerializer,
    ProcessWithdrawalSerializer,
    SettleWithdrawalSerializer,
    VaultAction,
    VaultActionSerializer,
    VaultStatusSerializer,
    WithdrawalRequestSerializer,
)
from vault.services import EscrowService, ReleaseResult, WithdrawalService

logger = logging.getLogger(__name__)


def _validated(serializer_class, data) -> dict:
    """Validate a payload, raising ValidationFailed with the field errors."""
    serializer = serializer_class(data=data)
    if not serializer.is_valid():
        raise ValidationFailed("Invalid request payload", details=serializer.errors)
    return serializer.validated_data


def _release_data(result: ReleaseResult) -> dict:
    escrow = result.escrow
    return {
        "transactionId": str(escrow.id),
        "orderId": str(escrow.order_id),
        "status": escrow.status,
        "releasedAmounts": result.amounts.as_dict(),
        "alreadyReleased": result.already_released,
        "autoReleased": escrow.auto_released,
        "completedAt": escrow.completed_at.isoformat() if escrow.completed_at else None,
    }


class VaultActionView(APIView):
    """
    Dispatch endpoint for all vault actions.

    POST /api/v1/vault/actions/

    Each action has its own payload serializer and handler method
    (_handle_<action>). Handlers call the services and return
    (data, message, http_status); every BaseApplicationError raised on
    the way becomes a failure envelope.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="vault_action",
        summary="Run a vault action",
        description=(
            "Create escrow holds, confirm deliveries, request and settle "
            "withdrawals, and read escrow status. The 'action' key selects "
            "the operation; the remaining keys are the action's payload."
        ),
        request=VaultActionSerializer,
        responses={
            200: ActionResponseSerializer,
            201: ActionResponseSerializer,
            400: OpenApiResponse(description="Invalid payload (VALIDATION_ERROR)"),
            403: OpenApiResponse(description="Not allowed (UNAUTHORIZED)"),
            404: OpenApiResponse(description="Record not found (NOT_FOUND)"),
            409: OpenApiResponse(description="ALREADY_EXISTS or INVALID_STATE"),
            422: OpenApiResponse(description="Balance too low (INSUFFICIENT_FUNDS)"),
            503: OpenApiResponse(description="Retry later (LEDGER_UNAVAILABLE)"),
        },
        tags=["Vault"],
    )
    def post(self, request):
        """Validate the envelope, check access and run the action handler."""
        try:
            action = _validated(VaultActionSerializer, request.data)["action"]

            if action in VaultAction.STAFF_ONLY and not request.user.is_staff:
                raise Unauthorized(
                    f"Action {action} is restricted to staff",
                    details={"action": action},
                )

            handler = getattr(self, f"_handle_{action}")
            data, message, http_status = handler(request)
        except BaseApplicationError as e:
            return self._failure(request, e)

        return Response(
            {"success": True, "data": data, "message": message},
            status=http_status,
        )

    @staticmethod
    def _failure(request, error: BaseApplicationError) -> Response:
        log = logger.error if error.http_status >= 500 else logger.info
        log(
            f"Vault action failed: {error.error_code}",
            extra={
                "user_id": request.user.pk,
                "action": request.data.get("action") if hasattr(request.data, "get") else None,
                "error_code": error.error_code,
            },
        )
        return Response(
            {
                "success": False,
                "error": error.message,
                "error_code": error.error_code,
                "details": error.details,
            },
            status=error.http_status,
        )

    # ==========================================================================
    # Handlers
    # ==========================================================================

    def _handle_create_vault(self, request):
        payload = _validated(CreateVaultSerializer, request.data)
        escrow = EscrowService.create_hold(payload["orderId"], requested_by=request.user)
        return (
            EscrowTransactionSerializer(escrow).data,
            "Payment secured in vault",
            status.HTTP_201_CREATED,
        )

    def _handle_confirm_delivery(self, request):
        payload = _validated(ConfirmDeliverySerializer, request.data)
        confirmation = payload["confirmationData"]
        result = EscrowService.confirm_and_release(
            payload["transaction_id"],
            confirmation_code=confirmation["confirmationCode"],
            confirmed_by=request.user,
            comments=confirmation.get("comments"),
            client_confirmed=confirmation["clientConfirmed"],
        )
        message = (
            "Funds were already released"
            if result.already_released
            else "Delivery confirmed, funds released"
        )
        return _release_data(result), message, status.HTTP_200_OK

    def _handle_process_withdrawal(self, request):
        payload = _validated(ProcessWithdrawalSerializer, request.data)
        details = payload["confirmationData"]
        withdrawal = WithdrawalService.request_withdrawal(
            user=request.user,
            amount=details["amount"],
            method=details["withdrawalMethod"],
            payout_details=details["paymentDetails"],
        )
        return (
            WithdrawalRequestSerializer(withdrawal).data,
            "Withdrawal request submitted",
            status.HTTP_201_CREATED,
        )

    def _handle_get_vault_status(self, request):
        payload = _validated(VaultStatusSerializer, request.data)
        escrow = EscrowService.get_status(payload["orderId"], requested_by=request.user)
        return EscrowTransactionSerializer(escrow).data, "Vault status", status.HTTP_200_OK

    def _handle_auto_release_timeout(self, request):
        payload = _validated(AutoReleaseSerializer, request.data)
        result = EscrowService.auto_release(payload["transactionId"])
        message = (
            "Funds were already released"
            if result.already_released
            else "Funds released after timeout"
        )
        return _release_data(result), message, status.HTTP_200_OK

    def _handle_settle_withdrawal(self, request):
        payload = _validated(SettleWithdrawalSerializer, request.data)
        withdrawal = WithdrawalService.settle_withdrawal(
            payload["withdrawalId"],
            succeeded=payload["succeeded"],
            failure_reason=payload.get("failureReason"),
        )
        return (
            WithdrawalRequestSerializer(withdrawal).data,
            f"Withdrawal {withdrawal.status}",
            status.HTTP_200_OK,
        )
