"""
Serializers for the vault action API.

Request payloads use the camelCase keys of the mobile and web clients
(orderId, transactionId, confirmationData, ...). Responses return model
fields as stored plus a few camelCase summary keys.

Serializers:
    VaultActionSerializer: Envelope carrying the action name
    CreateVaultSerializer / VaultStatusSerializer: orderId payloads
    ConfirmDeliverySerializer: Buyer delivery confirmation
    ProcessWithdrawalSerializer: Wallet withdrawal request
    AutoReleaseSerializer: Staff-triggered timeout release
    SettleWithdrawalSerializer: Payout outcome from the payout channel
    EscrowTransactionSerializer: Read-only escrow representation
    WithdrawalRequestSerializer: Read-only withdrawal representation
    ActionResponseSerializer: Success/failure envelope for the schema

Usage:
    from vault.serializers import ConfirmDeliverySerializer

    serializer = ConfirmDeliverySerializer(data=request.data)
    serializer.is_valid()
    serializer.validated_data["transaction_id"]
"""

from __future__ import annotations

from rest_framework import serializers

from vault.models import EscrowTransaction, WithdrawalRequest
from vault.services import processing_time
from vault.state_machines import WithdrawalMethod


class VaultAction:
    """Names of the actions accepted by the dispatch endpoint."""

    CREATE_VAULT = "create_vault"
    CONFIRM_DELIVERY = "confirm_delivery"
    PROCESS_WITHDRAWAL = "process_withdrawal"
    GET_VAULT_STATUS = "get_vault_status"
    AUTO_RELEASE_TIMEOUT = "auto_release_timeout"
    SETTLE_WITHDRAWAL = "settle_withdrawal"

    ALL = [
        CREATE_VAULT,
        CONFIRM_DELIVERY,
        PROCESS_WITHDRAWAL,
        GET_VAULT_STATUS,
        AUTO_RELEASE_TIMEOUT,
        SETTLE_WITHDRAWAL,
    ]

    # Only staff (or the sweeper, which calls the service directly)
    STAFF_ONLY = frozenset({AUTO_RELEASE_TIMEOUT, SETTLE_WITHDRAWAL})


# =============================================================================
# Request serializers
# =============================================================================


class VaultActionSerializer(serializers.Serializer):
    """Envelope: every request names its action."""

    action = serializers.ChoiceField(choices=VaultAction.ALL)


class CreateVaultSerializer(serializers.Serializer):
    """Payload for create_vault."""

    orderId = serializers.UUIDField()


class VaultStatusSerializer(serializers.Serializer):
    """Payload for get_vault_status."""

    orderId = serializers.UUIDField()


class ConfirmationDataSerializer(serializers.Serializer):
    """Buyer confirmation block of confirm_delivery."""

    confirmationCode = serializers.CharField(max_length=64)
    clientConfirmed = serializers.BooleanField()
    comments = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, max_length=2000
    )


class ConfirmDeliverySerializer(serializers.Serializer):
    """
    Payload for confirm_delivery.

    Accepts the escrow ID as transactionId or, from older clients, escrowId.
    The validated data carries it as transaction_id.
    """

    transactionId = serializers.UUIDField(required=False)
    escrowId = serializers.UUIDField(required=False)
    confirmationData = ConfirmationDataSerializer()

    def validate(self, attrs):
        transaction_id = attrs.get("transactionId") or attrs.get("escrowId")
        if transaction_id is None:
            raise serializers.ValidationError(
                {"transactionId": "This field is required."}
            )
        attrs["transaction_id"] = transaction_id
        return attrs


class WithdrawalDataSerializer(serializers.Serializer):
    """Withdrawal block of process_withdrawal."""

    amount = serializers.IntegerField(min_value=1)
    withdrawalMethod = serializers.ChoiceField(choices=WithdrawalMethod.choices)
    paymentDetails = serializers.DictField(required=False, default=dict)


class ProcessWithdrawalSerializer(serializers.Serializer):
    """Payload for process_withdrawal."""

    confirmationData = WithdrawalDataSerializer()


class AutoReleaseSerializer(serializers.Serializer):
    """Payload for auto_release_timeout."""

    transactionId = serializers.UUIDField()


class SettleWithdrawalSerializer(serializers.Serializer):
    """Payload for settle_withdrawal."""

    withdrawalId = serializers.UUIDField()
    succeeded = serializers.BooleanField()
    failureReason = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, max_length=2000
    )


# =============================================================================
# Response serializers
# =============================================================================


class EscrowTransactionSerializer(serializers.ModelSerializer):
    """Read-only serializer for EscrowTransaction."""

    class Meta:
        model = EscrowTransaction
        fields = [
            "id",
            "order",
            "buyer",
            "seller",
            "driver",
            "total_amount",
            "seller_amount",
            "driver_amount",
            "platform_fee",
            "currency",
            "status",
            "timeout_date",
            "completed_at",
            "auto_released",
            "confirmation_code",
            "confirmed_by",
            "client_comments",
            "release_attempts",
            "last_release_error",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class WithdrawalRequestSerializer(serializers.ModelSerializer):
    """Read-only serializer for WithdrawalRequest, with the payout delay hint."""

    processingTime = serializers.SerializerMethodField()

    class Meta:
        model = WithdrawalRequest
        fields = [
            "id",
            "user",
            "wallet",
            "amount",
            "fee",
            "net_amount",
            "currency",
            "method",
            "payout_details",
            "status",
            "processed_at",
            "failure_reason",
            "created_at",
            "processingTime",
        ]
        read_only_fields = fields

    def get_processingTime(self, obj: WithdrawalRequest) -> str:
        return processing_time(obj.method)


class ActionResponseSerializer(serializers.Serializer):
    """Response envelope (schema only)."""

    success = serializers.BooleanField()
    data = serializers.JSONField(required=False)
    message = serializers.CharField(required=False)
    error = serializers.CharField(required=False)
    error_code = serializers.CharField(required=False)
    details = serializers.DictField(required=False)
