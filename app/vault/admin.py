"""
Django admin configuration for vault models.

Every vault model is read-only in the admin: balances and statuses only
change through the services, and ledger entries never change at all.
"""

from django.contrib import admin

from vault.models import (
    EscrowNotification,
    EscrowTransaction,
    WalletAccount,
    WalletTransactionEntry,
    WithdrawalRequest,
)


class ReadOnlyAdmin(admin.ModelAdmin):
    """ModelAdmin without add, change or delete permissions."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(EscrowTransaction)
class EscrowTransactionAdmin(ReadOnlyAdmin):
    """
    Admin configuration for EscrowTransaction.

    Failing auto-releases are visible through release_attempts and
    last_release_error.
    """

    list_display = [
        "id",
        "order",
        "status",
        "total_amount",
        "currency",
        "timeout_date",
        "auto_released",
        "release_attempts",
        "created_at",
    ]
    list_filter = ["status", "auto_released", "currency"]
    search_fields = ["id", "order__id", "buyer__email", "seller__email"]
    ordering = ["-created_at"]

    fieldsets = (
        (None, {"fields": ("id", "order", "status")}),
        ("Parties", {"fields": ("buyer", "seller", "driver")}),
        (
            "Amounts",
            {
                "fields": (
                    "total_amount",
                    "seller_amount",
                    "driver_amount",
                    "platform_fee",
                    "currency",
                )
            },
        ),
        (
            "Release",
            {
                "fields": (
                    "timeout_date",
                    "completed_at",
                    "auto_released",
                    "confirmation_code",
                    "confirmed_by",
                    "client_comments",
                    "release_attempts",
                    "last_release_error",
                )
            },
        ),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )


@admin.register(WalletAccount)
class WalletAccountAdmin(ReadOnlyAdmin):
    """Admin configuration for WalletAccount."""

    list_display = ["id", "account_type", "owner", "currency", "balance", "updated_at"]
    list_filter = ["account_type", "currency"]
    search_fields = ["id", "owner__email"]
    ordering = ["-created_at"]


@admin.register(WalletTransactionEntry)
class WalletTransactionEntryAdmin(ReadOnlyAdmin):
    """Admin configuration for WalletTransactionEntry (append-only)."""

    list_display = [
        "id",
        "wallet",
        "entry_type",
        "amount",
        "balance_before",
        "balance_after",
        "currency",
        "reference_type",
        "created_at",
    ]
    list_filter = ["entry_type", "currency", "reference_type"]
    search_fields = ["id", "idempotency_key", "reference_id"]
    ordering = ["-created_at"]


@admin.register(WithdrawalRequest)
class WithdrawalRequestAdmin(ReadOnlyAdmin):
    """Admin configuration for WithdrawalRequest."""

    list_display = [
        "id",
        "user",
        "method",
        "amount",
        "fee",
        "net_amount",
        "status",
        "created_at",
        "processed_at",
    ]
    list_filter = ["status", "method"]
    search_fields = ["id", "user__email"]
    ordering = ["-created_at"]


@admin.register(EscrowNotification)
class EscrowNotificationAdmin(ReadOnlyAdmin):
    """Admin configuration for EscrowNotification."""

    list_display = ["id", "user", "notification_type", "title", "is_read", "created_at"]
    list_filter = ["notification_type", "is_read"]
    search_fields = ["user__email", "title"]
    ordering = ["-created_at"]
