"""
Django admin configuration for marketplace orders.
"""

from django.contrib import admin

from marketplace.models import Order


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """Admin for orders; status is read-only because settlement owns completion."""

    list_display = ["id", "buyer", "seller", "driver", "total_amount", "currency", "status", "created_at"]
    list_filter = ["status", "currency"]
    search_fields = ["id", "buyer__email", "seller__email", "driver__email"]
    readonly_fields = ["id", "status", "created_at", "updated_at"]
    raw_id_fields = ["buyer", "seller", "driver"]
