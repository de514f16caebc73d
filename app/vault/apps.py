"""
Vault app configuration.

This app is the escrow settlement engine:
- Wallet ledger with guarded balance updates
- Escrow holds, fund splits and exactly-once releases
- Timeout sweeper and ledger audit workers
- Wallet withdrawals with compensating reversals
"""

from django.apps import AppConfig


class VaultConfig(AppConfig):
    """Configuration for the vault application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "vault"
    verbose_name = "Secure Vault"
