import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


def _timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
        (
            "id",
            models.UUIDField(
                default=uuid.uuid4,
                editable=False,
                help_text="Unique identifier (UUID)",
                primary_key=True,
                serialize=False,
            ),
        ),
    ]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("marketplace", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="WalletAccount",
            fields=[
                *_timestamps(),
                (
                    "account_type",
                    models.CharField(
                        choices=[("user", "User Wallet"), ("platform", "Platform Revenue")],
                        default="user",
                        help_text="Category of this wallet",
                        max_length=20,
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="CDF", help_text="ISO 4217 currency code", max_length=3
                    ),
                ),
                (
                    "balance",
                    models.BigIntegerField(
                        default=0,
                        help_text="Current balance in the smallest currency unit",
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        blank=True,
                        help_text="User owning this wallet (empty for the platform wallet)",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="wallets",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Wallet",
                "verbose_name_plural": "Wallets",
                "db_table": "vault_wallet_account",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("account_type", "user")),
                        fields=("owner", "currency"),
                        name="unique_user_wallet_per_currency",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("account_type", "platform")),
                        fields=("currency",),
                        name="unique_platform_wallet_per_currency",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("account_type", "user"), ("owner__isnull", False)),
                            models.Q(("account_type", "platform"), ("owner__isnull", True)),
                            _connector="OR",
                        ),
                        name="wallet_owner_matches_type",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("balance__gte", 0)),
                        name="wallet_balance_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WalletTransactionEntry",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "entry_type",
                    models.CharField(
                        choices=[
                            ("escrow_release", "Escrow Release"),
                            ("delivery_earning", "Delivery Earning"),
                            ("platform_fee", "Platform Fee"),
                            ("withdrawal_pending", "Withdrawal Pending"),
                            ("withdrawal_reversal", "Withdrawal Reversal"),
                            ("adjustment", "Adjustment"),
                        ],
                        help_text="Category of this entry",
                        max_length=30,
                    ),
                ),
                (
                    "amount",
                    models.BigIntegerField(
                        help_text="Signed balance change (credit > 0, debit < 0)"
                    ),
                ),
                (
                    "balance_before",
                    models.BigIntegerField(help_text="Balance immediately before this entry"),
                ),
                (
                    "balance_after",
                    models.BigIntegerField(help_text="Balance immediately after this entry"),
                ),
                (
                    "currency",
                    models.CharField(
                        default="CDF", help_text="ISO 4217 currency code", max_length=3
                    ),
                ),
                (
                    "reference_type",
                    models.CharField(
                        blank=True,
                        help_text="Type of related record (e.g., 'escrow_transaction')",
                        max_length=50,
                        null=True,
                    ),
                ),
                (
                    "reference_id",
                    models.UUIDField(
                        blank=True, help_text="UUID of related record", null=True
                    ),
                ),
                (
                    "description",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Human-readable description of this entry",
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Arbitrary JSON data for extensibility",
                    ),
                ),
                (
                    "created_by",
                    models.CharField(
                        blank=True,
                        help_text="Identifier of service/user that created this entry",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "idempotency_key",
                    models.CharField(
                        help_text="Unique key to prevent duplicate entries",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this entry was recorded",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        help_text="Wallet owner (empty for the platform wallet)",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="wallet_entries",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "wallet",
                    models.ForeignKey(
                        help_text="Wallet whose balance changed",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="entries",
                        to="vault.walletaccount",
                    ),
                ),
            ],
            options={
                "verbose_name": "Wallet transaction",
                "verbose_name_plural": "Wallet transactions",
                "db_table": "vault_wallet_transaction_entry",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["reference_type", "reference_id"],
                        name="vault_entry_reference_idx",
                    ),
                    models.Index(
                        fields=["wallet", "created_at"],
                        name="vault_entry_wallet_created_idx",
                    ),
                    models.Index(fields=["entry_type"], name="vault_entry_type_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount", 0), _negated=True),
                        name="wallet_entry_amount_non_zero",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            (
                                "balance_after",
                                models.F("balance_before") + models.F("amount"),
                            )
                        ),
                        name="wallet_entry_balance_arithmetic",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="EscrowTransaction",
            fields=[
                *_timestamps(),
                (
                    "total_amount",
                    models.PositiveBigIntegerField(
                        help_text="Amount held in the smallest currency unit"
                    ),
                ),
                (
                    "seller_amount",
                    models.PositiveBigIntegerField(
                        help_text="Share credited to the seller on release"
                    ),
                ),
                (
                    "driver_amount",
                    models.PositiveBigIntegerField(
                        default=0, help_text="Share credited to the driver on release"
                    ),
                ),
                (
                    "platform_fee",
                    models.PositiveBigIntegerField(
                        help_text="Share credited to the platform on release"
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="CDF", help_text="ISO 4217 currency code", max_length=3
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[("held", "Held"), ("completed", "Completed")],
                        db_index=True,
                        default="held",
                        help_text="Current state of the escrow (changed only by the release CAS)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "timeout_date",
                    models.DateTimeField(
                        db_index=True,
                        help_text="When the hold may be released automatically",
                    ),
                ),
                (
                    "completed_at",
                    models.DateTimeField(
                        blank=True, help_text="When funds were released", null=True
                    ),
                ),
                (
                    "auto_released",
                    models.BooleanField(
                        default=False,
                        help_text="Whether the funds were released by the timeout sweeper",
                    ),
                ),
                (
                    "confirmation_code",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Code supplied with the release",
                        max_length=64,
                    ),
                ),
                (
                    "client_comments",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Buyer comments supplied with the confirmation",
                    ),
                ),
                (
                    "release_attempts",
                    models.PositiveIntegerField(
                        default=0, help_text="Number of failed automatic release attempts"
                    ),
                ),
                (
                    "last_release_error",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Error from the most recent failed automatic release",
                    ),
                ),
                (
                    "order",
                    models.OneToOneField(
                        help_text="Order these funds are held for",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="escrow",
                        to="marketplace.order",
                    ),
                ),
                (
                    "buyer",
                    models.ForeignKey(
                        help_text="User whose payment is held",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="escrows_as_buyer",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "seller",
                    models.ForeignKey(
                        help_text="User receiving the seller share",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="escrows_as_seller",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "driver",
                    models.ForeignKey(
                        blank=True,
                        help_text="Delivery agent receiving the driver share, if any",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="escrows_as_driver",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "confirmed_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="User who confirmed delivery (empty for system releases)",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="confirmed_escrows",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Escrow transaction",
                "verbose_name_plural": "Escrow transactions",
                "db_table": "vault_escrow_transaction",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "timeout_date"],
                        name="vault_escrow_status_due_idx",
                    ),
                    models.Index(
                        fields=["buyer", "status"],
                        name="vault_escrow_buyer_status_idx",
                    ),
                    models.Index(
                        fields=["seller", "status"],
                        name="vault_escrow_seller_status_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            (
                                "total_amount",
                                models.F("seller_amount")
                                + models.F("driver_amount")
                                + models.F("platform_fee"),
                            )
                        ),
                        name="escrow_split_sums_to_total",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("status", "completed"), _negated=True),
                            ("completed_at__isnull", False),
                            _connector="OR",
                        ),
                        name="escrow_completed_has_timestamp",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WithdrawalRequest",
            fields=[
                *_timestamps(),
                (
                    "amount",
                    models.PositiveBigIntegerField(
                        help_text="Amount debited from the wallet"
                    ),
                ),
                (
                    "fee",
                    models.PositiveBigIntegerField(
                        default=0, help_text="Channel fee in the smallest currency unit"
                    ),
                ),
                (
                    "net_amount",
                    models.PositiveBigIntegerField(
                        help_text="Amount paid out to the user (amount - fee)"
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="CDF", help_text="ISO 4217 currency code", max_length=3
                    ),
                ),
                (
                    "method",
                    models.CharField(
                        choices=[
                            ("kwenda_pay", "KwendaPay"),
                            ("mobile_money", "Mobile Money"),
                            ("bank_transfer", "Bank Transfer"),
                        ],
                        help_text="Payout channel",
                        max_length=20,
                    ),
                ),
                (
                    "payout_details",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Channel-specific destination details",
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the withdrawal (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the payout outcome was recorded",
                        null=True,
                    ),
                ),
                (
                    "failure_reason",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Reason reported for a failed payout",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="User requesting the withdrawal",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="withdrawal_requests",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "wallet",
                    models.ForeignKey(
                        help_text="Wallet the amount was debited from",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="withdrawal_requests",
                        to="vault.walletaccount",
                    ),
                ),
            ],
            options={
                "verbose_name": "Withdrawal request",
                "verbose_name_plural": "Withdrawal requests",
                "db_table": "vault_withdrawal_request",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["user", "status"], name="vault_withdrawal_user_idx"
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="withdrawal_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("net_amount", models.F("amount") - models.F("fee"))
                        ),
                        name="withdrawal_net_is_amount_minus_fee",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="EscrowNotification",
            fields=[
                *_timestamps(),
                (
                    "notification_type",
                    models.CharField(
                        choices=[
                            ("vault_secured", "Vault Secured"),
                            ("funds_released", "Funds Released"),
                            ("payment_received", "Payment Received"),
                            ("delivery_payment", "Delivery Payment"),
                            ("withdrawal_pending", "Withdrawal Pending"),
                            ("withdrawal_completed", "Withdrawal Completed"),
                            ("withdrawal_failed", "Withdrawal Failed"),
                        ],
                        db_index=True,
                        help_text="Settlement event category",
                        max_length=30,
                    ),
                ),
                ("title", models.CharField(max_length=255)),
                ("message", models.TextField()),
                ("is_read", models.BooleanField(db_index=True, default=False)),
                (
                    "user",
                    models.ForeignKey(
                        help_text="Recipient of this notification",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="escrow_notifications",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "escrow_transaction",
                    models.ForeignKey(
                        blank=True,
                        help_text="Escrow this notification is about",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="notifications",
                        to="vault.escrowtransaction",
                    ),
                ),
                (
                    "withdrawal_request",
                    models.ForeignKey(
                        blank=True,
                        help_text="Withdrawal this notification is about",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="notifications",
                        to="vault.withdrawalrequest",
                    ),
                ),
            ],
            options={
                "verbose_name": "Escrow notification",
                "verbose_name_plural": "Escrow notifications",
                "db_table": "vault_escrow_notification",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["user", "is_read"], name="vault_notif_user_read_idx"
                    ),
                ],
            },
        ),
    ]
