"""
Add celery-beat schedules for the vault workers.

This migration creates two periodic tasks:
- The escrow timeout sweep, every ESCROW_SWEEP_INTERVAL_MINUTES minutes
- The wallet ledger audit, every hour
"""

from django.conf import settings
from django.db import migrations

SWEEP_TASK_NAME = "Sweep Expired Escrow Holds"
AUDIT_TASK_NAME = "Audit Wallet Ledgers"


def create_periodic_tasks(apps, schema_editor):
    """Create the periodic tasks for the sweeper and the ledger audit."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    sweep_schedule, _ = IntervalSchedule.objects.get_or_create(
        every=settings.ESCROW_SWEEP_INTERVAL_MINUTES,
        period="minutes",
    )
    PeriodicTask.objects.get_or_create(
        name=SWEEP_TASK_NAME,
        defaults={
            "task": "vault.workers.timeout_sweeper.sweep_expired_escrows",
            "interval": sweep_schedule,
            "enabled": True,
            "description": (
                "Finds held escrows past their timeout date and queues "
                "one auto-release task per hold."
            ),
        },
    )

    audit_schedule, _ = IntervalSchedule.objects.get_or_create(
        every=1,
        period="hours",
    )
    PeriodicTask.objects.get_or_create(
        name=AUDIT_TASK_NAME,
        defaults={
            "task": "vault.workers.ledger_auditor.audit_wallet_ledgers",
            "interval": audit_schedule,
            "enabled": True,
            "description": (
                "Rebuilds every wallet balance from its entries and logs "
                "ledger_mismatch for wallets that disagree."
            ),
        },
    )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name__in=[SWEEP_TASK_NAME, AUDIT_TASK_NAME]).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("vault", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
