"""
Celery configuration for the settlement service.

Celery runs the background side of the vault:
- The timeout sweeper that auto-releases expired escrow holds
- Per-hold release tasks queued by the sweeper
- The periodic wallet ledger audit

Redis is both the message broker and result backend. Periodic schedules
live in the database (django-celery-beat) and are created by the vault
migrations. Tasks are auto-discovered from all installed Django apps.

Usage:
    # Start a worker and the beat scheduler:
    celery -A config worker -l info
    celery -A config beat -l info

    # Queue a sweep by hand:
    from vault.workers import sweep_expired_escrows
    sweep_expired_escrows.delay()

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Celery looks for a tasks.py module in each installed app
app.autodiscover_tasks()
