"""
Celery configuration for the Django application.

Celery runs the settlement work that must not block a web request:
- Payout execution for queued settlements
- Backoff retries of transient provider failures
- Seller sweeps after provider approval changes
- The periodic failed-settlement scan (scheduled via django-celery-beat)

Redis is both the message broker and result backend. Tasks are
auto-discovered from all installed Django apps.

Usage:
    from settlements.tasks import execute_settlement

    execute_settlement.delay(str(settlement.id))

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
