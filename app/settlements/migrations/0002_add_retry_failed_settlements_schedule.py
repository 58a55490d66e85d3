"""
Add celery-beat schedule for retrying failed settlements.

This migration creates the periodic task schedule for the
retry_failed_settlements task, which runs every 5 minutes to re-queue
FAILED settlements that still have retry budget.
"""

from django.db import migrations

TASK_NAME = "Retry Failed Settlements"


def create_periodic_task(apps, schema_editor):
    """Create the periodic task for retrying failed settlements."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=5,
        period="minutes",
    )

    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "settlements.tasks.retry_failed_settlements",
            "interval": schedule,
            "enabled": True,
            "description": (
                "Queues FAILED settlements with remaining retry budget whose "
                "seller is still payout-eligible."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("settlements", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
