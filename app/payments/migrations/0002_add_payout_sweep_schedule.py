"""
Add celery-beat schedule for the payout sweep.

This migration creates the periodic task that runs
process_ready_payouts every 5 minutes to send payouts whose
scheduled time has passed.
"""

from django.db import migrations


SWEEP_TASK_NAME = "Process Ready Payouts"


def create_periodic_task(apps, schema_editor):
    """Create the periodic task for the payout sweep."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=5,
        period="minutes",
    )

    PeriodicTask.objects.get_or_create(
        name=SWEEP_TASK_NAME,
        defaults={
            "task": "payments.workers.payout_scheduler.process_ready_payouts",
            "interval": schedule,
            "enabled": True,
            "description": (
                "Sends pending payouts whose scheduled time has passed. "
                "Failed payouts are left for an operator to re-queue."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name=SWEEP_TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
