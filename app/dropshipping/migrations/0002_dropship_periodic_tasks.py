"""
Add celery-beat schedules for dropshipping maintenance.

Rejected and stalled supplier orders are retried every 15 minutes, supplier
health is checked hourly, stock is synced every 6 hours and overdue orders
are flagged daily.
"""

from django.db import migrations

PERIODIC_TASKS = [
    {
        "name": "Retry Failed Dropship Orders",
        "task": "dropshipping.tasks.retry_failed_dropship_orders",
        "every": 15,
        "period": "minutes",
        "description": "Re-sends pending and rejected orders of auto-fulfilling suppliers.",
    },
    {
        "name": "Check Supplier Health",
        "task": "dropshipping.tasks.check_supplier_health",
        "every": 1,
        "period": "hours",
        "description": "Logs suppliers whose integration is unhealthy.",
    },
    {
        "name": "Sync Supplier Stock",
        "task": "dropshipping.tasks.sync_supplier_stock",
        "every": 6,
        "period": "hours",
        "description": "Pulls stock levels from suppliers with stock sync enabled.",
    },
    {
        "name": "Process Overdue Dropship Orders",
        "task": "dropshipping.tasks.process_overdue_dropship_orders",
        "every": 1,
        "period": "days",
        "description": "Flags orders past their estimated delivery and alerts admins.",
    },
]


def create_periodic_tasks(apps, schema_editor):
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for task in PERIODIC_TASKS:
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=task["every"],
            period=task["period"],
        )
        PeriodicTask.objects.get_or_create(
            name=task["name"],
            defaults={
                "task": task["task"],
                "interval": schedule,
                "enabled": True,
                "description": task["description"],
            },
        )


def remove_periodic_tasks(apps, schema_editor):
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name__in=[task["name"] for task in PERIODIC_TASKS]).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("dropshipping", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
