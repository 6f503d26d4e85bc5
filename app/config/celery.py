"""
Celery configuration for the storefront backend.

Celery runs the background work of the shop:
- Stripe webhook processing with retry
- Supplier order submission and retry for dropshipped items
- Periodic jobs (overdue dropship orders, supplier health checks)
- Notification delivery (email, SMS)

Redis is both the message broker and result backend. Tasks are
auto-discovered from all installed Django apps, and periodic schedules live
in the database (django-celery-beat).

Usage:
    from dropshipping.tasks import send_dropship_order_to_supplier

    send_dropship_order_to_supplier.delay(str(dropship_order.id))
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("storefront")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
