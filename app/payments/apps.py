"""
Payments app configuration.

Stripe PaymentIntents, refunds and their reconciliation against orders
and returns, plus asynchronous Stripe webhook processing.
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
