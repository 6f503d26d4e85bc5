"""
State enums for payment models.

These are Django TextChoices used by django-fsm fields.

State Machines Overview:

Payment States:
    pending → paid
    pending → failed → paid (customer retried the card)
    pending → cancelled
    paid → partially_refunded → refunded (recomputed from refund rows)

Refund States:
    pending → refunded
    pending → failed
    pending/refunded → cancelled
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    """
    States for a Payment (one Stripe PaymentIntent per order).

    Refund states are never incremented; they are recomputed from the sum
    of refunded Refund rows.
    """

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"
    PARTIALLY_REFUNDED = "partially_refunded", "Partially Refunded"
    REFUNDED = "refunded", "Refunded"
    CANCELLED = "cancelled", "Cancelled"

    @classmethod
    def refundable_states(cls) -> list[str]:
        return [cls.PAID, cls.PARTIALLY_REFUNDED]

    @classmethod
    def refund_states(cls) -> list[str]:
        return [cls.PARTIALLY_REFUNDED, cls.REFUNDED]


class RefundStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    REFUNDED = "refunded", "Refunded"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"


class RefundSource(models.TextChoices):
    """Where a refund was initiated."""

    API = "api", "API"
    WEBHOOK = "webhook", "Webhook"
    MANUAL = "manual", "Manual"
    STRIPE_DASHBOARD = "stripe_dashboard", "Stripe Dashboard"


class WebhookEventStatus(models.TextChoices):
    """Processing status for Stripe webhook events."""

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"
