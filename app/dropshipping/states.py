"""
State enums for dropshipping models.

DropshipOrder States:
    pending → sent_to_supplier → confirmed_by_supplier → processing
        → shipped_by_supplier → out_for_delivery → delivered
    pending/sent_to_supplier → rejected_by_supplier → pending (retry)
    any except delivered → cancelled | on_hold
"""

from django.db import models


class SupplierStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"
    SUSPENDED = "suspended", "Suspended"


class IntegrationType(models.TextChoices):
    """How orders reach the supplier."""

    API = "api", "API"
    WEBHOOK = "webhook", "Webhook"
    EMAIL = "email", "Email"
    MANUAL = "manual", "Manual"


class DropshipStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    SENT_TO_SUPPLIER = "sent_to_supplier", "Sent to Supplier"
    CONFIRMED_BY_SUPPLIER = "confirmed_by_supplier", "Confirmed by Supplier"
    PROCESSING = "processing", "Processing"
    SHIPPED_BY_SUPPLIER = "shipped_by_supplier", "Shipped by Supplier"
    OUT_FOR_DELIVERY = "out_for_delivery", "Out for Delivery"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"
    REJECTED_BY_SUPPLIER = "rejected_by_supplier", "Rejected by Supplier"
    ON_HOLD = "on_hold", "On Hold"

    @classmethod
    def active_states(cls) -> list[str]:
        """Accepted by the supplier and moving towards the customer."""
        return [
            cls.SENT_TO_SUPPLIER,
            cls.CONFIRMED_BY_SUPPLIER,
            cls.PROCESSING,
            cls.SHIPPED_BY_SUPPLIER,
            cls.OUT_FOR_DELIVERY,
        ]

    @classmethod
    def final_states(cls) -> list[str]:
        return [cls.DELIVERED, cls.CANCELLED]

    @classmethod
    def failed_states(cls) -> list[str]:
        return [cls.REJECTED_BY_SUPPLIER, cls.CANCELLED]


class SupplierWebhookStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PROCESSED = "processed", "Processed"
    IGNORED = "ignored", "Ignored"
    FAILED = "failed", "Failed"
