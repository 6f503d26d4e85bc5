"""
State enums for order models.

These are Django TextChoices used by django-fsm fields on Order and
OrderReturn.

Order States:
    pending_payment → confirmed → processing → shipped → out_for_delivery → delivered
    pending_payment → failed | cancelled
    confirmed/processing/... → partially_refunded → refunded
    cancelled (paid) → partially_refunded → refunded
    any fulfilment state → on_hold

Return States:
    requested → under_review → approved → completed
    requested/under_review → rejected
    completed → approved (refund cancelled or failed)
    completed → pending (refund cancelled for an external return)
"""

from django.db import models


class OrderStatus(models.TextChoices):
    """
    States for the Order lifecycle.

    Fulfilment states are derived from the dropship orders of the order.
    Refund states are derived from the sum of completed refunds.
    """

    PENDING_PAYMENT = "pending_payment", "Pending Payment"
    CONFIRMED = "confirmed", "Confirmed"
    PROCESSING = "processing", "Processing"
    SHIPPED = "shipped", "Shipped"
    OUT_FOR_DELIVERY = "out_for_delivery", "Out for Delivery"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"
    FAILED = "failed", "Failed"
    ON_HOLD = "on_hold", "On Hold"
    PARTIALLY_REFUNDED = "partially_refunded", "Partially Refunded"
    REFUNDED = "refunded", "Refunded"

    @classmethod
    def paid_states(cls) -> list[str]:
        """States an order can only reach after payment was captured."""
        return [
            cls.CONFIRMED,
            cls.PROCESSING,
            cls.SHIPPED,
            cls.OUT_FOR_DELIVERY,
            cls.DELIVERED,
            cls.ON_HOLD,
            cls.PARTIALLY_REFUNDED,
            cls.REFUNDED,
        ]

    @classmethod
    def refund_states(cls) -> list[str]:
        return [cls.PARTIALLY_REFUNDED, cls.REFUNDED]

    @classmethod
    def refund_source_states(cls) -> list[str]:
        """States a refund can land in. CANCELLED only counts once paid."""
        return cls.paid_states() + [cls.CANCELLED]


class FulfillmentStatus(models.TextChoices):
    """Aggregate shipping progress across all supplier orders of an order."""

    UNFULFILLED = "unfulfilled", "Unfulfilled"
    PARTIALLY_FULFILLED = "partially_fulfilled", "Partially Fulfilled"
    FULFILLED = "fulfilled", "Fulfilled"
    PARTIALLY_SHIPPED = "partially_shipped", "Partially Shipped"
    SHIPPED = "shipped", "Shipped"
    PARTIALLY_DELIVERED = "partially_delivered", "Partially Delivered"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"


class ReturnStatus(models.TextChoices):
    """
    States for an OrderReturn.

    PENDING is only used for external returns (created to carry a refund
    issued from the Stripe dashboard) whose refund was later cancelled.
    """

    REQUESTED = "requested", "Requested"
    UNDER_REVIEW = "under_review", "Under Review"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"
    COMPLETED = "completed", "Completed"
    PENDING = "pending", "Pending"
