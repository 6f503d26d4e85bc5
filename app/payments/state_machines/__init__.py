"""
State machine enums for payment models.
"""

from payments.state_machines.states import (
    PaymentStatus,
    RefundSource,
    RefundStatus,
    WebhookEventStatus,
)

__all__ = [
    "PaymentStatus",
    "RefundSource",
    "RefundStatus",
    "WebhookEventStatus",
]
