"""
Payment domain models.

- Payment: one Stripe PaymentIntent per order
- Refund: money returned to a customer, per return or per order
- WebhookEvent: Stripe webhook events for idempotent processing
"""

from payments.models.payment import Payment
from payments.models.refund import Refund
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "Payment",
    "Refund",
    "WebhookEvent",
]
