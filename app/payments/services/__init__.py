"""
Payment services.

- PaymentService: PaymentIntent lifecycle of an order
- StripeRefundGateway: single-item refunds through Stripe
- RefundProcessor: refund, return, order and payment reconciliation

Usage:
    from payments.services import PaymentService, RefundProcessor

    PaymentService.create_payment_for_order(order)
    RefundProcessor.refund_return(order_return.id, actor=request.user)
"""

from payments.services.payment_service import PaymentService
from payments.services.refund_gateway import (
    GatewayRefundResult,
    StripeRefundGateway,
    refunded_total,
    remaining_refundable,
)
from payments.services.refund_processor import RefundProcessor

__all__ = [
    "GatewayRefundResult",
    "PaymentService",
    "RefundProcessor",
    "StripeRefundGateway",
    "refunded_total",
    "remaining_refundable",
]
