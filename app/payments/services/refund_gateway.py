"""
Refund gateway: issues single-item refunds through Stripe.

The gateway validates and calls Stripe but writes nothing; RefundProcessor
records the outcome. Failures are returned, never raised, so the processor
can store a failed refund row with the reason.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.db.models import Sum

from payments.adapters import IdempotencyKeyGenerator, StripeAdapter
from payments.exceptions import RefundNotAllowedError, StripeError
from payments.models import Payment, Refund
from payments.state_machines import PaymentStatus, RefundStatus

if TYPE_CHECKING:
    from orders.models import Order, OrderItem, OrderReturn

logger = logging.getLogger(__name__)


@dataclass
class GatewayRefundResult:
    success: bool
    amount_cents: int = 0
    stripe_refund_id: str | None = None
    stripe_status: str | None = None
    reason: str | None = None


def refunded_total(order: Order) -> int:
    """Sum of ``refunded`` refund rows for the order, in cents."""
    total = Refund.objects.filter(order=order, status=RefundStatus.REFUNDED).aggregate(
        total=Sum("amount_cents")
    )["total"]
    return total or 0


def remaining_refundable(payment: Payment) -> int:
    return max(payment.amount_cents - refunded_total(payment.order), 0)


class StripeRefundGateway:
    """
    Refunds one returned order item through Stripe.

    Checks, in order: the order has a paid payment, the item has an approved
    return, the amount is positive and does not exceed what is left.
    """

    def refund(self, order: Order, order_item: OrderItem) -> GatewayRefundResult:
        try:
            payment, order_return, amount_cents = self._validate(order, order_item)
        except RefundNotAllowedError as e:
            return self._fail(order, e.message)

        try:
            stripe_refund = StripeAdapter.create_refund(
                payment_intent_id=payment.stripe_payment_intent_id,
                idempotency_key=IdempotencyKeyGenerator.generate(
                    "refund",
                    order_return.id,
                    attempt=Refund.objects.filter(order_return=order_return).count() or 1,
                ),
                amount_cents=amount_cents,
                reason="requested_by_customer",
                metadata={
                    "order_id": str(order.id),
                    "order_item_id": str(order_item.id),
                    "return_id": str(order_return.id),
                    "refund_type": "single_item_return",
                    "processed_via": "manual_gateway",
                },
            )
        except StripeError as e:
            return self._fail(order, f"Stripe refund failed: {e.message}")

        logger.info(
            f"Stripe refund {stripe_refund.id} created for order {order.number}",
            extra={
                "order_id": str(order.id),
                "order_item_id": str(order_item.id),
                "amount_cents": amount_cents,
                "stripe_status": stripe_refund.status,
            },
        )
        return GatewayRefundResult(
            success=True,
            amount_cents=amount_cents,
            stripe_refund_id=stripe_refund.id,
            stripe_status=stripe_refund.status,
        )

    def _validate(self, order: Order, order_item: OrderItem) -> tuple[Payment, OrderReturn, int]:
        payment = (
            Payment.objects.filter(order=order, status__in=PaymentStatus.refundable_states())
            .select_related("order")
            .first()
        )
        if payment is None:
            raise RefundNotAllowedError("Order has no paid payment to refund", error_code="PAYMENT_NOT_REFUNDABLE")

        order_return = order_item.get_return()
        if order_return is None or not order_return.is_approved():
            raise RefundNotAllowedError("Order item has no approved return", error_code="RETURN_NOT_APPROVED")

        amount_cents = order_item.refund_amount()
        if amount_cents <= 0:
            raise RefundNotAllowedError("Refund amount must be greater than zero", error_code="INVALID_AMOUNT")

        remaining = remaining_refundable(payment)
        if amount_cents > remaining:
            raise RefundNotAllowedError(
                f"Refund amount {amount_cents} exceeds remaining refundable {remaining}",
                error_code="AMOUNT_EXCEEDS_REFUNDABLE",
                details={"amount_cents": amount_cents, "remaining_cents": remaining},
            )
        return payment, order_return, amount_cents

    @staticmethod
    def _fail(order: Order, reason: str) -> GatewayRefundResult:
        logger.warning(
            f"Refund rejected for order {order.number}: {reason}",
            extra={"order_id": str(order.id)},
        )
        return GatewayRefundResult(success=False, reason=reason)
