"""
PaymentService: PaymentIntent lifecycle for orders.

Checkout creates one PaymentIntent per order. Stripe webhooks then report
success or failure, which move both the Payment and the Order.

Usage:
    from payments.services import PaymentService

    result = PaymentService.create_payment_for_order(order)
    if result.success:
        client_secret = result.data["client_secret"]
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from django_fsm import TransitionNotAllowed

from core.services import BaseService, ServiceResult
from orders.signals import send_order_paid
from orders.states import OrderStatus
from payments.adapters import CreatePaymentIntentParams, IdempotencyKeyGenerator, StripeAdapter
from payments.exceptions import StripeError
from payments.models import Payment
from payments.state_machines import PaymentStatus

if TYPE_CHECKING:
    from orders.models import Order


class PaymentService(BaseService):
    """Creates, cancels and settles the Payment of an order."""

    @classmethod
    def get_payment_for_order(cls, order: Order) -> Payment | None:
        return Payment.objects.filter(order=order).first()

    @classmethod
    def create_payment_for_order(cls, order: Order) -> ServiceResult[dict[str, Any]]:
        """
        Create the Stripe PaymentIntent and a pending Payment for an order.

        Returns data {"payment": Payment, "client_secret": str}.

        Error codes:
            INVALID_AMOUNT: order total is zero
            STRIPE_ERROR (or the StripeError code): PaymentIntent not created
        """
        logger = cls.get_logger()

        if order.total_cents <= 0:
            return ServiceResult.failure(
                "Order total must be greater than zero",
                error_code="INVALID_AMOUNT",
            )

        params = CreatePaymentIntentParams(
            amount_cents=order.total_cents,
            currency=order.currency,
            idempotency_key=IdempotencyKeyGenerator.generate("create_intent", order.id),
            metadata={"order_id": str(order.id), "order_number": order.number},
            receipt_email=getattr(order.user, "email", None) or None,
        )

        try:
            intent = StripeAdapter.create_payment_intent(params)
        except StripeError as e:
            logger.error(
                f"PaymentIntent creation failed for order {order.number}: {e.message}",
                extra={"order_id": str(order.id), "error_code": e.error_code},
            )
            return ServiceResult.failure(e.message, error_code="STRIPE_ERROR")

        payment = Payment.objects.create(
            order=order,
            stripe_payment_intent_id=intent.id,
            amount_cents=intent.amount_cents,
            currency=intent.currency,
            response_payload={"id": intent.id, "status": intent.status},
        )

        logger.info(
            f"Payment created for order {order.number}",
            extra={
                "order_id": str(order.id),
                "payment_id": str(payment.id),
                "payment_intent_id": intent.id,
                "amount_cents": payment.amount_cents,
            },
        )
        return ServiceResult.success({"payment": payment, "client_secret": intent.client_secret})

    @classmethod
    def cancel_payment_for_order(cls, order: Order) -> ServiceResult[Payment | None]:
        """
        Cancel the pending PaymentIntent of a cancelled order.

        Orders without a payment succeed with data None. A Stripe failure
        leaves the Payment pending and is reported as STRIPE_ERROR.
        """
        payment = cls.get_payment_for_order(order)
        if payment is None or payment.status != PaymentStatus.PENDING:
            return ServiceResult.success(payment)

        try:
            StripeAdapter.cancel_payment_intent(
                payment.stripe_payment_intent_id,
                idempotency_key=IdempotencyKeyGenerator.generate("cancel_intent", payment.id),
            )
        except StripeError as e:
            return ServiceResult.failure(e.message, error_code="STRIPE_ERROR")

        payment.cancel()
        payment.save()
        cls.get_logger().info(
            f"Payment {payment.id} cancelled",
            extra={"order_id": str(order.id), "payment_id": str(payment.id)},
        )
        return ServiceResult.success(payment)

    @classmethod
    def handle_payment_succeeded(cls, intent: dict[str, Any]) -> ServiceResult[Payment]:
        """
        Settle a succeeded PaymentIntent: payment -> paid, order -> confirmed.

        Redelivered events for an already paid payment are a no-op. order_paid
        is sent after commit so dropshipping and notifications react once.
        """
        logger = cls.get_logger()

        with cls.atomic():
            payment = (
                Payment.objects.select_for_update()
                .select_related("order")
                .filter(stripe_payment_intent_id=intent.get("id"))
                .first()
            )
            if payment is None:
                return ServiceResult.failure(
                    f"No payment for PaymentIntent {intent.get('id')}",
                    error_code="PAYMENT_NOT_FOUND",
                )

            if payment.status not in (PaymentStatus.PENDING, PaymentStatus.FAILED):
                logger.info(
                    f"Payment {payment.id} already {payment.status}, ignoring success event",
                    extra={"payment_id": str(payment.id)},
                )
                return ServiceResult.success(payment)

            payment.mark_paid(charge_id=intent.get("latest_charge") or "")
            payment.response_payload = intent
            payment.save()

            order = payment.order
            if order.status in (OrderStatus.PENDING_PAYMENT, OrderStatus.FAILED):
                order.confirm_payment()
                order.save()
                send_order_paid(order)
            else:
                logger.warning(
                    f"Order {order.number} in status {order.status} received a payment",
                    extra={"order_id": str(order.id), "payment_id": str(payment.id)},
                )

        logger.info(
            f"Payment {payment.id} succeeded",
            extra={
                "payment_id": str(payment.id),
                "order_id": str(payment.order_id),
                "amount_cents": payment.amount_cents,
            },
        )
        return ServiceResult.success(payment)

    @classmethod
    def handle_payment_failed(cls, intent: dict[str, Any]) -> ServiceResult[Payment]:
        """Record a failed PaymentIntent on the payment and fail the order."""
        logger = cls.get_logger()
        error = intent.get("last_payment_error") or {}

        with cls.atomic():
            payment = (
                Payment.objects.select_for_update()
                .select_related("order")
                .filter(stripe_payment_intent_id=intent.get("id"))
                .first()
            )
            if payment is None:
                return ServiceResult.failure(
                    f"No payment for PaymentIntent {intent.get('id')}",
                    error_code="PAYMENT_NOT_FOUND",
                )

            try:
                payment.mark_failed(
                    code=error.get("decline_code") or error.get("code") or "",
                    message=error.get("message") or "",
                )
            except TransitionNotAllowed:
                logger.info(
                    f"Payment {payment.id} in status {payment.status}, ignoring failure event",
                    extra={"payment_id": str(payment.id)},
                )
                return ServiceResult.success(payment)

            payment.response_payload = intent
            payment.save()

            order = payment.order
            if order.status == OrderStatus.PENDING_PAYMENT:
                order.fail_payment()
                order.save()

        logger.warning(
            f"Payment {payment.id} failed: {payment.failure_code}",
            extra={
                "payment_id": str(payment.id),
                "order_id": str(payment.order_id),
                "failure_code": payment.failure_code,
            },
        )
        return ServiceResult.success(payment)
