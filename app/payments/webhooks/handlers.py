"""
Handlers for Stripe webhook events.

Handlers are registered per event type and receive the stored
WebhookEvent. They return a ServiceResult; a failure marks the event
failed so retry_failed_webhooks can pick it up again.

Usage:
    @register_handler("charge.dispute.created")
    def handle_dispute(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from typing import Callable

from core.services import ServiceResult
from payments.adapters import StripeAdapter
from payments.models import Payment, Refund, WebhookEvent
from payments.services import PaymentService, RefundProcessor, refunded_total
from payments.state_machines import RefundSource

logger = logging.getLogger(__name__)


WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}

# Results with these codes are permanent; retrying the event changes nothing.
SETTLED_ERROR_CODES = frozenset({"REFUND_NOT_FOUND", "NO_PENDING_REFUNDS", "DUPLICATE"})


def register_handler(event_type: str) -> Callable:
    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[event_type] = func
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Route an event to its handler.

    Unknown event types succeed so they are marked processed and never
    retried.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if handler is None:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"stripe_event_id": webhook_event.stripe_event_id},
    )
    return handler(webhook_event)


def _settled(result: ServiceResult, webhook_event: WebhookEvent) -> ServiceResult:
    """Turn permanent no-op failures into success so the event is not retried."""
    if not result.success and result.error_code in SETTLED_ERROR_CODES:
        logger.warning(
            f"{webhook_event.event_type}: {result.error}",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "error_code": result.error_code,
            },
        )
        return ServiceResult.success(None)
    return result


def _payment_for_intent(webhook_event: WebhookEvent, payment_intent_id: str | None):
    if not payment_intent_id:
        return None, ServiceResult.failure(
            f"{webhook_event.event_type} without payment_intent",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )
    payment = (
        Payment.objects.select_related("order")
        .filter(stripe_payment_intent_id=payment_intent_id)
        .first()
    )
    if payment is None:
        logger.warning(
            f"No payment for PaymentIntent {payment_intent_id}",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return None, ServiceResult.failure(
            f"Payment not found for intent: {payment_intent_id}",
            error_code="PAYMENT_NOT_FOUND",
        )
    return payment, None


# =============================================================================
# Payment Intent Handlers
# =============================================================================


@register_handler("payment_intent.succeeded")
def handle_payment_intent_succeeded(webhook_event: WebhookEvent) -> ServiceResult:
    return PaymentService.handle_payment_succeeded(webhook_event.data_object)


@register_handler("payment_intent.payment_failed")
def handle_payment_intent_failed(webhook_event: WebhookEvent) -> ServiceResult:
    return PaymentService.handle_payment_failed(webhook_event.data_object)


# =============================================================================
# Refund Handlers
# =============================================================================


@register_handler("charge.refunded")
def handle_charge_refunded(webhook_event: WebhookEvent) -> ServiceResult:
    """
    A charge was refunded, by the shop or from the Stripe dashboard.

    Approved returns still waiting for their refund are finalised. Anything
    else is a refund made outside the shop and is recorded for the amount
    not yet known locally.
    """
    charge = webhook_event.data_object
    charge_id = charge.get("id")

    payment, error = _payment_for_intent(webhook_event, charge.get("payment_intent"))
    if error is not None:
        return error
    order = payment.order

    refunds_data = (charge.get("refunds") or {}).get("data")
    if refunds_data is None and charge_id:
        # Newer API versions do not embed refunds in the charge
        refunds_data = [
            {"id": r.id, "amount": r.amount_cents, "status": r.status}
            for r in StripeAdapter.list_charge_refunds(charge_id)
        ]
    refunds_data = refunds_data or []

    stripe_ids = [r.get("id") for r in refunds_data if r.get("id")]
    known_ids = set(
        Refund.objects.filter(stripe_refund_id__in=stripe_ids).values_list(
            "stripe_refund_id", flat=True
        )
    )
    unknown = [
        r
        for r in refunds_data
        if r.get("id") not in known_ids and r.get("status") in ("succeeded", "pending")
    ]

    logger.info(
        "Processing charge.refunded",
        extra={
            "stripe_event_id": webhook_event.stripe_event_id,
            "order_id": str(order.id),
            "charge_id": charge_id,
            "amount_refunded": charge.get("amount_refunded", 0),
            "unknown_refunds": len(unknown),
        },
    )

    if RefundProcessor.approved_returns(order):
        return RefundProcessor.refund_order_returns(
            order.id,
            source=RefundSource.WEBHOOK,
            notes=f"Confirmed by Stripe charge {charge_id}",
            stripe_refund_id=unknown[0]["id"] if unknown else None,
        )

    new_amount = (charge.get("amount_refunded") or 0) - refunded_total(order)
    if new_amount <= 0:
        logger.info(
            f"charge.refunded for order {order.number} already recorded",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(None)

    if not unknown:
        return _settled(RefundProcessor.record_external_refund(order, new_amount), webhook_event)

    recorded = []
    for refund_data in unknown:
        if new_amount <= 0:
            break
        amount = min(refund_data.get("amount") or 0, new_amount)
        if amount <= 0:
            continue
        result = RefundProcessor.record_external_refund(
            order, amount, stripe_refund_id=refund_data["id"]
        )
        result = _settled(result, webhook_event)
        if not result.success:
            return result
        if result.data is not None:
            recorded.append(result.data)
        new_amount -= amount

    return ServiceResult.success(recorded)


@register_handler("refund.updated")
def handle_refund_updated(webhook_event: WebhookEvent) -> ServiceResult:
    """Apply a refund status change reported by Stripe."""
    refund_data = webhook_event.data_object
    stripe_refund_id = refund_data.get("id")
    status = refund_data.get("status")
    amount = refund_data.get("amount") or 0

    payment, error = _payment_for_intent(webhook_event, refund_data.get("payment_intent"))
    if error is not None:
        return error
    order = payment.order

    if status == "succeeded":
        result = RefundProcessor.complete_pending_refund(order, stripe_refund_id, amount)
    elif status == "canceled":
        result = RefundProcessor.cancel_refund(order.id, amount, stripe_refund_id=stripe_refund_id)
    elif status == "failed":
        reason = refund_data.get("failure_reason") or "unknown"
        result = RefundProcessor.fail_refund(order.id, f"Stripe refund failed: {reason}")
    else:
        logger.info(
            f"refund.updated with status {status} ignored",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "stripe_refund_id": stripe_refund_id,
            },
        )
        return ServiceResult.success(None)

    return _settled(result, webhook_event)
