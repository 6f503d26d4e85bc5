"""
Customer notifications for order lifecycle events.

Each helper builds the template context for one notification type and
derives an idempotency key from the source object, so re-running a webhook
or a retried task never notifies the customer twice.

Delivery is best effort: a failure to create the notification is logged
and reported as a failed ServiceResult, never raised into the business
operation that triggered it.

Usage:
    from notifications import notify

    notify.order_confirmed(order)
    notify.refund_processed(refund)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from core.services import ServiceResult

if TYPE_CHECKING:
    from django.db.models import Model

    from dropshipping.models import DropshipOrder
    from orders.models import Order, OrderReturn
    from payments.models import Refund

logger = logging.getLogger(__name__)


ORDER_CONFIRMED = "order_confirmed"
RETURN_STATUS_CHANGED = "return_status_changed"
REFUND_PROCESSED = "refund_processed"
DROPSHIP_ORDER_SHIPPED = "dropship_order_shipped"
DROPSHIP_ORDER_CONFIRMED = "dropship_order_confirmed"


def format_money(amount_cents: int, currency: str) -> str:
    return f"{amount_cents / 100:.2f} {currency.upper()}"


def _notify(
    recipient,
    type_key: str,
    data: dict,
    source_object: Model,
    idempotency_key: str,
) -> ServiceResult:
    from notifications.services import NotificationService

    try:
        result = NotificationService.create_notification(
            recipient=recipient,
            type_key=type_key,
            data=data,
            source_object=source_object,
            idempotency_key=idempotency_key,
        )
    except Exception as e:
        logger.exception(
            f"Failed to create {type_key} notification",
            extra={"idempotency_key": idempotency_key},
        )
        return ServiceResult.from_exception(e, error_code="NOTIFICATION_FAILED")

    if not result.success and result.error_code != "DUPLICATE":
        logger.warning(
            f"{type_key} notification not created: {result.error}",
            extra={"idempotency_key": idempotency_key, "error_code": result.error_code},
        )
    return result


def order_confirmed(order: Order) -> ServiceResult:
    return _notify(
        recipient=order.user,
        type_key=ORDER_CONFIRMED,
        data={
            "order_id": str(order.id),
            "order_number": order.number,
            "total": format_money(order.total_cents, order.currency),
        },
        source_object=order,
        idempotency_key=f"{ORDER_CONFIRMED}:{order.id}",
    )


def return_status_changed(order_return: OrderReturn) -> ServiceResult:
    order = order_return.order
    return _notify(
        recipient=order.user,
        type_key=RETURN_STATUS_CHANGED,
        data={
            "order_id": str(order.id),
            "order_number": order.number,
            "return_id": str(order_return.id),
            "product_name": order_return.order_item.product_name,
            "status": order_return.get_status_display(),
        },
        source_object=order_return,
        idempotency_key=f"{RETURN_STATUS_CHANGED}:{order_return.id}:{order_return.status}",
    )


def refund_processed(refund: Refund, amount_cents: int | None = None) -> ServiceResult:
    """amount_cents overrides the row amount when one refund spans several rows."""
    order = refund.order
    if amount_cents is None:
        amount_cents = refund.amount_cents
    return _notify(
        recipient=order.user,
        type_key=REFUND_PROCESSED,
        data={
            "order_id": str(order.id),
            "order_number": order.number,
            "refund_id": str(refund.id),
            "amount": format_money(amount_cents, order.currency),
        },
        source_object=refund,
        idempotency_key=f"{REFUND_PROCESSED}:{refund.id}",
    )


def dropship_order_shipped(dropship_order: DropshipOrder) -> ServiceResult:
    order = dropship_order.order
    return _notify(
        recipient=order.user,
        type_key=DROPSHIP_ORDER_SHIPPED,
        data={
            "order_id": str(order.id),
            "order_number": order.number,
            "tracking_number": dropship_order.tracking_number or "not available",
            "carrier": dropship_order.carrier or "the carrier",
        },
        source_object=dropship_order,
        idempotency_key=(
            f"{DROPSHIP_ORDER_SHIPPED}:{dropship_order.id}:{dropship_order.tracking_number}"
        ),
    )


def dropship_order_confirmed(dropship_order: DropshipOrder) -> ServiceResult:
    order = dropship_order.order
    return _notify(
        recipient=order.user,
        type_key=DROPSHIP_ORDER_CONFIRMED,
        data={
            "order_id": str(order.id),
            "order_number": order.number,
        },
        source_object=dropship_order,
        idempotency_key=f"{DROPSHIP_ORDER_CONFIRMED}:{dropship_order.id}",
    )
