"""
Handlers for supplier webhook events.

Handlers are registered per event type and receive the stored
SupplierWebhookEvent. The event body is either flat or wraps its fields
in ``data``; both shapes are accepted.

Order events locate the dropship order by the supplier's order id,
falling back to ``external_order_id`` (our dropship order id, sent with
the original submission).
"""

from __future__ import annotations

import functools
import logging
import uuid
from typing import Any, Callable

from core.services import ServiceResult
from dropshipping.clients import parse_estimated_delivery
from dropshipping.models import DropshipOrder, SupplierWebhookEvent
from dropshipping.services import DropshipOrderService, SupplierService
from dropshipping.states import DropshipStatus

logger = logging.getLogger(__name__)


WEBHOOK_HANDLERS: dict[str, Callable[[SupplierWebhookEvent], ServiceResult]] = {}


def register_handler(*event_types: str) -> Callable:
    def decorator(func: Callable[[SupplierWebhookEvent], ServiceResult]) -> Callable:
        for event_type in event_types:
            WEBHOOK_HANDLERS[event_type] = func
        return func

    return decorator


def is_handled(event_type: str) -> bool:
    return event_type in WEBHOOK_HANDLERS


def dispatch_webhook(webhook_event: SupplierWebhookEvent) -> ServiceResult:
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)
    if handler is None:
        logger.info(
            f"No handler for supplier event type: {webhook_event.event_type}",
            extra={"webhook_event_id": str(webhook_event.id)},
        )
        return ServiceResult.success(None)
    return handler(webhook_event)


def event_data(webhook_event: SupplierWebhookEvent) -> dict[str, Any]:
    payload = webhook_event.payload or {}
    data = payload.get("data")
    return data if isinstance(data, dict) else payload


def find_dropship_order(webhook_event: SupplierWebhookEvent) -> DropshipOrder | None:
    data = event_data(webhook_event)
    orders = DropshipOrder.objects.filter(supplier_id=webhook_event.supplier_id)

    supplier_order_id = data.get("supplier_order_id") or data.get("order_id")
    if supplier_order_id:
        dropship_order = orders.filter(supplier_order_id=str(supplier_order_id)).first()
        if dropship_order is not None:
            return dropship_order

    external_order_id = data.get("external_order_id")
    if external_order_id:
        try:
            return orders.filter(pk=uuid.UUID(str(external_order_id))).first()
        except ValueError:
            return None
    return None


def _with_order(func: Callable[[SupplierWebhookEvent, DropshipOrder, dict], ServiceResult]) -> Callable:
    @functools.wraps(func)
    def wrapper(webhook_event: SupplierWebhookEvent) -> ServiceResult:
        dropship_order = find_dropship_order(webhook_event)
        if dropship_order is None:
            logger.warning(
                f"{webhook_event.event_type}: dropship order not found",
                extra={"webhook_event_id": str(webhook_event.id), "supplier_id": str(webhook_event.supplier_id)},
            )
            return ServiceResult.failure("Dropship order not found", error_code="NOT_FOUND")
        return func(webhook_event, dropship_order, event_data(webhook_event))

    return wrapper


# =============================================================================
# Order Handlers
# =============================================================================


@register_handler("order.status_changed", "order.updated")
@_with_order
def handle_order_status(webhook_event, dropship_order, data) -> ServiceResult:
    return DropshipOrderService.process_supplier_response(dropship_order, data)


@register_handler("order.confirmed")
@_with_order
def handle_order_confirmed(webhook_event, dropship_order, data) -> ServiceResult:
    return DropshipOrderService.mark_confirmed(dropship_order, str(data.get("supplier_order_id") or ""))


@register_handler("order.shipped")
@_with_order
def handle_order_shipped(webhook_event, dropship_order, data) -> ServiceResult:
    tracking_number = data.get("tracking_number")
    if not tracking_number:
        return ServiceResult.failure(
            "order.shipped without tracking_number",
            error_code="MISSING_TRACKING_NUMBER",
        )
    estimated = data.get("estimated_delivery")
    return DropshipOrderService.mark_shipped(
        dropship_order,
        tracking_number=tracking_number,
        carrier=data.get("carrier") or "",
        estimated_delivery=parse_estimated_delivery(estimated),
    )


@register_handler("order.delivered")
@_with_order
def handle_order_delivered(webhook_event, dropship_order, data) -> ServiceResult:
    return DropshipOrderService.mark_delivered(dropship_order)


@register_handler("order.cancelled")
@_with_order
def handle_order_cancelled(webhook_event, dropship_order, data) -> ServiceResult:
    return DropshipOrderService.cancel_dropship_order(
        dropship_order, reason=data.get("reason") or "Cancelled by supplier"
    )


@register_handler("order.rejected")
@_with_order
def handle_order_rejected(webhook_event, dropship_order, data) -> ServiceResult:
    return DropshipOrderService.change_status(
        dropship_order,
        DropshipStatus.REJECTED_BY_SUPPLIER,
        reason=data.get("reason") or "Rejected by supplier",
    )


# =============================================================================
# Catalog Handlers
# =============================================================================


@register_handler("product.updated", "product.price_changed")
def handle_product_updated(webhook_event: SupplierWebhookEvent) -> ServiceResult:
    return SupplierService.update_product(webhook_event.supplier, event_data(webhook_event))


@register_handler("product.stock_changed", "inventory.updated")
def handle_stock_changed(webhook_event: SupplierWebhookEvent) -> ServiceResult:
    """Single product stock, or a ``products`` list for bulk inventory updates."""
    data = event_data(webhook_event)
    entries = data.get("products") if isinstance(data.get("products"), list) else [data]

    updated = sum(1 for entry in entries if SupplierService.update_stock(webhook_event.supplier, entry))
    if len(entries) > updated:
        logger.warning(
            f"{webhook_event.event_type}: {len(entries) - updated} unknown SKUs",
            extra={"webhook_event_id": str(webhook_event.id)},
        )
    return ServiceResult.success({"updated": updated})


@register_handler("product.discontinued")
def handle_product_discontinued(webhook_event: SupplierWebhookEvent) -> ServiceResult:
    return SupplierService.discontinue_product(webhook_event.supplier, event_data(webhook_event))
