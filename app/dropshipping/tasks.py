"""
Celery tasks for dropshipping.

Tasks:
    create_dropship_orders_for_order: Split a paid order into supplier orders
    send_dropship_order_to_supplier: Submit one order, retried on outages
    retry_failed_dropship_orders: Re-send pending and rejected orders (periodic)
    process_overdue_dropship_orders: Flag late orders, alert admins (daily)
    check_supplier_health: Log unhealthy integrations (hourly)
    process_supplier_webhook: Dispatch a stored supplier webhook
    sync_supplier_stock: Pull stock levels over supplier APIs (periodic)

Usage:
    from dropshipping.tasks import send_dropship_order_to_supplier

    send_dropship_order_to_supplier.delay(str(dropship_order.id))

Periodic tasks are scheduled by django-celery-beat (seeded in migrations).
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.utils import timezone

from dropshipping.exceptions import SupplierCommunicationError
from dropshipping.models import DropshipOrder, Supplier, SupplierWebhookEvent
from dropshipping.services import DropshipOrderService, SupplierService
from dropshipping.states import DropshipStatus, SupplierStatus, SupplierWebhookStatus
from orders.models import Order

logger = logging.getLogger(__name__)


RETRY_BATCH_SIZE = 100
# Fresh pending orders are still on their way to the supplier
RETRY_GRACE_MINUTES = 15


@shared_task
def create_dropship_orders_for_order(order_id: str) -> dict:
    order = Order.objects.filter(pk=order_id).first()
    if order is None:
        logger.error("Order not found for dropshipping", extra={"order_id": str(order_id)})
        return {"status": "not_found", "order_id": str(order_id)}

    result = DropshipOrderService.create_dropship_orders_from_order(order)
    if not result.success:
        logger.info(
            f"Dropship orders not created: {result.error}",
            extra={"order_id": str(order.id), "error_code": result.error_code},
        )
        return {"status": "skipped", "order_id": str(order.id), "reason": result.error_code}

    return {
        "status": "created",
        "order_id": str(order.id),
        "dropship_order_ids": [str(dropship_order.id) for dropship_order in result.data],
    }


@shared_task(
    bind=True,
    autoretry_for=(SupplierCommunicationError,),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_kwargs={"max_retries": 5},
    acks_late=True,
)
def send_dropship_order_to_supplier(self, dropship_order_id: str) -> dict:
    """
    Submit a pending dropship order to its supplier.

    SupplierCommunicationError propagates for autoretry with backoff. A
    rejection is recorded on the order and is not retried here;
    retry_failed_dropship_orders handles it.
    """
    log_context = {"dropship_order_id": str(dropship_order_id), "attempt": self.request.retries + 1}

    result = DropshipOrderService.submit_to_supplier(dropship_order_id)
    if not result.success:
        logger.info(f"Dropship order not sent: {result.error}", extra={**log_context, "error_code": result.error_code})
        return {"status": "skipped", "dropship_order_id": str(dropship_order_id), "reason": result.error_code}

    logger.info(f"Dropship order sent, now {result.data.status}", extra=log_context)
    return {"status": result.data.status, "dropship_order_id": str(dropship_order_id)}


@shared_task
def retry_failed_dropship_orders() -> dict:
    """Re-send pending and rejected orders of auto-fulfilling suppliers."""
    threshold = timezone.now() - timedelta(minutes=RETRY_GRACE_MINUTES)
    candidates = (
        DropshipOrder.objects.needs_retry()
        .exclude(status=DropshipStatus.PENDING, updated_at__gte=threshold)
        .order_by("updated_at")[:RETRY_BATCH_SIZE]
    )

    retried_count = 0
    failed_count = 0
    for dropship_order in candidates:
        result = DropshipOrderService.retry_dropship_order(dropship_order)
        if result.success:
            retried_count += 1
        else:
            failed_count += 1
            logger.warning(
                f"Retry not possible: {result.error}",
                extra={"dropship_order_id": str(dropship_order.id), "error_code": result.error_code},
            )

    if retried_count or failed_count:
        logger.info(f"Retried {retried_count} dropship orders, {failed_count} skipped")
    return {"retried_count": retried_count, "failed_count": failed_count}


@shared_task
def process_overdue_dropship_orders() -> dict:
    return DropshipOrderService.process_overdue_orders()


@shared_task
def check_supplier_health() -> dict:
    report = SupplierService.check_health()
    unhealthy = [entry["supplier_name"] for entry in report if not entry["is_healthy"]]
    return {"checked_count": len(report), "unhealthy": unhealthy}


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": 5},
    acks_late=True,
)
def process_supplier_webhook(self, webhook_event_id: str) -> dict:
    """
    Dispatch a stored supplier webhook to its handler.

    Unknown event types are marked ignored. A handler failure marks the
    event failed. Unexpected exceptions mark it failed and are re-raised
    for retry.
    """
    from dropshipping.webhooks.handlers import dispatch_webhook, is_handled

    webhook_event = SupplierWebhookEvent.objects.select_related("supplier").filter(id=webhook_event_id).first()
    if webhook_event is None:
        logger.error("SupplierWebhookEvent not found", extra={"webhook_event_id": str(webhook_event_id)})
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if webhook_event.status in (SupplierWebhookStatus.PROCESSED, SupplierWebhookStatus.IGNORED):
        return {"status": "already_processed", "webhook_event_id": str(webhook_event.id)}

    webhook_event.attempts += 1
    webhook_event.save(update_fields=["attempts", "updated_at"])

    log_context = {
        "webhook_event_id": str(webhook_event.id),
        "supplier_id": str(webhook_event.supplier_id),
        "event_type": webhook_event.event_type,
        "attempts": webhook_event.attempts,
    }

    if not is_handled(webhook_event.event_type):
        webhook_event.mark_processed(SupplierWebhookStatus.IGNORED)
        webhook_event.save(update_fields=["status", "processed_at", "error_message", "updated_at"])
        logger.info("Supplier webhook ignored", extra=log_context)
        return {"status": SupplierWebhookStatus.IGNORED, "webhook_event_id": str(webhook_event.id)}

    try:
        result = dispatch_webhook(webhook_event)
    except Exception as e:
        webhook_event.mark_failed(f"{type(e).__name__}: {e}")
        webhook_event.save(update_fields=["status", "error_message", "updated_at"])
        logger.exception("Supplier webhook processing raised", extra=log_context)
        raise

    if not result.success:
        webhook_event.mark_failed(result.error or "Handler returned failure")
        webhook_event.save(update_fields=["status", "error_message", "updated_at"])
        logger.warning(
            f"Supplier webhook handler failed: {result.error}",
            extra={**log_context, "error_code": result.error_code},
        )
        return {"status": "handler_failed", "webhook_event_id": str(webhook_event.id), "error": result.error}

    webhook_event.mark_processed()
    webhook_event.save(update_fields=["status", "processed_at", "error_message", "updated_at"])
    logger.info("Supplier webhook processed", extra=log_context)
    return {"status": SupplierWebhookStatus.PROCESSED, "webhook_event_id": str(webhook_event.id)}


@shared_task
def sync_supplier_stock(supplier_id: str | None = None) -> dict:
    """Sync stock for one supplier, or every active supplier with stock sync on."""
    suppliers = Supplier.objects.filter(status=SupplierStatus.ACTIVE, stock_sync_enabled=True)
    if supplier_id:
        suppliers = suppliers.filter(pk=supplier_id)

    synced_count = 0
    failed = []
    for supplier in suppliers:
        try:
            result = SupplierService.sync_stock(supplier)
        except SupplierCommunicationError as e:
            logger.warning(
                f"Stock sync failed for {supplier.name}: {e.message}",
                extra={"supplier_id": str(supplier.id)},
            )
            failed.append(supplier.name)
            continue
        if result.success:
            synced_count += 1
        else:
            failed.append(supplier.name)

    return {"synced_count": synced_count, "failed": failed}
