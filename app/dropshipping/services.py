"""
Dropshipping services.

Services:
    DropshipOrderService: Supplier order lifecycle and its effect on the
        customer order (status, fulfilment status, tracking, stock)
    SupplierService: Integration health, connection checks, catalog and
        stock sync

Usage:
    from dropshipping.services import DropshipOrderService

    result = DropshipOrderService.create_dropship_orders_from_order(order)
    if result.success:
        for dropship_order in result.data:
            ...

    DropshipOrderService.mark_shipped(dropship_order, tracking_number="1Z999", carrier="UPS")

Every status change goes through change_status(), which applies the
django-fsm transition and then re-derives the customer order with
sync_order_from_dropship_status().
"""

from __future__ import annotations

import smtplib
import time
from collections import defaultdict
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction
from django.db.models import Count, F, Max, Q, Sum
from django.db.models.functions import Greatest
from django.utils import timezone
from django_fsm import TransitionNotAllowed

from core.services import BaseService, ServiceResult
from dropshipping.clients import SupplierClient, SupplierSubmission, parse_estimated_delivery
from dropshipping.models import (
    DropshipOrder,
    DropshipOrderItem,
    ProductSupplierMapping,
    Supplier,
    SupplierIntegration,
    SupplierProduct,
)
from dropshipping.states import DropshipStatus, IntegrationType, SupplierStatus
from orders.models import Order, OrderItem
from orders.states import FulfillmentStatus, OrderStatus

if TYPE_CHECKING:
    from authentication.models import User


STATUS_TRANSITIONS = {
    DropshipStatus.PENDING: "reset_for_retry",
    DropshipStatus.SENT_TO_SUPPLIER: "mark_sent",
    DropshipStatus.CONFIRMED_BY_SUPPLIER: "mark_confirmed",
    DropshipStatus.PROCESSING: "mark_processing",
    DropshipStatus.SHIPPED_BY_SUPPLIER: "mark_shipped",
    DropshipStatus.OUT_FOR_DELIVERY: "mark_out_for_delivery",
    DropshipStatus.DELIVERED: "mark_delivered",
    DropshipStatus.CANCELLED: "cancel",
    DropshipStatus.REJECTED_BY_SUPPLIER: "mark_rejected",
    DropshipStatus.ON_HOLD: "hold",
}

# Keyword arguments each transition accepts from change_status(**context)
TRANSITION_ARGUMENTS = {
    "mark_confirmed": ("supplier_order_id",),
    "mark_shipped": ("tracking_number", "carrier", "estimated_delivery"),
    "mark_rejected": ("reason",),
    "hold": ("reason",),
    "cancel": ("reason",),
}

SUPPLIER_STATUS_MAP = {
    "accepted": DropshipStatus.CONFIRMED_BY_SUPPLIER,
    "confirmed": DropshipStatus.CONFIRMED_BY_SUPPLIER,
    "processing": DropshipStatus.PROCESSING,
    "shipped": DropshipStatus.SHIPPED_BY_SUPPLIER,
    "in_transit": DropshipStatus.SHIPPED_BY_SUPPLIER,
    "out_for_delivery": DropshipStatus.OUT_FOR_DELIVERY,
    "delivered": DropshipStatus.DELIVERED,
    "cancelled": DropshipStatus.CANCELLED,
    "canceled": DropshipStatus.CANCELLED,
    "rejected": DropshipStatus.REJECTED_BY_SUPPLIER,
    "on_hold": DropshipStatus.ON_HOLD,
}

EDITABLE_FIELDS = (
    "supplier_order_id",
    "tracking_number",
    "carrier",
    "estimated_delivery",
    "notes",
    "supplier_notes",
    "auto_retry_enabled",
    "shipping_address",
)

SHIPPED_STATES = (
    DropshipStatus.SHIPPED_BY_SUPPLIER,
    DropshipStatus.OUT_FOR_DELIVERY,
    DropshipStatus.DELIVERED,
)
FULFILLED_STATES = (
    DropshipStatus.CONFIRMED_BY_SUPPLIER,
    DropshipStatus.PROCESSING,
    *SHIPPED_STATES,
)

FAILURE_RATE_THRESHOLD = 10
HIGH_FAILURE_RATE = 25
SLOW_FULFILLMENT_HOURS = 120
VERY_SLOW_FULFILLMENT_HOURS = 240
LOW_HEALTH_SCORE = 50


def to_cents(amount) -> int:
    """Convert a major-unit amount ("12.50", 12.5, Decimal) to integer cents."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def derive_order_status(statuses: list[str], trigger_status: str | None = None) -> str | None:
    """
    Customer order status implied by its dropship order statuses.

    Returns None when the order status should be left unchanged.
    """
    present = set(statuses)
    if not present:
        return None
    if present == {DropshipStatus.DELIVERED}:
        return OrderStatus.DELIVERED
    if present == {DropshipStatus.CANCELLED}:
        return OrderStatus.CANCELLED
    if present <= {DropshipStatus.DELIVERED, DropshipStatus.CANCELLED}:
        return OrderStatus.DELIVERED
    if present & {DropshipStatus.SHIPPED_BY_SUPPLIER, DropshipStatus.DELIVERED}:
        return OrderStatus.SHIPPED
    if DropshipStatus.OUT_FOR_DELIVERY in present:
        return OrderStatus.OUT_FOR_DELIVERY
    if present & {DropshipStatus.CONFIRMED_BY_SUPPLIER, DropshipStatus.PROCESSING}:
        return OrderStatus.PROCESSING
    if present <= {DropshipStatus.REJECTED_BY_SUPPLIER, DropshipStatus.CANCELLED}:
        return OrderStatus.FAILED
    if trigger_status == DropshipStatus.ON_HOLD:
        return OrderStatus.ON_HOLD
    return None


def derive_fulfillment_status(statuses: list[str]) -> str:
    total = len(statuses)
    if not total:
        return FulfillmentStatus.UNFULFILLED

    delivered = sum(1 for s in statuses if s == DropshipStatus.DELIVERED)
    shipped = sum(1 for s in statuses if s in SHIPPED_STATES)
    fulfilled = sum(1 for s in statuses if s in FULFILLED_STATES)

    if delivered == total:
        return FulfillmentStatus.DELIVERED
    if delivered:
        return FulfillmentStatus.PARTIALLY_DELIVERED
    if shipped == total:
        return FulfillmentStatus.SHIPPED
    if shipped:
        return FulfillmentStatus.PARTIALLY_SHIPPED
    if fulfilled == total:
        return FulfillmentStatus.FULFILLED
    if fulfilled:
        return FulfillmentStatus.PARTIALLY_FULFILLED
    if all(s == DropshipStatus.CANCELLED for s in statuses):
        return FulfillmentStatus.CANCELLED
    return FulfillmentStatus.UNFULFILLED


class DropshipOrderService(BaseService):
    """Supplier order lifecycle."""

    # ==========================================================================
    # Creation
    # ==========================================================================

    @classmethod
    def create_dropship_orders_from_order(cls, order: Order) -> ServiceResult[list[DropshipOrder]]:
        """
        Split the dropship items of a paid order into one order per supplier.

        Each item goes to its best active mapping: lowest priority number,
        active supplier, active supplier product with enough stock. Supplier
        groups outside the supplier's countries or order value range are
        skipped. Orders of auto-fulfilling suppliers are queued for
        submission once the transaction commits.

        Error codes:
            ORDER_NOT_ELIGIBLE: order unpaid or cancelled
            ALREADY_CREATED: order already has dropship orders
        """
        logger = cls.get_logger()

        with cls.atomic():
            order = Order.objects.select_for_update().get(pk=order.pk)
            if not order.is_paid() or order.is_cancelled():
                return ServiceResult.failure(
                    f"Order {order.number} is not paid or was cancelled",
                    error_code="ORDER_NOT_ELIGIBLE",
                )
            if order.dropship_orders.exists():
                return ServiceResult.failure(
                    f"Order {order.number} already has dropship orders",
                    error_code="ALREADY_CREATED",
                )

            groups: dict[Supplier, list[tuple[OrderItem, ProductSupplierMapping]]] = defaultdict(list)
            for item in order.items.select_related("product").filter(product__is_dropship=True):
                mapping = cls.best_mapping(item)
                if mapping is None:
                    logger.warning(
                        f"No available supplier for {item.sku} on order {order.number}",
                        extra={"order_id": str(order.id), "order_item_id": str(item.id)},
                    )
                    continue
                groups[mapping.supplier].append((item, mapping))

            created: list[DropshipOrder] = []
            for supplier, lines in groups.items():
                retail_cents = sum(item.line_total_cents for item, _ in lines)
                if not supplier.supports_country(order.shipping_country):
                    logger.warning(
                        f"Supplier {supplier.name} does not ship to {order.shipping_country}",
                        extra={"order_id": str(order.id), "supplier_id": str(supplier.id)},
                    )
                    continue
                if not supplier.can_fulfill_order(retail_cents):
                    logger.warning(
                        f"Order value {retail_cents} outside range of supplier {supplier.name}",
                        extra={"order_id": str(order.id), "supplier_id": str(supplier.id)},
                    )
                    continue
                created.append(cls._create_for_supplier(order, supplier, lines))

            if created and order.status == OrderStatus.CONFIRMED:
                order.apply_fulfillment_status(OrderStatus.PROCESSING)
                order.save(update_fields=["status", "updated_at"])

            for dropship_order in created:
                if dropship_order.supplier.can_auto_fulfill():
                    cls.send_to_supplier(dropship_order)

        logger.info(
            f"Created {len(created)} dropship orders for order {order.number}",
            extra={"order_id": str(order.id), "dropship_order_count": len(created)},
        )
        return ServiceResult.success(created)

    @classmethod
    def best_mapping(cls, item: OrderItem) -> ProductSupplierMapping | None:
        return (
            ProductSupplierMapping.objects.filter(
                product_id=item.product_id,
                is_active=True,
                supplier__status=SupplierStatus.ACTIVE,
                supplier_product__is_active=True,
                supplier_product__stock_quantity__gte=item.quantity,
            )
            .select_related("supplier", "supplier_product")
            .order_by("priority", "created_at")
            .first()
        )

    @classmethod
    def _create_for_supplier(
        cls,
        order: Order,
        supplier: Supplier,
        lines: list[tuple[OrderItem, ProductSupplierMapping]],
    ) -> DropshipOrder:
        dropship_order = DropshipOrder.objects.create(
            order=order,
            supplier=supplier,
            shipping_address=order.shipping_address,
        )
        for item, mapping in lines:
            supplier_product = mapping.supplier_product
            DropshipOrderItem.objects.create(
                dropship_order=dropship_order,
                order_item=item,
                supplier_product=supplier_product,
                supplier_sku=supplier_product.supplier_sku,
                quantity=item.quantity,
                supplier_price_cents=supplier_product.cost_price_cents,
                retail_price_cents=item.unit_price_cents,
                product_details={"name": item.product_name, "sku": item.sku},
            )
        dropship_order.recalculate_totals()
        dropship_order.save(
            update_fields=["total_cost_cents", "total_retail_cents", "profit_margin_cents", "updated_at"]
        )
        return dropship_order

    @classmethod
    def validate_dropship_order_data(cls, data: dict[str, Any]) -> list[str]:
        """Business checks for a manually created dropship order."""
        errors = []

        order = Order.objects.filter(pk=data.get("order_id")).first() if data.get("order_id") else None
        if order is None:
            errors.append("Order not found")
        elif order.has_active_shipment():
            errors.append("Order already has active shipment")

        supplier = Supplier.objects.filter(pk=data.get("supplier_id")).first() if data.get("supplier_id") else None
        if supplier is None:
            errors.append("Supplier not found")
        elif not supplier.is_active():
            errors.append("Supplier is not active")

        if order is not None and supplier is not None:
            if DropshipOrder.objects.filter(order=order, supplier=supplier).exists():
                errors.append("Order already has a dropship order for this supplier")

        if Decimal(str(data.get("total_retail", 0))) - Decimal(str(data.get("total_cost", 0))) < 0:
            errors.append("Negative profit margin detected")

        items = data.get("items") or []
        if not items:
            errors.append("No items provided")
        for index, item in enumerate(items):
            if Decimal(str(item.get("retail_price", 0))) - Decimal(str(item.get("supplier_price", 0))) < 0:
                errors.append(f"Item {index}: Negative profit margin")

        return errors

    @classmethod
    def create_dropship_order(cls, data: dict[str, Any], actor: User | None = None) -> ServiceResult[DropshipOrder]:
        """
        Create a dropship order by hand.

        Amounts in ``data`` are major units (``total_cost``, ``total_retail``
        and per item ``supplier_price``, ``retail_price``) and are stored as
        cents.

        Error codes:
            VALIDATION_ERROR: see validate_dropship_order_data
        """
        errors = cls.validate_dropship_order_data(data)
        if errors:
            return ServiceResult.failure(
                "Dropship order data is invalid",
                error_code="VALIDATION_ERROR",
                errors={"non_field_errors": errors},
            )

        with cls.atomic():
            order = Order.objects.get(pk=data["order_id"])
            total_cost_cents = to_cents(data["total_cost"])
            total_retail_cents = to_cents(data["total_retail"])
            dropship_order = DropshipOrder.objects.create(
                order=order,
                supplier_id=data["supplier_id"],
                supplier_order_id=data.get("supplier_order_id", ""),
                shipping_address=data.get("shipping_address") or order.shipping_address,
                total_cost_cents=total_cost_cents,
                total_retail_cents=total_retail_cents,
                profit_margin_cents=total_retail_cents - total_cost_cents,
                notes=data.get("notes", ""),
                estimated_delivery=data.get("estimated_delivery"),
            )
            for item in data["items"]:
                DropshipOrderItem.objects.create(
                    dropship_order=dropship_order,
                    order_item_id=item.get("order_item_id"),
                    supplier_product_id=item.get("supplier_product_id"),
                    supplier_sku=item["supplier_sku"],
                    quantity=item.get("quantity", 1),
                    supplier_price_cents=to_cents(item["supplier_price"]),
                    retail_price_cents=to_cents(item["retail_price"]),
                    product_details=item.get("product_details") or {},
                )

        cls.get_logger().info(
            f"Dropship order {dropship_order.id} created manually for order {order.number}",
            extra={
                "dropship_order_id": str(dropship_order.id),
                "actor_id": str(actor.id) if actor else None,
            },
        )
        return ServiceResult.success(dropship_order)

    @classmethod
    def update_dropship_order(cls, dropship_order: DropshipOrder, data: dict[str, Any]) -> ServiceResult[DropshipOrder]:
        changed = [name for name in EDITABLE_FIELDS if name in data]
        for name in changed:
            setattr(dropship_order, name, data[name])
        if changed:
            dropship_order.save(update_fields=[*changed, "updated_at"])
        return ServiceResult.success(dropship_order)

    @classmethod
    def delete_dropship_order(cls, dropship_order: DropshipOrder) -> ServiceResult[None]:
        if dropship_order.status not in (DropshipStatus.PENDING, DropshipStatus.CANCELLED):
            return ServiceResult.failure(
                f"Dropship order in status {dropship_order.status} cannot be deleted",
                error_code="CANNOT_DELETE",
            )
        dropship_order.delete()
        return ServiceResult.success(None)

    # ==========================================================================
    # Submission
    # ==========================================================================

    @classmethod
    def send_to_supplier(cls, dropship_order: DropshipOrder, actor: User | None = None) -> ServiceResult[DropshipOrder]:
        """
        Queue submission of a pending order to its supplier.

        The task is queued after the current transaction commits.

        Error codes:
            NOT_PENDING, SUPPLIER_INACTIVE
        """
        from dropshipping.tasks import send_dropship_order_to_supplier

        if not dropship_order.is_pending():
            return ServiceResult.failure(
                f"Dropship order is {dropship_order.status}, not pending",
                error_code="NOT_PENDING",
            )
        if not dropship_order.supplier.is_active():
            return ServiceResult.failure(
                f"Supplier {dropship_order.supplier.name} is not active",
                error_code="SUPPLIER_INACTIVE",
            )

        dropship_order_id = str(dropship_order.id)
        transaction.on_commit(lambda: send_dropship_order_to_supplier.delay(dropship_order_id))
        cls.get_logger().info(
            "Dropship order queued for submission",
            extra={"dropship_order_id": dropship_order_id, "actor_id": str(actor.id) if actor else None},
        )
        return ServiceResult.success(dropship_order)

    @classmethod
    def submit_to_supplier(cls, dropship_order_id) -> ServiceResult[DropshipOrder]:
        """
        Send a pending order through the supplier's integration.

        SupplierCommunicationError from the client propagates so the
        calling task can retry.

        Error codes:
            NOT_FOUND, NOT_PENDING, NO_INTEGRATION
        """
        dropship_order = (
            DropshipOrder.objects.select_related("supplier", "order__user").filter(pk=dropship_order_id).first()
        )
        if dropship_order is None:
            return ServiceResult.failure("Dropship order not found", error_code="NOT_FOUND")
        if not dropship_order.is_pending():
            return ServiceResult.failure(
                f"Dropship order is {dropship_order.status}, not pending",
                error_code="NOT_PENDING",
            )

        supplier = dropship_order.supplier
        integration = supplier.get_active_integration()
        if integration is not None:
            submission = SupplierClient.send_order(dropship_order, integration)
        elif supplier.integration_type == IntegrationType.MANUAL:
            submission = SupplierSubmission(success=True, method=IntegrationType.MANUAL)
        else:
            return ServiceResult.failure(
                f"Supplier {supplier.name} has no active integration",
                error_code="NO_INTEGRATION",
            )

        return cls.process_submission(dropship_order, submission)

    @classmethod
    def process_submission(
        cls,
        dropship_order: DropshipOrder,
        submission: SupplierSubmission,
    ) -> ServiceResult[DropshipOrder]:
        """
        Record the supplier's answer to a submission.

        Accepted orders become sent, and confirmed when the supplier
        returned its own order id. Refusals become rejected.
        """
        from notifications import notify

        with cls.atomic():
            dropship_order = DropshipOrder.objects.select_for_update().get(pk=dropship_order.pk)
            dropship_order.supplier_response = {
                "method": submission.method,
                "status_code": submission.status_code,
                "data": submission.response_data,
                "error": submission.error,
            }
            try:
                if submission.success:
                    dropship_order.mark_sent()
                    if submission.estimated_delivery:
                        dropship_order.estimated_delivery = submission.estimated_delivery
                    if submission.supplier_order_id:
                        dropship_order.mark_confirmed(submission.supplier_order_id)
                else:
                    dropship_order.mark_rejected(submission.error)
            except TransitionNotAllowed:
                return ServiceResult.failure(
                    f"Dropship order is {dropship_order.status}, submission ignored",
                    error_code="INVALID_TRANSITION",
                )
            dropship_order.save()

            cls.sync_order_from_dropship_status(dropship_order.order, dropship_order)

            if dropship_order.status == DropshipStatus.CONFIRMED_BY_SUPPLIER:
                transaction.on_commit(lambda: notify.dropship_order_confirmed(dropship_order))

        cls.get_logger().info(
            f"Supplier submission recorded: {dropship_order.status}",
            extra={"dropship_order_id": str(dropship_order.id), "method": submission.method},
        )
        return ServiceResult.success(dropship_order)

    @classmethod
    def retry_dropship_order(cls, dropship_order: DropshipOrder) -> ServiceResult[DropshipOrder]:
        """
        Reset a pending or rejected order and submit it again.

        Error codes:
            CANNOT_RETRY: auto retry disabled, retries exhausted or wrong status
        """
        with cls.atomic():
            dropship_order = DropshipOrder.objects.select_for_update().get(pk=dropship_order.pk)
            if not dropship_order.can_retry():
                return ServiceResult.failure(
                    f"Dropship order cannot be retried (status {dropship_order.status}, "
                    f"{dropship_order.retry_count} retries)",
                    error_code="CANNOT_RETRY",
                )
            dropship_order.reset_for_retry()
            dropship_order.save()
            result = cls.send_to_supplier(dropship_order)

        if result.success:
            cls.get_logger().info(
                f"Dropship order retry {dropship_order.retry_count}",
                extra={"dropship_order_id": str(dropship_order.id)},
            )
        return result

    # ==========================================================================
    # Status changes
    # ==========================================================================

    @classmethod
    def change_status(cls, dropship_order: DropshipOrder, status: str, **context) -> ServiceResult[DropshipOrder]:
        """
        Apply the transition leading to ``status`` and sync the customer order.

        ``context`` may carry supplier_order_id, tracking_number, carrier,
        estimated_delivery, reason, notes and webhook_data. Setting the
        current status again only stores the context.

        Error codes:
            INVALID_STATUS: no transition leads to status
            INVALID_TRANSITION: transition not allowed from the current status
        """
        from notifications import notify

        transition_name = STATUS_TRANSITIONS.get(status)
        if transition_name is None:
            return ServiceResult.failure(f"Unknown dropship status: {status}", error_code="INVALID_STATUS")

        with cls.atomic():
            dropship_order = DropshipOrder.objects.select_for_update().get(pk=dropship_order.pk)
            previous = dropship_order.status

            if context.get("webhook_data") is not None:
                dropship_order.webhook_data = context["webhook_data"]
            if context.get("notes"):
                dropship_order.add_note(context["notes"])

            if previous == status:
                dropship_order.save()
                return ServiceResult.success(dropship_order)

            kwargs = {
                name: context[name]
                for name in TRANSITION_ARGUMENTS.get(transition_name, ())
                if context.get(name)
            }
            try:
                getattr(dropship_order, transition_name)(**kwargs)
            except TransitionNotAllowed:
                return ServiceResult.failure(
                    f"Cannot change dropship order from {previous} to {status}",
                    error_code="INVALID_TRANSITION",
                )
            dropship_order.save()

            cls.sync_order_from_dropship_status(dropship_order.order, dropship_order)

            if dropship_order.status == DropshipStatus.CONFIRMED_BY_SUPPLIER:
                transaction.on_commit(lambda: notify.dropship_order_confirmed(dropship_order))

        cls.get_logger().info(
            f"Dropship order {previous} -> {dropship_order.status}",
            extra={"dropship_order_id": str(dropship_order.id), "order_id": str(dropship_order.order_id)},
        )
        return ServiceResult.success(dropship_order)

    @classmethod
    def mark_confirmed(cls, dropship_order: DropshipOrder, supplier_order_id: str = "") -> ServiceResult[DropshipOrder]:
        return cls.change_status(
            dropship_order, DropshipStatus.CONFIRMED_BY_SUPPLIER, supplier_order_id=supplier_order_id
        )

    @classmethod
    def mark_shipped(
        cls,
        dropship_order: DropshipOrder,
        tracking_number: str = "",
        carrier: str = "",
        estimated_delivery=None,
    ) -> ServiceResult[DropshipOrder]:
        return cls.change_status(
            dropship_order,
            DropshipStatus.SHIPPED_BY_SUPPLIER,
            tracking_number=tracking_number,
            carrier=carrier,
            estimated_delivery=estimated_delivery,
        )

    @classmethod
    def mark_delivered(cls, dropship_order: DropshipOrder) -> ServiceResult[DropshipOrder]:
        return cls.change_status(dropship_order, DropshipStatus.DELIVERED)

    @classmethod
    def cancel_dropship_order(cls, dropship_order: DropshipOrder, reason: str = "") -> ServiceResult[DropshipOrder]:
        if dropship_order.is_delivered():
            return ServiceResult.failure(
                "Delivered dropship orders cannot be cancelled",
                error_code="CANNOT_CANCEL_DELIVERED",
            )
        return cls.change_status(dropship_order, DropshipStatus.CANCELLED, reason=reason)

    @classmethod
    def bulk_update_status(cls, ids: list, status: str, notes: str = "") -> dict[str, Any]:
        updated_count = 0
        errors = []
        for dropship_order_id in ids:
            dropship_order = DropshipOrder.objects.filter(pk=dropship_order_id).first()
            if dropship_order is None:
                errors.append(f"Order {dropship_order_id}: not found")
                continue
            result = cls.change_status(dropship_order, status, notes=notes)
            if result.success:
                updated_count += 1
            else:
                errors.append(f"Order {dropship_order_id}: {result.error}")

        cls.get_logger().info(
            f"Bulk status update to {status}: {updated_count} updated, {len(errors)} errors",
        )
        return {
            "updated_count": updated_count,
            "error_count": len(errors),
            "new_status": status,
            "errors": errors,
        }

    @classmethod
    def process_supplier_response(cls, dropship_order: DropshipOrder, response: dict[str, Any]) -> ServiceResult[DropshipOrder]:
        """
        Apply a status reported by the supplier (API poll or webhook).

        ``response["status"]`` uses the supplier's vocabulary, see
        SUPPLIER_STATUS_MAP. The whole response is kept in webhook_data.

        Error codes:
            UNKNOWN_SUPPLIER_STATUS, plus those of change_status
        """
        supplier_status = str(response.get("status") or "").lower()
        status = SUPPLIER_STATUS_MAP.get(supplier_status)
        if status is None:
            return ServiceResult.failure(
                f"Unknown supplier status: {supplier_status or '(missing)'}",
                error_code="UNKNOWN_SUPPLIER_STATUS",
            )

        estimated = response.get("estimated_delivery")
        return cls.change_status(
            dropship_order,
            status,
            supplier_order_id=str(response.get("supplier_order_id") or ""),
            tracking_number=response.get("tracking_number") or "",
            carrier=response.get("carrier") or "",
            estimated_delivery=parse_estimated_delivery(estimated),
            reason=response.get("reason") or "",
            webhook_data=response,
        )

    # ==========================================================================
    # Customer order sync
    # ==========================================================================

    @classmethod
    def sync_order_from_dropship_status(cls, order: Order, trigger: DropshipOrder | None = None) -> dict[str, Any]:
        """
        Re-derive the customer order from all of its dropship orders.

        Updates status and fulfillment_status, appends tracking for a
        shipped trigger and applies the trigger's stock and notification
        side effects. Refund states are left alone.

        Returns:
            {"status": str, "fulfillment_status": str, "changed": bool}
        """
        from notifications import notify

        logger = cls.get_logger()
        trigger_status = trigger.status if trigger is not None else None

        with cls.atomic():
            order = Order.objects.select_for_update().get(pk=order.pk)
            statuses = list(order.dropship_orders.values_list("status", flat=True))
            previous = (order.status, order.fulfillment_status, len(order.tracking_numbers))

            target = derive_order_status(statuses, trigger_status)
            if order.status in OrderStatus.refund_states():
                target = None
            if target and target != order.status:
                try:
                    order.apply_fulfillment_status(target)
                except TransitionNotAllowed:
                    logger.warning(
                        f"Order {order.number} cannot move from {order.status} to {target}",
                        extra={"order_id": str(order.id)},
                    )

            order.fulfillment_status = derive_fulfillment_status(statuses)

            if trigger_status == DropshipStatus.SHIPPED_BY_SUPPLIER and trigger.tracking_number:
                cls._append_tracking(order, trigger)

            changed = previous != (order.status, order.fulfillment_status, len(order.tracking_numbers))
            if changed:
                order.save()

            if trigger is not None:
                cls._apply_side_effects(order, trigger, notify)

        return {"status": order.status, "fulfillment_status": order.fulfillment_status, "changed": changed}

    @staticmethod
    def _append_tracking(order: Order, dropship_order: DropshipOrder) -> None:
        if any(entry.get("tracking_number") == dropship_order.tracking_number for entry in order.tracking_numbers):
            return
        shipped_at = dropship_order.shipped_by_supplier_at or timezone.now()
        order.tracking_numbers = [
            *order.tracking_numbers,
            {
                "tracking_number": dropship_order.tracking_number,
                "carrier": dropship_order.carrier,
                "shipped_at": shipped_at.isoformat(),
                "estimated_delivery": (
                    dropship_order.estimated_delivery.isoformat() if dropship_order.estimated_delivery else None
                ),
                "supplier_id": str(dropship_order.supplier_id),
                "dropship_order_id": str(dropship_order.id),
            },
        ]

    @classmethod
    def _apply_side_effects(cls, order: Order, trigger: DropshipOrder, notify) -> None:
        logger = cls.get_logger()
        items = list(trigger.items.all())

        # Dropship lines hold no local stock. Supplier stock is only consumed
        # on delivery, never restored on cancellation.
        if trigger.status == DropshipStatus.DELIVERED:
            for item in items:
                if item.supplier_product_id:
                    SupplierProduct.objects.filter(pk=item.supplier_product_id).update(
                        stock_quantity=Greatest(F("stock_quantity") - item.quantity, 0)
                    )

        elif trigger.status == DropshipStatus.SHIPPED_BY_SUPPLIER:
            transaction.on_commit(lambda: notify.dropship_order_shipped(trigger))

        elif trigger.status == DropshipStatus.REJECTED_BY_SUPPLIER:
            logger.warning(
                f"Supplier rejected dropship order for order {order.number}: {trigger.supplier_notes}",
                extra={"order_id": str(order.id), "dropship_order_id": str(trigger.id)},
            )

    # ==========================================================================
    # Monitoring and reporting
    # ==========================================================================

    @classmethod
    def process_overdue_orders(cls) -> dict[str, Any]:
        """
        Flag overdue orders and alert on suppliers with many of them.

        Returns:
            {"processed_count": int, "total_overdue": int, "supplier_alerts": list}
        """
        logger = cls.get_logger()
        now = timezone.now()
        overdue = DropshipOrder.objects.overdue()

        processed_count = 0
        for dropship_order in overdue.filter(overdue_flagged_at__isnull=True):
            dropship_order.add_note(f"Overdue: estimated delivery {dropship_order.estimated_delivery} has passed")
            dropship_order.overdue_flagged_at = now
            dropship_order.save(update_fields=["notes", "overdue_flagged_at", "updated_at"])
            processed_count += 1

        threshold = settings.DROPSHIP_OVERDUE_ALERT_THRESHOLD
        supplier_alerts = [
            {
                "supplier_id": str(row["supplier_id"]),
                "supplier_name": row["supplier__name"],
                "overdue_count": row["count"],
                "dropship_order_ids": [
                    str(pk) for pk in overdue.filter(supplier_id=row["supplier_id"]).values_list("id", flat=True)
                ],
            }
            for row in overdue.values("supplier_id", "supplier__name")
            .annotate(count=Count("id"))
            .filter(count__gte=threshold)
            .order_by("-count")
        ]

        if supplier_alerts:
            cls._email_overdue_alerts(supplier_alerts)

        total_overdue = overdue.count()
        logger.info(
            f"Overdue check: {processed_count} newly flagged, {total_overdue} overdue, "
            f"{len(supplier_alerts)} supplier alerts",
        )
        return {
            "processed_count": processed_count,
            "total_overdue": total_overdue,
            "supplier_alerts": supplier_alerts,
        }

    @classmethod
    def _email_overdue_alerts(cls, supplier_alerts: list[dict]) -> None:
        recipients = settings.ADMIN_ALERT_EMAILS
        if not recipients:
            cls.get_logger().warning("Overdue supplier alerts raised but ADMIN_ALERT_EMAILS is empty")
            return

        lines = [
            f"{alert['supplier_name']}: {alert['overdue_count']} overdue dropship orders"
            for alert in supplier_alerts
        ]
        try:
            send_mail(
                subject=f"{len(supplier_alerts)} suppliers with overdue orders",
                message="\n".join(lines),
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=recipients,
                fail_silently=False,
            )
        except (smtplib.SMTPException, OSError):
            cls.get_logger().exception("Failed to email overdue supplier alerts")

    @classmethod
    def get_statistics(cls) -> dict[str, Any]:
        orders = DropshipOrder.objects.all()

        by_supplier = (
            orders.values("supplier_id", "supplier__name").annotate(count=Count("id")).order_by("-count")
        )
        recent = orders.select_related("supplier", "order__user").order_by("-created_at")[:10]

        return {
            "totals": {
                "all_orders": orders.count(),
                "pending": orders.pending().count(),
                "active": orders.active().count(),
                "completed": orders.completed().count(),
                "overdue": orders.overdue().count(),
            },
            "by_status": {
                row["status"]: row["count"]
                for row in orders.values("status").annotate(count=Count("id")).order_by("status")
            },
            "by_supplier": [
                {
                    "supplier_id": str(row["supplier_id"]),
                    "supplier_name": row["supplier__name"],
                    "count": row["count"],
                }
                for row in by_supplier
            ],
            "recent_activity": [
                {
                    "id": str(dropship_order.id),
                    "order_id": str(dropship_order.order_id),
                    "order_number": dropship_order.order.number,
                    "supplier_name": dropship_order.supplier.name,
                    "customer": dropship_order.order.user.email,
                    "status": dropship_order.status,
                    "total_cost_cents": dropship_order.total_cost_cents,
                    "created_at": dropship_order.created_at,
                }
                for dropship_order in recent
            ],
        }

    @classmethod
    def generate_supplier_performance_report(cls, supplier_id, days: int = 30) -> ServiceResult[dict]:
        """
        Delivery performance and profitability of a supplier over ``days``.

        Error codes:
            NOT_FOUND
        """
        supplier = Supplier.objects.filter(pk=supplier_id).first()
        if supplier is None:
            return ServiceResult.failure("Supplier not found", error_code="NOT_FOUND")

        now = timezone.now()
        since = now - timedelta(days=days)
        orders = list(supplier.dropship_orders.filter(created_at__gte=since))

        total = len(orders)
        successful = sum(1 for o in orders if o.status == DropshipStatus.DELIVERED)
        failed = sum(1 for o in orders if o.status in DropshipStatus.failed_states())
        hours = [h for h in (o.processing_time_hours() for o in orders) if h is not None]
        avg_hours = round(sum(hours) / len(hours), 1) if hours else 0
        failure_rate = failed / total * 100 if total else 0

        totals = supplier.dropship_orders.filter(created_at__gte=since).aggregate(
            cost=Sum("total_cost_cents"),
            retail=Sum("total_retail_cents"),
            profit=Sum("profit_margin_cents"),
        )
        cost, retail, profit = (totals["cost"] or 0), (totals["retail"] or 0), (totals["profit"] or 0)

        issues = []
        if failure_rate > FAILURE_RATE_THRESHOLD:
            issues.append(
                {
                    "type": "high_failure_rate",
                    "description": f"Failure rate of {failure_rate:.1f}% exceeds {FAILURE_RATE_THRESHOLD}% threshold",
                    "severity": "high" if failure_rate > HIGH_FAILURE_RATE else "medium",
                }
            )
        if avg_hours > SLOW_FULFILLMENT_HOURS:
            issues.append(
                {
                    "type": "slow_fulfillment",
                    "description": f"Average fulfilment time of {avg_hours / 24:.1f} days exceeds 5 day threshold",
                    "severity": "high" if avg_hours > VERY_SLOW_FULFILLMENT_HOURS else "medium",
                }
            )
        integration = supplier.get_active_integration()
        if integration is not None and not integration.is_healthy():
            score = integration.health_score()
            issues.append(
                {
                    "type": "integration_issues",
                    "description": f"Integration health score: {score}",
                    "severity": "high" if score < LOW_HEALTH_SCORE else "medium",
                }
            )

        return ServiceResult.success(
            {
                "supplier": {
                    "id": str(supplier.id),
                    "name": supplier.name,
                    "integration_type": supplier.integration_type,
                },
                "period": {
                    "days": days,
                    "from": since.date().isoformat(),
                    "to": now.date().isoformat(),
                },
                "performance": {
                    "total_orders": total,
                    "successful_orders": successful,
                    "failed_orders": failed,
                    "success_rate": round(successful / total * 100, 2) if total else 0,
                    "avg_fulfillment_hours": avg_hours,
                },
                "profitability": {
                    "total_cost_cents": cost,
                    "total_retail_cents": retail,
                    "total_profit_cents": profit,
                    "profit_margin_percentage": round(profit / retail * 100, 2) if retail else 0,
                },
                "issues": issues,
            }
        )


class SupplierService(BaseService):
    """Supplier health and catalog maintenance."""

    @classmethod
    def check_health(cls, supplier_id=None) -> list[dict[str, Any]]:
        """Health summary of every active supplier's integration, or of one supplier."""
        logger = cls.get_logger()
        suppliers = (
            Supplier.objects.filter(pk=supplier_id)
            if supplier_id
            else Supplier.objects.filter(status=SupplierStatus.ACTIVE)
        )
        report = []
        for supplier in suppliers:
            integration = supplier.get_active_integration()
            if integration is None:
                healthy = supplier.integration_type == IntegrationType.MANUAL
                entry = {
                    "supplier_id": str(supplier.id),
                    "supplier_name": supplier.name,
                    "integration_type": supplier.integration_type,
                    "health_score": None,
                    "is_healthy": healthy,
                    "consecutive_failures": 0,
                    "last_success_at": None,
                    "last_failure_at": None,
                }
            else:
                healthy = integration.is_healthy()
                entry = {
                    "supplier_id": str(supplier.id),
                    "supplier_name": supplier.name,
                    "integration_type": integration.integration_type,
                    "health_score": integration.health_score(),
                    "is_healthy": healthy,
                    "consecutive_failures": integration.consecutive_failures,
                    "last_success_at": integration.last_success_at,
                    "last_failure_at": integration.last_failure_at,
                }
            if not healthy:
                logger.warning(
                    f"Supplier {supplier.name} is unhealthy",
                    extra={"supplier_id": str(supplier.id), "health_score": entry["health_score"]},
                )
            report.append(entry)
        return report

    @classmethod
    def send_health_report(cls, report: list[dict[str, Any]]) -> bool:
        """Email the health report to ADMIN_ALERT_EMAILS. False when nothing was sent."""
        recipients = settings.ADMIN_ALERT_EMAILS
        if not recipients or not report:
            return False

        unhealthy = [entry for entry in report if not entry["is_healthy"]]
        lines = [
            f"{entry['supplier_name']} ({entry['integration_type']}): "
            f"score {entry['health_score'] if entry['health_score'] is not None else 'n/a'}, "
            f"{'healthy' if entry['is_healthy'] else 'UNHEALTHY'}"
            for entry in report
        ]
        try:
            send_mail(
                subject=f"Supplier health: {len(unhealthy)} of {len(report)} unhealthy",
                message="\n".join(lines),
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=recipients,
                fail_silently=False,
            )
        except (smtplib.SMTPException, OSError):
            cls.get_logger().exception("Failed to email supplier health report")
            return False
        return True

    @staticmethod
    def connection_candidates(
        supplier_id=None,
        integration_type: str | None = None,
        unhealthy_only: bool = False,
    ):
        """Active integrations of active suppliers, optionally narrowed down."""
        integrations = SupplierIntegration.objects.select_related("supplier").filter(
            is_active=True, supplier__status=SupplierStatus.ACTIVE
        )
        if supplier_id:
            integrations = integrations.filter(supplier_id=supplier_id)
        if integration_type:
            integrations = integrations.filter(integration_type=integration_type)
        if unhealthy_only:
            integrations = integrations.filter(Q(consecutive_failures__gt=0) | Q(last_success_at__isnull=True))
        return integrations.order_by("supplier__name", "integration_type")

    @classmethod
    def check_connection(cls, integration: SupplierIntegration) -> dict[str, Any]:
        """Probe one integration and record the outcome on its health counters."""
        started = time.monotonic()
        check = SupplierClient.check_connection(integration)
        response_time_ms = round((time.monotonic() - started) * 1000, 2)

        if check.success:
            integration.record_success()
        else:
            integration.record_failure(check.error)
            cls.get_logger().warning(
                f"Connection check failed for {integration.supplier.name}: {check.error}",
                extra={
                    "supplier_id": str(integration.supplier_id),
                    "integration_type": integration.integration_type,
                    "error_type": check.error_type,
                },
            )
        return {
            "supplier_name": integration.supplier.name,
            "integration_type": integration.integration_type,
            "success": check.success,
            "error_type": check.error_type,
            "error": check.error,
            "response_time_ms": response_time_ms,
            "details": check.details,
        }

    @classmethod
    def sync_stock(cls, supplier: Supplier, dry_run: bool = False) -> ServiceResult[dict]:
        """
        Pull stock levels over the supplier's API integration.

        With dry_run the feed is fetched and matched but nothing is saved.
        SupplierCommunicationError propagates to the caller.

        Error codes:
            STOCK_SYNC_DISABLED, NO_API_INTEGRATION
        """
        if not supplier.stock_sync_enabled:
            return ServiceResult.failure(
                f"Stock sync is disabled for {supplier.name}",
                error_code="STOCK_SYNC_DISABLED",
            )
        integration = cls._api_integration(supplier)
        if integration is None:
            return ServiceResult.failure(
                f"Supplier {supplier.name} has no active API integration",
                error_code="NO_API_INTEGRATION",
            )

        entries = SupplierClient.fetch_stock(integration)
        known_skus = set(supplier.products.values_list("supplier_sku", flat=True))

        updated = 0
        out_of_stock = 0
        unknown_skus = []
        for entry in entries:
            if dry_run:
                applied = cls._sku(entry) in known_skus and cls._quantity(entry) is not None
            else:
                applied = cls.update_stock(supplier, entry)
            if not applied:
                unknown_skus.append(entry.get("sku") or entry.get("supplier_sku"))
                continue
            updated += 1
            if cls._quantity(entry) == 0:
                out_of_stock += 1

        cls.get_logger().info(
            f"Stock synced for {supplier.name}: {updated} updated, {len(unknown_skus)} unknown",
            extra={"supplier_id": str(supplier.id), "dry_run": dry_run, "out_of_stock": out_of_stock},
        )
        return ServiceResult.success(
            {"updated": updated, "out_of_stock": out_of_stock, "unknown_skus": unknown_skus}
        )

    @classmethod
    def sync_products(cls, supplier: Supplier, *, force: bool = False, dry_run: bool = False) -> ServiceResult[dict]:
        """
        Mirror the supplier's catalog feed into SupplierProduct rows.

        New SKUs are created, changed ones updated (and reactivated), and
        active products missing from a non-empty feed are deactivated along
        with their mappings. A supplier synced within
        DROPSHIP_CATALOG_SYNC_INTERVAL_MINUTES is skipped unless forced.
        SupplierCommunicationError propagates to the caller.

        Error codes:
            NO_API_INTEGRATION
        """
        logger = cls.get_logger()
        integration = cls._api_integration(supplier)
        if integration is None:
            return ServiceResult.failure(
                f"Supplier {supplier.name} has no active API integration",
                error_code="NO_API_INTEGRATION",
            )

        stats = {"skipped": False, "found": 0, "created": 0, "updated": 0, "deactivated": 0, "invalid": 0}
        if not force and cls._catalog_recently_synced(supplier):
            stats["skipped"] = True
            return ServiceResult.success(stats)

        entries = SupplierClient.fetch_products(integration)
        stats["found"] = len(entries)
        existing = {product.supplier_sku: product for product in supplier.products.all()}
        now = timezone.now()
        seen = set()

        with cls.atomic():
            for entry in entries:
                sku = cls._sku(entry)
                fields = cls._catalog_fields(entry)
                if not sku:
                    stats["invalid"] += 1
                    continue
                seen.add(sku)

                product = existing.get(sku)
                if product is None:
                    if "name" not in fields or "cost_price_cents" not in fields:
                        stats["invalid"] += 1
                        continue
                    stats["created"] += 1
                    if not dry_run:
                        SupplierProduct.objects.create(
                            supplier=supplier, supplier_sku=sku, last_synced_at=now, **fields
                        )
                    continue

                changes = {name: value for name, value in fields.items() if getattr(product, name) != value}
                if not product.is_active:
                    changes["is_active"] = True
                if not changes:
                    continue
                stats["updated"] += 1
                if not dry_run:
                    for name, value in changes.items():
                        setattr(product, name, value)
                    product.save()

            removed = [product.pk for sku, product in existing.items() if product.is_active and sku not in seen]
            if not entries:
                removed = []
                logger.warning(
                    f"Empty catalog feed from {supplier.name}; nothing deactivated",
                    extra={"supplier_id": str(supplier.id)},
                )
            stats["deactivated"] = len(removed)
            if removed and not dry_run:
                SupplierProduct.objects.filter(pk__in=removed).update(
                    is_active=False, last_synced_at=now, updated_at=now
                )
                ProductSupplierMapping.objects.filter(supplier_product_id__in=removed, is_active=True).update(
                    is_active=False
                )
            if not dry_run:
                supplier.products.filter(supplier_sku__in=seen).update(last_synced_at=now)

        logger.info(
            f"Catalog synced for {supplier.name}: {stats['created']} created, "
            f"{stats['updated']} updated, {stats['deactivated']} deactivated",
            extra={"supplier_id": str(supplier.id), "dry_run": dry_run, **stats},
        )
        return ServiceResult.success(stats)

    @staticmethod
    def _api_integration(supplier: Supplier) -> SupplierIntegration | None:
        return supplier.integrations.filter(is_active=True, integration_type=IntegrationType.API).first()

    @staticmethod
    def _catalog_recently_synced(supplier: Supplier) -> bool:
        last_synced = supplier.products.aggregate(last=Max("last_synced_at"))["last"]
        if last_synced is None:
            return False
        interval = timedelta(minutes=settings.DROPSHIP_CATALOG_SYNC_INTERVAL_MINUTES)
        return timezone.now() - last_synced < interval

    @classmethod
    def _catalog_fields(cls, data: dict[str, Any]) -> dict[str, Any]:
        fields = {}
        if data.get("name"):
            fields["name"] = str(data["name"])
        if "description" in data:
            fields["description"] = data["description"] or ""
        if data.get("cost_price_cents") is not None:
            fields["cost_price_cents"] = int(data["cost_price_cents"])
        elif data.get("price") is not None:
            fields["cost_price_cents"] = to_cents(data["price"])
        quantity = cls._quantity(data)
        if quantity is not None:
            fields["stock_quantity"] = max(0, quantity)
        return fields

    @staticmethod
    def _quantity(data: dict[str, Any]) -> int | None:
        quantity = data.get("stock_quantity", data.get("stock", data.get("quantity")))
        return None if quantity is None else int(quantity)

    @staticmethod
    def _sku(data: dict[str, Any]) -> str:
        return str(data.get("sku") or data.get("supplier_sku") or "")

    @classmethod
    def update_stock(cls, supplier: Supplier, data: dict[str, Any]) -> bool:
        """Set the stock of one supplier product. False when the SKU is unknown."""
        sku = cls._sku(data)
        quantity = cls._quantity(data)
        if not sku or quantity is None:
            return False
        return bool(
            SupplierProduct.objects.filter(supplier=supplier, supplier_sku=sku).update(
                stock_quantity=max(0, quantity),
                last_synced_at=timezone.now(),
                updated_at=timezone.now(),
            )
        )

    @classmethod
    def update_product(cls, supplier: Supplier, data: dict[str, Any]) -> ServiceResult[SupplierProduct]:
        """
        Apply a catalog update (name, description, price, stock).

        Prices arrive as ``cost_price_cents`` or as a major-unit ``price``.

        Error codes:
            MISSING_SKU, NOT_FOUND
        """
        sku = cls._sku(data)
        if not sku:
            return ServiceResult.failure("No SKU provided", error_code="MISSING_SKU")
        supplier_product = SupplierProduct.objects.filter(supplier=supplier, supplier_sku=sku).first()
        if supplier_product is None:
            return ServiceResult.failure(f"Unknown supplier SKU {sku}", error_code="NOT_FOUND")

        if data.get("name"):
            supplier_product.name = data["name"]
        if "description" in data:
            supplier_product.description = data["description"] or ""
        if data.get("cost_price_cents") is not None:
            supplier_product.cost_price_cents = int(data["cost_price_cents"])
        elif data.get("price") is not None:
            supplier_product.cost_price_cents = to_cents(data["price"])
        if data.get("stock_quantity") is not None:
            supplier_product.stock_quantity = int(data["stock_quantity"])
        supplier_product.last_synced_at = timezone.now()
        supplier_product.save()
        return ServiceResult.success(supplier_product)

    @classmethod
    def discontinue_product(cls, supplier: Supplier, data: dict[str, Any]) -> ServiceResult[SupplierProduct]:
        """Deactivate a supplier product and every mapping to it."""
        sku = cls._sku(data)
        if not sku:
            return ServiceResult.failure("No SKU provided", error_code="MISSING_SKU")
        supplier_product = SupplierProduct.objects.filter(supplier=supplier, supplier_sku=sku).first()
        if supplier_product is None:
            return ServiceResult.failure(f"Unknown supplier SKU {sku}", error_code="NOT_FOUND")

        with cls.atomic():
            supplier_product.is_active = False
            supplier_product.save(update_fields=["is_active", "updated_at"])
            deactivated = supplier_product.mappings.filter(is_active=True).update(is_active=False)

        cls.get_logger().info(
            f"Supplier product {sku} discontinued, {deactivated} mappings deactivated",
            extra={"supplier_id": str(supplier.id)},
        )
        return ServiceResult.success(supplier_product)
