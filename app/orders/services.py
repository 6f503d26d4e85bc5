"""
Order services: checkout, cancellation and returns.

Services:
    CheckoutService: Create an order and its Stripe PaymentIntent
    OrderService: Customer/staff cancellation with stock restoration
    ReturnService: Return requests and staff review

Usage:
    from orders.services import CheckoutService, ReturnService

    result = CheckoutService.create_order(
        user=request.user,
        items=[{"product_id": product.id, "quantity": 2}],
        shipping_address={"country": "US", ...},
    )
    if result.success:
        order = result.data["order"]
        client_secret = result.data["client_secret"]

    result = ReturnService.review_return(staff_user, return_id, "approve")
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from django.db import transaction
from django.db.models import F

from core.services import BaseService, ServiceResult
from orders.models import Order, OrderItem, OrderReturn, Product
from orders.states import OrderStatus, ReturnStatus

if TYPE_CHECKING:
    from authentication.models import User

logger = logging.getLogger(__name__)


MANAGE_RETURNS_PERMISSION = "orders.manage_returns"

CANCELLABLE_STATES = (
    OrderStatus.PENDING_PAYMENT,
    OrderStatus.CONFIRMED,
    OrderStatus.ON_HOLD,
)


def restore_stock(order: Order) -> int:
    """Put the quantities of non-virtual, own-stock items back on the shelf."""
    restored = 0
    for item in order.items.select_related("product"):
        product = item.product
        if product.is_virtual or product.is_dropship:
            continue
        Product.objects.filter(pk=product.pk).update(
            stock_quantity=F("stock_quantity") + item.quantity
        )
        restored += item.quantity
    return restored


class CheckoutService(BaseService):
    """Turns a cart into a pending order with a PaymentIntent."""

    @classmethod
    def create_order(
        cls,
        user: User,
        items: list[dict[str, Any]],
        shipping_address: dict[str, Any],
        shipping_cents: int = 0,
    ) -> ServiceResult[dict]:
        """
        Create an order in PENDING_PAYMENT and its PaymentIntent.

        Items are dicts with ``product_id`` and ``quantity``. Stock is
        decremented inside the same transaction. If the PaymentIntent cannot
        be created the whole order is rolled back.

        Returns:
            ServiceResult with {"order": Order, "payment": Payment,
            "client_secret": str}

        Error codes:
            EMPTY_ORDER, PRODUCT_NOT_FOUND, PRODUCT_INACTIVE,
            INSUFFICIENT_STOCK, plus payment errors from PaymentService
        """
        from payments.services import PaymentService

        if not items:
            return ServiceResult.failure("Order has no items", error_code="EMPTY_ORDER")

        with cls.atomic():
            product_ids = [item["product_id"] for item in items]
            products = {
                str(product.pk): product
                for product in Product.objects.select_for_update().filter(pk__in=product_ids)
            }

            lines: list[tuple[Product, int]] = []
            for item in items:
                product = products.get(str(item["product_id"]))
                quantity = int(item.get("quantity", 1))
                if product is None:
                    return ServiceResult.failure(
                        f"Product {item['product_id']} not found",
                        error_code="PRODUCT_NOT_FOUND",
                    )
                if not product.is_active:
                    return ServiceResult.failure(
                        f"Product {product.sku} is not available",
                        error_code="PRODUCT_INACTIVE",
                    )
                if not product.has_stock(quantity):
                    return ServiceResult.failure(
                        f"Insufficient stock for {product.sku}",
                        error_code="INSUFFICIENT_STOCK",
                        errors={"items": [f"{product.sku}: {product.stock_quantity} available"]},
                    )
                lines.append((product, quantity))

            order = Order.objects.create(
                user=user,
                currency=lines[0][0].currency,
                shipping_address=shipping_address,
                shipping_cents=shipping_cents,
            )
            OrderItem.objects.bulk_create(
                [
                    OrderItem(
                        order=order,
                        product=product,
                        product_name=product.name,
                        sku=product.sku,
                        quantity=quantity,
                        unit_price_cents=product.price_cents,
                    )
                    for product, quantity in lines
                ]
            )
            for product, quantity in lines:
                if product.is_virtual or product.is_dropship:
                    continue
                Product.objects.filter(pk=product.pk).update(
                    stock_quantity=F("stock_quantity") - quantity
                )

            order.recalculate_totals()
            order.save(update_fields=["subtotal_cents", "total_cents", "updated_at"])

            payment_result = PaymentService.create_payment_for_order(order)
            if not payment_result.success:
                transaction.set_rollback(True)
                cls.get_logger().warning(
                    f"Checkout rolled back, payment creation failed: {payment_result.error}",
                    extra={"user_id": str(user.id), "error_code": payment_result.error_code},
                )
                return payment_result

        cls.get_logger().info(
            f"Order {order.number} created",
            extra={
                "order_id": str(order.id),
                "user_id": str(user.id),
                "total_cents": order.total_cents,
                "item_count": len(lines),
            },
        )
        return ServiceResult.success(
            {
                "order": order,
                "payment": payment_result.data["payment"],
                "client_secret": payment_result.data["client_secret"],
            }
        )


class OrderService(BaseService):
    @classmethod
    def cancel_order(cls, order: Order, actor: User, reason: str = "") -> ServiceResult[Order]:
        """
        Cancel an order that has not started fulfilment.

        Restores stock and cancels the PaymentIntent while the order is
        still unpaid. Paid orders must be refunded through the refund flow.

        Error codes:
            FORBIDDEN: actor is neither the owner nor an order manager
            ORDER_NOT_CANCELLABLE: order is past the cancellable states
        """
        from payments.services import PaymentService

        if order.user_id != actor.id and not actor.has_perm("orders.manage_orders"):
            return ServiceResult.failure("Not your order", error_code="FORBIDDEN")

        with cls.atomic():
            order = Order.objects.select_for_update().get(pk=order.pk)
            if order.status not in CANCELLABLE_STATES:
                return ServiceResult.failure(
                    f"Order in status {order.status} cannot be cancelled",
                    error_code="ORDER_NOT_CANCELLABLE",
                )

            was_unpaid = order.status == OrderStatus.PENDING_PAYMENT
            order.cancel()
            if reason:
                order.notes = f"{order.notes}\nCancelled: {reason}".strip()
            order.save()

            restored = restore_stock(order)

            if was_unpaid:
                payment_result = PaymentService.cancel_payment_for_order(order)
                if not payment_result.success:
                    cls.get_logger().warning(
                        f"PaymentIntent for order {order.number} not cancelled: {payment_result.error}"
                    )

        cls.get_logger().info(
            f"Order {order.number} cancelled",
            extra={"order_id": str(order.id), "actor_id": str(actor.id), "restored_units": restored},
        )
        return ServiceResult.success(order)


class ReturnService(BaseService):
    """Customer return requests and their staff review."""

    REVIEW_ACTIONS = ("review", "approve", "reject")

    @classmethod
    def create_return(
        cls,
        user: User,
        order_item_id,
        reason: str = "",
    ) -> ServiceResult[OrderReturn]:
        """
        Request a return for one order item.

        Error codes:
            NOT_FOUND: order item doesn't exist
            FORBIDDEN: item belongs to another customer
            ORDER_NOT_PAID: order was never paid
            RETURN_EXISTS: item already has a return
        """
        try:
            order_item = OrderItem.objects.select_related("order").get(pk=order_item_id)
        except (OrderItem.DoesNotExist, ValueError):
            return ServiceResult.failure("Order item not found", error_code="NOT_FOUND")

        if order_item.order.user_id != user.id:
            return ServiceResult.failure(
                "This item does not belong to you",
                error_code="FORBIDDEN",
            )

        if not order_item.order.has_payment():
            return ServiceResult.failure(
                "Returns can only be requested for paid orders",
                error_code="ORDER_NOT_PAID",
            )

        if OrderReturn.objects.filter(order_item=order_item).exists():
            return ServiceResult.failure(
                "A return already exists for this item",
                error_code="RETURN_EXISTS",
            )

        order_return = OrderReturn.objects.create(order_item=order_item, reason=reason)

        cls.get_logger().info(
            f"Return requested for item {order_item.sku} of order {order_item.order.number}",
            extra={"return_id": str(order_return.id), "order_id": str(order_item.order_id)},
        )
        return ServiceResult.success(order_return)

    @classmethod
    def review_return(
        cls,
        actor: User,
        return_id,
        action: str,
        notes: str = "",
    ) -> ServiceResult[OrderReturn]:
        """
        Move a return through staff review.

        ``action`` is one of review, approve or reject. Approve and reject
        notify the customer; a notification failure never fails the review.

        Error codes:
            FORBIDDEN: actor lacks orders.manage_returns
            NOT_FOUND: return doesn't exist
            INVALID_ACTION: unknown action
            RETURN_ALREADY_PROCESSED: return is no longer reviewable
        """
        from notifications import notify

        if not actor.has_perm(MANAGE_RETURNS_PERMISSION):
            return ServiceResult.failure(
                "You do not have permission to review returns",
                error_code="FORBIDDEN",
            )

        if action not in cls.REVIEW_ACTIONS:
            return ServiceResult.failure(
                f"Unknown review action: {action}",
                error_code="INVALID_ACTION",
            )

        with cls.atomic():
            try:
                order_return = (
                    OrderReturn.objects.select_for_update()
                    .select_related("order_item__order__user")
                    .get(pk=return_id)
                )
            except (OrderReturn.DoesNotExist, ValueError):
                return ServiceResult.failure("Return not found", error_code="NOT_FOUND")

            if not order_return.is_reviewable():
                return ServiceResult.failure(
                    f"Return is already {order_return.status}",
                    error_code="RETURN_ALREADY_PROCESSED",
                )
            if action == "review" and order_return.status != ReturnStatus.REQUESTED:
                return ServiceResult.failure(
                    "Return is already under review",
                    error_code="RETURN_ALREADY_PROCESSED",
                )

            getattr(order_return, action)(actor)
            if notes:
                order_return.notes = notes
            order_return.save()

        cls.get_logger().info(
            f"Return {order_return.id} {action} by {actor.email}",
            extra={"return_id": str(order_return.id), "new_status": order_return.status},
        )

        if action in ("approve", "reject"):
            transaction.on_commit(lambda: notify.return_status_changed(order_return))

        return ServiceResult.success(order_return)

    @classmethod
    def list_returns(cls, actor: User):
        """All returns for staff; a customer only sees their own."""
        queryset = OrderReturn.objects.select_related(
            "order_item__order__user", "reviewed_by"
        ).order_by("-created_at")
        if actor.has_perm(MANAGE_RETURNS_PERMISSION):
            return queryset
        return queryset.filter(order_item__order__user=actor)
