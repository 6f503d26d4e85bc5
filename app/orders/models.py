"""
Order models: catalog products, orders, line items and returns.

Money is stored in integer minor units (``*_cents``) everywhere.

Usage:
    from orders.models import Order, OrderItem, OrderReturn

    order.confirm_payment()  # pending_payment -> confirmed
    order.save()

    order_return.approve(reviewer)  # requested/under_review -> approved
    order_return.save()

Note:
    status fields are protected django-fsm fields. Re-read instances with
    ``Model.objects.get()`` instead of ``refresh_from_db()``.
"""

from __future__ import annotations

import secrets

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import RETURN_VALUE, FSMField, transition

from core.models import BaseModel, UUIDPrimaryKeyMixin
from orders.states import FulfillmentStatus, OrderStatus, ReturnStatus


def generate_order_number() -> str:
    """Human-facing order reference, e.g. ORD-20260119-3F9A1C."""
    return f"ORD-{timezone.now():%Y%m%d}-{secrets.token_hex(3).upper()}"


class Product(UUIDPrimaryKeyMixin, BaseModel):
    """
    Sellable catalog item.

    Dropship products are fulfilled by a supplier through a
    ProductSupplierMapping. Virtual products carry no stock.
    """

    name = models.CharField(max_length=255)
    sku = models.CharField(max_length=64, unique=True)
    description = models.TextField(blank=True)
    price_cents = models.PositiveBigIntegerField(
        help_text="Retail price in smallest currency unit",
    )
    currency = models.CharField(max_length=3, default="usd")
    stock_quantity = models.IntegerField(default=0)
    is_dropship = models.BooleanField(
        default=False,
        help_text="Fulfilled by a supplier rather than from own stock",
    )
    is_virtual = models.BooleanField(
        default=False,
        help_text="No physical stock or shipping",
    )
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return f"{self.name} ({self.sku})"

    def has_stock(self, quantity: int) -> bool:
        return self.is_virtual or self.is_dropship or self.stock_quantity >= quantity


class Order(UUIDPrimaryKeyMixin, BaseModel):
    """
    Customer order.

    State Flow:
        PENDING_PAYMENT/FAILED -> CONFIRMED (payment succeeded, possibly on retry)
        PENDING_PAYMENT -> FAILED (payment failed)
        PENDING_PAYMENT/CONFIRMED/ON_HOLD -> CANCELLED
        paid CANCELLED -> PARTIALLY_REFUNDED/REFUNDED (refund after cancellation)

    Fulfilment and refund states are applied through apply_fulfillment_status()
    and apply_refund_status(), whose targets are computed by the dropshipping
    and refund services.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders",
    )
    number = models.CharField(
        max_length=32,
        unique=True,
        default=generate_order_number,
        editable=False,
    )
    status = FSMField(
        default=OrderStatus.PENDING_PAYMENT,
        choices=OrderStatus.choices,
        db_index=True,
        protected=True,
    )
    fulfillment_status = models.CharField(
        max_length=24,
        choices=FulfillmentStatus.choices,
        default=FulfillmentStatus.UNFULFILLED,
        db_index=True,
    )

    currency = models.CharField(max_length=3, default="usd")
    subtotal_cents = models.PositiveBigIntegerField(default=0)
    shipping_cents = models.PositiveBigIntegerField(default=0)
    total_cents = models.PositiveBigIntegerField(default=0)

    shipping_address = models.JSONField(
        default=dict,
        blank=True,
        help_text="name, line1, line2, city, state, postal_code, country, phone",
    )
    tracking_numbers = models.JSONField(
        default=list,
        blank=True,
        help_text="Tracking entries appended as supplier orders ship",
    )
    notes = models.TextField(blank=True)

    paid_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        permissions = [
            ("manage_orders", "Can manage customer orders"),
        ]
        indexes = [
            models.Index(fields=["user", "status"], name="order_user_status_idx"),
        ]

    def __str__(self) -> str:
        return self.number

    @property
    def shipping_country(self) -> str:
        return (self.shipping_address or {}).get("country", "")

    def is_paid(self) -> bool:
        return self.paid_at is not None and self.status in OrderStatus.paid_states()

    def is_cancelled(self) -> bool:
        return self.status == OrderStatus.CANCELLED

    def has_payment(self) -> bool:
        """Paid at some point, including paid orders cancelled before fulfilment."""
        return self.paid_at is not None and self.status in OrderStatus.refund_source_states()

    def has_active_shipment(self) -> bool:
        return self.status in (
            OrderStatus.SHIPPED,
            OrderStatus.OUT_FOR_DELIVERY,
            OrderStatus.DELIVERED,
        )

    def recalculate_totals(self) -> None:
        self.subtotal_cents = sum(item.line_total_cents for item in self.items.all())
        self.total_cents = self.subtotal_cents + self.shipping_cents

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=[OrderStatus.PENDING_PAYMENT, OrderStatus.FAILED],
        target=OrderStatus.CONFIRMED,
    )
    def confirm_payment(self):
        """Payment captured by Stripe."""
        self.paid_at = timezone.now()

    @transition(
        field=status,
        source=OrderStatus.PENDING_PAYMENT,
        target=OrderStatus.FAILED,
    )
    def fail_payment(self):
        pass

    @transition(
        field=status,
        source=[
            OrderStatus.PENDING_PAYMENT,
            OrderStatus.CONFIRMED,
            OrderStatus.ON_HOLD,
        ],
        target=OrderStatus.CANCELLED,
    )
    def cancel(self):
        self.cancelled_at = timezone.now()

    @transition(
        field=status,
        source=OrderStatus.refund_source_states(),
        target=RETURN_VALUE(
            OrderStatus.CONFIRMED,
            OrderStatus.CANCELLED,
            OrderStatus.PARTIALLY_REFUNDED,
            OrderStatus.REFUNDED,
        ),
        conditions=[has_payment],
    )
    def apply_refund_status(self, status):
        """
        Apply the status computed from completed refunds.

        Transition: paid states and paid CANCELLED ->
            CONFIRMED / CANCELLED / PARTIALLY_REFUNDED / REFUNDED
        """
        return status

    @transition(
        field=status,
        source=[
            OrderStatus.CONFIRMED,
            OrderStatus.PROCESSING,
            OrderStatus.SHIPPED,
            OrderStatus.OUT_FOR_DELIVERY,
            OrderStatus.DELIVERED,
            OrderStatus.ON_HOLD,
            OrderStatus.FAILED,
        ],
        target=RETURN_VALUE(
            OrderStatus.PROCESSING,
            OrderStatus.SHIPPED,
            OrderStatus.OUT_FOR_DELIVERY,
            OrderStatus.DELIVERED,
            OrderStatus.CANCELLED,
            OrderStatus.FAILED,
            OrderStatus.ON_HOLD,
        ),
    )
    def apply_fulfillment_status(self, status):
        """
        Apply the status derived from the order's supplier orders.

        Refund states are never a source here.
        """
        if status == OrderStatus.CANCELLED and self.cancelled_at is None:
            self.cancelled_at = timezone.now()
        return status


class OrderItem(UUIDPrimaryKeyMixin, BaseModel):
    """
    Line item of an order.

    Product name and SKU are snapshotted so catalog edits don't change
    historical orders.
    """

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="order_items")
    product_name = models.CharField(max_length=255)
    sku = models.CharField(max_length=64)
    quantity = models.PositiveIntegerField(default=1)
    unit_price_cents = models.PositiveBigIntegerField()

    class Meta:
        ordering = ["created_at"]

    def __str__(self) -> str:
        return f"{self.quantity} x {self.product_name}"

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def refund_amount(self) -> int:
        """Amount refunded when this item's return is processed."""
        return self.line_total_cents

    def get_return(self) -> OrderReturn | None:
        return OrderReturn.objects.filter(order_item=self).first()


class OrderReturn(UUIDPrimaryKeyMixin, BaseModel):
    """
    Customer return request for a single order item.

    State Flow:
        REQUESTED -> UNDER_REVIEW -> APPROVED -> COMPLETED (refunded)
        REQUESTED/UNDER_REVIEW -> REJECTED
        COMPLETED -> APPROVED (refund cancelled/failed)
        COMPLETED -> PENDING (refund cancelled, external return)

    External returns are created by reconciliation for refunds issued
    directly in the Stripe dashboard.
    """

    order_item = models.OneToOneField(
        OrderItem,
        on_delete=models.CASCADE,
        related_name="order_return",
    )
    reason = models.TextField(blank=True)
    status = FSMField(
        default=ReturnStatus.REQUESTED,
        choices=ReturnStatus.choices,
        db_index=True,
        protected=True,
    )
    is_external = models.BooleanField(
        default=False,
        help_text="Created for a refund issued outside the shop (Stripe dashboard)",
    )
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reviewed_returns",
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["-created_at"]
        permissions = [
            ("manage_returns", "Can review and process return requests"),
        ]

    def __str__(self) -> str:
        return f"Return({self.order_item_id}, {self.status})"

    @property
    def order(self) -> Order:
        return self.order_item.order

    def is_approved(self) -> bool:
        return self.status == ReturnStatus.APPROVED

    def is_reviewable(self) -> bool:
        return self.status in (ReturnStatus.REQUESTED, ReturnStatus.UNDER_REVIEW)

    def _stamp_review(self, reviewer) -> None:
        self.reviewed_by = reviewer
        self.reviewed_at = timezone.now()

    @transition(
        field=status,
        source=ReturnStatus.REQUESTED,
        target=ReturnStatus.UNDER_REVIEW,
    )
    def review(self, reviewer=None):
        self._stamp_review(reviewer)

    @transition(
        field=status,
        source=[ReturnStatus.REQUESTED, ReturnStatus.UNDER_REVIEW],
        target=ReturnStatus.APPROVED,
    )
    def approve(self, reviewer=None):
        self._stamp_review(reviewer)

    @transition(
        field=status,
        source=[ReturnStatus.REQUESTED, ReturnStatus.UNDER_REVIEW],
        target=ReturnStatus.REJECTED,
    )
    def reject(self, reviewer=None):
        self._stamp_review(reviewer)

    @transition(
        field=status,
        source=[ReturnStatus.APPROVED, ReturnStatus.PENDING],
        target=ReturnStatus.COMPLETED,
    )
    def complete(self):
        self.completed_at = timezone.now()

    @transition(
        field=status,
        source=[ReturnStatus.COMPLETED, ReturnStatus.PENDING],
        target=RETURN_VALUE(ReturnStatus.APPROVED, ReturnStatus.PENDING),
    )
    def reopen(self):
        """
        Undo completion after the refund was cancelled or failed.

        External returns have no approval behind them, so they go back to
        PENDING. Everything else becomes eligible for refund again.
        """
        self.completed_at = None
        if self.is_external and self.status == ReturnStatus.COMPLETED:
            return ReturnStatus.PENDING
        return ReturnStatus.APPROVED
