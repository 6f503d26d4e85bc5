"""
Dropshipping models: suppliers, their integrations and catalogs, and the
supplier orders that fulfil dropship items of customer orders.

Money is stored in integer minor units (``*_cents``).

Usage:
    from dropshipping.models import DropshipOrder

    dropship_order.mark_shipped(tracking_number="1Z999", carrier="UPS")
    dropship_order.save()

    DropshipOrder.objects.overdue().select_related("supplier")

Note:
    DropshipOrder.status is a protected django-fsm field. Re-read instances
    with ``DropshipOrder.objects.get()`` instead of ``refresh_from_db()``.
"""

from __future__ import annotations

from datetime import timedelta

from django.conf import settings
from django.db import models
from django.db.models import F
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel, UUIDPrimaryKeyMixin
from dropshipping.states import (
    DropshipStatus,
    IntegrationType,
    SupplierStatus,
    SupplierWebhookStatus,
)


def max_dropship_retries() -> int:
    return getattr(settings, "DROPSHIP_MAX_RETRIES", 3)


class Supplier(UUIDPrimaryKeyMixin, BaseModel):
    """
    A company that ships products directly to our customers.

    ``supported_countries`` holds ISO 3166 alpha-2 codes; an empty list
    means the supplier ships everywhere.
    """

    name = models.CharField(max_length=255, unique=True)
    company_name = models.CharField(max_length=255, blank=True)
    email = models.EmailField()
    phone = models.CharField(max_length=32, blank=True)
    contact_person = models.CharField(max_length=255, blank=True)
    country = models.CharField(max_length=2, blank=True)

    status = models.CharField(
        max_length=20,
        choices=SupplierStatus.choices,
        default=SupplierStatus.ACTIVE,
        db_index=True,
    )
    integration_type = models.CharField(
        max_length=20,
        choices=IntegrationType.choices,
        default=IntegrationType.MANUAL,
    )

    processing_time_days = models.PositiveSmallIntegerField(
        default=3,
        help_text="Typical days between order and delivery",
    )
    auto_fulfill = models.BooleanField(
        default=False,
        help_text="Send orders to the supplier as soon as they are created",
    )
    stock_sync_enabled = models.BooleanField(default=False)
    minimum_order_value_cents = models.PositiveBigIntegerField(default=0)
    maximum_order_value_cents = models.PositiveBigIntegerField(null=True, blank=True)
    supported_countries = models.JSONField(default=list, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["name"]
        permissions = [("manage_suppliers", "Can manage suppliers, integrations and supplier catalogs")]

    def __str__(self) -> str:
        return self.name

    def is_active(self) -> bool:
        return self.status == SupplierStatus.ACTIVE

    def get_active_integration(self) -> SupplierIntegration | None:
        """The active integration matching integration_type, else any active one."""
        integrations = self.integrations.filter(is_active=True)
        return (
            integrations.filter(integration_type=self.integration_type).first()
            or integrations.order_by("-updated_at").first()
        )

    def can_auto_fulfill(self) -> bool:
        if not (self.is_active() and self.auto_fulfill):
            return False
        if self.integration_type == IntegrationType.MANUAL:
            return False
        return self.get_active_integration() is not None

    def supports_country(self, code: str) -> bool:
        if not self.supported_countries:
            return True
        return (code or "").upper() in {c.upper() for c in self.supported_countries}

    def can_fulfill_order(self, value_cents: int) -> bool:
        if value_cents < self.minimum_order_value_cents:
            return False
        return self.maximum_order_value_cents is None or value_cents <= self.maximum_order_value_cents


class SupplierIntegration(UUIDPrimaryKeyMixin, BaseModel):
    """
    Connection details for one way of reaching a supplier.

    Credentials live on this row: ``api_key`` is sent as a Bearer token and
    ``webhook_secret`` signs outbound and verifies inbound webhooks.
    Health counters are updated by SupplierClient on every call.
    """

    supplier = models.ForeignKey(Supplier, on_delete=models.CASCADE, related_name="integrations")
    integration_type = models.CharField(max_length=20, choices=IntegrationType.choices)
    is_active = models.BooleanField(default=True, db_index=True)

    api_endpoint = models.URLField(blank=True)
    api_key = models.CharField(max_length=255, blank=True)
    webhook_url = models.URLField(blank=True)
    webhook_secret = models.CharField(max_length=255, blank=True)
    email_address = models.EmailField(blank=True)
    configuration = models.JSONField(
        default=dict,
        blank=True,
        help_text='Extra options, e.g. {"timeout": 15}',
    )

    last_success_at = models.DateTimeField(null=True, blank=True)
    last_failure_at = models.DateTimeField(null=True, blank=True)
    last_error = models.TextField(blank=True)
    consecutive_failures = models.PositiveIntegerField(default=0)
    total_requests = models.PositiveIntegerField(default=0)
    failed_requests = models.PositiveIntegerField(default=0)

    HEALTHY_SCORE = 70
    MAX_CONSECUTIVE_FAILURES = 5

    class Meta:
        ordering = ["supplier__name", "integration_type"]

    def __str__(self) -> str:
        return f"{self.supplier} ({self.integration_type})"

    @property
    def timeout(self) -> int:
        return int(self.configuration.get("timeout") or settings.DROPSHIP_SUPPLIER_TIMEOUT_SECONDS)

    def health_score(self) -> int:
        """
        0-100 score from the request success rate.

        Each consecutive failure costs 10 points. Inactive integrations
        score 0; an integration with no traffic yet scores 100.
        """
        if not self.is_active:
            return 0
        if self.total_requests:
            rate = (self.total_requests - self.failed_requests) / self.total_requests * 100
        else:
            rate = 100.0
        score = round(rate) - 10 * self.consecutive_failures
        return max(0, min(100, score))

    def is_healthy(self) -> bool:
        return (
            self.health_score() >= self.HEALTHY_SCORE
            and self.consecutive_failures < self.MAX_CONSECUTIVE_FAILURES
        )

    def record_success(self) -> None:
        now = timezone.now()
        SupplierIntegration.objects.filter(pk=self.pk).update(
            total_requests=F("total_requests") + 1,
            consecutive_failures=0,
            last_success_at=now,
            updated_at=now,
        )
        self.refresh_from_db(fields=["total_requests", "consecutive_failures", "last_success_at"])

    def record_failure(self, error: str) -> None:
        now = timezone.now()
        SupplierIntegration.objects.filter(pk=self.pk).update(
            total_requests=F("total_requests") + 1,
            failed_requests=F("failed_requests") + 1,
            consecutive_failures=F("consecutive_failures") + 1,
            last_failure_at=now,
            last_error=error[:2000],
            updated_at=now,
        )
        self.refresh_from_db(
            fields=[
                "total_requests",
                "failed_requests",
                "consecutive_failures",
                "last_failure_at",
                "last_error",
            ]
        )


class SupplierProduct(UUIDPrimaryKeyMixin, BaseModel):
    """An entry of a supplier's catalog, with our cost price."""

    supplier = models.ForeignKey(Supplier, on_delete=models.CASCADE, related_name="products")
    supplier_sku = models.CharField(max_length=100)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    cost_price_cents = models.PositiveBigIntegerField()
    stock_quantity = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True, db_index=True)
    last_synced_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["supplier__name", "supplier_sku"]
        constraints = [
            models.UniqueConstraint(
                fields=["supplier", "supplier_sku"],
                name="unique_supplier_sku",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.supplier_sku} - {self.name}"

    def in_stock(self, quantity: int = 1) -> bool:
        return self.is_active and self.stock_quantity >= quantity


class ProductSupplierMapping(UUIDPrimaryKeyMixin, BaseModel):
    """Links a catalog product to a supplier product. Lowest priority wins."""

    product = models.ForeignKey(
        "orders.Product",
        on_delete=models.CASCADE,
        related_name="supplier_mappings",
    )
    supplier = models.ForeignKey(Supplier, on_delete=models.CASCADE, related_name="mappings")
    supplier_product = models.ForeignKey(
        SupplierProduct,
        on_delete=models.CASCADE,
        related_name="mappings",
    )
    is_active = models.BooleanField(default=True)
    priority = models.PositiveSmallIntegerField(default=1)

    class Meta:
        ordering = ["priority", "created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "supplier_product"],
                name="unique_product_supplier_product",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.product_id} -> {self.supplier_product} (priority {self.priority})"


class DropshipOrderQuerySet(models.QuerySet):
    def pending(self):
        return self.filter(status=DropshipStatus.PENDING)

    def active(self):
        return self.filter(status__in=DropshipStatus.active_states())

    def completed(self):
        return self.filter(status__in=DropshipStatus.final_states())

    def overdue(self):
        return self.filter(estimated_delivery__lt=timezone.localdate()).exclude(
            status__in=DropshipStatus.final_states()
        )

    def needs_retry(self):
        """Retryable orders of suppliers we submit to automatically."""
        return self.filter(
            status__in=[DropshipStatus.PENDING, DropshipStatus.REJECTED_BY_SUPPLIER],
            auto_retry_enabled=True,
            retry_count__lt=max_dropship_retries(),
            supplier__auto_fulfill=True,
            supplier__status=SupplierStatus.ACTIVE,
        )


class DropshipOrder(UUIDPrimaryKeyMixin, BaseModel):
    """
    The slice of a customer order that one supplier fulfils.

    State Flow:
        PENDING -> SENT_TO_SUPPLIER -> CONFIRMED_BY_SUPPLIER -> PROCESSING
            -> SHIPPED_BY_SUPPLIER -> OUT_FOR_DELIVERY -> DELIVERED
        PENDING/SENT_TO_SUPPLIER -> REJECTED_BY_SUPPLIER -> PENDING (retry)
        any but DELIVERED -> CANCELLED

    Its id is sent to the supplier as ``external_order_id`` and used to
    find the order when a webhook carries no supplier order id.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="dropship_orders",
    )
    supplier = models.ForeignKey(Supplier, on_delete=models.PROTECT, related_name="dropship_orders")
    supplier_order_id = models.CharField(max_length=255, blank=True, db_index=True)
    status = FSMField(
        default=DropshipStatus.PENDING,
        choices=DropshipStatus.choices,
        db_index=True,
        protected=True,
    )

    total_cost_cents = models.PositiveBigIntegerField(default=0)
    total_retail_cents = models.PositiveBigIntegerField(default=0)
    profit_margin_cents = models.BigIntegerField(default=0)

    shipping_address = models.JSONField(default=dict, blank=True)
    tracking_number = models.CharField(max_length=100, blank=True)
    carrier = models.CharField(max_length=100, blank=True)
    estimated_delivery = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True)

    sent_to_supplier_at = models.DateTimeField(null=True, blank=True)
    confirmed_by_supplier_at = models.DateTimeField(null=True, blank=True)
    shipped_by_supplier_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    overdue_flagged_at = models.DateTimeField(null=True, blank=True)

    supplier_response = models.JSONField(default=dict, blank=True)
    supplier_notes = models.TextField(blank=True)
    retry_count = models.PositiveSmallIntegerField(default=0)
    last_retry_at = models.DateTimeField(null=True, blank=True)
    auto_retry_enabled = models.BooleanField(default=True)
    webhook_data = models.JSONField(default=dict, blank=True)

    objects = DropshipOrderQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        permissions = [
            ("manage_dropshipping", "Can manage suppliers and supplier orders"),
        ]
        constraints = [
            models.UniqueConstraint(fields=["order", "supplier"], name="unique_order_supplier"),
        ]
        indexes = [
            models.Index(fields=["status", "estimated_delivery"], name="dropship_status_eta_idx"),
        ]

    def __str__(self) -> str:
        return f"DropshipOrder({self.order_id}, {self.supplier_id}, {self.status})"

    def is_pending(self) -> bool:
        return self.status == DropshipStatus.PENDING

    def is_delivered(self) -> bool:
        return self.status == DropshipStatus.DELIVERED

    def is_cancelled(self) -> bool:
        return self.status == DropshipStatus.CANCELLED

    def can_retry(self) -> bool:
        return (
            self.auto_retry_enabled
            and self.retry_count < max_dropship_retries()
            and self.status in (DropshipStatus.PENDING, DropshipStatus.REJECTED_BY_SUPPLIER)
        )

    def is_overdue(self) -> bool:
        return (
            self.estimated_delivery is not None
            and self.estimated_delivery < timezone.localdate()
            and self.status not in DropshipStatus.final_states()
        )

    def profit_margin_percentage(self) -> float:
        if not self.total_retail_cents:
            return 0.0
        return round(self.profit_margin_cents / self.total_retail_cents * 100, 2)

    def processing_time_hours(self) -> float | None:
        """Hours from submission to shipment, once both happened."""
        if not (self.sent_to_supplier_at and self.shipped_by_supplier_at):
            return None
        return round((self.shipped_by_supplier_at - self.sent_to_supplier_at).total_seconds() / 3600, 1)

    def recalculate_totals(self) -> None:
        items = list(self.items.all())
        self.total_cost_cents = sum(item.total_cost_cents for item in items)
        self.total_retail_cents = sum(item.total_retail_cents for item in items)
        self.profit_margin_cents = self.total_retail_cents - self.total_cost_cents

    def add_note(self, note: str) -> None:
        stamp = timezone.now().strftime("%Y-%m-%d %H:%M")
        self.notes = f"{self.notes}\n[{stamp}] {note}".strip()

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(field=status, source=DropshipStatus.PENDING, target=DropshipStatus.SENT_TO_SUPPLIER)
    def mark_sent(self):
        self.sent_to_supplier_at = timezone.now()

    @transition(
        field=status,
        source=[DropshipStatus.SENT_TO_SUPPLIER, DropshipStatus.PENDING],
        target=DropshipStatus.CONFIRMED_BY_SUPPLIER,
    )
    def mark_confirmed(self, supplier_order_id: str = ""):
        self.confirmed_by_supplier_at = timezone.now()
        if supplier_order_id:
            self.supplier_order_id = supplier_order_id

    @transition(
        field=status,
        source=[
            DropshipStatus.SENT_TO_SUPPLIER,
            DropshipStatus.CONFIRMED_BY_SUPPLIER,
            DropshipStatus.ON_HOLD,
        ],
        target=DropshipStatus.PROCESSING,
    )
    def mark_processing(self):
        pass

    @transition(
        field=status,
        source=[
            DropshipStatus.CONFIRMED_BY_SUPPLIER,
            DropshipStatus.PROCESSING,
            DropshipStatus.SENT_TO_SUPPLIER,
        ],
        target=DropshipStatus.SHIPPED_BY_SUPPLIER,
    )
    def mark_shipped(self, tracking_number: str = "", carrier: str = "", estimated_delivery=None):
        self.shipped_by_supplier_at = timezone.now()
        if tracking_number:
            self.tracking_number = tracking_number
        if carrier:
            self.carrier = carrier
        if estimated_delivery:
            self.estimated_delivery = estimated_delivery
        elif self.estimated_delivery is None:
            self.estimated_delivery = timezone.localdate() + timedelta(days=self.supplier.processing_time_days)

    @transition(
        field=status,
        source=DropshipStatus.SHIPPED_BY_SUPPLIER,
        target=DropshipStatus.OUT_FOR_DELIVERY,
    )
    def mark_out_for_delivery(self):
        pass

    @transition(
        field=status,
        source=[
            DropshipStatus.CONFIRMED_BY_SUPPLIER,
            DropshipStatus.PROCESSING,
            DropshipStatus.SHIPPED_BY_SUPPLIER,
            DropshipStatus.OUT_FOR_DELIVERY,
        ],
        target=DropshipStatus.DELIVERED,
    )
    def mark_delivered(self):
        self.delivered_at = timezone.now()

    @transition(
        field=status,
        source=[DropshipStatus.SENT_TO_SUPPLIER, DropshipStatus.PENDING],
        target=DropshipStatus.REJECTED_BY_SUPPLIER,
    )
    def mark_rejected(self, reason: str = ""):
        if reason:
            self.supplier_notes = reason

    @transition(
        field=status,
        source=[
            DropshipStatus.PENDING,
            DropshipStatus.SENT_TO_SUPPLIER,
            DropshipStatus.CONFIRMED_BY_SUPPLIER,
            DropshipStatus.PROCESSING,
        ],
        target=DropshipStatus.ON_HOLD,
    )
    def hold(self, reason: str = ""):
        if reason:
            self.add_note(f"On hold: {reason}")

    @transition(
        field=status,
        source=[s for s in DropshipStatus.values if s not in (DropshipStatus.DELIVERED, DropshipStatus.CANCELLED)],
        target=DropshipStatus.CANCELLED,
    )
    def cancel(self, reason: str = ""):
        self.cancelled_at = timezone.now()
        if reason:
            self.add_note(f"Cancelled: {reason}")

    @transition(
        field=status,
        source=[DropshipStatus.REJECTED_BY_SUPPLIER, DropshipStatus.PENDING],
        target=DropshipStatus.PENDING,
    )
    def reset_for_retry(self):
        self.retry_count += 1
        self.last_retry_at = timezone.now()
        self.supplier_notes = ""


class DropshipOrderItem(UUIDPrimaryKeyMixin, BaseModel):
    """One order item as sent to the supplier, with cost and retail snapshot."""

    dropship_order = models.ForeignKey(DropshipOrder, on_delete=models.CASCADE, related_name="items")
    order_item = models.ForeignKey(
        "orders.OrderItem",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="dropship_items",
    )
    supplier_product = models.ForeignKey(
        SupplierProduct,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="dropship_items",
    )
    supplier_sku = models.CharField(max_length=100)
    quantity = models.PositiveIntegerField(default=1)
    supplier_price_cents = models.PositiveBigIntegerField()
    retail_price_cents = models.PositiveBigIntegerField()
    profit_per_item_cents = models.BigIntegerField(default=0)
    product_details = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["created_at"]

    def __str__(self) -> str:
        return f"{self.quantity} x {self.supplier_sku}"

    def save(self, *args, **kwargs):
        self.profit_per_item_cents = self.retail_price_cents - self.supplier_price_cents
        super().save(*args, **kwargs)

    @property
    def total_cost_cents(self) -> int:
        return self.supplier_price_cents * self.quantity

    @property
    def total_retail_cents(self) -> int:
        return self.retail_price_cents * self.quantity


class SupplierWebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    A webhook received from a supplier.

    Stored as received and processed asynchronously by
    process_supplier_webhook.
    """

    supplier = models.ForeignKey(Supplier, on_delete=models.CASCADE, related_name="webhook_events")
    event_type = models.CharField(max_length=100, db_index=True)
    payload = models.JSONField()
    status = models.CharField(
        max_length=20,
        choices=SupplierWebhookStatus.choices,
        default=SupplierWebhookStatus.PENDING,
        db_index=True,
    )
    attempts = models.PositiveSmallIntegerField(default=0)
    error_message = models.TextField(blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["supplier", "status"], name="supplier_webhook_status_idx"),
        ]

    def __str__(self) -> str:
        return f"SupplierWebhookEvent({self.supplier_id}, {self.event_type})"

    def mark_processed(self, status: str = SupplierWebhookStatus.PROCESSED) -> None:
        self.status = status
        self.processed_at = timezone.now()
        self.error_message = ""

    def mark_failed(self, error_message: str) -> None:
        self.status = SupplierWebhookStatus.FAILED
        self.error_message = error_message
