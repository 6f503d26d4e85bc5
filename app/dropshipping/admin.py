"""Django admin configuration for dropshipping models."""

from django.contrib import admin

from dropshipping.models import (
    DropshipOrder,
    DropshipOrderItem,
    ProductSupplierMapping,
    Supplier,
    SupplierIntegration,
    SupplierProduct,
    SupplierWebhookEvent,
)


class SupplierIntegrationInline(admin.StackedInline):
    model = SupplierIntegration
    extra = 0
    readonly_fields = [
        "last_success_at",
        "last_failure_at",
        "last_error",
        "consecutive_failures",
        "total_requests",
        "failed_requests",
    ]


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ["name", "email", "status", "integration_type", "auto_fulfill", "processing_time_days"]
    list_filter = ["status", "integration_type", "auto_fulfill", "stock_sync_enabled"]
    search_fields = ["name", "company_name", "email"]
    inlines = [SupplierIntegrationInline]


@admin.register(SupplierProduct)
class SupplierProductAdmin(admin.ModelAdmin):
    list_display = ["supplier_sku", "name", "supplier", "cost_price_cents", "stock_quantity", "is_active"]
    list_filter = ["is_active", "supplier"]
    search_fields = ["supplier_sku", "name"]
    readonly_fields = ["last_synced_at"]


@admin.register(ProductSupplierMapping)
class ProductSupplierMappingAdmin(admin.ModelAdmin):
    list_display = ["product", "supplier", "supplier_product", "priority", "is_active"]
    list_filter = ["is_active", "supplier"]
    raw_id_fields = ["product", "supplier_product"]


class DropshipOrderItemInline(admin.TabularInline):
    model = DropshipOrderItem
    extra = 0
    raw_id_fields = ["order_item", "supplier_product"]
    readonly_fields = ["supplier_sku", "quantity", "supplier_price_cents", "retail_price_cents", "profit_per_item_cents"]


@admin.register(DropshipOrder)
class DropshipOrderAdmin(admin.ModelAdmin):
    """
    Read-mostly view of supplier orders.

    status is an FSM-protected field and is changed only through services.
    """

    list_display = ["id", "order", "supplier", "status", "tracking_number", "estimated_delivery", "created_at"]
    list_filter = ["status", "supplier"]
    search_fields = ["order__number", "supplier_order_id", "tracking_number"]
    raw_id_fields = ["order"]
    readonly_fields = [
        "status",
        "sent_to_supplier_at",
        "confirmed_by_supplier_at",
        "shipped_by_supplier_at",
        "delivered_at",
        "cancelled_at",
        "overdue_flagged_at",
        "retry_count",
        "last_retry_at",
        "supplier_response",
        "webhook_data",
    ]
    inlines = [DropshipOrderItemInline]


@admin.register(SupplierWebhookEvent)
class SupplierWebhookEventAdmin(admin.ModelAdmin):
    list_display = ["event_type", "supplier", "status", "attempts", "processed_at", "created_at"]
    list_filter = ["status", "event_type"]
    readonly_fields = ["supplier", "event_type", "payload", "attempts", "processed_at"]
