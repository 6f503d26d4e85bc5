"""Django admin configuration for order models."""

from django.contrib import admin

from orders.models import Order, OrderItem, OrderReturn, Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ["name", "sku", "price_cents", "stock_quantity", "is_dropship", "is_virtual", "is_active"]
    list_filter = ["is_active", "is_dropship", "is_virtual"]
    search_fields = ["name", "sku"]


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    raw_id_fields = ["product"]
    readonly_fields = ["product_name", "sku", "quantity", "unit_price_cents"]


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """
    Read-mostly view of orders.

    status is an FSM-protected field and is changed only through services.
    """

    list_display = ["number", "user", "status", "fulfillment_status", "total_cents", "paid_at", "created_at"]
    list_filter = ["status", "fulfillment_status"]
    search_fields = ["number", "user__email"]
    raw_id_fields = ["user"]
    readonly_fields = ["number", "status", "paid_at", "cancelled_at", "created_at", "updated_at"]
    inlines = [OrderItemInline]


@admin.register(OrderReturn)
class OrderReturnAdmin(admin.ModelAdmin):
    list_display = ["id", "order_item", "status", "is_external", "reviewed_by", "created_at"]
    list_filter = ["status", "is_external"]
    search_fields = ["order_item__order__number", "order_item__sku"]
    raw_id_fields = ["order_item", "reviewed_by"]
    readonly_fields = ["status", "reviewed_at", "completed_at"]
