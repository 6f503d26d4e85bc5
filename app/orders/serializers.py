"""
Serializers for orders API.

Serializers:
    ProductSerializer: Catalog product (read-only)
    OrderSerializer / OrderItemSerializer: Order representation
    CheckoutSerializer: Checkout request validation
    OrderReturnSerializer: Return representation
    CreateReturnSerializer / ReviewReturnSerializer: Return requests
"""

from __future__ import annotations

from rest_framework import serializers

from orders.models import Order, OrderItem, OrderReturn, Product


class ProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = [
            "id",
            "name",
            "sku",
            "description",
            "price_cents",
            "currency",
            "stock_quantity",
            "is_dropship",
            "is_virtual",
            "is_active",
        ]
        read_only_fields = fields


class OrderItemSerializer(serializers.ModelSerializer):
    line_total_cents = serializers.IntegerField(read_only=True)
    return_status = serializers.SerializerMethodField()

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product",
            "product_name",
            "sku",
            "quantity",
            "unit_price_cents",
            "line_total_cents",
            "return_status",
        ]
        read_only_fields = fields

    def get_return_status(self, obj: OrderItem) -> str | None:
        order_return = getattr(obj, "order_return", None)
        return order_return.status if order_return else None


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "number",
            "status",
            "fulfillment_status",
            "currency",
            "subtotal_cents",
            "shipping_cents",
            "total_cents",
            "shipping_address",
            "tracking_numbers",
            "items",
            "paid_at",
            "cancelled_at",
            "created_at",
        ]
        read_only_fields = fields


class AdminOrderSerializer(OrderSerializer):
    user_email = serializers.EmailField(source="user.email", read_only=True)

    class Meta(OrderSerializer.Meta):
        fields = OrderSerializer.Meta.fields + ["user", "user_email", "notes", "updated_at"]
        read_only_fields = fields


class CheckoutItemSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1, max_value=100)


class ShippingAddressSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    line1 = serializers.CharField(max_length=255)
    line2 = serializers.CharField(max_length=255, required=False, allow_blank=True)
    city = serializers.CharField(max_length=128)
    state = serializers.CharField(max_length=128, required=False, allow_blank=True)
    postal_code = serializers.CharField(max_length=32)
    country = serializers.CharField(min_length=2, max_length=2)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True)

    def validate_country(self, value: str) -> str:
        return value.upper()


class CheckoutSerializer(serializers.Serializer):
    items = CheckoutItemSerializer(many=True, allow_empty=False)
    shipping_address = ShippingAddressSerializer()


class CheckoutResponseSerializer(serializers.Serializer):
    order = OrderSerializer()
    client_secret = serializers.CharField()


class CancelOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500)


class OrderReturnSerializer(serializers.ModelSerializer):
    order_id = serializers.UUIDField(source="order_item.order_id", read_only=True)
    order_number = serializers.CharField(source="order_item.order.number", read_only=True)
    product_name = serializers.CharField(source="order_item.product_name", read_only=True)
    refund_amount_cents = serializers.SerializerMethodField()

    class Meta:
        model = OrderReturn
        fields = [
            "id",
            "order_item",
            "order_id",
            "order_number",
            "product_name",
            "reason",
            "status",
            "is_external",
            "refund_amount_cents",
            "reviewed_at",
            "completed_at",
            "created_at",
        ]
        read_only_fields = fields

    def get_refund_amount_cents(self, obj: OrderReturn) -> int:
        return obj.order_item.refund_amount()


class AdminOrderReturnSerializer(OrderReturnSerializer):
    customer_email = serializers.EmailField(source="order_item.order.user.email", read_only=True)
    reviewed_by_email = serializers.EmailField(source="reviewed_by.email", read_only=True, default=None)

    class Meta(OrderReturnSerializer.Meta):
        fields = OrderReturnSerializer.Meta.fields + ["customer_email", "reviewed_by_email", "notes"]
        read_only_fields = fields


class CreateReturnSerializer(serializers.Serializer):
    order_item_id = serializers.UUIDField()
    reason = serializers.CharField(required=False, allow_blank=True, max_length=2000)


class ReviewReturnSerializer(serializers.Serializer):
    action = serializers.CharField(max_length=20)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)
