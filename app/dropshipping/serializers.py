"""
Serializers for the staff dropshipping API.

Serializers:
    SupplierSerializer / SupplierIntegrationSerializer: Suppliers and their connections
    SupplierProductSerializer / ProductSupplierMappingSerializer: Supplier catalog
    DropshipOrderSerializer / DropshipOrderItemSerializer: Supplier orders
    CreateDropshipOrderSerializer: Manual supplier order (major-unit amounts)
    Ship / Confirm / Cancel / BulkStatus serializers: Order action payloads
"""

from __future__ import annotations

from rest_framework import serializers

from dropshipping.models import (
    DropshipOrder,
    DropshipOrderItem,
    ProductSupplierMapping,
    Supplier,
    SupplierIntegration,
    SupplierProduct,
)
from dropshipping.states import DropshipStatus


class SupplierIntegrationSerializer(serializers.ModelSerializer):
    health_score = serializers.IntegerField(read_only=True)
    is_healthy = serializers.BooleanField(read_only=True)

    class Meta:
        model = SupplierIntegration
        fields = [
            "id",
            "supplier",
            "integration_type",
            "is_active",
            "api_endpoint",
            "api_key",
            "webhook_url",
            "webhook_secret",
            "email_address",
            "configuration",
            "health_score",
            "is_healthy",
            "last_success_at",
            "last_failure_at",
            "last_error",
            "consecutive_failures",
            "total_requests",
            "failed_requests",
        ]
        read_only_fields = [
            "id",
            "last_success_at",
            "last_failure_at",
            "last_error",
            "consecutive_failures",
            "total_requests",
            "failed_requests",
        ]
        extra_kwargs = {
            "api_key": {"write_only": True},
            "webhook_secret": {"write_only": True},
        }


class SupplierSerializer(serializers.ModelSerializer):
    integrations = SupplierIntegrationSerializer(many=True, read_only=True)

    class Meta:
        model = Supplier
        fields = [
            "id",
            "name",
            "company_name",
            "email",
            "phone",
            "contact_person",
            "country",
            "status",
            "integration_type",
            "processing_time_days",
            "auto_fulfill",
            "stock_sync_enabled",
            "minimum_order_value_cents",
            "maximum_order_value_cents",
            "supported_countries",
            "notes",
            "integrations",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "integrations", "created_at", "updated_at"]

    def validate_supported_countries(self, value):
        if not isinstance(value, list) or not all(isinstance(code, str) and len(code) == 2 for code in value):
            raise serializers.ValidationError("Expected a list of two-letter country codes.")
        return [code.upper() for code in value]

    def validate(self, attrs):
        minimum = attrs.get("minimum_order_value_cents", getattr(self.instance, "minimum_order_value_cents", 0))
        maximum = attrs.get("maximum_order_value_cents", getattr(self.instance, "maximum_order_value_cents", None))
        if maximum is not None and maximum < minimum:
            raise serializers.ValidationError(
                {"maximum_order_value_cents": "Must not be below minimum_order_value_cents."}
            )
        return attrs


class SupplierProductSerializer(serializers.ModelSerializer):
    supplier_name = serializers.CharField(source="supplier.name", read_only=True)

    class Meta:
        model = SupplierProduct
        fields = [
            "id",
            "supplier",
            "supplier_name",
            "supplier_sku",
            "name",
            "description",
            "cost_price_cents",
            "stock_quantity",
            "is_active",
            "last_synced_at",
        ]
        read_only_fields = ["id", "supplier_name", "last_synced_at"]


class ProductSupplierMappingSerializer(serializers.ModelSerializer):
    product_sku = serializers.CharField(source="product.sku", read_only=True)
    supplier_sku = serializers.CharField(source="supplier_product.supplier_sku", read_only=True)

    class Meta:
        model = ProductSupplierMapping
        fields = [
            "id",
            "product",
            "product_sku",
            "supplier",
            "supplier_product",
            "supplier_sku",
            "is_active",
            "priority",
        ]
        read_only_fields = ["id", "product_sku", "supplier_sku"]

    def validate(self, attrs):
        supplier = attrs.get("supplier", getattr(self.instance, "supplier", None))
        supplier_product = attrs.get("supplier_product", getattr(self.instance, "supplier_product", None))
        if supplier and supplier_product and supplier_product.supplier_id != supplier.id:
            raise serializers.ValidationError(
                {"supplier_product": "Supplier product belongs to another supplier."}
            )
        return attrs


class DropshipOrderItemSerializer(serializers.ModelSerializer):
    total_cost_cents = serializers.IntegerField(read_only=True)
    total_retail_cents = serializers.IntegerField(read_only=True)

    class Meta:
        model = DropshipOrderItem
        fields = [
            "id",
            "order_item",
            "supplier_product",
            "supplier_sku",
            "quantity",
            "supplier_price_cents",
            "retail_price_cents",
            "profit_per_item_cents",
            "total_cost_cents",
            "total_retail_cents",
            "product_details",
        ]
        read_only_fields = fields


class DropshipOrderSerializer(serializers.ModelSerializer):
    items = DropshipOrderItemSerializer(many=True, read_only=True)
    order_number = serializers.CharField(source="order.number", read_only=True)
    supplier_name = serializers.CharField(source="supplier.name", read_only=True)
    profit_margin_percentage = serializers.SerializerMethodField()
    processing_time_hours = serializers.SerializerMethodField()
    is_overdue = serializers.SerializerMethodField()

    class Meta:
        model = DropshipOrder
        fields = [
            "id",
            "order",
            "order_number",
            "supplier",
            "supplier_name",
            "supplier_order_id",
            "status",
            "total_cost_cents",
            "total_retail_cents",
            "profit_margin_cents",
            "profit_margin_percentage",
            "shipping_address",
            "tracking_number",
            "carrier",
            "estimated_delivery",
            "is_overdue",
            "processing_time_hours",
            "notes",
            "supplier_notes",
            "supplier_response",
            "retry_count",
            "last_retry_at",
            "auto_retry_enabled",
            "sent_to_supplier_at",
            "confirmed_by_supplier_at",
            "shipped_by_supplier_at",
            "delivered_at",
            "cancelled_at",
            "items",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_profit_margin_percentage(self, obj: DropshipOrder) -> float:
        return obj.profit_margin_percentage()

    def get_processing_time_hours(self, obj: DropshipOrder) -> float | None:
        return obj.processing_time_hours()

    def get_is_overdue(self, obj: DropshipOrder) -> bool:
        return obj.is_overdue()


class UpdateDropshipOrderSerializer(serializers.ModelSerializer):
    class Meta:
        model = DropshipOrder
        fields = [
            "supplier_order_id",
            "tracking_number",
            "carrier",
            "estimated_delivery",
            "notes",
            "supplier_notes",
            "auto_retry_enabled",
            "shipping_address",
        ]


class CreateDropshipOrderItemSerializer(serializers.Serializer):
    order_item_id = serializers.UUIDField(required=False, allow_null=True)
    supplier_product_id = serializers.UUIDField(required=False, allow_null=True)
    supplier_sku = serializers.CharField(max_length=100)
    quantity = serializers.IntegerField(min_value=1, default=1)
    supplier_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    retail_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    product_details = serializers.JSONField(required=False)


class CreateDropshipOrderSerializer(serializers.Serializer):
    """Amounts are in major units and stored as cents."""

    order_id = serializers.UUIDField()
    supplier_id = serializers.UUIDField()
    supplier_order_id = serializers.CharField(max_length=255, required=False, allow_blank=True)
    total_cost = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    total_retail = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    shipping_address = serializers.JSONField(required=False)
    estimated_delivery = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    items = CreateDropshipOrderItemSerializer(many=True)


class ConfirmDropshipOrderSerializer(serializers.Serializer):
    supplier_order_id = serializers.CharField(max_length=255, required=False, allow_blank=True)


class ShipDropshipOrderSerializer(serializers.Serializer):
    tracking_number = serializers.CharField(max_length=100)
    carrier = serializers.CharField(max_length=100, required=False, allow_blank=True)
    estimated_delivery = serializers.DateField(required=False, allow_null=True)


class CancelDropshipOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500)


class BulkStatusSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False, max_length=500)
    status = serializers.ChoiceField(choices=DropshipStatus.choices)
    notes = serializers.CharField(required=False, allow_blank=True)


class BulkStatusResultSerializer(serializers.Serializer):
    updated_count = serializers.IntegerField()
    error_count = serializers.IntegerField()
    new_status = serializers.CharField()
    errors = serializers.ListField(child=serializers.CharField())
