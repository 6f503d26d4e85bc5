"""
Serializers for the staff payments and refunds API.

Serializers:
    PaymentSerializer: Payment representation
    RefundSerializer: Refund row representation
    ProcessReturnSerializer: Refund an approved return
    ManualRefundSerializer: Record a refund made outside the shop
    CancelRefundSerializer: Cancel a refund row (optimistic version)
    RecalculateResponseSerializer: Result of an order recalculation
"""

from __future__ import annotations

from rest_framework import serializers

from payments.models import Payment, Refund


class PaymentSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source="order.number", read_only=True)
    is_refundable = serializers.BooleanField(read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "order",
            "order_number",
            "stripe_payment_intent_id",
            "stripe_charge_id",
            "amount_cents",
            "currency",
            "status",
            "is_refundable",
            "processed_at",
            "failure_code",
            "failure_message",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class RefundSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source="order.number", read_only=True)

    class Meta:
        model = Refund
        fields = [
            "id",
            "order",
            "order_number",
            "payment",
            "order_return",
            "amount_cents",
            "status",
            "source",
            "is_manual",
            "stripe_refund_id",
            "notes",
            "failure_reason",
            "processed_at",
            "cancelled_at",
            "version",
            "created_at",
        ]
        read_only_fields = fields


class ProcessReturnSerializer(serializers.Serializer):
    return_id = serializers.UUIDField()
    skip_gateway = serializers.BooleanField(default=False)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)


class ManualRefundSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    amount_cents = serializers.IntegerField(min_value=1)
    notes = serializers.CharField(required=False, allow_blank=True, default="", max_length=2000)


class CancelRefundSerializer(serializers.Serializer):
    expected_version = serializers.IntegerField(required=False, min_value=1)


class RecalculateResponseSerializer(serializers.Serializer):
    order_id = serializers.UUIDField(source="order.id")
    order_status = serializers.CharField(source="order.status")
    payment_status = serializers.CharField(source="payment.status")
    refunded_cents = serializers.IntegerField()
    changed = serializers.BooleanField()
