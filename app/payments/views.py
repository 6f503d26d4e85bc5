"""
Staff views for payments and refunds.

ViewSets:
    AdminPaymentViewSet: Payment listing (payments.view_payment)
    AdminRefundViewSet: Refund listing and processing (payments.manage_refunds)
    AdminOrderRecalculateView: Reconcile order and payment status

Endpoints:
    GET  /api/v1/admin/payments/
    GET  /api/v1/admin/payments/{id}/
    GET  /api/v1/admin/refunds/                  - Filter by status, source, order
    POST /api/v1/admin/refunds/process-return/   - Refund an approved return
    POST /api/v1/admin/refunds/manual/           - Record an external refund
    POST /api/v1/admin/refunds/{id}/cancel/
    POST /api/v1/admin/orders/{id}/recalculate/

The Stripe webhook endpoint lives in payments.webhooks.views.
"""

from __future__ import annotations

import logging

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.permissions import HasModelPermission
from core.responses import error_response
from payments.filters import PaymentFilter, RefundFilter
from payments.models import Payment, Refund
from payments.serializers import (
    CancelRefundSerializer,
    ManualRefundSerializer,
    PaymentSerializer,
    ProcessReturnSerializer,
    RecalculateResponseSerializer,
    RefundSerializer,
)
from payments.services import RefundProcessor

logger = logging.getLogger(__name__)


REFUND_ERROR_STATUS = {
    "RETURN_NOT_APPROVED": status.HTTP_400_BAD_REQUEST,
    "INVALID_AMOUNT": status.HTTP_400_BAD_REQUEST,
    "PAYMENT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "REFUND_FAILED": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "NO_APPROVED_RETURNS": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "REFUND_NOT_CANCELLABLE": status.HTTP_422_UNPROCESSABLE_ENTITY,
}


class AdminPaymentViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = PaymentSerializer
    permission_classes = [IsAuthenticated, HasModelPermission]
    required_permission = "payments.view_payment"
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = PaymentFilter
    ordering_fields = ["created_at", "amount_cents", "status"]
    queryset = Payment.objects.select_related("order")


class AdminRefundViewSet(viewsets.ReadOnlyModelViewSet):
    """Refund rows and the staff refund operations."""

    serializer_class = RefundSerializer
    permission_classes = [IsAuthenticated, HasModelPermission]
    required_permission = "payments.manage_refunds"
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = RefundFilter
    ordering_fields = ["created_at", "amount_cents", "status"]
    queryset = Refund.objects.select_related("order", "payment", "order_return")

    @extend_schema(
        request=ProcessReturnSerializer,
        responses={
            201: RefundSerializer,
            400: OpenApiResponse(description="Return is not approved"),
            404: OpenApiResponse(description="Return or payment not found"),
            409: OpenApiResponse(description="Another refund for this order is in progress"),
            422: OpenApiResponse(description="Refund failed at the gateway"),
        },
        tags=["Admin - Refunds"],
    )
    @action(detail=False, methods=["post"], url_path="process-return")
    def process_return(self, request):
        serializer = ProcessReturnSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = RefundProcessor.refund_return(
            serializer.validated_data["return_id"],
            actor=request.user,
            skip_gateway=serializer.validated_data["skip_gateway"],
            notes=serializer.validated_data.get("notes") or None,
        )
        if not result.success:
            return error_response(result, REFUND_ERROR_STATUS)
        return Response(RefundSerializer(result.data).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        request=ManualRefundSerializer,
        responses={
            201: RefundSerializer(many=True),
            404: OpenApiResponse(description="Order or payment not found"),
            422: OpenApiResponse(description="Order has no approved returns"),
        },
        tags=["Admin - Refunds"],
    )
    @action(detail=False, methods=["post"])
    def manual(self, request):
        serializer = ManualRefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = RefundProcessor.create_manual_refund(
            serializer.validated_data["order_id"],
            serializer.validated_data["amount_cents"],
            notes=serializer.validated_data["notes"],
        )
        if not result.success:
            return error_response(result, REFUND_ERROR_STATUS)

        logger.info(
            "Manual refund recorded by staff",
            extra={
                "order_id": str(serializer.validated_data["order_id"]),
                "actor_id": str(request.user.id),
            },
        )
        return Response(RefundSerializer(result.data, many=True).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        request=CancelRefundSerializer,
        responses={
            200: RefundSerializer,
            409: OpenApiResponse(description="Refund changed since it was read"),
            422: OpenApiResponse(description="Refund cannot be cancelled"),
        },
        tags=["Admin - Refunds"],
    )
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        refund = self.get_object()
        serializer = CancelRefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = RefundProcessor.cancel_refund_by_id(
            refund.id,
            expected_version=serializer.validated_data.get("expected_version"),
            actor=request.user,
        )
        if not result.success:
            return error_response(result, REFUND_ERROR_STATUS)
        return Response(RefundSerializer(result.data).data)


class AdminOrderRecalculateView(APIView):
    """Recompute order and payment status from the recorded refunds."""

    permission_classes = [IsAuthenticated, HasModelPermission]
    required_permission = "payments.manage_refunds"

    @extend_schema(
        request=None,
        responses={
            200: RecalculateResponseSerializer,
            404: OpenApiResponse(description="Order or payment not found"),
        },
        tags=["Admin - Refunds"],
    )
    def post(self, request, order_id):
        result = RefundProcessor.recalculate(order_id)
        if not result.success:
            return error_response(result, REFUND_ERROR_STATUS)
        return Response(RecalculateResponseSerializer(result.data).data)
