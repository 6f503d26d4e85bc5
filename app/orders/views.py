"""
Views for orders API.

ViewSets:
    ProductViewSet: Active catalog (read-only)
    OrderViewSet: Customer orders, checkout and cancellation
    ReturnViewSet: Customer return requests
    AdminOrderViewSet: Staff order listing (orders.manage_orders)
    AdminReturnViewSet: Staff return review (orders.manage_returns)

Endpoints:
    GET  /api/v1/products/
    GET  /api/v1/orders/                     - Own orders
    POST /api/v1/orders/                     - Checkout
    GET  /api/v1/orders/{id}/
    POST /api/v1/orders/{id}/cancel/
    GET  /api/v1/returns/                    - Own returns
    POST /api/v1/returns/                    - Request a return
    GET  /api/v1/admin/orders/               - Filter by status, user, date
    POST /api/v1/admin/orders/{id}/cancel/
    GET  /api/v1/admin/returns/
    POST /api/v1/admin/returns/{id}/review/  - review / approve / reject
"""

from __future__ import annotations

import logging

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.permissions import HasModelPermission
from core.responses import error_response
from orders.filters import OrderFilter, OrderReturnFilter
from orders.models import Order, OrderReturn, Product
from orders.serializers import (
    AdminOrderReturnSerializer,
    AdminOrderSerializer,
    CancelOrderSerializer,
    CheckoutResponseSerializer,
    CheckoutSerializer,
    CreateReturnSerializer,
    OrderReturnSerializer,
    OrderSerializer,
    ProductSerializer,
    ReviewReturnSerializer,
)
from orders.services import CheckoutService, OrderService, ReturnService

logger = logging.getLogger(__name__)


CHECKOUT_ERROR_STATUS = {
    "PRODUCT_NOT_FOUND": status.HTTP_400_BAD_REQUEST,
    "INSUFFICIENT_STOCK": status.HTTP_409_CONFLICT,
    "STRIPE_ERROR": status.HTTP_502_BAD_GATEWAY,
}

CANCEL_ERROR_STATUS = {
    "ORDER_NOT_CANCELLABLE": status.HTTP_409_CONFLICT,
}

RETURN_ERROR_STATUS = {
    "RETURN_EXISTS": status.HTTP_409_CONFLICT,
    "ORDER_NOT_PAID": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "RETURN_ALREADY_PROCESSED": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "INVALID_ACTION": status.HTTP_422_UNPROCESSABLE_ENTITY,
}


class ProductViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = ProductSerializer
    permission_classes = [IsAuthenticated]
    queryset = Product.objects.filter(is_active=True)


class OrderViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    """Orders of the authenticated customer."""

    serializer_class = OrderSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return Order.objects.filter(user=self.request.user).prefetch_related(
            "items__order_return"
        )

    @extend_schema(
        request=CheckoutSerializer,
        responses={
            201: CheckoutResponseSerializer,
            400: OpenApiResponse(description="Empty order, unknown or inactive product"),
            409: OpenApiResponse(description="Insufficient stock"),
        },
        tags=["Orders"],
    )
    def create(self, request, *args, **kwargs):
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = CheckoutService.create_order(
            user=request.user,
            items=serializer.validated_data["items"],
            shipping_address=serializer.validated_data["shipping_address"],
        )
        if not result.success:
            return error_response(result, CHECKOUT_ERROR_STATUS)

        return Response(
            {
                "order": OrderSerializer(result.data["order"]).data,
                "client_secret": result.data["client_secret"],
            },
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(
        request=CancelOrderSerializer,
        responses={
            200: OrderSerializer,
            409: OpenApiResponse(description="Order can no longer be cancelled"),
        },
        tags=["Orders"],
    )
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        order = self.get_object()
        serializer = CancelOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = OrderService.cancel_order(
            order, request.user, reason=serializer.validated_data.get("reason", "")
        )
        if not result.success:
            return error_response(result, CANCEL_ERROR_STATUS)
        return Response(OrderSerializer(result.data).data)


class ReturnViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    """Return requests of the authenticated customer."""

    serializer_class = OrderReturnSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return OrderReturn.objects.filter(order_item__order__user=self.request.user).select_related(
            "order_item__order"
        )

    @extend_schema(
        request=CreateReturnSerializer,
        responses={
            201: OrderReturnSerializer,
            403: OpenApiResponse(description="Item belongs to another customer"),
            409: OpenApiResponse(description="Return already exists"),
            422: OpenApiResponse(description="Order not paid"),
        },
        tags=["Returns"],
    )
    def create(self, request, *args, **kwargs):
        serializer = CreateReturnSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ReturnService.create_return(
            user=request.user,
            order_item_id=serializer.validated_data["order_item_id"],
            reason=serializer.validated_data.get("reason", ""),
        )
        if not result.success:
            return error_response(result, RETURN_ERROR_STATUS)
        return Response(OrderReturnSerializer(result.data).data, status=status.HTTP_201_CREATED)


class AdminOrderViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = AdminOrderSerializer
    permission_classes = [IsAuthenticated, HasModelPermission]
    required_permission = "orders.manage_orders"
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = OrderFilter
    ordering_fields = ["created_at", "total_cents", "status"]
    queryset = Order.objects.select_related("user").prefetch_related("items__order_return")

    @extend_schema(request=CancelOrderSerializer, responses={200: AdminOrderSerializer}, tags=["Admin - Orders"])
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        order = self.get_object()
        serializer = CancelOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = OrderService.cancel_order(
            order, request.user, reason=serializer.validated_data.get("reason", "")
        )
        if not result.success:
            return error_response(result, CANCEL_ERROR_STATUS)
        return Response(AdminOrderSerializer(result.data).data)


class AdminReturnViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = AdminOrderReturnSerializer
    permission_classes = [IsAuthenticated, HasModelPermission]
    required_permission = "orders.manage_returns"
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = OrderReturnFilter
    ordering_fields = ["created_at", "status"]

    def get_queryset(self):
        return ReturnService.list_returns(self.request.user)

    @extend_schema(
        request=ReviewReturnSerializer,
        responses={
            200: AdminOrderReturnSerializer,
            422: OpenApiResponse(description="Invalid action or return already processed"),
        },
        tags=["Admin - Returns"],
    )
    @action(detail=True, methods=["post"])
    def review(self, request, pk=None):
        serializer = ReviewReturnSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ReturnService.review_return(
            actor=request.user,
            return_id=pk,
            action=serializer.validated_data["action"],
            notes=serializer.validated_data.get("notes", ""),
        )
        if not result.success:
            return error_response(result, RETURN_ERROR_STATUS)
        return Response(AdminOrderReturnSerializer(result.data).data)
