"""
Views for the staff dropshipping API.

Supplier orders require dropshipping.manage_dropshipping. Suppliers, integrations,
supplier products and mappings can be read with it, while changing them
requires dropshipping.manage_suppliers.

ViewSets:
    DropshipOrderViewSet: Supplier orders and their lifecycle actions
    SupplierViewSet: Suppliers and performance reports
    SupplierIntegrationViewSet: Supplier connections and credentials
    SupplierProductViewSet: Supplier catalog
    ProductSupplierMappingViewSet: Product to supplier product mappings

Endpoints:
    GET    /api/v1/dropshipping/orders/                  - Filter by supplier, status, order,
                                                           search, date_from/date_to, overdue, needs_retry
    POST   /api/v1/dropshipping/orders/                  - Manual supplier order
    GET    /api/v1/dropshipping/orders/{id}/
    PATCH  /api/v1/dropshipping/orders/{id}/
    DELETE /api/v1/dropshipping/orders/{id}/             - Pending or cancelled only
    POST   /api/v1/dropshipping/orders/{id}/send/
    POST   /api/v1/dropshipping/orders/{id}/confirm/
    POST   /api/v1/dropshipping/orders/{id}/ship/
    POST   /api/v1/dropshipping/orders/{id}/deliver/
    POST   /api/v1/dropshipping/orders/{id}/cancel/
    POST   /api/v1/dropshipping/orders/{id}/retry/
    POST   /api/v1/dropshipping/orders/bulk-status/
    GET    /api/v1/dropshipping/orders/statistics/
    CRUD   /api/v1/dropshipping/suppliers/
    GET    /api/v1/dropshipping/suppliers/{id}/performance/?days=30
    CRUD   /api/v1/dropshipping/integrations/
    CRUD   /api/v1/dropshipping/supplier-products/
    CRUD   /api/v1/dropshipping/mappings/
"""

from __future__ import annotations

from django.db.models import ProtectedError
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.permissions import HasModelPermission
from core.responses import error_response
from core.services import ServiceResult
from dropshipping.filters import DropshipOrderFilter, SupplierFilter, SupplierProductFilter
from dropshipping.models import (
    DropshipOrder,
    ProductSupplierMapping,
    Supplier,
    SupplierIntegration,
    SupplierProduct,
)
from dropshipping.serializers import (
    BulkStatusResultSerializer,
    BulkStatusSerializer,
    CancelDropshipOrderSerializer,
    ConfirmDropshipOrderSerializer,
    CreateDropshipOrderSerializer,
    DropshipOrderSerializer,
    ProductSupplierMappingSerializer,
    ShipDropshipOrderSerializer,
    SupplierIntegrationSerializer,
    SupplierProductSerializer,
    SupplierSerializer,
    UpdateDropshipOrderSerializer,
)
from dropshipping.services import DropshipOrderService

MANAGE_DROPSHIPPING = "dropshipping.manage_dropshipping"
MANAGE_SUPPLIERS = "dropshipping.manage_suppliers"

DROPSHIP_ERROR_STATUS = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "INVALID_STATUS": status.HTTP_400_BAD_REQUEST,
    "INVALID_TRANSITION": status.HTTP_409_CONFLICT,
    "NOT_PENDING": status.HTTP_409_CONFLICT,
    "CANNOT_DELETE": status.HTTP_409_CONFLICT,
    "CANNOT_CANCEL_DELIVERED": status.HTTP_409_CONFLICT,
    "CANNOT_RETRY": status.HTTP_409_CONFLICT,
    "SUPPLIER_INACTIVE": status.HTTP_422_UNPROCESSABLE_ENTITY,
}


class StaffViewMixin:
    permission_classes = [IsAuthenticated, HasModelPermission]
    required_permission = MANAGE_DROPSHIPPING


class SupplierCatalogViewMixin:
    permission_classes = [IsAuthenticated, HasModelPermission]
    required_permissions = {
        "list": MANAGE_DROPSHIPPING,
        "retrieve": MANAGE_DROPSHIPPING,
        "performance": MANAGE_DROPSHIPPING,
        "*": MANAGE_SUPPLIERS,
    }


class DropshipOrderViewSet(
    StaffViewMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = DropshipOrderSerializer
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = DropshipOrderFilter
    ordering_fields = ["created_at", "estimated_delivery", "status", "total_cost_cents"]
    queryset = DropshipOrder.objects.select_related("order", "supplier").prefetch_related("items")

    def _respond(self, result: ServiceResult, success_status: int = status.HTTP_200_OK) -> Response:
        if not result.success:
            return error_response(result, DROPSHIP_ERROR_STATUS)
        return Response(DropshipOrderSerializer(result.data).data, status=success_status)

    @extend_schema(
        request=CreateDropshipOrderSerializer,
        responses={201: DropshipOrderSerializer, 400: OpenApiResponse(description="Business validation failed")},
        tags=["Admin - Dropshipping"],
    )
    def create(self, request, *args, **kwargs):
        serializer = CreateDropshipOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = DropshipOrderService.create_dropship_order(serializer.validated_data, actor=request.user)
        return self._respond(result, status.HTTP_201_CREATED)

    @extend_schema(
        request=UpdateDropshipOrderSerializer,
        responses={200: DropshipOrderSerializer},
        tags=["Admin - Dropshipping"],
    )
    def partial_update(self, request, *args, **kwargs):
        dropship_order = self.get_object()
        serializer = UpdateDropshipOrderSerializer(dropship_order, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        result = DropshipOrderService.update_dropship_order(dropship_order, serializer.validated_data)
        return self._respond(result)

    @extend_schema(
        responses={204: None, 409: OpenApiResponse(description="Only pending or cancelled orders")},
        tags=["Admin - Dropshipping"],
    )
    def destroy(self, request, *args, **kwargs):
        result = DropshipOrderService.delete_dropship_order(self.get_object())
        if not result.success:
            return error_response(result, DROPSHIP_ERROR_STATUS)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(request=None, responses={200: DropshipOrderSerializer}, tags=["Admin - Dropshipping"])
    @action(detail=True, methods=["post"])
    def send(self, request, pk=None):
        return self._respond(DropshipOrderService.send_to_supplier(self.get_object(), actor=request.user))

    @extend_schema(
        request=ConfirmDropshipOrderSerializer,
        responses={200: DropshipOrderSerializer},
        tags=["Admin - Dropshipping"],
    )
    @action(detail=True, methods=["post"])
    def confirm(self, request, pk=None):
        serializer = ConfirmDropshipOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        return self._respond(
            DropshipOrderService.mark_confirmed(
                self.get_object(), serializer.validated_data.get("supplier_order_id", "")
            )
        )

    @extend_schema(
        request=ShipDropshipOrderSerializer,
        responses={200: DropshipOrderSerializer},
        tags=["Admin - Dropshipping"],
    )
    @action(detail=True, methods=["post"])
    def ship(self, request, pk=None):
        serializer = ShipDropshipOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        return self._respond(DropshipOrderService.mark_shipped(self.get_object(), **serializer.validated_data))

    @extend_schema(request=None, responses={200: DropshipOrderSerializer}, tags=["Admin - Dropshipping"])
    @action(detail=True, methods=["post"])
    def deliver(self, request, pk=None):
        return self._respond(DropshipOrderService.mark_delivered(self.get_object()))

    @extend_schema(
        request=CancelDropshipOrderSerializer,
        responses={200: DropshipOrderSerializer},
        tags=["Admin - Dropshipping"],
    )
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        serializer = CancelDropshipOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        return self._respond(
            DropshipOrderService.cancel_dropship_order(
                self.get_object(), reason=serializer.validated_data.get("reason", "")
            )
        )

    @extend_schema(request=None, responses={200: DropshipOrderSerializer}, tags=["Admin - Dropshipping"])
    @action(detail=True, methods=["post"])
    def retry(self, request, pk=None):
        return self._respond(DropshipOrderService.retry_dropship_order(self.get_object()))

    @extend_schema(
        request=BulkStatusSerializer,
        responses={200: BulkStatusResultSerializer},
        tags=["Admin - Dropshipping"],
    )
    @action(detail=False, methods=["post"], url_path="bulk-status")
    def bulk_status(self, request):
        serializer = BulkStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = DropshipOrderService.bulk_update_status(
            serializer.validated_data["ids"],
            serializer.validated_data["status"],
            notes=serializer.validated_data.get("notes", ""),
        )
        return Response(result)

    @extend_schema(responses={200: OpenApiResponse(description="Totals, breakdowns and recent activity")},
                   tags=["Admin - Dropshipping"])
    @action(detail=False, methods=["get"])
    def statistics(self, request):
        return Response(DropshipOrderService.get_statistics())


class SupplierViewSet(SupplierCatalogViewMixin, viewsets.ModelViewSet):
    serializer_class = SupplierSerializer
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = SupplierFilter
    ordering_fields = ["name", "created_at", "processing_time_days"]
    queryset = Supplier.objects.prefetch_related("integrations")

    def destroy(self, request, *args, **kwargs):
        try:
            return super().destroy(request, *args, **kwargs)
        except ProtectedError:
            result = ServiceResult.failure(
                "Supplier has dropship orders; set it inactive instead",
                error_code="SUPPLIER_IN_USE",
            )
            return error_response(result, {"SUPPLIER_IN_USE": status.HTTP_409_CONFLICT})

    @extend_schema(
        parameters=[OpenApiParameter("days", int, description="Reporting window (default 30)")],
        responses={200: OpenApiResponse(description="Performance, profitability and issues")},
        tags=["Admin - Dropshipping"],
    )
    @action(detail=True, methods=["get"])
    def performance(self, request, pk=None):
        try:
            days = max(1, min(int(request.query_params.get("days", 30)), 365))
        except ValueError:
            days = 30

        result = DropshipOrderService.generate_supplier_performance_report(self.get_object().id, days=days)
        if not result.success:
            return error_response(result, DROPSHIP_ERROR_STATUS)
        return Response(result.data)


class SupplierIntegrationViewSet(SupplierCatalogViewMixin, viewsets.ModelViewSet):
    serializer_class = SupplierIntegrationSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["supplier", "integration_type", "is_active"]
    queryset = SupplierIntegration.objects.select_related("supplier")


class SupplierProductViewSet(SupplierCatalogViewMixin, viewsets.ModelViewSet):
    serializer_class = SupplierProductSerializer
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = SupplierProductFilter
    ordering_fields = ["supplier_sku", "cost_price_cents", "stock_quantity"]
    queryset = SupplierProduct.objects.select_related("supplier")


class ProductSupplierMappingViewSet(SupplierCatalogViewMixin, viewsets.ModelViewSet):
    serializer_class = ProductSupplierMappingSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["product", "supplier", "is_active"]
    queryset = ProductSupplierMapping.objects.select_related("product", "supplier", "supplier_product")
