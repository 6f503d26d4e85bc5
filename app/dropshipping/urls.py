"""
URL configuration for dropshipping.

Routes (under /api/v1/dropshipping/):
    orders/                                 - Supplier orders and actions (staff)
    suppliers/                              - Suppliers (staff)
    integrations/                           - Supplier integrations (staff)
    supplier-products/                      - Supplier catalog (staff)
    mappings/                               - Product to supplier mappings (staff)
    webhooks/suppliers/{supplier_id}/       - Supplier webhook endpoint (POST)
"""

from django.urls import path
from rest_framework.routers import DefaultRouter

from dropshipping.views import (
    DropshipOrderViewSet,
    ProductSupplierMappingViewSet,
    SupplierIntegrationViewSet,
    SupplierProductViewSet,
    SupplierViewSet,
)
from dropshipping.webhooks.views import supplier_webhook

router = DefaultRouter()
router.include_root_view = False
router.register(r"orders", DropshipOrderViewSet, basename="dropship-order")
router.register(r"suppliers", SupplierViewSet, basename="supplier")
router.register(r"integrations", SupplierIntegrationViewSet, basename="supplier-integration")
router.register(r"supplier-products", SupplierProductViewSet, basename="supplier-product")
router.register(r"mappings", ProductSupplierMappingViewSet, basename="mapping")

app_name = "dropshipping"

urlpatterns = [
    path("webhooks/suppliers/<uuid:supplier_id>/", supplier_webhook, name="supplier_webhook"),
] + router.urls
