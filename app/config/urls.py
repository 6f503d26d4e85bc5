"""
URL configuration for the storefront backend.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - Registration, JWT tokens, current user
    /api/v1/orders/                - Customer orders and checkout
    /api/v1/returns/               - Customer return requests
    /api/v1/admin/orders/          - Staff order management
    /api/v1/admin/returns/         - Staff return review
    /api/v1/payments/webhooks/stripe/ - Stripe webhook endpoint (POST)
    /api/v1/admin/payments/        - Staff payment listing
    /api/v1/admin/refunds/         - Refund processing and reconciliation
    /api/v1/dropshipping/          - Suppliers, mappings, supplier orders
    /api/v1/notifications/         - In-app notifications and preferences
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("auth/", include("authentication.urls")),
    path("", include("orders.urls")),
    path("", include("payments.urls")),
    path("dropshipping/", include("dropshipping.urls")),
    path("notifications/", include("notifications.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Storefront Admin"
admin.site.site_title = "Storefront Admin Portal"
admin.site.index_title = "Orders, payments and suppliers"
