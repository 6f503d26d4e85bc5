"""
URL configuration for payments.

Routes:
    /payments/webhooks/stripe/          - Stripe webhook endpoint (POST)
    /admin/payments/                    - Staff payment listing (GET)
    /admin/refunds/                     - Staff refund listing (GET)
    /admin/refunds/process-return/      - Refund an approved return (POST)
    /admin/refunds/manual/              - Record an external refund (POST)
    /admin/refunds/{id}/cancel/         - Cancel a refund row (POST)
    /admin/orders/{id}/recalculate/     - Reconcile order status (POST)

Included at the root of /api/v1/ in config/urls.py.
"""

from django.urls import path
from rest_framework.routers import DefaultRouter

from payments.views import AdminOrderRecalculateView, AdminPaymentViewSet, AdminRefundViewSet
from payments.webhooks.views import stripe_webhook

router = DefaultRouter()
router.include_root_view = False
router.register(r"admin/payments", AdminPaymentViewSet, basename="admin-payment")
router.register(r"admin/refunds", AdminRefundViewSet, basename="admin-refund")

app_name = "payments"

urlpatterns = [
    path("payments/webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    path(
        "admin/orders/<uuid:order_id>/recalculate/",
        AdminOrderRecalculateView.as_view(),
        name="admin-order-recalculate",
    ),
] + router.urls
