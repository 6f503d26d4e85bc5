"""
URL configuration for orders API.

Routes:
    /products/                      - Active catalog (GET)
    /orders/                        - Own orders (GET), checkout (POST)
    /orders/{id}/cancel/            - Cancel own order (POST)
    /returns/                       - Own returns (GET), request return (POST)
    /admin/orders/                  - Staff order listing (GET)
    /admin/orders/{id}/cancel/      - Staff cancellation (POST)
    /admin/returns/                 - Staff return listing (GET)
    /admin/returns/{id}/review/     - Review, approve or reject (POST)
"""

from rest_framework.routers import DefaultRouter

from orders.views import (
    AdminOrderViewSet,
    AdminReturnViewSet,
    OrderViewSet,
    ProductViewSet,
    ReturnViewSet,
)

router = DefaultRouter()
router.include_root_view = False
router.register(r"products", ProductViewSet, basename="product")
router.register(r"orders", OrderViewSet, basename="order")
router.register(r"returns", ReturnViewSet, basename="return")
router.register(r"admin/orders", AdminOrderViewSet, basename="admin-order")
router.register(r"admin/returns", AdminReturnViewSet, basename="admin-return")

app_name = "orders"
urlpatterns = router.urls
