"""
Pytest fixtures for dropshipping tests.

paid_order is a confirmed customer order with one dropship item mapped to
an auto-fulfilling API supplier. Outbound HTTP goes through
dropshipping.clients.requests; patch requests.post / requests.get there.
"""

import pytest
from rest_framework.test import APIClient

from authentication.tests.factories import StaffUserFactory, UserFactory
from dropshipping.states import IntegrationType
from dropshipping.tests.factories import (
    ProductSupplierMappingFactory,
    SupplierFactory,
    SupplierIntegrationFactory,
    SupplierProductFactory,
)
from orders.states import OrderStatus
from orders.tests.factories import OrderFactory, OrderItemFactory, ProductFactory


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def dropship_manager(db):
    return StaffUserFactory(
        permissions=["dropshipping.manage_dropshipping", "dropshipping.manage_suppliers"]
    )


@pytest.fixture
def staff_client(api_client, dropship_manager):
    api_client.force_authenticate(user=dropship_manager)
    return api_client


@pytest.fixture
def supplier(db):
    """Active auto-fulfilling supplier with an API integration."""
    supplier = SupplierFactory(integration_type=IntegrationType.API, auto_fulfill=True)
    SupplierIntegrationFactory(supplier=supplier)
    return supplier


@pytest.fixture
def integration(supplier):
    return supplier.integrations.get()


@pytest.fixture
def manual_supplier(db):
    return SupplierFactory(integration_type=IntegrationType.MANUAL, auto_fulfill=False)


@pytest.fixture
def supplier_product(supplier):
    return SupplierProductFactory(supplier=supplier, supplier_sku="MUG-001", cost_price_cents=700, stock_quantity=20)


@pytest.fixture
def dropship_product(db):
    return ProductFactory(price_cents=1200, stock_quantity=0, is_dropship=True)


@pytest.fixture
def mapping(dropship_product, supplier_product):
    return ProductSupplierMappingFactory(
        product=dropship_product,
        supplier_product=supplier_product,
        supplier=supplier_product.supplier,
    )


@pytest.fixture
def paid_order(user, dropship_product, mapping):
    order = OrderFactory(user=user, status=OrderStatus.CONFIRMED, subtotal_cents=2400)
    OrderItemFactory(order=order, product=dropship_product, quantity=2, unit_price_cents=1200)
    return order


@pytest.fixture
def mock_post(mocker):
    return mocker.patch("dropshipping.clients.requests.post")


@pytest.fixture
def mock_get(mocker):
    return mocker.patch("dropshipping.clients.requests.get")


@pytest.fixture
def mock_notify(mocker):
    return {
        "shipped": mocker.patch("notifications.notify.dropship_order_shipped"),
        "confirmed": mocker.patch("notifications.notify.dropship_order_confirmed"),
    }
