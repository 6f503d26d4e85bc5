"""
Pytest fixtures for order tests.

Checkout talks to Stripe through PaymentService; mock_create_payment
replaces that call with a successful PaymentIntent.
"""

import pytest
from rest_framework.test import APIClient

from authentication.tests.factories import StaffUserFactory, UserFactory
from core.services import ServiceResult
from orders.states import OrderStatus
from orders.tests.factories import OrderFactory, OrderItemFactory, ProductFactory


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def other_user(db):
    return UserFactory()


@pytest.fixture
def order_manager(db):
    return StaffUserFactory(permissions=["orders.manage_orders", "orders.manage_returns"])


@pytest.fixture
def customer_client(api_client, user):
    api_client.force_authenticate(user=user)
    return api_client


@pytest.fixture
def staff_client(api_client, order_manager):
    api_client.force_authenticate(user=order_manager)
    return api_client


@pytest.fixture
def product(db):
    return ProductFactory(price_cents=2500, stock_quantity=10)


@pytest.fixture
def dropship_product(db):
    return ProductFactory(price_cents=1200, stock_quantity=0, is_dropship=True)


@pytest.fixture
def shipping_address():
    return {
        "name": "Jane Doe",
        "line1": "1 Market St",
        "city": "San Francisco",
        "state": "CA",
        "postal_code": "94105",
        "country": "us",
    }


@pytest.fixture
def pending_order(user, product):
    order = OrderFactory(user=user, subtotal_cents=5000)
    OrderItemFactory(order=order, product=product, quantity=2)
    return order


@pytest.fixture
def confirmed_order(user, product):
    order = OrderFactory(user=user, status=OrderStatus.CONFIRMED, subtotal_cents=2500)
    OrderItemFactory(order=order, product=product)
    return order


@pytest.fixture
def confirmed_item(confirmed_order):
    return confirmed_order.items.get()


@pytest.fixture
def mock_create_payment(mocker):
    def create(order):
        return ServiceResult.success(
            {"payment": mocker.sentinel.payment, "client_secret": f"pi_{order.number}_secret"}
        )

    return mocker.patch(
        "payments.services.PaymentService.create_payment_for_order",
        side_effect=create,
    )


@pytest.fixture
def mock_cancel_payment(mocker):
    return mocker.patch(
        "payments.services.PaymentService.cancel_payment_for_order",
        return_value=ServiceResult.success(None),
    )
