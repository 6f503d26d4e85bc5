"""
Pytest fixtures for payment tests.

The refund lock talks to Redis; lock_redis replaces the connection with a
MagicMock for every test so services run without a Redis server.

Usage:
    def test_refund(approved_return, paid_payment, mock_gateway_success):
        result = RefundProcessor.refund_return(approved_return.id)
        assert result.success
"""

import pytest
from rest_framework.test import APIClient

from authentication.tests.factories import StaffUserFactory, UserFactory
from orders.states import OrderStatus, ReturnStatus
from orders.tests.factories import OrderFactory, OrderItemFactory, OrderReturnFactory
from payments.adapters import RefundResult
from payments.services import GatewayRefundResult
from payments.state_machines import PaymentStatus
from payments.tests.factories import PaymentFactory


@pytest.fixture(autouse=True)
def lock_redis(mocker):
    """Redis client behind DistributedLock; every lock is granted."""
    client = mocker.MagicMock()
    client.set.return_value = True
    client.eval.return_value = 1
    mocker.patch("payments.locks.get_redis_connection", return_value=client)
    return client


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def refund_manager(db):
    return StaffUserFactory(permissions=["payments.manage_refunds", "payments.view_payment"])


@pytest.fixture
def staff_client(api_client, refund_manager):
    api_client.force_authenticate(user=refund_manager)
    return api_client


@pytest.fixture
def customer_client(api_client, user):
    api_client.force_authenticate(user=user)
    return api_client


# =============================================================================
# Orders and payments
# =============================================================================


@pytest.fixture
def paid_order(db, user):
    """Confirmed order with two items of 2500 and 1500 cents."""
    order = OrderFactory(user=user, status=OrderStatus.CONFIRMED, subtotal_cents=4000)
    OrderItemFactory(order=order, unit_price_cents=2500)
    OrderItemFactory(order=order, unit_price_cents=1500)
    return order


@pytest.fixture
def paid_payment(paid_order):
    return PaymentFactory(order=paid_order, amount_cents=4000, status=PaymentStatus.PAID)


@pytest.fixture
def pending_order(db, user):
    return OrderFactory(user=user, status=OrderStatus.PENDING_PAYMENT, subtotal_cents=4000)


@pytest.fixture
def pending_payment(pending_order):
    return PaymentFactory(
        order=pending_order,
        amount_cents=4000,
        status=PaymentStatus.PENDING,
        stripe_charge_id="",
        processed_at=None,
    )


@pytest.fixture
def first_item(paid_order):
    return paid_order.items.order_by("-unit_price_cents").first()


@pytest.fixture
def second_item(paid_order):
    return paid_order.items.order_by("unit_price_cents").first()


@pytest.fixture
def approved_return(first_item, paid_payment):
    return OrderReturnFactory(order_item=first_item, status=ReturnStatus.APPROVED)


@pytest.fixture
def second_approved_return(second_item, paid_payment):
    return OrderReturnFactory(order_item=second_item, status=ReturnStatus.APPROVED)


# =============================================================================
# Stripe doubles
# =============================================================================


@pytest.fixture
def mock_gateway_success(mocker):
    """RefundProcessor's gateway accepts every refund."""

    def refund(gateway, order, order_item):
        return GatewayRefundResult(
            success=True,
            amount_cents=order_item.refund_amount(),
            stripe_refund_id=f"re_gateway_{order_item.sku}",
            stripe_status="succeeded",
        )

    return mocker.patch(
        "payments.services.refund_processor.StripeRefundGateway.refund",
        autospec=True,
        side_effect=refund,
    )


@pytest.fixture
def mock_gateway_failure(mocker):
    return mocker.patch(
        "payments.services.refund_processor.StripeRefundGateway.refund",
        return_value=GatewayRefundResult(success=False, reason="Card issuer unavailable"),
    )


@pytest.fixture
def stripe_refund_result():
    return RefundResult(
        id="re_stripe_1",
        amount_cents=2500,
        currency="usd",
        status="succeeded",
        payment_intent_id="pi_test",
        charge_id="ch_test",
        metadata={},
    )


@pytest.fixture
def mock_notify(mocker):
    """Customer notifications triggered after commit."""
    return mocker.patch("payments.services.refund_processor.notify")
