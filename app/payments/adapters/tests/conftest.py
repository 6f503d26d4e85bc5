"""
Pytest fixtures for Stripe adapter tests.

Stripe objects are attribute bags; SimpleNamespace stands in for them so
the adapter's result mapping can be exercised without the network.
"""

from types import SimpleNamespace

import pytest


@pytest.fixture
def stripe_payment_intent():
    return SimpleNamespace(
        id="pi_test_123",
        status="requires_payment_method",
        amount=4000,
        currency="usd",
        client_secret="pi_test_123_secret_abc",
        metadata={"order_id": "order-1"},
    )


@pytest.fixture
def stripe_refund():
    return SimpleNamespace(
        id="re_test_123",
        amount=2500,
        currency="usd",
        status="succeeded",
        payment_intent="pi_test_123",
        charge="ch_test_123",
        metadata={"return_id": "return-1"},
    )


@pytest.fixture
def stripe_charge():
    return SimpleNamespace(
        id="ch_test_123",
        amount=4000,
        amount_refunded=2500,
        currency="usd",
        payment_intent="pi_test_123",
        refunded=False,
    )
