"""
Test configuration and fixtures for notification tests.

Usage:
    def test_example(user, unread_notification, authenticated_client):
        response = authenticated_client.get("/api/v1/notifications/")
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient

from authentication.tests.factories import UserFactory
from notifications.tests.factories import NotificationFactory, NotificationTypeFactory


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
def authenticated_client(api_client, user):
    api_client.force_authenticate(user=user)
    return api_client


@pytest.fixture
def notification_type(db):
    """Email and in-app type with plain templates."""
    return NotificationTypeFactory(
        key="test_notification",
        title_template="Test Title",
        body_template="Test Body",
    )


@pytest.fixture
def templated_type(db):
    return NotificationTypeFactory(
        key="templated_notification",
        title_template="Order {order_number} update",
        body_template="Hello {first_name}, your order is {status}.",
    )


@pytest.fixture
def all_channels_type(db):
    return NotificationTypeFactory(
        key="all_channels",
        supports_email=True,
        supports_sms=True,
        supports_in_app=True,
    )


@pytest.fixture
def inactive_type(db):
    return NotificationTypeFactory(key="inactive_notification", is_active=False)


@pytest.fixture
def unread_notification(user, notification_type):
    return NotificationFactory(recipient=user, notification_type=notification_type)


@pytest.fixture
def read_notification(user, notification_type):
    return NotificationFactory(recipient=user, notification_type=notification_type, is_read=True)
