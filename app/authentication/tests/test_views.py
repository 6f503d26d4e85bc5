"""
Tests for authentication API views.
"""

import pytest
from django.urls import reverse

from authentication.models import User
from authentication.tests.factories import StaffUserFactory


@pytest.mark.django_db
class TestRegisterView:
    url = reverse("authentication:register")

    def test_creates_customer(self, api_client):
        response = api_client.post(
            self.url,
            {"email": "New@Example.com", "password": "Str0ng-Passw0rd!", "first_name": "Ada"},
            format="json",
        )

        assert response.status_code == 201
        assert response.data["email"] == "new@example.com"
        assert User.objects.filter(email="new@example.com").exists()

    def test_rejects_duplicate_email(self, api_client, user):
        response = api_client.post(
            self.url,
            {"email": user.email, "password": "Str0ng-Passw0rd!"},
            format="json",
        )

        assert response.status_code == 400
        assert "email" in response.data

    def test_rejects_weak_password(self, api_client):
        response = api_client.post(
            self.url, {"email": "weak@example.com", "password": "123"}, format="json"
        )

        assert response.status_code == 400
        assert "password" in response.data


@pytest.mark.django_db
class TestTokenObtain:
    def test_returns_jwt_pair(self, api_client, user):
        response = api_client.post(
            reverse("authentication:token-obtain"),
            {"email": user.email, "password": "TestPass123!"},
            format="json",
        )

        assert response.status_code == 200
        assert "access" in response.data
        assert "refresh" in response.data


@pytest.mark.django_db
class TestMeView:
    url = reverse("authentication:me")

    def test_requires_authentication(self, api_client):
        assert api_client.get(self.url).status_code == 401

    def test_customer_has_no_permissions(self, authenticated_client, user):
        response = authenticated_client.get(self.url)

        assert response.status_code == 200
        assert response.data["email"] == user.email
        assert response.data["permissions"] == []

    def test_staff_sees_granted_permissions(self, api_client):
        staff = StaffUserFactory(permissions=["orders.manage_returns"])
        api_client.force_authenticate(user=staff)

        response = api_client.get(self.url)

        assert "orders.manage_returns" in response.data["permissions"]

    def test_patch_updates_profile_fields_only(self, authenticated_client, user):
        response = authenticated_client.patch(
            self.url,
            {"first_name": "Grace", "email": "other@example.com", "is_staff": True},
            format="json",
        )

        assert response.status_code == 200
        user.refresh_from_db()
        assert user.first_name == "Grace"
        assert user.email != "other@example.com"
        assert user.is_staff is False
