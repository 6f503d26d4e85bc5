"""
API tests for the staff dropshipping endpoints.
"""

from datetime import timedelta

import pytest
from django.urls import reverse
from django.utils import timezone
from rest_framework import status

from authentication.tests.factories import StaffUserFactory
from dropshipping.models import DropshipOrder, ProductSupplierMapping, Supplier
from dropshipping.states import DropshipStatus
from dropshipping.tests.factories import DropshipOrderFactory, SupplierProductFactory
from orders.models import Order
from orders.states import OrderStatus
from orders.tests.factories import ProductFactory


def detail(name, pk):
    return reverse(f"dropshipping:{name}", kwargs={"pk": pk})


@pytest.mark.django_db
class TestPermissions:
    def test_requires_authentication(self, api_client):
        response = api_client.get(reverse("dropshipping:dropship-order-list"))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_customer_forbidden(self, api_client, user):
        api_client.force_authenticate(user=user)

        response = api_client.get(reverse("dropshipping:supplier-list"))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_staff_without_permission_forbidden(self, api_client):
        api_client.force_authenticate(user=StaffUserFactory(permissions=["orders.manage_returns"]))

        response = api_client.get(reverse("dropshipping:dropship-order-list"))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_order_manager_reads_suppliers_but_cannot_change_them(self, api_client, manual_supplier):
        api_client.force_authenticate(user=StaffUserFactory(permissions=["dropshipping.manage_dropshipping"]))

        listed = api_client.get(reverse("dropshipping:supplier-list"))
        changed = api_client.patch(
            detail("supplier-detail", manual_supplier.pk), {"notes": "Call first"}, format="json"
        )

        assert listed.status_code == status.HTTP_200_OK
        assert changed.status_code == status.HTTP_403_FORBIDDEN

    def test_supplier_manager_cannot_touch_orders(self, api_client):
        api_client.force_authenticate(user=StaffUserFactory(permissions=["dropshipping.manage_suppliers"]))

        response = api_client.get(reverse("dropshipping:dropship-order-list"))

        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestDropshipOrderList:
    url = reverse("dropshipping:dropship-order-list")

    def test_lists(self, staff_client):
        dropship_order = DropshipOrderFactory(status=DropshipStatus.PROCESSING)

        response = staff_client.get(self.url)

        assert response.status_code == status.HTTP_200_OK
        [row] = response.data["results"]
        assert row["id"] == str(dropship_order.id)
        assert row["order_number"] == dropship_order.order.number
        assert row["supplier_name"] == dropship_order.supplier.name
        assert row["profit_margin_percentage"] == pytest.approx(41.67)
        assert row["is_overdue"] is False

    def test_filter_by_status(self, staff_client):
        DropshipOrderFactory(status=DropshipStatus.PROCESSING)
        shipped = DropshipOrderFactory(status=DropshipStatus.SHIPPED_BY_SUPPLIER)
        delivered = DropshipOrderFactory(status=DropshipStatus.DELIVERED)

        response = staff_client.get(self.url, {"status": ["shipped_by_supplier", "delivered"]})

        assert {row["id"] for row in response.data["results"]} == {str(shipped.id), str(delivered.id)}

    def test_search_by_tracking_number(self, staff_client):
        match = DropshipOrderFactory(status=DropshipStatus.SHIPPED_BY_SUPPLIER, tracking_number="1Z999AA")
        DropshipOrderFactory(status=DropshipStatus.SHIPPED_BY_SUPPLIER, tracking_number="TRK-1")

        response = staff_client.get(self.url, {"search": "1z999"})

        assert [row["id"] for row in response.data["results"]] == [str(match.id)]

    def test_filter_overdue(self, staff_client):
        late = DropshipOrderFactory(
            status=DropshipStatus.PROCESSING, estimated_delivery=timezone.localdate() - timedelta(days=3)
        )
        DropshipOrderFactory(status=DropshipStatus.PROCESSING)

        response = staff_client.get(self.url, {"overdue": "true"})

        assert [row["id"] for row in response.data["results"]] == [str(late.id)]

    def test_filter_by_supplier(self, staff_client, supplier):
        mine = DropshipOrderFactory(supplier=supplier)
        DropshipOrderFactory()

        response = staff_client.get(self.url, {"supplier": str(supplier.id)})

        assert [row["id"] for row in response.data["results"]] == [str(mine.id)]


@pytest.mark.django_db
class TestDropshipOrderCrud:
    url = reverse("dropshipping:dropship-order-list")

    def payload(self, order, supplier, **overrides):
        return {
            "order_id": str(order.id),
            "supplier_id": str(supplier.id),
            "total_cost": "14.00",
            "total_retail": "24.00",
            "items": [{"supplier_sku": "MUG-001", "quantity": 2, "supplier_price": "7.00", "retail_price": "12.00"}],
            **overrides,
        }

    def test_create(self, staff_client, paid_order, supplier):
        response = staff_client.post(self.url, self.payload(paid_order, supplier), format="json")

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["total_cost_cents"] == 1400
        assert response.data["profit_margin_cents"] == 1000
        assert response.data["items"][0]["supplier_price_cents"] == 700

    def test_create_business_validation(self, staff_client, paid_order, supplier):
        response = staff_client.post(
            self.url, self.payload(paid_order, supplier, total_cost="30.00"), format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "VALIDATION_ERROR"
        assert response.data["errors"] == {"non_field_errors": ["Negative profit margin detected"]}

    def test_create_serializer_validation(self, staff_client):
        response = staff_client.post(self.url, {"items": []}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_partial_update(self, staff_client):
        dropship_order = DropshipOrderFactory()

        response = staff_client.patch(
            detail("dropship-order-detail", dropship_order.id),
            {"carrier": "DHL", "auto_retry_enabled": False},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        dropship_order = DropshipOrder.objects.get(pk=dropship_order.pk)
        assert dropship_order.carrier == "DHL"
        assert dropship_order.auto_retry_enabled is False

    def test_delete_pending(self, staff_client):
        dropship_order = DropshipOrderFactory()

        response = staff_client.delete(detail("dropship-order-detail", dropship_order.id))

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not DropshipOrder.objects.exists()

    def test_delete_shipped_conflict(self, staff_client):
        dropship_order = DropshipOrderFactory(status=DropshipStatus.SHIPPED_BY_SUPPLIER)

        response = staff_client.delete(detail("dropship-order-detail", dropship_order.id))

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "CANNOT_DELETE"


@pytest.mark.django_db
class TestDropshipOrderActions:
    def test_send(self, mocker, staff_client, supplier, django_capture_on_commit_callbacks):
        delay = mocker.patch("dropshipping.tasks.send_dropship_order_to_supplier.delay")
        dropship_order = DropshipOrderFactory(supplier=supplier)

        with django_capture_on_commit_callbacks(execute=True):
            response = staff_client.post(detail("dropship-order-send", dropship_order.id))

        assert response.status_code == status.HTTP_200_OK
        delay.assert_called_once_with(str(dropship_order.id))

    def test_send_not_pending(self, staff_client):
        dropship_order = DropshipOrderFactory(status=DropshipStatus.PROCESSING)

        response = staff_client.post(detail("dropship-order-send", dropship_order.id))

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_send_inactive_supplier(self, staff_client):
        dropship_order = DropshipOrderFactory(supplier__status="inactive")

        response = staff_client.post(detail("dropship-order-send", dropship_order.id))

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_confirm(self, staff_client, mock_notify):
        dropship_order = DropshipOrderFactory(status=DropshipStatus.SENT_TO_SUPPLIER)

        response = staff_client.post(
            detail("dropship-order-confirm", dropship_order.id), {"supplier_order_id": "SUP-5"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == DropshipStatus.CONFIRMED_BY_SUPPLIER
        assert response.data["supplier_order_id"] == "SUP-5"

    def test_ship(self, staff_client, mock_notify):
        dropship_order = DropshipOrderFactory(status=DropshipStatus.PROCESSING)

        response = staff_client.post(
            detail("dropship-order-ship", dropship_order.id),
            {"tracking_number": "1Z999", "carrier": "UPS", "estimated_delivery": "2026-11-02"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == DropshipStatus.SHIPPED_BY_SUPPLIER
        assert response.data["estimated_delivery"] == "2026-11-02"
        assert Order.objects.get(pk=dropship_order.order_id).status == OrderStatus.SHIPPED

    def test_ship_requires_tracking_number(self, staff_client):
        dropship_order = DropshipOrderFactory(status=DropshipStatus.PROCESSING)

        response = staff_client.post(detail("dropship-order-ship", dropship_order.id), {}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_ship_from_pending_conflict(self, staff_client):
        dropship_order = DropshipOrderFactory()

        response = staff_client.post(
            detail("dropship-order-ship", dropship_order.id), {"tracking_number": "1Z999"}, format="json"
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "INVALID_TRANSITION"

    def test_deliver(self, staff_client):
        dropship_order = DropshipOrderFactory(status=DropshipStatus.SHIPPED_BY_SUPPLIER)

        response = staff_client.post(detail("dropship-order-deliver", dropship_order.id))

        assert response.data["status"] == DropshipStatus.DELIVERED

    def test_cancel_delivered_conflict(self, staff_client):
        dropship_order = DropshipOrderFactory(status=DropshipStatus.DELIVERED)

        response = staff_client.post(
            detail("dropship-order-cancel", dropship_order.id), {"reason": "Too late"}, format="json"
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "CANNOT_CANCEL_DELIVERED"

    def test_retry(self, mocker, staff_client, supplier):
        mocker.patch("dropshipping.tasks.send_dropship_order_to_supplier.delay")
        dropship_order = DropshipOrderFactory(supplier=supplier, status=DropshipStatus.REJECTED_BY_SUPPLIER)

        response = staff_client.post(detail("dropship-order-retry", dropship_order.id))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["retry_count"] == 1

    def test_retry_not_allowed(self, staff_client):
        dropship_order = DropshipOrderFactory(status=DropshipStatus.DELIVERED)

        response = staff_client.post(detail("dropship-order-retry", dropship_order.id))

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "CANNOT_RETRY"

    def test_bulk_status(self, staff_client):
        processing = DropshipOrderFactory(status=DropshipStatus.PROCESSING)
        delivered = DropshipOrderFactory(status=DropshipStatus.DELIVERED)

        response = staff_client.post(
            reverse("dropshipping:dropship-order-bulk-status"),
            {"ids": [str(processing.id), str(delivered.id)], "status": "on_hold", "notes": "Audit"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["updated_count"] == 1
        assert response.data["error_count"] == 1
        assert DropshipOrder.objects.get(pk=processing.pk).status == DropshipStatus.ON_HOLD

    def test_bulk_status_rejects_unknown_status(self, staff_client):
        response = staff_client.post(
            reverse("dropshipping:dropship-order-bulk-status"),
            {"ids": [str(DropshipOrderFactory().id)], "status": "lost"},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_statistics(self, staff_client):
        DropshipOrderFactory()

        response = staff_client.get(reverse("dropshipping:dropship-order-statistics"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["totals"]["all_orders"] == 1
        assert response.data["by_status"] == {"pending": 1}


@pytest.mark.django_db
class TestSupplierViewSet:
    url = reverse("dropshipping:supplier-list")

    def test_create(self, staff_client):
        response = staff_client.post(
            self.url,
            {
                "name": "Acme Mugs",
                "email": "orders@acme.example.com",
                "integration_type": "api",
                "supported_countries": ["us", "ca"],
                "minimum_order_value_cents": 500,
            },
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert Supplier.objects.get(name="Acme Mugs").supported_countries == ["US", "CA"]

    def test_invalid_value_range(self, staff_client):
        response = staff_client.post(
            self.url,
            {
                "name": "Acme Mugs",
                "email": "orders@acme.example.com",
                "minimum_order_value_cents": 5000,
                "maximum_order_value_cents": 1000,
            },
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_integration_secrets_not_exposed(self, staff_client, supplier):
        response = staff_client.get(detail("supplier-detail", supplier.id))

        [integration] = response.data["integrations"]
        assert integration["health_score"] == 100
        assert integration["is_healthy"] is True
        assert "api_key" not in integration
        assert "webhook_secret" not in integration

    def test_delete_in_use_conflict(self, staff_client, supplier):
        DropshipOrderFactory(supplier=supplier)

        response = staff_client.delete(detail("supplier-detail", supplier.id))

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "SUPPLIER_IN_USE"
        assert Supplier.objects.filter(pk=supplier.pk).exists()

    def test_delete_unused(self, staff_client, manual_supplier):
        response = staff_client.delete(detail("supplier-detail", manual_supplier.id))

        assert response.status_code == status.HTTP_204_NO_CONTENT

    def test_performance(self, staff_client, supplier):
        DropshipOrderFactory(supplier=supplier, status=DropshipStatus.DELIVERED)

        response = staff_client.get(
            reverse("dropshipping:supplier-performance", kwargs={"pk": supplier.id}), {"days": "7"}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["period"]["days"] == 7
        assert response.data["performance"]["successful_orders"] == 1


@pytest.mark.django_db
class TestCatalogViewSets:
    def test_create_integration(self, staff_client, manual_supplier):
        response = staff_client.post(
            reverse("dropshipping:supplier-integration-list"),
            {
                "supplier": str(manual_supplier.id),
                "integration_type": "webhook",
                "webhook_url": "https://hooks.example.com/orders",
                "webhook_secret": "whsec_new",
            },
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert "webhook_secret" not in response.data
        assert manual_supplier.integrations.get().webhook_secret == "whsec_new"

    def test_filter_supplier_products_in_stock(self, staff_client, supplier):
        in_stock = SupplierProductFactory(supplier=supplier, stock_quantity=4)
        SupplierProductFactory(supplier=supplier, stock_quantity=0)

        response = staff_client.get(reverse("dropshipping:supplier-product-list"), {"in_stock": "true"})

        assert [row["id"] for row in response.data["results"]] == [str(in_stock.id)]

    def test_mapping_must_match_supplier(self, staff_client, supplier, manual_supplier):
        product = ProductFactory(is_dropship=True)
        other_product = SupplierProductFactory(supplier=manual_supplier)

        response = staff_client.post(
            reverse("dropshipping:mapping-list"),
            {"product": str(product.id), "supplier": str(supplier.id), "supplier_product": str(other_product.id)},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert not ProductSupplierMapping.objects.exists()

    def test_create_mapping(self, staff_client, supplier_product):
        product = ProductFactory(is_dropship=True)

        response = staff_client.post(
            reverse("dropshipping:mapping-list"),
            {
                "product": str(product.id),
                "supplier": str(supplier_product.supplier_id),
                "supplier_product": str(supplier_product.id),
                "priority": 2,
            },
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["supplier_sku"] == "MUG-001"
