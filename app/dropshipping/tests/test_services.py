"""
Tests for DropshipOrderService and SupplierService.
"""

import smtplib
from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from freezegun import freeze_time

from dropshipping.clients import SupplierSubmission
from dropshipping.exceptions import SupplierCommunicationError
from dropshipping.models import DropshipOrder, ProductSupplierMapping, SupplierProduct
from dropshipping.services import DropshipOrderService, SupplierService, to_cents
from dropshipping.states import DropshipStatus, IntegrationType, SupplierStatus
from dropshipping.tests.factories import (
    DropshipOrderFactory,
    ProductSupplierMappingFactory,
    SupplierFactory,
    SupplierIntegrationFactory,
    SupplierProductFactory,
)
from orders.models import Order
from orders.states import FulfillmentStatus, OrderStatus
from orders.tests.factories import OrderFactory, OrderItemFactory, ProductFactory


def get(dropship_order):
    return DropshipOrder.objects.get(pk=dropship_order.pk)


class TestToCents:
    @pytest.mark.parametrize(
        "amount, expected",
        [("12.50", 1250), (Decimal("0.005"), 1), (7, 700), ("19.994", 1999)],
    )
    def test_converts(self, amount, expected):
        assert to_cents(amount) == expected


@pytest.mark.django_db
class TestCreateDropshipOrdersFromOrder:
    def test_creates_one_order_per_supplier(self, paid_order, supplier, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks() as callbacks:
            result = DropshipOrderService.create_dropship_orders_from_order(paid_order)

        assert result.success
        [dropship_order] = result.data
        assert dropship_order.supplier == supplier
        assert dropship_order.status == DropshipStatus.PENDING
        assert dropship_order.shipping_address == paid_order.shipping_address
        assert dropship_order.total_cost_cents == 1400
        assert dropship_order.total_retail_cents == 2400
        assert dropship_order.profit_margin_cents == 1000

        [item] = dropship_order.items.all()
        assert item.supplier_sku == "MUG-001"
        assert item.quantity == 2
        assert item.product_details["sku"] == item.order_item.sku

        assert Order.objects.get(pk=paid_order.pk).status == OrderStatus.PROCESSING
        assert len(callbacks) == 1

    def test_auto_fulfill_submits_after_commit(
        self, mocker, paid_order, mock_post, mock_notify, django_capture_on_commit_callbacks
    ):
        mock_post.return_value = mocker.Mock(status_code=201, json=lambda: {"supplier_order_id": "SUP-9"})

        with django_capture_on_commit_callbacks(execute=True):
            result = DropshipOrderService.create_dropship_orders_from_order(paid_order)

        dropship_order = get(result.data[0])
        assert dropship_order.status == DropshipStatus.CONFIRMED_BY_SUPPLIER
        assert dropship_order.supplier_order_id == "SUP-9"
        assert dropship_order.sent_to_supplier_at is not None
        mock_notify["confirmed"].assert_called_once()
        order = Order.objects.get(pk=paid_order.pk)
        assert order.fulfillment_status == FulfillmentStatus.FULFILLED

    def test_manual_supplier_is_not_submitted(
        self, user, manual_supplier, django_capture_on_commit_callbacks
    ):
        mapping = ProductSupplierMappingFactory(supplier_product__supplier=manual_supplier)
        order = OrderFactory(user=user, status=OrderStatus.CONFIRMED)
        OrderItemFactory(order=order, product=mapping.product)

        with django_capture_on_commit_callbacks() as callbacks:
            result = DropshipOrderService.create_dropship_orders_from_order(order)

        assert len(result.data) == 1
        assert callbacks == []

    def test_splits_between_suppliers(self, user, manual_supplier, paid_order, mapping):
        other = ProductSupplierMappingFactory(supplier_product__supplier=manual_supplier)
        OrderItemFactory(order=paid_order, product=other.product)

        result = DropshipOrderService.create_dropship_orders_from_order(paid_order)

        assert {d.supplier_id for d in result.data} == {mapping.supplier_id, manual_supplier.id}

    def test_lowest_priority_mapping_wins(self, paid_order, dropship_product, manual_supplier):
        preferred = ProductSupplierMappingFactory(
            product=dropship_product,
            supplier_product=SupplierProductFactory(supplier=manual_supplier),
            priority=0,
        )

        result = DropshipOrderService.create_dropship_orders_from_order(paid_order)

        assert [d.supplier_id for d in result.data] == [preferred.supplier_id]

    def test_out_of_stock_mapping_skipped(self, paid_order, supplier_product):
        supplier_product.stock_quantity = 1
        supplier_product.save()

        result = DropshipOrderService.create_dropship_orders_from_order(paid_order)

        assert result.success
        assert result.data == []
        assert Order.objects.get(pk=paid_order.pk).status == OrderStatus.CONFIRMED

    def test_unsupported_country_skipped(self, paid_order, supplier):
        supplier.supported_countries = ["DE"]
        supplier.save()

        result = DropshipOrderService.create_dropship_orders_from_order(paid_order)

        assert result.data == []

    def test_order_value_below_minimum_skipped(self, paid_order, supplier):
        supplier.minimum_order_value_cents = 5000
        supplier.save()

        result = DropshipOrderService.create_dropship_orders_from_order(paid_order)

        assert result.data == []

    def test_regular_items_are_ignored(self, paid_order):
        OrderItemFactory(order=paid_order, product=ProductFactory(is_dropship=False))

        result = DropshipOrderService.create_dropship_orders_from_order(paid_order)

        assert result.data[0].items.count() == 1

    def test_unpaid_order(self, user, mapping):
        order = OrderFactory(user=user, status=OrderStatus.PENDING_PAYMENT)

        result = DropshipOrderService.create_dropship_orders_from_order(order)

        assert result.error_code == "ORDER_NOT_ELIGIBLE"

    def test_created_only_once(self, paid_order):
        DropshipOrderService.create_dropship_orders_from_order(paid_order)

        result = DropshipOrderService.create_dropship_orders_from_order(paid_order)

        assert result.error_code == "ALREADY_CREATED"
        assert DropshipOrder.objects.filter(order=paid_order).count() == 1


@pytest.fixture
def manual_order_data(paid_order, supplier):
    return {
        "order_id": paid_order.id,
        "supplier_id": supplier.id,
        "supplier_order_id": "PHONE-1",
        "total_cost": Decimal("14.00"),
        "total_retail": Decimal("24.00"),
        "items": [
            {
                "supplier_sku": "MUG-001",
                "quantity": 2,
                "supplier_price": Decimal("7.00"),
                "retail_price": Decimal("12.00"),
            }
        ],
    }


@pytest.mark.django_db
class TestValidateDropshipOrderData:
    def test_valid(self, manual_order_data):
        assert DropshipOrderService.validate_dropship_order_data(manual_order_data) == []

    def test_missing_order_and_supplier(self):
        errors = DropshipOrderService.validate_dropship_order_data(
            {"order_id": "00000000-0000-0000-0000-000000000000", "items": []}
        )

        assert errors == ["Order not found", "Supplier not found", "No items provided"]

    def test_shipped_order(self, manual_order_data, paid_order):
        Order.objects.filter(pk=paid_order.pk).update(status=OrderStatus.SHIPPED)

        errors = DropshipOrderService.validate_dropship_order_data(manual_order_data)

        assert errors == ["Order already has active shipment"]

    def test_inactive_supplier(self, manual_order_data, supplier):
        supplier.status = SupplierStatus.INACTIVE
        supplier.save()

        assert DropshipOrderService.validate_dropship_order_data(manual_order_data) == ["Supplier is not active"]

    def test_duplicate_supplier(self, manual_order_data, paid_order, supplier):
        DropshipOrderFactory(order=paid_order, supplier=supplier)

        errors = DropshipOrderService.validate_dropship_order_data(manual_order_data)

        assert errors == ["Order already has a dropship order for this supplier"]

    def test_negative_margins(self, manual_order_data):
        manual_order_data["total_cost"] = Decimal("30.00")
        manual_order_data["items"][0]["supplier_price"] = Decimal("13.00")

        errors = DropshipOrderService.validate_dropship_order_data(manual_order_data)

        assert errors == ["Negative profit margin detected", "Item 0: Negative profit margin"]


@pytest.mark.django_db
class TestManualDropshipOrders:
    def test_create(self, manual_order_data, dropship_manager):
        result = DropshipOrderService.create_dropship_order(manual_order_data, actor=dropship_manager)

        assert result.success
        dropship_order = result.data
        assert dropship_order.supplier_order_id == "PHONE-1"
        assert dropship_order.total_cost_cents == 1400
        assert dropship_order.profit_margin_cents == 1000
        assert dropship_order.shipping_address["country"] == "US"
        [item] = dropship_order.items.all()
        assert item.supplier_price_cents == 700
        assert item.profit_per_item_cents == 500

    def test_create_invalid(self, manual_order_data):
        manual_order_data["items"] = []

        result = DropshipOrderService.create_dropship_order(manual_order_data)

        assert result.error_code == "VALIDATION_ERROR"
        assert result.errors == {"non_field_errors": ["No items provided"]}
        assert not DropshipOrder.objects.exists()

    def test_update_only_editable_fields(self):
        dropship_order = DropshipOrderFactory()

        DropshipOrderService.update_dropship_order(
            dropship_order, {"carrier": "DHL", "total_cost_cents": 1}
        )

        dropship_order = get(dropship_order)
        assert dropship_order.carrier == "DHL"
        assert dropship_order.total_cost_cents == 700

    def test_delete_pending(self):
        dropship_order = DropshipOrderFactory()

        assert DropshipOrderService.delete_dropship_order(dropship_order).success
        assert not DropshipOrder.objects.exists()

    def test_cannot_delete_sent(self):
        dropship_order = DropshipOrderFactory(status=DropshipStatus.SENT_TO_SUPPLIER)

        result = DropshipOrderService.delete_dropship_order(dropship_order)

        assert result.error_code == "CANNOT_DELETE"


@pytest.mark.django_db
class TestSendToSupplier:
    def test_queues_task_on_commit(self, mocker, supplier, django_capture_on_commit_callbacks):
        mock_delay = mocker.patch("dropshipping.tasks.send_dropship_order_to_supplier.delay")
        dropship_order = DropshipOrderFactory(supplier=supplier)

        with django_capture_on_commit_callbacks(execute=True):
            result = DropshipOrderService.send_to_supplier(dropship_order)

        assert result.success
        mock_delay.assert_called_once_with(str(dropship_order.id))

    def test_not_pending(self, supplier):
        dropship_order = DropshipOrderFactory(supplier=supplier, status=DropshipStatus.SENT_TO_SUPPLIER)

        assert DropshipOrderService.send_to_supplier(dropship_order).error_code == "NOT_PENDING"

    def test_inactive_supplier(self):
        dropship_order = DropshipOrderFactory(supplier__status=SupplierStatus.SUSPENDED)

        assert DropshipOrderService.send_to_supplier(dropship_order).error_code == "SUPPLIER_INACTIVE"


@pytest.mark.django_db
class TestSubmitToSupplier:
    def test_confirmed_when_supplier_returns_id(self, mocker, supplier, mock_notify):
        mocker.patch(
            "dropshipping.services.SupplierClient.send_order",
            return_value=SupplierSubmission(
                success=True,
                supplier_order_id="SUP-1",
                estimated_delivery=date(2026, 7, 1),
                response_data={"supplier_order_id": "SUP-1"},
                status_code=201,
                method=IntegrationType.API,
            ),
        )
        dropship_order = DropshipOrderFactory(supplier=supplier)

        result = DropshipOrderService.submit_to_supplier(dropship_order.id)

        assert result.success
        dropship_order = get(dropship_order)
        assert dropship_order.status == DropshipStatus.CONFIRMED_BY_SUPPLIER
        assert dropship_order.estimated_delivery == date(2026, 7, 1)
        assert dropship_order.supplier_response == {
            "method": "api",
            "status_code": 201,
            "data": {"supplier_order_id": "SUP-1"},
            "error": "",
        }

    def test_sent_without_supplier_id(self, mocker, supplier):
        mocker.patch(
            "dropshipping.services.SupplierClient.send_order",
            return_value=SupplierSubmission(success=True, method=IntegrationType.API),
        )
        dropship_order = DropshipOrderFactory(supplier=supplier)

        DropshipOrderService.submit_to_supplier(dropship_order.id)

        assert get(dropship_order).status == DropshipStatus.SENT_TO_SUPPLIER

    def test_rejection_recorded(self, mocker, supplier):
        mocker.patch(
            "dropshipping.services.SupplierClient.send_order",
            return_value=SupplierSubmission(success=False, error="Out of stock", status_code=422),
        )
        dropship_order = DropshipOrderFactory(supplier=supplier)

        result = DropshipOrderService.submit_to_supplier(dropship_order.id)

        assert result.success
        dropship_order = get(dropship_order)
        assert dropship_order.status == DropshipStatus.REJECTED_BY_SUPPLIER
        assert dropship_order.supplier_notes == "Out of stock"

    def test_communication_error_propagates(self, mocker, supplier):
        mocker.patch(
            "dropshipping.services.SupplierClient.send_order",
            side_effect=SupplierCommunicationError("Supplier timed out"),
        )
        dropship_order = DropshipOrderFactory(supplier=supplier)

        with pytest.raises(SupplierCommunicationError):
            DropshipOrderService.submit_to_supplier(dropship_order.id)

        assert get(dropship_order).status == DropshipStatus.PENDING

    def test_manual_supplier_without_integration(self, manual_supplier):
        dropship_order = DropshipOrderFactory(supplier=manual_supplier)

        result = DropshipOrderService.submit_to_supplier(dropship_order.id)

        assert result.success
        assert get(dropship_order).status == DropshipStatus.SENT_TO_SUPPLIER

    def test_api_supplier_without_integration(self):
        dropship_order = DropshipOrderFactory(supplier__integration_type=IntegrationType.API)

        result = DropshipOrderService.submit_to_supplier(dropship_order.id)

        assert result.error_code == "NO_INTEGRATION"

    def test_not_found(self):
        result = DropshipOrderService.submit_to_supplier("00000000-0000-0000-0000-000000000000")

        assert result.error_code == "NOT_FOUND"

    def test_not_pending(self, supplier):
        dropship_order = DropshipOrderFactory(supplier=supplier, status=DropshipStatus.CANCELLED)

        assert DropshipOrderService.submit_to_supplier(dropship_order.id).error_code == "NOT_PENDING"


@pytest.mark.django_db
class TestRetryDropshipOrder:
    def test_resets_and_requeues(self, mocker, supplier, django_capture_on_commit_callbacks):
        mock_delay = mocker.patch("dropshipping.tasks.send_dropship_order_to_supplier.delay")
        dropship_order = DropshipOrderFactory(supplier=supplier, status=DropshipStatus.REJECTED_BY_SUPPLIER)

        with django_capture_on_commit_callbacks(execute=True):
            result = DropshipOrderService.retry_dropship_order(dropship_order)

        assert result.success
        dropship_order = get(dropship_order)
        assert dropship_order.status == DropshipStatus.PENDING
        assert dropship_order.retry_count == 1
        mock_delay.assert_called_once_with(str(dropship_order.id))

    def test_retries_exhausted(self, supplier, settings):
        settings.DROPSHIP_MAX_RETRIES = 3
        dropship_order = DropshipOrderFactory(
            supplier=supplier, status=DropshipStatus.REJECTED_BY_SUPPLIER, retry_count=3
        )

        result = DropshipOrderService.retry_dropship_order(dropship_order)

        assert result.error_code == "CANNOT_RETRY"


@pytest.mark.django_db
class TestChangeStatus:
    def test_unknown_status(self):
        result = DropshipOrderService.change_status(DropshipOrderFactory(), "lost")

        assert result.error_code == "INVALID_STATUS"

    def test_transition_not_allowed(self):
        dropship_order = DropshipOrderFactory(status=DropshipStatus.DELIVERED)

        result = DropshipOrderService.change_status(dropship_order, DropshipStatus.PROCESSING)

        assert result.error_code == "INVALID_TRANSITION"
        assert get(dropship_order).status == DropshipStatus.DELIVERED

    def test_same_status_stores_context(self):
        dropship_order = DropshipOrderFactory(status=DropshipStatus.PROCESSING)

        result = DropshipOrderService.change_status(
            dropship_order,
            DropshipStatus.PROCESSING,
            notes="Supplier called",
            webhook_data={"status": "processing"},
        )

        assert result.success
        dropship_order = get(dropship_order)
        assert "Supplier called" in dropship_order.notes
        assert dropship_order.webhook_data == {"status": "processing"}

    def test_mark_shipped(self, mock_notify, django_capture_on_commit_callbacks):
        dropship_order = DropshipOrderFactory(status=DropshipStatus.CONFIRMED_BY_SUPPLIER)

        with django_capture_on_commit_callbacks(execute=True):
            result = DropshipOrderService.mark_shipped(
                dropship_order, tracking_number="1Z999", carrier="UPS", estimated_delivery=date(2026, 8, 1)
            )

        dropship_order = result.data
        assert dropship_order.status == DropshipStatus.SHIPPED_BY_SUPPLIER
        assert dropship_order.tracking_number == "1Z999"
        assert dropship_order.carrier == "UPS"
        assert dropship_order.estimated_delivery == date(2026, 8, 1)
        mock_notify["shipped"].assert_called_once()

    def test_cancel_delivered(self):
        dropship_order = DropshipOrderFactory(status=DropshipStatus.DELIVERED)

        result = DropshipOrderService.cancel_dropship_order(dropship_order, reason="Too late")

        assert result.error_code == "CANNOT_CANCEL_DELIVERED"

    def test_cancel(self):
        dropship_order = DropshipOrderFactory(status=DropshipStatus.SENT_TO_SUPPLIER)

        result = DropshipOrderService.cancel_dropship_order(dropship_order, reason="Customer request")

        assert result.data.status == DropshipStatus.CANCELLED
        assert "Customer request" in result.data.notes


@pytest.mark.django_db
class TestBulkUpdateStatus:
    def test_reports_per_order_errors(self):
        processing = DropshipOrderFactory(status=DropshipStatus.PROCESSING)
        delivered = DropshipOrderFactory(status=DropshipStatus.DELIVERED)
        missing = "00000000-0000-0000-0000-000000000000"

        result = DropshipOrderService.bulk_update_status(
            [processing.id, delivered.id, missing], DropshipStatus.ON_HOLD, notes="Warehouse audit"
        )

        assert result["updated_count"] == 1
        assert result["error_count"] == 2
        assert result["new_status"] == DropshipStatus.ON_HOLD
        assert result["errors"][0].startswith(f"Order {delivered.id}: Cannot change")
        assert result["errors"][1] == f"Order {missing}: not found"
        assert "Warehouse audit" in get(processing).notes


@pytest.mark.django_db
class TestProcessSupplierResponse:
    @pytest.mark.parametrize(
        "supplier_status, expected",
        [
            ("accepted", DropshipStatus.CONFIRMED_BY_SUPPLIER),
            ("Confirmed", DropshipStatus.CONFIRMED_BY_SUPPLIER),
            ("processing", DropshipStatus.PROCESSING),
            ("canceled", DropshipStatus.CANCELLED),
        ],
    )
    def test_maps_supplier_vocabulary(self, supplier_status, expected):
        dropship_order = DropshipOrderFactory(status=DropshipStatus.SENT_TO_SUPPLIER)

        result = DropshipOrderService.process_supplier_response(dropship_order, {"status": supplier_status})

        assert result.success
        assert get(dropship_order).status == expected

    def test_shipped_with_details(self):
        dropship_order = DropshipOrderFactory(status=DropshipStatus.PROCESSING)
        response = {
            "status": "in_transit",
            "tracking_number": "TRK-7",
            "carrier": "FedEx",
            "estimated_delivery": "2026-09-10T12:00:00Z",
        }

        DropshipOrderService.process_supplier_response(dropship_order, response)

        dropship_order = get(dropship_order)
        assert dropship_order.status == DropshipStatus.SHIPPED_BY_SUPPLIER
        assert dropship_order.tracking_number == "TRK-7"
        assert dropship_order.estimated_delivery == date(2026, 9, 10)
        assert dropship_order.webhook_data == response

    def test_impossible_eta_still_records_status(self):
        dropship_order = DropshipOrderFactory(status=DropshipStatus.PROCESSING)

        result = DropshipOrderService.process_supplier_response(
            dropship_order, {"status": "shipped", "tracking_number": "TRK-8", "estimated_delivery": "2024-02-30"}
        )

        assert result.success
        dropship_order = get(dropship_order)
        assert dropship_order.status == DropshipStatus.SHIPPED_BY_SUPPLIER
        assert dropship_order.tracking_number == "TRK-8"

    def test_unknown_status(self):
        result = DropshipOrderService.process_supplier_response(DropshipOrderFactory(), {"status": "teleported"})

        assert result.error_code == "UNKNOWN_SUPPLIER_STATUS"


@pytest.mark.django_db
class TestProcessOverdueOrders:
    def test_flags_once_and_alerts(self, settings, mailoutbox):
        settings.DROPSHIP_OVERDUE_ALERT_THRESHOLD = 2
        settings.ADMIN_ALERT_EMAILS = ["ops@example.com"]
        slow = SupplierFactory(name="Slow Goods")
        last_week = timezone.localdate() - timedelta(days=7)
        late = [
            DropshipOrderFactory(supplier=slow, status=DropshipStatus.SHIPPED_BY_SUPPLIER, estimated_delivery=last_week)
            for _ in range(2)
        ]
        DropshipOrderFactory(status=DropshipStatus.PROCESSING, estimated_delivery=last_week)
        DropshipOrderFactory(status=DropshipStatus.DELIVERED, estimated_delivery=last_week)

        result = DropshipOrderService.process_overdue_orders()

        assert result["processed_count"] == 3
        assert result["total_overdue"] == 3
        [alert] = result["supplier_alerts"]
        assert alert["supplier_name"] == "Slow Goods"
        assert alert["overdue_count"] == 2
        assert set(alert["dropship_order_ids"]) == {str(d.id) for d in late}
        assert get(late[0]).overdue_flagged_at is not None
        assert "Overdue" in get(late[0]).notes
        assert len(mailoutbox) == 1
        assert mailoutbox[0].to == ["ops@example.com"]

        assert DropshipOrderService.process_overdue_orders()["processed_count"] == 0

    def test_mail_failure_is_logged(self, mocker, settings):
        settings.DROPSHIP_OVERDUE_ALERT_THRESHOLD = 1
        mocker.patch("dropshipping.services.send_mail", side_effect=smtplib.SMTPException("down"))
        DropshipOrderFactory(
            status=DropshipStatus.PROCESSING, estimated_delivery=timezone.localdate() - timedelta(days=1)
        )

        result = DropshipOrderService.process_overdue_orders()

        assert len(result["supplier_alerts"]) == 1


@pytest.mark.django_db
class TestStatistics:
    def test_totals_and_breakdowns(self, supplier):
        DropshipOrderFactory(supplier=supplier)
        DropshipOrderFactory(supplier=supplier, status=DropshipStatus.PROCESSING)
        DropshipOrderFactory(status=DropshipStatus.DELIVERED)

        stats = DropshipOrderService.get_statistics()

        assert stats["totals"] == {"all_orders": 3, "pending": 1, "active": 1, "completed": 1, "overdue": 0}
        assert stats["by_status"] == {"delivered": 1, "pending": 1, "processing": 1}
        assert stats["by_supplier"][0] == {
            "supplier_id": str(supplier.id),
            "supplier_name": supplier.name,
            "count": 2,
        }
        assert len(stats["recent_activity"]) == 3


@pytest.mark.django_db
class TestSupplierPerformanceReport:
    @freeze_time("2026-04-30 12:00:00")
    def test_report(self, supplier):
        sent = timezone.now() - timedelta(days=10)
        for _ in range(3):
            DropshipOrderFactory(
                supplier=supplier,
                status=DropshipStatus.DELIVERED,
                total_cost_cents=700,
                total_retail_cents=1000,
                sent_to_supplier_at=sent,
                shipped_by_supplier_at=sent + timedelta(hours=48),
            )
        DropshipOrderFactory(
            supplier=supplier, status=DropshipStatus.REJECTED_BY_SUPPLIER, total_cost_cents=0, total_retail_cents=0
        )

        result = DropshipOrderService.generate_supplier_performance_report(supplier.id, days=30)

        report = result.data
        assert report["period"] == {"days": 30, "from": "2026-03-31", "to": "2026-04-30"}
        assert report["performance"] == {
            "total_orders": 4,
            "successful_orders": 3,
            "failed_orders": 1,
            "success_rate": 75.0,
            "avg_fulfillment_hours": 48.0,
        }
        assert report["profitability"] == {
            "total_cost_cents": 2100,
            "total_retail_cents": 3000,
            "total_profit_cents": 900,
            "profit_margin_percentage": 30.0,
        }
        assert [issue["type"] for issue in report["issues"]] == ["high_failure_rate"]
        assert report["issues"][0]["severity"] == "medium"

    def test_slow_and_unhealthy_supplier(self, supplier, integration):
        integration.consecutive_failures = 6
        integration.save()
        sent = timezone.now() - timedelta(days=12)
        DropshipOrderFactory(
            supplier=supplier,
            status=DropshipStatus.DELIVERED,
            sent_to_supplier_at=sent,
            shipped_by_supplier_at=sent + timedelta(hours=250),
        )

        report = DropshipOrderService.generate_supplier_performance_report(supplier.id).data

        issues = {issue["type"]: issue["severity"] for issue in report["issues"]}
        assert issues == {"slow_fulfillment": "high", "integration_issues": "high"}

    def test_unknown_supplier(self):
        result = DropshipOrderService.generate_supplier_performance_report("00000000-0000-0000-0000-000000000000")

        assert result.error_code == "NOT_FOUND"


@pytest.mark.django_db
class TestSupplierHealth:
    def test_report(self, supplier, manual_supplier):
        unhealthy = SupplierFactory(name="Flaky", integration_type=IntegrationType.API)
        SupplierIntegrationFactory(supplier=unhealthy, total_requests=10, failed_requests=8, consecutive_failures=5)
        SupplierFactory(status=SupplierStatus.INACTIVE)

        report = {entry["supplier_name"]: entry for entry in SupplierService.check_health()}

        assert len(report) == 3
        assert report[supplier.name]["is_healthy"]
        assert report[supplier.name]["health_score"] == 100
        assert report[manual_supplier.name]["is_healthy"]
        assert report[manual_supplier.name]["health_score"] is None
        assert not report["Flaky"]["is_healthy"]
        assert report["Flaky"]["consecutive_failures"] == 5

    def test_api_supplier_without_integration_unhealthy(self):
        supplier = SupplierFactory(integration_type=IntegrationType.API)

        [entry] = SupplierService.check_health(supplier.id)

        assert not entry["is_healthy"]

    def test_send_health_report(self, settings, mailoutbox, supplier):
        settings.ADMIN_ALERT_EMAILS = ["ops@example.com"]

        assert SupplierService.send_health_report(SupplierService.check_health())
        assert "0 of 1 unhealthy" in mailoutbox[0].subject

    def test_no_recipients(self, settings, supplier):
        settings.ADMIN_ALERT_EMAILS = []

        assert not SupplierService.send_health_report(SupplierService.check_health())


@pytest.mark.django_db
class TestSupplierCatalog:
    def test_sync_stock(self, mocker, supplier, supplier_product):
        supplier.stock_sync_enabled = True
        supplier.save()
        mocker.patch(
            "dropshipping.services.SupplierClient.fetch_stock",
            return_value=[
                {"sku": "MUG-001", "stock_quantity": 3},
                {"sku": "GONE-404", "stock_quantity": 9},
            ],
        )

        result = SupplierService.sync_stock(supplier)

        assert result.data == {"updated": 1, "out_of_stock": 0, "unknown_skus": ["GONE-404"]}
        supplier_product = SupplierProduct.objects.get(pk=supplier_product.pk)
        assert supplier_product.stock_quantity == 3
        assert supplier_product.last_synced_at is not None

    def test_sync_stock_disabled(self, supplier):
        assert SupplierService.sync_stock(supplier).error_code == "STOCK_SYNC_DISABLED"

    def test_sync_stock_needs_api_integration(self, manual_supplier):
        manual_supplier.stock_sync_enabled = True
        manual_supplier.save()

        assert SupplierService.sync_stock(manual_supplier).error_code == "NO_API_INTEGRATION"

    def test_update_stock_accepts_quantity_key(self, supplier, supplier_product):
        assert SupplierService.update_stock(supplier, {"supplier_sku": "MUG-001", "quantity": 0})
        assert not SupplierService.update_stock(supplier, {"sku": "MUG-001"})
        assert SupplierProduct.objects.get(pk=supplier_product.pk).stock_quantity == 0

    def test_update_product_price(self, supplier, supplier_product):
        result = SupplierService.update_product(supplier, {"sku": "MUG-001", "price": "8.25", "name": "Big Mug"})

        assert result.success
        supplier_product = SupplierProduct.objects.get(pk=supplier_product.pk)
        assert supplier_product.cost_price_cents == 825
        assert supplier_product.name == "Big Mug"

    def test_update_product_errors(self, supplier):
        assert SupplierService.update_product(supplier, {}).error_code == "MISSING_SKU"
        assert SupplierService.update_product(supplier, {"sku": "NOPE"}).error_code == "NOT_FOUND"

    def test_discontinue_product(self, supplier, mapping):
        result = SupplierService.discontinue_product(supplier, {"sku": "MUG-001"})

        assert result.success
        assert not SupplierProduct.objects.get(pk=mapping.supplier_product_id).is_active
        assert not ProductSupplierMapping.objects.get(pk=mapping.pk).is_active

    def test_sync_stock_dry_run_saves_nothing(self, mocker, supplier, supplier_product):
        supplier.stock_sync_enabled = True
        supplier.save()
        mocker.patch(
            "dropshipping.services.SupplierClient.fetch_stock",
            return_value=[{"sku": "MUG-001", "stock_quantity": 0}],
        )

        result = SupplierService.sync_stock(supplier, dry_run=True)

        assert result.data == {"updated": 1, "out_of_stock": 1, "unknown_skus": []}
        assert SupplierProduct.objects.get(pk=supplier_product.pk).stock_quantity == 20


@pytest.mark.django_db
class TestCatalogSync:
    @pytest.fixture
    def feed(self, mocker):
        return mocker.patch("dropshipping.services.SupplierClient.fetch_products")

    def test_creates_updates_and_deactivates(self, feed, supplier, supplier_product, mapping):
        stale = SupplierProductFactory(supplier=supplier, supplier_sku="OLD-001")
        stale_mapping = ProductSupplierMappingFactory(supplier_product=stale)
        feed.return_value = [
            {"sku": "MUG-001", "name": supplier_product.name, "cost_price_cents": 750, "stock_quantity": 12},
            {"sku": "CUP-002", "name": "Cup", "price": "3.10", "stock": 40, "description": "Espresso cup"},
            {"name": "No SKU"},
        ]

        result = SupplierService.sync_products(supplier)

        assert result.data == {
            "skipped": False,
            "found": 3,
            "created": 1,
            "updated": 1,
            "deactivated": 1,
            "invalid": 1,
        }
        supplier_product = SupplierProduct.objects.get(pk=supplier_product.pk)
        assert supplier_product.cost_price_cents == 750
        assert supplier_product.stock_quantity == 12
        cup = SupplierProduct.objects.get(supplier=supplier, supplier_sku="CUP-002")
        assert cup.cost_price_cents == 310
        assert cup.stock_quantity == 40
        assert cup.description == "Espresso cup"
        assert not SupplierProduct.objects.get(pk=stale.pk).is_active
        assert not ProductSupplierMapping.objects.get(pk=stale_mapping.pk).is_active
        assert ProductSupplierMapping.objects.get(pk=mapping.pk).is_active

    def test_reactivates_product_back_in_feed(self, feed, supplier):
        product = SupplierProductFactory(supplier=supplier, supplier_sku="MUG-001", is_active=False)
        feed.return_value = [{"sku": "MUG-001"}]

        result = SupplierService.sync_products(supplier)

        assert result.data["updated"] == 1
        assert SupplierProduct.objects.get(pk=product.pk).is_active

    def test_new_sku_without_price_is_invalid(self, feed, supplier):
        feed.return_value = [{"sku": "CUP-002", "name": "Cup"}]

        result = SupplierService.sync_products(supplier)

        assert result.data["invalid"] == 1
        assert not SupplierProduct.objects.filter(supplier_sku="CUP-002").exists()

    def test_empty_feed_deactivates_nothing(self, feed, supplier, supplier_product):
        feed.return_value = []

        result = SupplierService.sync_products(supplier)

        assert result.data["deactivated"] == 0
        assert SupplierProduct.objects.get(pk=supplier_product.pk).is_active

    def test_dry_run_saves_nothing(self, feed, supplier, supplier_product):
        feed.return_value = [{"sku": "CUP-002", "name": "Cup", "cost_price_cents": 300}]

        result = SupplierService.sync_products(supplier, dry_run=True)

        assert result.data["created"] == 1
        assert result.data["deactivated"] == 1
        assert not SupplierProduct.objects.filter(supplier_sku="CUP-002").exists()
        supplier_product = SupplierProduct.objects.get(pk=supplier_product.pk)
        assert supplier_product.is_active
        assert supplier_product.last_synced_at is None

    def test_recent_sync_is_skipped_unless_forced(self, settings, feed, supplier):
        settings.DROPSHIP_CATALOG_SYNC_INTERVAL_MINUTES = 60
        SupplierProductFactory(supplier=supplier, last_synced_at=timezone.now() - timedelta(minutes=10))
        feed.return_value = []

        assert SupplierService.sync_products(supplier).data["skipped"] is True
        feed.assert_not_called()

        assert SupplierService.sync_products(supplier, force=True).data["skipped"] is False
        feed.assert_called_once()

    def test_sync_marks_feed_products_synced(self, feed, supplier, supplier_product):
        feed.return_value = [{"sku": "MUG-001"}]

        SupplierService.sync_products(supplier)

        assert SupplierProduct.objects.get(pk=supplier_product.pk).last_synced_at is not None

    def test_needs_api_integration(self, manual_supplier):
        assert SupplierService.sync_products(manual_supplier).error_code == "NO_API_INTEGRATION"


@pytest.mark.django_db
class TestConnectionCheck:
    def test_success_records_health(self, mocker, mock_get, integration):
        mock_get.return_value = mocker.Mock(status_code=200)

        result = SupplierService.check_connection(integration)

        assert result["success"] is True
        assert result["details"]["endpoint"] == "https://api.supplier.example.com/v1/health"
        integration.refresh_from_db()
        assert integration.last_success_at is not None
        assert integration.total_requests == 1

    def test_failure_records_health(self, integration):
        integration.api_key = ""
        integration.save()

        result = SupplierService.check_connection(integration)

        assert result["success"] is False
        assert result["error_type"] == "authentication"
        integration.refresh_from_db()
        assert integration.consecutive_failures == 1
        assert integration.last_error == "API key not configured"

    def test_candidates(self, supplier, integration):
        webhook = SupplierIntegrationFactory(
            supplier=supplier, integration_type=IntegrationType.WEBHOOK, last_success_at=timezone.now()
        )
        SupplierIntegrationFactory(supplier=SupplierFactory(status=SupplierStatus.INACTIVE))
        SupplierIntegrationFactory(supplier=supplier, is_active=False)

        assert list(SupplierService.connection_candidates()) == [integration, webhook]
        assert list(SupplierService.connection_candidates(integration_type="webhook")) == [webhook]
        assert list(SupplierService.connection_candidates(unhealthy_only=True)) == [integration]
