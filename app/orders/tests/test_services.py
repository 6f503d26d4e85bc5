"""
Tests for checkout, cancellation and return services.
"""

import pytest

from core.services import ServiceResult
from orders.models import Order, OrderReturn, Product
from orders.services import CheckoutService, OrderService, ReturnService
from orders.states import OrderStatus, ReturnStatus
from orders.tests.factories import OrderFactory, OrderItemFactory, OrderReturnFactory, ProductFactory


def stock_of(product):
    return Product.objects.get(pk=product.pk).stock_quantity


@pytest.mark.django_db
class TestCheckoutService:
    def test_creates_pending_order(self, user, product, dropship_product, shipping_address, mock_create_payment):
        result = CheckoutService.create_order(
            user=user,
            items=[
                {"product_id": product.id, "quantity": 2},
                {"product_id": dropship_product.id, "quantity": 1},
            ],
            shipping_address=shipping_address,
            shipping_cents=499,
        )

        assert result.success
        order = result.data["order"]
        assert order.status == OrderStatus.PENDING_PAYMENT
        assert order.subtotal_cents == 2 * 2500 + 1200
        assert order.total_cents == order.subtotal_cents + 499
        assert result.data["client_secret"] == f"pi_{order.number}_secret"
        assert {(i.sku, i.quantity) for i in order.items.all()} == {
            (product.sku, 2),
            (dropship_product.sku, 1),
        }
        assert stock_of(product) == 8
        assert stock_of(dropship_product) == 0
        mock_create_payment.assert_called_once_with(order)

    def test_empty_cart(self, user, shipping_address, mock_create_payment):
        result = CheckoutService.create_order(user=user, items=[], shipping_address=shipping_address)

        assert result.error_code == "EMPTY_ORDER"

    def test_insufficient_stock(self, user, product, shipping_address, mock_create_payment):
        result = CheckoutService.create_order(
            user=user,
            items=[{"product_id": product.id, "quantity": 11}],
            shipping_address=shipping_address,
        )

        assert result.error_code == "INSUFFICIENT_STOCK"
        assert not Order.objects.exists()
        mock_create_payment.assert_not_called()

    def test_inactive_product(self, user, shipping_address, mock_create_payment):
        product = ProductFactory(is_active=False)

        result = CheckoutService.create_order(
            user=user, items=[{"product_id": product.id, "quantity": 1}], shipping_address=shipping_address
        )

        assert result.error_code == "PRODUCT_INACTIVE"

    def test_unknown_product(self, user, shipping_address, mock_create_payment):
        result = CheckoutService.create_order(
            user=user,
            items=[{"product_id": "00000000-0000-0000-0000-000000000000", "quantity": 1}],
            shipping_address=shipping_address,
        )

        assert result.error_code == "PRODUCT_NOT_FOUND"

    def test_payment_failure_rolls_back(self, mocker, user, product, shipping_address):
        mocker.patch(
            "payments.services.PaymentService.create_payment_for_order",
            return_value=ServiceResult.failure("Stripe is down", error_code="STRIPE_ERROR"),
        )

        result = CheckoutService.create_order(
            user=user, items=[{"product_id": product.id, "quantity": 1}], shipping_address=shipping_address
        )

        assert result.error_code == "STRIPE_ERROR"
        assert not Order.objects.exists()
        assert stock_of(product) == 10


@pytest.mark.django_db
class TestOrderService:
    def test_owner_cancels_unpaid_order(self, user, product, pending_order, mock_cancel_payment):
        result = OrderService.cancel_order(pending_order, user, reason="Changed my mind")

        assert result.success
        order = Order.objects.get(pk=pending_order.pk)
        assert order.status == OrderStatus.CANCELLED
        assert "Changed my mind" in order.notes
        assert stock_of(product) == 12
        mock_cancel_payment.assert_called_once()

    def test_paid_order_keeps_payment(self, user, confirmed_order, mock_cancel_payment):
        result = OrderService.cancel_order(confirmed_order, user)

        assert result.success
        mock_cancel_payment.assert_not_called()

    def test_other_customer_forbidden(self, other_user, pending_order, mock_cancel_payment):
        result = OrderService.cancel_order(pending_order, other_user)

        assert result.error_code == "FORBIDDEN"
        assert Order.objects.get(pk=pending_order.pk).status == OrderStatus.PENDING_PAYMENT

    def test_manager_may_cancel_any_order(self, order_manager, pending_order, mock_cancel_payment):
        result = OrderService.cancel_order(pending_order, order_manager)

        assert result.success

    def test_shipped_order_not_cancellable(self, user, mock_cancel_payment):
        order = OrderFactory(user=user, status=OrderStatus.SHIPPED)

        result = OrderService.cancel_order(order, user)

        assert result.error_code == "ORDER_NOT_CANCELLABLE"

    def test_dropship_and_virtual_stock_untouched(self, user, mock_cancel_payment):
        dropship = ProductFactory(is_dropship=True, stock_quantity=0)
        virtual = ProductFactory(is_virtual=True, stock_quantity=0)
        order = OrderFactory(user=user)
        OrderItemFactory(order=order, product=dropship)
        OrderItemFactory(order=order, product=virtual)

        OrderService.cancel_order(order, user)

        assert stock_of(dropship) == 0
        assert stock_of(virtual) == 0


@pytest.mark.django_db
class TestReturnService:
    def test_create_return(self, user, confirmed_item):
        result = ReturnService.create_return(user, confirmed_item.id, reason="Too small")

        assert result.success
        assert result.data.status == ReturnStatus.REQUESTED
        assert result.data.reason == "Too small"

    def test_create_return_for_foreign_item(self, other_user, confirmed_item):
        result = ReturnService.create_return(other_user, confirmed_item.id)

        assert result.error_code == "FORBIDDEN"

    def test_create_return_requires_paid_order(self, user, pending_order):
        result = ReturnService.create_return(user, pending_order.items.get().id)

        assert result.error_code == "ORDER_NOT_PAID"

    def test_create_return_for_cancelled_paid_order(self, user, confirmed_item):
        order = confirmed_item.order
        order.cancel()
        order.save()

        result = ReturnService.create_return(user, confirmed_item.id)

        assert result.success

    def test_one_return_per_item(self, user, confirmed_item):
        OrderReturnFactory(order_item=confirmed_item)

        result = ReturnService.create_return(user, confirmed_item.id)

        assert result.error_code == "RETURN_EXISTS"

    def test_unknown_item(self, user):
        result = ReturnService.create_return(user, "00000000-0000-0000-0000-000000000000")

        assert result.error_code == "NOT_FOUND"

    def test_approve_notifies_after_commit(
        self, mocker, order_manager, confirmed_item, django_capture_on_commit_callbacks
    ):
        notify = mocker.patch("notifications.notify.return_status_changed")
        order_return = OrderReturnFactory(order_item=confirmed_item)

        with django_capture_on_commit_callbacks(execute=True):
            result = ReturnService.review_return(order_manager, order_return.id, "approve", notes="OK")

        assert result.success
        order_return = OrderReturn.objects.get(pk=order_return.pk)
        assert order_return.status == ReturnStatus.APPROVED
        assert order_return.notes == "OK"
        notify.assert_called_once()

    def test_review_does_not_notify(self, mocker, order_manager, confirmed_item, django_capture_on_commit_callbacks):
        notify = mocker.patch("notifications.notify.return_status_changed")
        order_return = OrderReturnFactory(order_item=confirmed_item)

        with django_capture_on_commit_callbacks(execute=True):
            ReturnService.review_return(order_manager, order_return.id, "review")

        assert OrderReturn.objects.get(pk=order_return.pk).status == ReturnStatus.UNDER_REVIEW
        notify.assert_not_called()

    def test_review_requires_permission(self, user, confirmed_item):
        order_return = OrderReturnFactory(order_item=confirmed_item)

        result = ReturnService.review_return(user, order_return.id, "approve")

        assert result.error_code == "FORBIDDEN"

    def test_unknown_action(self, order_manager, confirmed_item):
        order_return = OrderReturnFactory(order_item=confirmed_item)

        result = ReturnService.review_return(order_manager, order_return.id, "refund")

        assert result.error_code == "INVALID_ACTION"

    def test_processed_return_cannot_be_reviewed(self, order_manager, confirmed_item):
        order_return = OrderReturnFactory(order_item=confirmed_item, status=ReturnStatus.REJECTED)

        result = ReturnService.review_return(order_manager, order_return.id, "approve")

        assert result.error_code == "RETURN_ALREADY_PROCESSED"

    def test_list_returns_scoped_to_customer(self, user, order_manager, confirmed_item):
        own = OrderReturnFactory(order_item=confirmed_item)
        OrderReturnFactory()

        assert list(ReturnService.list_returns(user)) == [own]
        assert ReturnService.list_returns(order_manager).count() == 2
