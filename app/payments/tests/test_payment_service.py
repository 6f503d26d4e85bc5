"""
Tests for PaymentService: PaymentIntent creation, cancellation and settlement.
"""

import pytest

from orders.models import Order
from orders.signals import order_paid
from orders.states import OrderStatus
from orders.tests.factories import OrderFactory
from payments.adapters import PaymentIntentResult
from payments.exceptions import StripeAPIUnavailableError, StripeCardDeclinedError
from payments.models import Payment
from payments.services import PaymentService
from payments.state_machines import PaymentStatus


@pytest.fixture
def intent_result():
    return PaymentIntentResult(
        id="pi_new_123",
        status="requires_payment_method",
        amount_cents=4000,
        currency="usd",
        client_secret="pi_new_123_secret",
    )


@pytest.fixture
def paid_receiver():
    received = []

    def receiver(sender, order, **kwargs):
        received.append(order.pk)

    order_paid.connect(receiver, dispatch_uid="test_payment_service_receiver")
    yield received
    order_paid.disconnect(dispatch_uid="test_payment_service_receiver")


@pytest.mark.django_db
class TestCreatePaymentForOrder:
    def test_creates_pending_payment(self, mocker, pending_order, intent_result):
        create = mocker.patch(
            "payments.services.payment_service.StripeAdapter.create_payment_intent",
            return_value=intent_result,
        )

        result = PaymentService.create_payment_for_order(pending_order)

        assert result.success
        assert result.data["client_secret"] == "pi_new_123_secret"
        payment = Payment.objects.get(order=pending_order)
        assert payment.status == PaymentStatus.PENDING
        assert payment.stripe_payment_intent_id == "pi_new_123"
        assert payment.amount_cents == 4000

        params = create.call_args.args[0]
        assert params.amount_cents == pending_order.total_cents
        assert params.metadata["order_id"] == str(pending_order.id)
        assert params.idempotency_key.startswith(f"create_intent:{pending_order.id}:1:")

    def test_zero_total_is_rejected(self, mocker, user):
        create = mocker.patch(
            "payments.services.payment_service.StripeAdapter.create_payment_intent"
        )
        order = OrderFactory(user=user, subtotal_cents=0)

        result = PaymentService.create_payment_for_order(order)

        assert result.error_code == "INVALID_AMOUNT"
        create.assert_not_called()

    def test_stripe_failure(self, mocker, pending_order):
        mocker.patch(
            "payments.services.payment_service.StripeAdapter.create_payment_intent",
            side_effect=StripeAPIUnavailableError("Could not connect to Stripe. Please retry."),
        )

        result = PaymentService.create_payment_for_order(pending_order)

        assert result.error_code == "STRIPE_ERROR"
        assert not Payment.objects.filter(order=pending_order).exists()


@pytest.mark.django_db
class TestCancelPaymentForOrder:
    def test_cancels_pending_intent(self, mocker, pending_payment):
        cancel = mocker.patch("payments.services.payment_service.StripeAdapter.cancel_payment_intent")

        result = PaymentService.cancel_payment_for_order(pending_payment.order)

        assert result.success
        assert Payment.objects.get(pk=pending_payment.pk).status == PaymentStatus.CANCELLED
        assert cancel.call_args.args[0] == pending_payment.stripe_payment_intent_id

    def test_order_without_payment(self, mocker, pending_order):
        cancel = mocker.patch("payments.services.payment_service.StripeAdapter.cancel_payment_intent")

        result = PaymentService.cancel_payment_for_order(pending_order)

        assert result.success
        assert result.data is None
        cancel.assert_not_called()

    def test_paid_payment_left_alone(self, mocker, paid_payment):
        cancel = mocker.patch("payments.services.payment_service.StripeAdapter.cancel_payment_intent")

        result = PaymentService.cancel_payment_for_order(paid_payment.order)

        assert result.success
        assert Payment.objects.get(pk=paid_payment.pk).status == PaymentStatus.PAID
        cancel.assert_not_called()

    def test_stripe_failure_keeps_payment_pending(self, mocker, pending_payment):
        mocker.patch(
            "payments.services.payment_service.StripeAdapter.cancel_payment_intent",
            side_effect=StripeCardDeclinedError("declined"),
        )

        result = PaymentService.cancel_payment_for_order(pending_payment.order)

        assert result.error_code == "STRIPE_ERROR"
        assert Payment.objects.get(pk=pending_payment.pk).status == PaymentStatus.PENDING


@pytest.mark.django_db
class TestHandlePaymentSucceeded:
    def test_marks_paid_and_confirms_order(
        self, pending_payment, paid_receiver, django_capture_on_commit_callbacks
    ):
        intent = {"id": pending_payment.stripe_payment_intent_id, "latest_charge": "ch_999"}

        with django_capture_on_commit_callbacks(execute=True):
            result = PaymentService.handle_payment_succeeded(intent)

        assert result.success
        payment = Payment.objects.get(pk=pending_payment.pk)
        assert payment.status == PaymentStatus.PAID
        assert payment.stripe_charge_id == "ch_999"
        assert payment.response_payload == intent
        order = Order.objects.get(pk=pending_payment.order_id)
        assert order.status == OrderStatus.CONFIRMED
        assert order.paid_at is not None
        assert paid_receiver == [order.pk]

    def test_redelivery_is_noop(self, paid_payment, paid_receiver, django_capture_on_commit_callbacks):
        intent = {"id": paid_payment.stripe_payment_intent_id}

        with django_capture_on_commit_callbacks(execute=True):
            result = PaymentService.handle_payment_succeeded(intent)

        assert result.success
        assert Payment.objects.get(pk=paid_payment.pk).version == 1
        assert paid_receiver == []

    def test_retry_after_failure_confirms_failed_order(self, pending_payment, django_capture_on_commit_callbacks):
        PaymentService.handle_payment_failed({"id": pending_payment.stripe_payment_intent_id})
        assert Order.objects.get(pk=pending_payment.order_id).status == OrderStatus.FAILED

        with django_capture_on_commit_callbacks(execute=True):
            result = PaymentService.handle_payment_succeeded(
                {"id": pending_payment.stripe_payment_intent_id}
            )

        assert result.success
        assert Order.objects.get(pk=pending_payment.order_id).status == OrderStatus.CONFIRMED

    def test_cancelled_order_is_not_confirmed(self, pending_payment, paid_receiver, django_capture_on_commit_callbacks):
        order = Order.objects.get(pk=pending_payment.order_id)
        order.cancel()
        order.save()

        with django_capture_on_commit_callbacks(execute=True):
            result = PaymentService.handle_payment_succeeded(
                {"id": pending_payment.stripe_payment_intent_id}
            )

        assert result.success
        assert Payment.objects.get(pk=pending_payment.pk).status == PaymentStatus.PAID
        assert Order.objects.get(pk=order.pk).status == OrderStatus.CANCELLED
        assert paid_receiver == []

    def test_unknown_intent(self):
        result = PaymentService.handle_payment_succeeded({"id": "pi_unknown"})

        assert result.error_code == "PAYMENT_NOT_FOUND"


@pytest.mark.django_db
class TestHandlePaymentFailed:
    def test_records_failure_and_fails_order(self, pending_payment):
        intent = {
            "id": pending_payment.stripe_payment_intent_id,
            "last_payment_error": {
                "code": "card_declined",
                "decline_code": "insufficient_funds",
                "message": "Your card has insufficient funds.",
            },
        }

        result = PaymentService.handle_payment_failed(intent)

        assert result.success
        payment = Payment.objects.get(pk=pending_payment.pk)
        assert payment.status == PaymentStatus.FAILED
        assert payment.failure_code == "insufficient_funds"
        assert payment.failure_message == "Your card has insufficient funds."
        assert Order.objects.get(pk=pending_payment.order_id).status == OrderStatus.FAILED

    def test_failure_after_success_is_ignored(self, paid_payment):
        result = PaymentService.handle_payment_failed({"id": paid_payment.stripe_payment_intent_id})

        assert result.success
        assert Payment.objects.get(pk=paid_payment.pk).status == PaymentStatus.PAID
        assert Order.objects.get(pk=paid_payment.order_id).status == OrderStatus.CONFIRMED
