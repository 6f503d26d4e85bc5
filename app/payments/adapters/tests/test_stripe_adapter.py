"""
Tests for the Stripe adapter.

Tests cover:
- Parameter validation and idempotency keys
- Result mapping for PaymentIntents, refunds and charges
- Translation of every Stripe SDK error into the payment exceptions
- Webhook signature verification
"""

import json

import pytest
import stripe
from django.test import override_settings

from payments.adapters import (
    CreatePaymentIntentParams,
    IdempotencyKeyGenerator,
    StripeAdapter,
    is_retryable_stripe_error,
)
from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeCardDeclinedError,
    StripeInvalidRequestError,
    StripeRateLimitError,
)


class TestCreatePaymentIntentParams:
    def test_valid_params(self):
        params = CreatePaymentIntentParams(amount_cents=5000, currency="usd", idempotency_key="k")

        assert params.metadata == {}
        assert params.receipt_email is None

    @pytest.mark.parametrize("amount", [0, -100])
    def test_amount_must_be_positive(self, amount):
        with pytest.raises(ValueError, match="amount_cents must be positive"):
            CreatePaymentIntentParams(amount_cents=amount, currency="usd", idempotency_key="k")

    def test_idempotency_key_required(self):
        with pytest.raises(ValueError, match="idempotency_key is required"):
            CreatePaymentIntentParams(amount_cents=5000, currency="usd", idempotency_key="")

    def test_currency_required(self):
        with pytest.raises(ValueError, match="currency is required"):
            CreatePaymentIntentParams(amount_cents=5000, currency="", idempotency_key="k")


class TestIdempotencyKeyGenerator:
    def test_same_inputs_same_key(self):
        first = IdempotencyKeyGenerator.generate("refund", "abc")
        second = IdempotencyKeyGenerator.generate("refund", "abc")

        assert first == second
        assert first.startswith("refund:abc:1:")

    def test_attempt_changes_key(self):
        assert IdempotencyKeyGenerator.generate("refund", "abc", attempt=1) != (
            IdempotencyKeyGenerator.generate("refund", "abc", attempt=2)
        )

    def test_key_depends_on_secret(self):
        with override_settings(SECRET_KEY="one"):
            first = IdempotencyKeyGenerator.generate("refund", "abc")
        with override_settings(SECRET_KEY="two"):
            second = IdempotencyKeyGenerator.generate("refund", "abc")

        assert first != second


class TestPaymentIntents:
    def test_create_payment_intent(self, mocker, stripe_payment_intent):
        create = mocker.patch("stripe.PaymentIntent.create", return_value=stripe_payment_intent)

        result = StripeAdapter.create_payment_intent(
            CreatePaymentIntentParams(
                amount_cents=4000,
                currency="usd",
                idempotency_key="payment_intent:order-1:1:abc",
                metadata={"order_id": "order-1"},
            )
        )

        assert result.id == "pi_test_123"
        assert result.client_secret == "pi_test_123_secret_abc"
        assert result.amount_cents == 4000
        kwargs = create.call_args.kwargs
        assert kwargs["amount"] == 4000
        assert kwargs["idempotency_key"] == "payment_intent:order-1:1:abc"
        assert kwargs["automatic_payment_methods"] == {"enabled": True}

    def test_cancel_payment_intent(self, mocker, stripe_payment_intent):
        stripe_payment_intent.status = "canceled"
        cancel = mocker.patch("stripe.PaymentIntent.cancel", return_value=stripe_payment_intent)

        result = StripeAdapter.cancel_payment_intent("pi_test_123")

        assert result.status == "canceled"
        assert cancel.call_args.args == ("pi_test_123",)


class TestRefundsAndCharges:
    def test_create_refund(self, mocker, stripe_refund):
        create = mocker.patch("stripe.Refund.create", return_value=stripe_refund)

        result = StripeAdapter.create_refund(
            payment_intent_id="pi_test_123",
            idempotency_key="refund:return-1:1:abc",
            amount_cents=2500,
            reason="requested_by_customer",
            metadata={"return_id": "return-1"},
        )

        assert result.id == "re_test_123"
        assert result.succeeded is True
        assert result.charge_id == "ch_test_123"
        create.assert_called_once_with(
            idempotency_key="refund:return-1:1:abc",
            payment_intent="pi_test_123",
            metadata={"return_id": "return-1"},
            amount=2500,
            reason="requested_by_customer",
        )

    def test_full_refund_omits_amount(self, mocker, stripe_refund):
        create = mocker.patch("stripe.Refund.create", return_value=stripe_refund)

        StripeAdapter.create_refund(payment_intent_id="pi_test_123", idempotency_key="k")

        assert "amount" not in create.call_args.kwargs
        assert "reason" not in create.call_args.kwargs

    def test_retrieve_charge(self, mocker, stripe_charge):
        mocker.patch("stripe.Charge.retrieve", return_value=stripe_charge)

        result = StripeAdapter.retrieve_charge("ch_test_123")

        assert result.amount_refunded_cents == 2500
        assert result.payment_intent_id == "pi_test_123"
        assert result.refunded is False

    def test_list_charge_refunds_pages_through_results(self, mocker, stripe_refund):
        listing = mocker.MagicMock()
        listing.auto_paging_iter.return_value = iter([stripe_refund, stripe_refund])
        list_call = mocker.patch("stripe.Refund.list", return_value=listing)

        results = StripeAdapter.list_charge_refunds("ch_test_123")

        assert [r.id for r in results] == ["re_test_123", "re_test_123"]
        list_call.assert_called_once_with(charge="ch_test_123", limit=100)


class TestErrorTranslation:
    @pytest.mark.parametrize(
        "error, expected, retryable",
        [
            (stripe.CardError("Your card was declined.", None, "card_declined"), StripeCardDeclinedError, False),
            (stripe.InvalidRequestError("No such payment_intent", "payment_intent"), StripeInvalidRequestError, False),
            (stripe.RateLimitError("Too many requests"), StripeRateLimitError, True),
            (stripe.APIConnectionError("Network down"), StripeAPIUnavailableError, True),
            (stripe.AuthenticationError("Invalid API key"), StripeInvalidRequestError, False),
            (stripe.APIError("Internal error"), StripeAPIUnavailableError, True),
        ],
    )
    def test_sdk_errors_are_translated(self, mocker, error, expected, retryable):
        mocker.patch("stripe.Refund.create", side_effect=error)

        with pytest.raises(expected) as exc_info:
            StripeAdapter.create_refund(payment_intent_id="pi_test_123", idempotency_key="k")

        assert is_retryable_stripe_error(exc_info.value) is retryable
        assert exc_info.value.__cause__ is error

    def test_card_error_keeps_stripe_code(self, mocker):
        mocker.patch(
            "stripe.PaymentIntent.create",
            side_effect=stripe.CardError("Your card was declined.", None, "card_declined"),
        )

        with pytest.raises(StripeCardDeclinedError) as exc_info:
            StripeAdapter.create_payment_intent(
                CreatePaymentIntentParams(amount_cents=100, currency="usd", idempotency_key="k")
            )

        assert exc_info.value.stripe_code == "card_declined"

    def test_unexpected_errors_become_unavailable(self, mocker):
        mocker.patch("stripe.Charge.retrieve", side_effect=RuntimeError("boom"))

        with pytest.raises(StripeAPIUnavailableError):
            StripeAdapter.retrieve_charge("ch_test_123")

    def test_plain_exceptions_are_not_retryable(self):
        assert is_retryable_stripe_error(RuntimeError("boom")) is False


class TestConstructWebhookEvent:
    def test_valid_signature_returns_parsed_payload(self, mocker):
        construct = mocker.patch("stripe.Webhook.construct_event")
        payload = json.dumps({"id": "evt_1", "type": "charge.refunded"}).encode()

        event = StripeAdapter.construct_webhook_event(payload, "t=1,v1=sig")

        assert event == {"id": "evt_1", "type": "charge.refunded"}
        assert construct.call_args.args[:2] == (payload, "t=1,v1=sig")

    def test_invalid_signature(self, mocker):
        mocker.patch(
            "stripe.Webhook.construct_event",
            side_effect=stripe.SignatureVerificationError("bad signature", "t=1,v1=sig"),
        )

        with pytest.raises(StripeInvalidRequestError) as exc_info:
            StripeAdapter.construct_webhook_event(b"{}", "t=1,v1=sig")

        assert exc_info.value.stripe_code == "signature_verification_failed"

    def test_malformed_payload(self, mocker):
        mocker.patch("stripe.Webhook.construct_event", side_effect=ValueError("bad json"))

        with pytest.raises(StripeInvalidRequestError) as exc_info:
            StripeAdapter.construct_webhook_event(b"not json", "t=1,v1=sig")

        assert exc_info.value.stripe_code == "invalid_payload"
