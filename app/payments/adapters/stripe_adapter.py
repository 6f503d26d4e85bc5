"""
Stripe API adapter.

Every Stripe call in the project goes through StripeAdapter so that API
keys, timeouts, idempotency keys, logging and error translation live in one
place. Stripe SDK exceptions never leave this module: they are re-raised as
the StripeError family from payments.exceptions.

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)
- STRIPE_MAX_RETRIES: SDK network retries (default: 3)

Usage:
    from payments.adapters import CreatePaymentIntentParams, StripeAdapter

    result = StripeAdapter.create_payment_intent(
        CreatePaymentIntentParams(
            amount_cents=order.total_cents,
            currency=order.currency,
            metadata={"order_id": str(order.id)},
            idempotency_key=IdempotencyKeyGenerator.generate("create_intent", order.id),
        )
    )
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import stripe
from django.conf import settings

from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeCardDeclinedError,
    StripeError,
    StripeInvalidRequestError,
    StripeRateLimitError,
)

R = TypeVar("R")


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CreatePaymentIntentParams:
    """
    Parameters for creating a Stripe PaymentIntent.

    Attributes:
        amount_cents: Amount in smallest currency unit
        currency: ISO 4217 currency code
        idempotency_key: Unique key for idempotent creation
        metadata: Key-value pairs attached to the PaymentIntent
        receipt_email: Optional address for Stripe's receipt
    """

    amount_cents: int
    currency: str
    idempotency_key: str
    metadata: dict[str, str] = field(default_factory=dict)
    receipt_email: str | None = None

    def __post_init__(self) -> None:
        if self.amount_cents <= 0:
            raise ValueError("amount_cents must be positive")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")
        if not self.currency:
            raise ValueError("currency is required")


@dataclass
class PaymentIntentResult:
    id: str
    status: str
    amount_cents: int
    currency: str
    client_secret: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class RefundResult:
    """
    Result from Stripe Refund operations.

    status is Stripe's refund status: pending, succeeded, failed or canceled.
    """

    id: str
    amount_cents: int
    currency: str
    status: str
    payment_intent_id: str | None = None
    charge_id: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"


@dataclass
class ChargeResult:
    id: str
    amount_cents: int
    amount_refunded_cents: int
    currency: str
    payment_intent_id: str | None = None
    refunded: bool = False


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for Stripe API calls.

    Format: "{operation}:{entity_id}:{attempt}:{signature}"

    The signature is an HMAC-SHA256 of the other parts keyed by SECRET_KEY,
    so the same inputs always give the same key and retries of one logical
    operation are deduplicated by Stripe.
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        entity_str = str(entity_id)
        message = f"{operation}:{entity_str}:{attempt}".encode()
        signature = hmac.new(
            settings.SECRET_KEY.encode(), message, hashlib.sha256
        ).hexdigest()[:16]
        return f"{operation}:{entity_str}:{attempt}:{signature}"


def is_retryable_stripe_error(error: Exception) -> bool:
    """True for transient Stripe errors (rate limits, outages)."""
    if isinstance(error, StripeError):
        return getattr(error, "is_retryable", False)
    return False


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    All methods are classmethods with no instance state, safe to call from
    Celery workers. Each call logs its start, outcome and duration_ms.
    """

    @staticmethod
    def _configure_stripe() -> None:
        stripe.api_key = settings.STRIPE_SECRET_KEY
        stripe.max_network_retries = getattr(settings, "STRIPE_MAX_RETRIES", 3)
        timeout = getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def _execute(
        cls,
        operation: str,
        call: Callable[[], R],
        log_context: dict[str, Any] | None = None,
        result_context: Callable[[R], dict[str, Any]] | None = None,
    ) -> R:
        """Run one SDK call with timing, logging and error translation."""
        cls._configure_stripe()
        logger = cls.get_logger()
        context = {"operation": operation, **(log_context or {})}

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=context)
        try:
            response = call()
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, context, duration_ms)
            raise

        duration_ms = (time.time() - start_time) * 1000
        extra = result_context(response) if result_context else {}
        logger.info(
            "Stripe operation completed",
            extra={**context, **extra, "duration_ms": duration_ms},
        )
        return response

    # =========================================================================
    # Payment Intents
    # =========================================================================

    @classmethod
    def create_payment_intent(cls, params: CreatePaymentIntentParams) -> PaymentIntentResult:
        """
        Create a PaymentIntent for automatic capture.

        Raises:
            StripeCardDeclinedError: Card was declined
            StripeInvalidRequestError: Invalid parameters
            StripeAPIUnavailableError: Stripe unreachable
        """
        intent = cls._execute(
            "create_payment_intent",
            lambda: stripe.PaymentIntent.create(
                amount=params.amount_cents,
                currency=params.currency,
                metadata=params.metadata,
                receipt_email=params.receipt_email,
                automatic_payment_methods={"enabled": True},
                idempotency_key=params.idempotency_key,
            ),
            log_context={
                "amount_cents": params.amount_cents,
                "currency": params.currency,
                "idempotency_key": params.idempotency_key,
            },
            result_context=lambda i: {"payment_intent_id": i.id, "status": i.status},
        )
        return PaymentIntentResult(
            id=intent.id,
            status=intent.status,
            amount_cents=intent.amount,
            currency=intent.currency,
            client_secret=intent.client_secret,
            metadata=dict(intent.metadata or {}),
        )

    @classmethod
    def cancel_payment_intent(
        cls,
        payment_intent_id: str,
        idempotency_key: str | None = None,
    ) -> PaymentIntentResult:
        intent = cls._execute(
            "cancel_payment_intent",
            lambda: stripe.PaymentIntent.cancel(
                payment_intent_id,
                idempotency_key=idempotency_key,
            ),
            log_context={"payment_intent_id": payment_intent_id},
            result_context=lambda i: {"status": i.status},
        )
        return PaymentIntentResult(
            id=intent.id,
            status=intent.status,
            amount_cents=intent.amount,
            currency=intent.currency,
            metadata=dict(intent.metadata or {}),
        )

    # =========================================================================
    # Refunds & Charges
    # =========================================================================

    @classmethod
    def create_refund(
        cls,
        payment_intent_id: str,
        idempotency_key: str,
        amount_cents: int | None = None,
        reason: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> RefundResult:
        """
        Refund all or part of a PaymentIntent.

        Raises:
            StripeInvalidRequestError: Refund not possible (e.g. exceeds charge)
            StripeAPIUnavailableError: Stripe unreachable
        """
        refund_params: dict[str, Any] = {
            "payment_intent": payment_intent_id,
            "metadata": metadata or {},
        }
        if amount_cents is not None:
            refund_params["amount"] = amount_cents
        if reason:
            refund_params["reason"] = reason

        refund = cls._execute(
            "create_refund",
            lambda: stripe.Refund.create(idempotency_key=idempotency_key, **refund_params),
            log_context={
                "payment_intent_id": payment_intent_id,
                "amount_cents": amount_cents,
                "idempotency_key": idempotency_key,
            },
            result_context=lambda r: {"refund_id": r.id, "status": r.status},
        )
        return cls._to_refund_result(refund)

    @classmethod
    def retrieve_charge(cls, charge_id: str) -> ChargeResult:
        charge = cls._execute(
            "retrieve_charge",
            lambda: stripe.Charge.retrieve(charge_id),
            log_context={"charge_id": charge_id},
        )
        return ChargeResult(
            id=charge.id,
            amount_cents=charge.amount,
            amount_refunded_cents=charge.amount_refunded or 0,
            currency=charge.currency,
            payment_intent_id=charge.payment_intent,
            refunded=bool(charge.refunded),
        )

    @classmethod
    def list_charge_refunds(cls, charge_id: str) -> list[RefundResult]:
        """All refunds of a charge, newest first."""
        refunds = cls._execute(
            "list_charge_refunds",
            lambda: list(stripe.Refund.list(charge=charge_id, limit=100).auto_paging_iter()),
            log_context={"charge_id": charge_id},
            result_context=lambda items: {"count": len(items)},
        )
        return [cls._to_refund_result(refund) for refund in refunds]

    @staticmethod
    def _to_refund_result(refund: Any) -> RefundResult:
        return RefundResult(
            id=refund.id,
            amount_cents=refund.amount,
            currency=refund.currency,
            status=refund.status,
            payment_intent_id=refund.payment_intent,
            charge_id=refund.charge,
            metadata=dict(refund.metadata or {}),
        )

    # =========================================================================
    # Webhooks
    # =========================================================================

    @classmethod
    def construct_webhook_event(cls, payload: bytes, signature: str) -> dict[str, Any]:
        """
        Verify a webhook signature and return the parsed event.

        Raises:
            StripeInvalidRequestError: Missing or invalid signature, bad payload
        """
        try:
            stripe.Webhook.construct_event(
                payload,
                signature,
                settings.STRIPE_WEBHOOK_SECRET,
            )
        except stripe.SignatureVerificationError as e:
            cls.get_logger().warning("Rejected Stripe webhook with invalid signature")
            raise StripeInvalidRequestError(
                "Invalid webhook signature",
                stripe_code="signature_verification_failed",
                details={"error": str(e)},
            ) from e
        except ValueError as e:
            raise StripeInvalidRequestError(
                "Invalid webhook payload",
                stripe_code="invalid_payload",
            ) from e

        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        return json.loads(payload)

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """Translate a Stripe SDK exception into the StripeError family."""
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )
            raise StripeCardDeclinedError(
                str(error.user_message or error),
                stripe_code=error.code,
                decline_code=decline_code,
            ) from error

        if isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            raise StripeInvalidRequestError(
                str(error.user_message or error),
                stripe_code=error.code,
            ) from error

        if isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise StripeRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            ) from error

        if isinstance(error, stripe.APIConnectionError):
            logger.error("Connection error to Stripe", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            ) from error

        if isinstance(error, stripe.AuthenticationError):
            logger.critical("Stripe authentication failed - check API key", extra=log_context)
            raise StripeInvalidRequestError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            ) from error

        if isinstance(error, stripe.APIError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
            ) from error

        logger.error(
            f"Unexpected error from Stripe: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        raise StripeAPIUnavailableError(
            f"Unexpected Stripe error: {error}",
            stripe_code="unknown_error",
        ) from error
