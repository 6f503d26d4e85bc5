"""
Payment-specific exceptions.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── RefundNotAllowedError - refund rejected by business rules
    └── StripeError - base for all Stripe errors
        ├── StripeCardDeclinedError - card declined (permanent)
        ├── StripeInvalidRequestError - invalid request or signature (permanent)
        ├── StripeRateLimitError - rate limited (transient, retry)
        └── StripeAPIUnavailableError - network or server error (transient, retry)

    StaleRecordError - optimistic locking conflict (ConflictError)
    LockAcquisitionError - distributed lock timeout (ConflictError)
    InvalidStateTransitionError - FSM transition not allowed (ConflictError)

Usage:
    from payments.exceptions import StripeError

    try:
        StripeAdapter.create_refund(...)
    except StripeError as e:
        if e.is_retryable:
            raise  # let the Celery task retry with backoff
        record_failure(e.message)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError

if TYPE_CHECKING:
    from typing import Any


class PaymentError(BaseApplicationError):
    """Base exception for payment domain errors."""

    default_error_code: str = "PAYMENT_ERROR"


class RefundNotAllowedError(PaymentError):
    """
    Refund blocked by a business rule.

    Raised for refunds against unpaid orders, returns that were not approved,
    or amounts above what is still refundable.
    """

    default_error_code: str = "REFUND_NOT_ALLOWED"
    http_status: int = 422


# =============================================================================
# Stripe-Specific Exceptions
# =============================================================================


class StripeError(PaymentError):
    """
    Base exception for all Stripe-related errors.

    is_retryable separates transient failures (rate limits, outages) from
    permanent ones (declines, bad parameters).
    """

    default_error_code: str = "STRIPE_ERROR"
    http_status: int = 502
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        decline_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        if decline_code:
            details["decline_code"] = decline_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code
        self.decline_code = decline_code


class StripeCardDeclinedError(StripeError):
    default_error_code: str = "CARD_DECLINED"
    http_status: int = 402


class StripeInvalidRequestError(StripeError):
    """Invalid parameters, unknown resource, bad credentials or bad signature."""

    default_error_code: str = "INVALID_STRIPE_REQUEST"
    http_status: int = 400


class StripeRateLimitError(StripeError):
    default_error_code: str = "STRIPE_RATE_LIMITED"
    http_status: int = 503
    is_retryable: bool = True


class StripeAPIUnavailableError(StripeError):
    """Stripe could not be reached or returned a server error."""

    default_error_code: str = "STRIPE_UNAVAILABLE"
    http_status: int = 503
    is_retryable: bool = True


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class StaleRecordError(ConflictError):
    """
    Optimistic locking detected a concurrent modification.

    details carries pk, expected_version and current_version.
    """

    default_error_code: str = "STALE_RECORD"


class LockAcquisitionError(ConflictError):
    """Another worker holds the distributed lock past the wait timeout."""

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


class InvalidStateTransitionError(ConflictError):
    """
    Wraps django-fsm's TransitionNotAllowed in the standard error format.

    details carries current_state and the attempted transition.
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


__all__ = [
    "PaymentError",
    "RefundNotAllowedError",
    "StripeError",
    "StripeCardDeclinedError",
    "StripeInvalidRequestError",
    "StripeRateLimitError",
    "StripeAPIUnavailableError",
    "StaleRecordError",
    "LockAcquisitionError",
    "InvalidStateTransitionError",
]
