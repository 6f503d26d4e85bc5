"""
Payment adapters for external services.

All Stripe calls go through StripeAdapter.
"""

from payments.adapters.stripe_adapter import (
    ChargeResult,
    CreatePaymentIntentParams,
    IdempotencyKeyGenerator,
    PaymentIntentResult,
    RefundResult,
    StripeAdapter,
    is_retryable_stripe_error,
)

__all__ = [
    "ChargeResult",
    "CreatePaymentIntentParams",
    "IdempotencyKeyGenerator",
    "PaymentIntentResult",
    "RefundResult",
    "StripeAdapter",
    "is_retryable_stripe_error",
]
