"""
Dropshipping exceptions.

Exception Hierarchy:
    DropshippingError (base for the dropshipping domain)
    └── SupplierWebhookSignatureError - inbound webhook failed HMAC check

    ExternalServiceError
    └── SupplierCommunicationError - supplier unreachable, timed out or
        answered 5xx (transient, retry)

Usage:
    from dropshipping.exceptions import SupplierCommunicationError

    try:
        submission = SupplierClient.send_order(dropship_order, integration)
    except SupplierCommunicationError:
        raise  # send_dropship_order_to_supplier retries with backoff
"""

from __future__ import annotations

from core.exceptions import BaseApplicationError, ExternalServiceError


class DropshippingError(BaseApplicationError):
    default_error_code: str = "DROPSHIPPING_ERROR"


class SupplierCommunicationError(ExternalServiceError):
    """
    The supplier could not be reached or failed on its side.

    Raised for connection errors, timeouts and 5xx responses. A 4xx answer
    is a rejection, not a communication error, and is returned as an
    unsuccessful SupplierSubmission instead.
    """

    default_error_code: str = "SUPPLIER_UNAVAILABLE"
    is_retryable: bool = True

    def __init__(self, message: str, status_code: int | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code


class SupplierWebhookSignatureError(DropshippingError):
    """Inbound supplier webhook with a missing or wrong X-Webhook-Signature."""

    default_error_code: str = "INVALID_SIGNATURE"
