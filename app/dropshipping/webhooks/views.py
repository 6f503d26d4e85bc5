"""
Supplier webhook endpoint.

Like the Stripe endpoint, the view only verifies, stores and queues.
Processing happens in the process_supplier_webhook task.
"""

from __future__ import annotations

import json
import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from core.helpers import verify_signature
from dropshipping.exceptions import SupplierWebhookSignatureError
from dropshipping.models import Supplier, SupplierWebhookEvent

logger = logging.getLogger(__name__)


SIGNATURE_HEADER = "X-Webhook-Signature"


def verify_supplier_signature(supplier: Supplier, body: bytes, signature: str | None) -> None:
    """
    Check the HMAC of a supplier webhook body.

    Only enforced when one of the supplier's active integrations has a
    webhook secret.

    Raises:
        SupplierWebhookSignatureError: signature missing or wrong
    """
    secrets = [
        secret
        for secret in supplier.integrations.filter(is_active=True).values_list("webhook_secret", flat=True)
        if secret
    ]
    if not secrets:
        return
    if not any(verify_signature(body, secret, signature) for secret in secrets):
        raise SupplierWebhookSignatureError(
            "Missing signature" if not signature else "Invalid signature",
            details={"supplier_id": str(supplier.id)},
        )


@csrf_exempt
@require_POST
def supplier_webhook(request: HttpRequest, supplier_id) -> HttpResponse:
    """
    Receive a webhook from a supplier.

    The event type is read from the body (``event_type`` or ``type``) or
    the X-Event-Type header.

    Returns:
        200: event stored and queued
        400: malformed body or missing event type
        401: missing or invalid signature
        404: unknown supplier
    """
    supplier = Supplier.objects.filter(pk=supplier_id).first()
    if supplier is None:
        return HttpResponse("Unknown supplier", status=404)

    try:
        verify_supplier_signature(supplier, request.body, request.headers.get(SIGNATURE_HEADER))
    except SupplierWebhookSignatureError as e:
        logger.warning(
            f"Supplier webhook rejected: {e.message}",
            extra={"supplier_id": str(supplier.id)},
        )
        return HttpResponse(e.message, status=401)

    try:
        payload = json.loads(request.body)
    except ValueError:
        return HttpResponse("Invalid JSON", status=400)
    if not isinstance(payload, dict):
        return HttpResponse("Invalid event", status=400)

    event_type = payload.get("event_type") or payload.get("type") or request.headers.get("X-Event-Type")
    if not event_type:
        return HttpResponse("Missing event type", status=400)

    webhook_event = SupplierWebhookEvent.objects.create(
        supplier=supplier,
        event_type=event_type,
        payload=payload,
    )
    logger.info(
        f"Received supplier webhook: {event_type}",
        extra={"supplier_id": str(supplier.id), "webhook_event_id": str(webhook_event.id)},
    )

    from dropshipping.tasks import process_supplier_webhook

    try:
        process_supplier_webhook.delay(str(webhook_event.id))
    except Exception:
        logger.exception(
            "Failed to queue supplier webhook",
            extra={"webhook_event_id": str(webhook_event.id)},
        )
        webhook_event.mark_failed("Could not be queued")
        webhook_event.save(update_fields=["status", "error_message", "updated_at"])

    return HttpResponse("Accepted", status=200)
