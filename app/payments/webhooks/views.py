"""
Stripe webhook endpoint.

The view only verifies, stores and queues. Processing happens in the
process_webhook_event task so Stripe gets its 2xx quickly.
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.adapters import StripeAdapter
from payments.exceptions import StripeInvalidRequestError
from payments.models import WebhookEvent

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive a Stripe webhook.

    Returns:
        200: event accepted, new or duplicate
        400: missing or invalid signature, malformed event
    """
    signature = request.headers.get("Stripe-Signature", "")
    if not signature:
        logger.warning("Webhook received without Stripe-Signature header")
        return HttpResponse("Missing signature", status=400)

    try:
        event_data = StripeAdapter.construct_webhook_event(request.body, signature)
    except StripeInvalidRequestError as e:
        logger.warning("Webhook verification failed", extra={"error": e.message})
        return HttpResponse("Invalid signature", status=400)

    stripe_event_id = event_data.get("id")
    event_type = event_data.get("type")
    if not stripe_event_id or not event_type:
        logger.warning("Webhook missing id or type")
        return HttpResponse("Invalid event", status=400)

    webhook_event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id=stripe_event_id,
        defaults={"event_type": event_type, "payload": event_data},
    )

    if not created:
        logger.info(
            f"Duplicate webhook {stripe_event_id} with status {webhook_event.status}",
            extra={"stripe_event_id": stripe_event_id},
        )
        return HttpResponse("Already received", status=200)

    logger.info(
        f"Received Stripe webhook: {event_type}",
        extra={"stripe_event_id": stripe_event_id, "event_type": event_type},
    )

    from payments.tasks import process_webhook_event

    try:
        process_webhook_event.delay(str(webhook_event.id))
    except Exception:
        # The stored row is picked up by retry_failed_webhooks
        logger.exception(
            "Failed to queue webhook",
            extra={"stripe_event_id": stripe_event_id},
        )
        webhook_event.mark_failed("Could not be queued")
        webhook_event.save(update_fields=["status", "error_message", "updated_at"])

    return HttpResponse("Accepted", status=200)

