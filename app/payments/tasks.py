"""
Celery tasks for Stripe webhook processing.

Usage:
    from payments.tasks import process_webhook_event

    process_webhook_event.delay(str(webhook_event.id))

retry_failed_webhooks and cleanup_stuck_webhooks are scheduled by
django-celery-beat (seeded in migrations).
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


STUCK_PROCESSING_THRESHOLD_MINUTES = 30
RETRY_BATCH_SIZE = 100


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": 5},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Dispatch a stored webhook event to its handler.

    A handler failure marks the event failed and returns. An unexpected
    exception marks it failed and is re-raised so Celery retries with
    backoff.
    """
    from payments.webhooks.handlers import dispatch_webhook

    webhook_event = WebhookEvent.objects.filter(id=webhook_event_id).first()
    if webhook_event is None:
        logger.error("WebhookEvent not found", extra={"webhook_event_id": str(webhook_event_id)})
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if webhook_event.is_processed:
        return {"status": "already_processed", "webhook_event_id": str(webhook_event.id)}

    webhook_event.mark_processing()
    webhook_event.save(update_fields=["status", "attempts", "updated_at"])

    log_context = {
        "webhook_event_id": str(webhook_event.id),
        "stripe_event_id": webhook_event.stripe_event_id,
        "event_type": webhook_event.event_type,
        "attempts": webhook_event.attempts,
    }

    try:
        result = dispatch_webhook(webhook_event)
    except Exception as e:
        webhook_event.mark_failed(f"{type(e).__name__}: {e}")
        webhook_event.save(update_fields=["status", "error_message", "updated_at"])
        logger.exception("Webhook processing raised", extra=log_context)
        raise

    if not result.success:
        error_msg = result.error or "Handler returned failure"
        webhook_event.mark_failed(error_msg)
        webhook_event.save(update_fields=["status", "error_message", "updated_at"])
        logger.warning(
            f"Webhook handler failed: {error_msg}",
            extra={**log_context, "error_code": result.error_code},
        )
        return {"status": "handler_failed", "webhook_event_id": str(webhook_event.id), "error": error_msg}

    webhook_event.mark_processed()
    webhook_event.save(update_fields=["status", "processed_at", "error_message", "updated_at"])
    logger.info("Webhook processed", extra=log_context)
    return {"status": "processed", "webhook_event_id": str(webhook_event.id)}


@shared_task
def retry_failed_webhooks() -> dict:
    """Re-queue failed webhook events that are below the attempt cap."""
    max_attempts = getattr(settings, "STRIPE_WEBHOOK_MAX_ATTEMPTS", 5)
    failed = WebhookEvent.objects.filter(
        status=WebhookEventStatus.FAILED,
        attempts__lt=max_attempts,
    ).order_by("created_at")[:RETRY_BATCH_SIZE]

    queued_count = 0
    for webhook_event in failed:
        process_webhook_event.delay(str(webhook_event.id))
        queued_count += 1

    if queued_count:
        logger.info(f"Queued {queued_count} failed webhooks for retry", extra={"queued_count": queued_count})
    return {"queued_count": queued_count}


@shared_task
def cleanup_stuck_webhooks() -> dict:
    """
    Fail events stuck in PROCESSING after a worker crash.

    They are then picked up by retry_failed_webhooks.
    """
    threshold = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES)
    reset_count = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSING,
        updated_at__lt=threshold,
    ).update(
        status=WebhookEventStatus.FAILED,
        error_message="Processing timed out - reset for retry",
    )

    if reset_count:
        logger.warning(f"Reset {reset_count} stuck webhooks", extra={"reset_count": reset_count})
    return {"reset_count": reset_count}
