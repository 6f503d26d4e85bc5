"""
WebhookEvent model for idempotent Stripe webhook processing.

Every verified event is stored once, keyed by its Stripe event id. A
redelivered event finds the existing row and is not processed twice.

Usage:
    event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id="evt_123",
        defaults={"event_type": "charge.refunded", "payload": payload},
    )
    if created:
        process_webhook_event.delay(str(event.id))
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import BaseModel, UUIDPrimaryKeyMixin
from payments.state_machines import WebhookEventStatus


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    A Stripe webhook event and its processing status.

    Processing Flow:
        1. View verifies the signature and get_or_creates the row
        2. process_webhook_event marks it PROCESSING (attempts += 1)
        3. The registered handler runs
        4. Row becomes PROCESSED, or FAILED with error_message
        5. retry_failed_webhooks re-queues FAILED rows below the attempt cap
    """

    stripe_event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe Event ID (evt_xxx)",
    )
    event_type = models.CharField(max_length=100, db_index=True)
    payload = models.JSONField(help_text="Full event payload from Stripe")

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
    )
    attempts = models.PositiveSmallIntegerField(default=0)
    error_message = models.TextField(blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "attempts"], name="webhook_status_attempts_idx"),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.stripe_event_id}, {self.event_type})"

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def can_retry(self) -> bool:
        max_attempts = getattr(settings, "STRIPE_WEBHOOK_MAX_ATTEMPTS", 5)
        return self.status == WebhookEventStatus.FAILED and self.attempts < max_attempts

    @property
    def data_object(self) -> dict:
        """The ``data.object`` of the event, or an empty dict."""
        data = (self.payload or {}).get("data") or {}
        return data.get("object") or {}

    # Helpers below do not save; the caller saves.

    def mark_processing(self) -> None:
        self.status = WebhookEventStatus.PROCESSING
        self.attempts += 1

    def mark_processed(self) -> None:
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = ""

    def mark_failed(self, error_message: str) -> None:
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message
