"""
Celery tasks for notification delivery.

Tasks:
    send_email_notification: Deliver notification via Django mail
    send_sms_notification: Deliver notification via the SMS gateway

Design:
    - Tasks receive delivery_id (UUID string) instead of notification_id
    - Each task updates the NotificationDelivery status
    - Permanent errors (4xx, invalid recipient) are recorded, not retried
    - Transient errors (timeouts, 5xx) are raised for autoretry with backoff
    - Tasks are idempotent: re-running on non-PENDING delivery is a no-op

Usage:
    from notifications.tasks import send_email_notification

    # Called after commit by NotificationService.create_notification()
    send_email_notification.delay(delivery_id="uuid-string")
"""

from __future__ import annotations

import logging
import smtplib

import requests
from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone as django_timezone

from notifications.models import (
    DeliveryStatus,
    NotificationDelivery,
    SkipReason,
)

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """Delivery failure classified as permanent or transient."""

    def __init__(self, message: str, code: str, is_permanent: bool = False):
        super().__init__(message)
        self.code = code
        self.is_permanent = is_permanent


def _get_delivery(delivery_id: str) -> NotificationDelivery | None:
    """
    Fetch delivery with related notification.

    Returns None if delivery not found or not in PENDING status.
    """
    try:
        delivery = NotificationDelivery.objects.select_related(
            "notification",
            "notification__recipient",
            "notification__notification_type",
        ).get(id=delivery_id)
    except NotificationDelivery.DoesNotExist:
        logger.warning(f"Delivery {delivery_id} not found")
        return None

    if delivery.status != DeliveryStatus.PENDING:
        logger.info(f"Delivery {delivery_id} status is {delivery.status}, skipping")
        return None
    return delivery


def _mark_sent(delivery: NotificationDelivery, provider_message_id: str | None = None) -> None:
    delivery.status = DeliveryStatus.SENT
    delivery.sent_at = django_timezone.now()
    delivery.provider_message_id = provider_message_id
    delivery.attempt_count += 1
    delivery.save(
        update_fields=["status", "sent_at", "provider_message_id", "attempt_count", "updated_at"]
    )


def _mark_failed(delivery: NotificationDelivery, error: DeliveryError) -> None:
    delivery.status = DeliveryStatus.FAILED
    delivery.failed_at = django_timezone.now()
    delivery.failure_reason = str(error)
    delivery.failure_code = error.code
    delivery.is_permanent_failure = error.is_permanent
    delivery.attempt_count += 1
    delivery.save(
        update_fields=[
            "status",
            "failed_at",
            "failure_reason",
            "failure_code",
            "is_permanent_failure",
            "attempt_count",
            "updated_at",
        ]
    )


def _mark_skipped(delivery: NotificationDelivery, reason: str) -> None:
    delivery.status = DeliveryStatus.SKIPPED
    delivery.skipped_reason = reason
    delivery.save(update_fields=["status", "skipped_reason", "updated_at"])


def _record_transient_attempt(delivery: NotificationDelivery, error: Exception) -> None:
    delivery.attempt_count += 1
    delivery.failure_reason = str(error)
    delivery.save(update_fields=["attempt_count", "failure_reason", "updated_at"])


# =============================================================================
# Channel senders
# =============================================================================


def _send_email(delivery: NotificationDelivery) -> str | None:
    notification = delivery.notification
    try:
        send_mail(
            subject=notification.title,
            message=notification.body,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[notification.recipient.email],
            fail_silently=False,
        )
    except smtplib.SMTPRecipientsRefused as e:
        raise DeliveryError(str(e), code="invalid_recipient", is_permanent=True) from e
    except (smtplib.SMTPException, OSError) as e:
        raise DeliveryError(str(e), code="provider_unavailable") from e
    return None


def _send_sms(delivery: NotificationDelivery) -> str | None:
    notification = delivery.notification
    payload = {
        "to": notification.recipient.phone_number,
        "from": settings.SMS_SENDER_ID,
        "message": f"{notification.title}\n{notification.body}".strip(),
    }
    try:
        response = requests.post(
            settings.SMS_GATEWAY_URL,
            json=payload,
            headers={"Authorization": f"Bearer {settings.SMS_GATEWAY_API_KEY}"},
            timeout=settings.SMS_TIMEOUT_SECONDS,
        )
    except requests.Timeout as e:
        raise DeliveryError(str(e), code="timeout") from e
    except requests.ConnectionError as e:
        raise DeliveryError(str(e), code="connection_error") from e

    if response.status_code >= 500:
        raise DeliveryError(
            f"SMS gateway returned {response.status_code}",
            code="provider_unavailable",
        )
    if response.status_code >= 400:
        raise DeliveryError(
            f"SMS gateway rejected message: {response.status_code} {response.text[:200]}",
            code="invalid_recipient",
            is_permanent=True,
        )

    try:
        return response.json().get("message_id")
    except ValueError:
        return None


def _deliver(delivery: NotificationDelivery, sender, channel_label: str) -> bool:
    delivery_id = str(delivery.id)
    try:
        provider_message_id = sender(delivery)
    except DeliveryError as e:
        if e.is_permanent:
            _mark_failed(delivery, e)
            logger.warning(
                f"{channel_label} notification permanently failed for delivery {delivery_id}: "
                f"{e.code} - {e}"
            )
            return False
        _record_transient_attempt(delivery, e)
        logger.warning(
            f"{channel_label} notification transiently failed for delivery {delivery_id}: "
            f"{e.code} - {e}, will retry"
        )
        raise

    _mark_sent(delivery, provider_message_id)
    logger.info(f"{channel_label} notification sent for delivery {delivery_id}")
    return True


# =============================================================================
# Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(DeliveryError,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def send_email_notification(self, delivery_id: str) -> bool:
    """
    Send notification via email.

    Returns:
        True if sent or skipped, False on permanent failure

    Raises:
        DeliveryError: On transient failure (triggers retry)
    """
    delivery = _get_delivery(delivery_id)
    if delivery is None:
        return True

    if not delivery.notification.recipient.email:
        _mark_skipped(delivery, SkipReason.NO_EMAIL)
        return True

    return _deliver(delivery, _send_email, "Email")


@shared_task(
    bind=True,
    autoretry_for=(DeliveryError,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def send_sms_notification(self, delivery_id: str) -> bool:
    """
    Send notification through the SMS gateway.

    Skipped when SMS_ENABLED is off or the recipient has no phone number.
    """
    delivery = _get_delivery(delivery_id)
    if delivery is None:
        return True

    if not settings.SMS_ENABLED or not settings.SMS_GATEWAY_URL:
        _mark_skipped(delivery, SkipReason.SMS_DISABLED)
        logger.info(f"SMS delivery {delivery_id} skipped: gateway disabled")
        return True

    if not delivery.notification.recipient.phone_number:
        _mark_skipped(delivery, SkipReason.NO_PHONE)
        return True

    return _deliver(delivery, _send_sms, "SMS")
