"""
Tests for webhook Celery tasks.
"""

from datetime import timedelta
from uuid import uuid4

import pytest
from django.utils import timezone
from freezegun import freeze_time

from core.services import ServiceResult
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus
from payments.tasks import cleanup_stuck_webhooks, process_webhook_event, retry_failed_webhooks
from payments.tests.factories import WebhookEventFactory


@pytest.fixture
def mock_dispatch(mocker):
    return mocker.patch(
        "payments.webhooks.handlers.dispatch_webhook",
        return_value=ServiceResult.success(None),
    )


@pytest.mark.django_db
class TestProcessWebhookEvent:
    def test_processes_pending_event(self, mock_dispatch):
        event = WebhookEventFactory()

        result = process_webhook_event(str(event.id))

        assert result["status"] == "processed"
        event.refresh_from_db()
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.attempts == 1
        assert event.processed_at is not None
        mock_dispatch.assert_called_once()

    def test_already_processed_is_skipped(self, mock_dispatch):
        event = WebhookEventFactory(status=WebhookEventStatus.PROCESSED, attempts=1)

        result = process_webhook_event(str(event.id))

        assert result["status"] == "already_processed"
        mock_dispatch.assert_not_called()

    def test_missing_event(self, mock_dispatch):
        result = process_webhook_event(str(uuid4()))

        assert result["status"] == "not_found"
        mock_dispatch.assert_not_called()

    def test_handler_failure_marks_failed(self, mock_dispatch):
        mock_dispatch.return_value = ServiceResult.failure("Lock busy", error_code="LOCK_FAILED")
        event = WebhookEventFactory(status=WebhookEventStatus.FAILED, attempts=2)

        result = process_webhook_event(str(event.id))

        assert result["status"] == "handler_failed"
        event.refresh_from_db()
        assert event.status == WebhookEventStatus.FAILED
        assert event.error_message == "Lock busy"
        assert event.attempts == 3

    def test_exception_marks_failed_and_raises(self, mock_dispatch):
        mock_dispatch.side_effect = RuntimeError("database went away")
        event = WebhookEventFactory()

        with pytest.raises(RuntimeError):
            process_webhook_event(str(event.id))

        event.refresh_from_db()
        assert event.status == WebhookEventStatus.FAILED
        assert event.error_message == "RuntimeError: database went away"


@pytest.mark.django_db
class TestRetryFailedWebhooks:
    def test_queues_failed_events_below_cap(self, mocker, settings):
        settings.STRIPE_WEBHOOK_MAX_ATTEMPTS = 3
        delay = mocker.patch("payments.tasks.process_webhook_event.delay")
        retryable = WebhookEventFactory(status=WebhookEventStatus.FAILED, attempts=2)
        WebhookEventFactory(status=WebhookEventStatus.FAILED, attempts=3)
        WebhookEventFactory(status=WebhookEventStatus.PROCESSED, attempts=1)

        result = retry_failed_webhooks()

        assert result == {"queued_count": 1}
        delay.assert_called_once_with(str(retryable.id))

    def test_nothing_to_retry(self, mocker):
        delay = mocker.patch("payments.tasks.process_webhook_event.delay")

        assert retry_failed_webhooks() == {"queued_count": 0}
        delay.assert_not_called()


@pytest.mark.django_db
class TestCleanupStuckWebhooks:
    def test_resets_old_processing_events(self):
        with freeze_time(timezone.now() - timedelta(hours=1)):
            stuck = WebhookEventFactory(status=WebhookEventStatus.PROCESSING, attempts=1)
        recent = WebhookEventFactory(status=WebhookEventStatus.PROCESSING, attempts=1)

        result = cleanup_stuck_webhooks()

        assert result == {"reset_count": 1}
        stuck = WebhookEvent.objects.get(pk=stuck.pk)
        assert stuck.status == WebhookEventStatus.FAILED
        assert stuck.error_message == "Processing timed out - reset for retry"
        assert WebhookEvent.objects.get(pk=recent.pk).status == WebhookEventStatus.PROCESSING
