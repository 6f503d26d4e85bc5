"""
Tests for payments app.

This package contains test modules for:
- test_models.py: Payment, Refund and WebhookEvent state machines
- test_locks.py: DistributedLock and version checks
- test_payment_service.py: PaymentIntent creation and outcomes
- test_refund_gateway.py, test_refund_processor.py: refunds and reconciliation
- test_handlers.py, test_webhook_view.py: Stripe webhook intake and dispatch
- test_tasks.py: Celery tasks
- test_views.py: API endpoint tests

Usage:
    pytest payments/tests/
    pytest payments/tests/test_refund_processor.py
"""
