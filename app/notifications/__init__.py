"""
Notifications app for customer-facing order, return and refund updates.

This app provides:
- NotificationType model for notification templates and channel support
- Notification model, which doubles as the in-app inbox
- NotificationService for centralized notification creation
- Celery tasks for email and SMS delivery
- notify helpers for order lifecycle events

Usage:
    from notifications import notify

    notify.order_confirmed(order)
"""
