"""
Notification service layer.

Services:
    NotificationService: Notification creation and read status management
    PreferenceService: User notification preference management

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return ServiceResult.failure()
    - Template rendering raises KeyError on missing placeholders
    - Email and SMS tasks are enqueued after commit, in-app is delivered inline

Usage:
    from notifications.services import NotificationService, PreferenceService

    result = NotificationService.create_notification(
        recipient=order.user,
        type_key="order_confirmed",
        data={"order_number": order.number, "total": "49.99 USD"},
        source_object=order,
        idempotency_key=f"order_confirmed:{order.id}",
    )

    result = PreferenceService.set_global_preference(user, all_disabled=True)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.contrib.contenttypes.models import ContentType
from django.db import transaction
from django.utils import timezone

from core.services import BaseService, ServiceResult

from notifications.models import (
    DeliveryChannel,
    DeliveryStatus,
    Notification,
    NotificationDelivery,
    NotificationType,
    SkipReason,
    UserGlobalPreference,
    UserNotificationPreference,
)
from notifications.preferences import PreferenceResolver, ResolvedPreferences

if TYPE_CHECKING:
    from django.db.models import Model

    from authentication.models import User

logger = logging.getLogger(__name__)


class NotificationService(BaseService):
    """
    Service for notification operations.

    Methods:
        create_notification: Create a notification and its delivery records
        mark_as_read: Mark a single notification as read
        mark_all_as_read: Mark all user's unread notifications as read
    """

    @classmethod
    def create_notification(
        cls,
        recipient: User,
        type_key: str,
        data: dict | None = None,
        title: str | None = None,
        body: str | None = None,
        source_object: Model | None = None,
        idempotency_key: str | None = None,
    ) -> ServiceResult[Notification]:
        """
        Create a new notification for a user.

        If title/body are not provided, templates from NotificationType are
        rendered using the data dict.

        Implementation:
            1. Look up NotificationType by key and check it is active
            2. Idempotency check (if key provided)
            3. Resolve user preferences
            4. Create notification with one delivery per supported channel
            5. Enqueue email/SMS tasks for PENDING deliveries after commit

        Error codes:
            TYPE_NOT_FOUND: Notification type key doesn't exist
            TYPE_INACTIVE: Notification type is deactivated
            DUPLICATE: Notification with this idempotency_key already exists

        Raises:
            KeyError: If template placeholder is missing from data
        """
        from notifications import tasks

        data = data or {}

        try:
            notification_type = NotificationType.objects.get(key=type_key)
        except NotificationType.DoesNotExist:
            cls.get_logger().warning(f"Notification type not found: {type_key}")
            return ServiceResult.failure(
                f"Notification type not found: {type_key}",
                error_code="TYPE_NOT_FOUND",
            )

        if not notification_type.is_active:
            cls.get_logger().info(f"Notification type inactive: {type_key} - skipping creation")
            return ServiceResult.failure(
                f"Notification type is inactive: {type_key}",
                error_code="TYPE_INACTIVE",
            )

        if idempotency_key and Notification.objects.filter(idempotency_key=idempotency_key).exists():
            cls.get_logger().info(f"Duplicate notification prevented: idempotency_key={idempotency_key}")
            return ServiceResult.failure(
                f"Notification with idempotency_key already exists: {idempotency_key}",
                error_code="DUPLICATE",
            )

        prefs = PreferenceResolver.resolve(recipient, notification_type)
        if prefs.blocked:
            cls.get_logger().info(f"User {recipient.id} has blocked notifications: {prefs.blocked_reason}")

        rendered_title = title or notification_type.title_template.format(**data)
        rendered_body = body or notification_type.body_template.format(**data)

        content_type = None
        object_id = None
        if source_object is not None:
            content_type = ContentType.objects.get_for_model(source_object)
            object_id = str(source_object.pk)

        with transaction.atomic():
            notification = Notification.objects.create(
                notification_type=notification_type,
                recipient=recipient,
                title=rendered_title,
                body=rendered_body,
                data=data,
                content_type=content_type,
                object_id=object_id,
                idempotency_key=idempotency_key,
            )

            deliveries = [
                cls._build_delivery(notification, channel, prefs, recipient)
                for channel in DeliveryChannel.values
                if notification_type.supports(channel)
            ]
            NotificationDelivery.objects.bulk_create(deliveries)

            for delivery in deliveries:
                if delivery.status != DeliveryStatus.PENDING:
                    continue
                delivery_id = str(delivery.id)
                if delivery.channel == DeliveryChannel.EMAIL:
                    transaction.on_commit(
                        lambda pk=delivery_id: tasks.send_email_notification.delay(pk)
                    )
                elif delivery.channel == DeliveryChannel.SMS:
                    transaction.on_commit(
                        lambda pk=delivery_id: tasks.send_sms_notification.delay(pk)
                    )

        cls.get_logger().info(
            f"Created notification {notification.id} of type {type_key} "
            f"for user {recipient.id} with {len(deliveries)} delivery records"
        )
        return ServiceResult.success(notification)

    @staticmethod
    def _build_delivery(
        notification: Notification,
        channel: str,
        prefs: ResolvedPreferences,
        recipient: User,
    ) -> NotificationDelivery:
        delivery = NotificationDelivery(notification=notification, channel=channel)

        if prefs.blocked:
            delivery.status = DeliveryStatus.SKIPPED
            delivery.skipped_reason = prefs.blocked_reason or SkipReason.GLOBAL_DISABLED
        elif not prefs.is_channel_enabled(channel):
            delivery.status = DeliveryStatus.SKIPPED
            delivery.skipped_reason = SkipReason.CHANNEL_DISABLED
        elif channel == DeliveryChannel.EMAIL and not recipient.email:
            delivery.status = DeliveryStatus.SKIPPED
            delivery.skipped_reason = SkipReason.NO_EMAIL
        elif channel == DeliveryChannel.SMS and not recipient.phone_number:
            delivery.status = DeliveryStatus.SKIPPED
            delivery.skipped_reason = SkipReason.NO_PHONE
        elif channel == DeliveryChannel.IN_APP:
            # The notification row is the inbox entry
            delivery.status = DeliveryStatus.SENT
            delivery.sent_at = timezone.now()
            delivery.attempt_count = 1
        else:
            delivery.status = DeliveryStatus.PENDING

        return delivery

    @classmethod
    def mark_as_read(
        cls,
        notification: Notification,
        user: User,
    ) -> ServiceResult[Notification]:
        """
        Mark a single notification as read.

        Idempotent. Marking an already-read notification succeeds.

        Error codes:
            NOT_OWNER: User doesn't own the notification
        """
        if notification.recipient_id != user.id:
            cls.get_logger().warning(
                f"User {user.id} attempted to mark notification {notification.id} "
                f"owned by user {notification.recipient_id}"
            )
            return ServiceResult.failure(
                "Cannot mark notification you don't own",
                error_code="NOT_OWNER",
            )

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = timezone.now()
            notification.save(update_fields=["is_read", "read_at", "updated_at"])

        return ServiceResult.success(notification)

    @classmethod
    def mark_all_as_read(cls, user: User) -> ServiceResult[int]:
        """Mark all unread notifications of a user as read in one query."""
        count = Notification.objects.filter(recipient=user, is_read=False).update(
            is_read=True,
            read_at=timezone.now(),
        )
        cls.get_logger().info(f"Marked {count} notifications as read for user {user.id}")
        return ServiceResult.success(count)


class PreferenceService(BaseService):
    """User notification preference management."""

    @classmethod
    def get_user_preferences(cls, user: User) -> ServiceResult[dict]:
        """
        Get all notification preferences for a user.

        Returns:
            ServiceResult with preferences dict:
            {
                "global": {"all_disabled": bool},
                "types": [{"type_key": str, "disabled": bool,
                          "email_enabled": bool|None, "sms_enabled": bool|None}, ...]
            }
        """
        global_pref = UserGlobalPreference.objects.filter(user=user).first()
        type_prefs = UserNotificationPreference.objects.filter(user=user).select_related(
            "notification_type"
        )

        return ServiceResult.success(
            {
                "global": {"all_disabled": bool(global_pref and global_pref.all_disabled)},
                "types": [
                    {
                        "type_key": pref.notification_type.key,
                        "type_name": pref.notification_type.display_name,
                        "disabled": pref.disabled,
                        "email_enabled": pref.email_enabled,
                        "sms_enabled": pref.sms_enabled,
                    }
                    for pref in type_prefs
                ],
            }
        )

    @classmethod
    def set_global_preference(
        cls,
        user: User,
        all_disabled: bool,
    ) -> ServiceResult[UserGlobalPreference]:
        pref, created = UserGlobalPreference.objects.update_or_create(
            user=user,
            defaults={"all_disabled": all_disabled},
        )
        PreferenceResolver.invalidate_cache(user.id)

        cls.get_logger().info(
            f"Global preference {'created' if created else 'updated'} for user {user.id}: "
            f"all_disabled={all_disabled}"
        )
        return ServiceResult.success(pref)

    @classmethod
    def set_type_preference(
        cls,
        user: User,
        type_key: str,
        disabled: bool | None = None,
        email_enabled: bool | None = None,
        sms_enabled: bool | None = None,
    ) -> ServiceResult[UserNotificationPreference]:
        """
        Update type-level preferences for a user.

        Channel values of None leave the stored override untouched.

        Error codes:
            TYPE_NOT_FOUND: Notification type key doesn't exist
        """
        try:
            notification_type = NotificationType.objects.get(key=type_key)
        except NotificationType.DoesNotExist:
            return ServiceResult.failure(
                f"Notification type not found: {type_key}",
                error_code="TYPE_NOT_FOUND",
            )

        values = {
            "disabled": disabled,
            "email_enabled": email_enabled,
            "sms_enabled": sms_enabled,
        }
        defaults = {key: value for key, value in values.items() if value is not None}

        pref, created = UserNotificationPreference.objects.update_or_create(
            user=user,
            notification_type=notification_type,
            defaults=defaults,
        )
        PreferenceResolver.invalidate_cache(user.id, notification_type.id)

        cls.get_logger().info(
            f"Type preference {'created' if created else 'updated'} for user {user.id}: "
            f"type={type_key}, disabled={pref.disabled}"
        )
        return ServiceResult.success(pref)
