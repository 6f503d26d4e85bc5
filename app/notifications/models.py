"""
Notification system models.

This module defines the core models for the notification system:
- NotificationType: Configuration for notification types with templates
- Notification: Individual notifications sent to users (the in-app inbox)
- UserGlobalPreference: Global notification mute setting per user
- UserCategoryPreference: Category-level notification preferences
- UserNotificationPreference: Type-level notification preferences
- NotificationDelivery: Per-channel delivery tracking

Design Decisions:
    - NotificationType uses integer PK (internal lookup table, seeded by migration)
    - GenericForeignKey links a notification to its source (order, refund, ...)
    - Preference hierarchy: Global -> Category -> Type -> Channel
    - Delivery records track status per channel for retry and support tooling

Usage:
    from notifications.models import Notification

    unread = Notification.objects.filter(recipient=user, is_read=False)
"""

from __future__ import annotations

from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models

from core.models import BaseModel, UUIDPrimaryKeyMixin


# =============================================================================
# Enums
# =============================================================================


class NotificationCategory(models.TextChoices):
    """
    Categories for grouping notification types.

    Transactional notifications (order, return, refund, shipping updates)
    can be muted per channel but are on by default.
    """

    TRANSACTIONAL = "transactional", "Transactional"
    MARKETING = "marketing", "Marketing"
    SYSTEM = "system", "System"


class DeliveryChannel(models.TextChoices):
    """Delivery channels for notifications."""

    EMAIL = "email", "Email"
    SMS = "sms", "SMS"
    IN_APP = "in_app", "In-App"


class DeliveryStatus(models.TextChoices):
    """
    Status of a notification delivery attempt.

    State Flow:
        PENDING -> SENT
        PENDING -> FAILED (permanent error or retries exhausted)
        SKIPPED (user preference disabled or no delivery target)
    """

    PENDING = "pending", "Pending"
    SENT = "sent", "Sent"
    FAILED = "failed", "Failed"
    SKIPPED = "skipped", "Skipped"


class SkipReason(models.TextChoices):
    """Standardized reasons for skipped deliveries."""

    GLOBAL_DISABLED = "global_disabled", "Global notifications disabled"
    CATEGORY_DISABLED = "category_disabled", "Category disabled"
    TYPE_DISABLED = "type_disabled", "Type disabled"
    CHANNEL_DISABLED = "channel_disabled", "Channel disabled by user"
    NO_EMAIL = "no_email", "No email address"
    NO_PHONE = "no_phone", "No phone number"
    SMS_DISABLED = "sms_disabled", "SMS gateway disabled"


# =============================================================================
# Configuration Models
# =============================================================================


class NotificationType(models.Model):
    """
    Lookup table for notification type definitions.

    Fields:
        key: Unique programmatic identifier (e.g., "refund_processed")
        display_name: Human-readable name for admin/UI display
        title_template: Python format string for notification title
        body_template: Python format string for notification body
        is_active: Whether this notification type is currently enabled
        supports_email / supports_sms / supports_in_app: channel support

    Note:
        Templates use Python str.format() syntax and missing placeholders
        raise KeyError during rendering.
    """

    key = models.CharField(
        max_length=100,
        unique=True,
        help_text="Unique programmatic identifier (e.g., 'order_confirmed')",
    )
    display_name = models.CharField(max_length=200)
    title_template = models.CharField(
        max_length=500,
        blank=True,
        default="",
        help_text="Format string for title (e.g., 'Order {order_number} confirmed')",
    )
    body_template = models.TextField(
        blank=True,
        default="",
        help_text="Format string for body",
    )
    is_active = models.BooleanField(default=True, db_index=True)

    supports_email = models.BooleanField(default=True)
    supports_sms = models.BooleanField(default=False)
    supports_in_app = models.BooleanField(default=True)

    category = models.CharField(
        max_length=20,
        choices=NotificationCategory.choices,
        default=NotificationCategory.TRANSACTIONAL,
        db_index=True,
    )

    class Meta:
        db_table = "notifications_notification_type"
        verbose_name = "notification type"
        verbose_name_plural = "notification types"
        ordering = ["key"]

    def __str__(self) -> str:
        return f"{self.display_name} ({self.key})"

    def supports(self, channel: str) -> bool:
        return getattr(self, f"supports_{channel}", False)


class Notification(UUIDPrimaryKeyMixin, BaseModel):
    """
    Individual notification record for a user.

    Title and body are fully rendered strings kept as the historical record.
    The record itself is the in-app inbox entry.
    """

    notification_type = models.ForeignKey(
        NotificationType,
        on_delete=models.PROTECT,
        related_name="notifications",
    )
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    title = models.CharField(max_length=500)
    body = models.TextField(blank=True, default="")
    data = models.JSONField(
        default=dict,
        blank=True,
        help_text="Template context and deep-link data",
    )

    content_type = models.ForeignKey(
        ContentType,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    object_id = models.CharField(
        max_length=36,
        null=True,
        blank=True,
        help_text="ID of source object (supports UUID and integer PKs)",
    )
    source_object = GenericForeignKey("content_type", "object_id")

    is_read = models.BooleanField(default=False, db_index=True)
    read_at = models.DateTimeField(null=True, blank=True)

    idempotency_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Idempotency key to prevent duplicate notifications",
    )

    class Meta:
        db_table = "notifications_notification"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["recipient", "is_read", "-created_at"],
                name="notif_recipient_unread_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["idempotency_key"],
                name="notif_idempotency_key_unique",
                condition=models.Q(idempotency_key__isnull=False),
            ),
        ]

    def __str__(self) -> str:
        read_status = "read" if self.is_read else "unread"
        return f"Notification({self.notification_type_id}) -> User {self.recipient_id} [{read_status}]"


# =============================================================================
# Preference Models
# =============================================================================


class UserGlobalPreference(BaseModel):
    """
    Global notification preferences for a user.

    If all_disabled is True, all notifications are suppressed regardless
    of other preference settings. The in-app record is still created.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="notification_global_preference",
    )
    all_disabled = models.BooleanField(default=False)

    class Meta:
        db_table = "notifications_user_global_preference"

    def __str__(self) -> str:
        status = "disabled" if self.all_disabled else "enabled"
        return f"GlobalPreference(user={self.user_id}, {status})"


class UserCategoryPreference(BaseModel):
    """Category-level notification preferences (e.g., mute all marketing)."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notification_category_preferences",
    )
    category = models.CharField(max_length=20, choices=NotificationCategory.choices)
    disabled = models.BooleanField(default=False)

    class Meta:
        db_table = "notifications_user_category_preference"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "category"],
                name="unique_user_category_pref",
            ),
        ]

    def __str__(self) -> str:
        status = "disabled" if self.disabled else "enabled"
        return f"CategoryPreference(user={self.user_id}, {self.category}={status})"


class UserNotificationPreference(BaseModel):
    """
    Per-notification-type preferences for a user.

    Null channel values mean "inherit from NotificationType default".
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notification_type_preferences",
    )
    notification_type = models.ForeignKey(
        NotificationType,
        on_delete=models.CASCADE,
        related_name="user_preferences",
    )
    disabled = models.BooleanField(default=False)
    email_enabled = models.BooleanField(null=True, blank=True, default=None)
    sms_enabled = models.BooleanField(null=True, blank=True, default=None)

    class Meta:
        db_table = "notifications_user_notification_preference"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "notification_type"],
                name="unique_user_notif_type_pref",
            ),
        ]

    def __str__(self) -> str:
        status = "disabled" if self.disabled else "enabled"
        return f"TypePreference(user={self.user_id}, type={self.notification_type_id}, {status})"


# =============================================================================
# Delivery Tracking
# =============================================================================


class NotificationDelivery(UUIDPrimaryKeyMixin, BaseModel):
    """
    Tracks delivery status for each channel of a notification.

    One record per (notification, channel).
    """

    notification = models.ForeignKey(
        Notification,
        on_delete=models.CASCADE,
        related_name="deliveries",
    )
    channel = models.CharField(max_length=20, choices=DeliveryChannel.choices)
    status = models.CharField(
        max_length=20,
        choices=DeliveryStatus.choices,
        default=DeliveryStatus.PENDING,
        db_index=True,
    )

    sent_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)

    provider_message_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Message ID returned by the SMS gateway",
    )
    failure_reason = models.TextField(blank=True, default="")
    failure_code = models.CharField(max_length=50, blank=True, default="")
    is_permanent_failure = models.BooleanField(default=False)
    attempt_count = models.PositiveSmallIntegerField(default=0)

    skipped_reason = models.CharField(
        max_length=30,
        choices=SkipReason.choices,
        blank=True,
        default="",
    )

    class Meta:
        db_table = "notifications_notification_delivery"
        verbose_name_plural = "notification deliveries"
        constraints = [
            models.UniqueConstraint(
                fields=["notification", "channel"],
                name="unique_notification_channel",
            ),
        ]
        indexes = [
            models.Index(
                fields=["status", "channel", "-created_at"],
                name="notif_delivery_status_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Delivery({self.notification_id}, {self.channel}, {self.status})"
