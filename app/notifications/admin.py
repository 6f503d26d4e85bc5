"""Django admin configuration for notification models."""

from django.contrib import admin

from notifications.models import (
    Notification,
    NotificationDelivery,
    NotificationType,
    UserGlobalPreference,
    UserNotificationPreference,
)


@admin.register(NotificationType)
class NotificationTypeAdmin(admin.ModelAdmin):
    list_display = [
        "key",
        "display_name",
        "category",
        "is_active",
        "supports_email",
        "supports_sms",
        "supports_in_app",
    ]
    list_filter = ["is_active", "category", "supports_email", "supports_sms"]
    search_fields = ["key", "display_name"]
    ordering = ["category", "key"]
    fieldsets = (
        (None, {"fields": ("key", "display_name", "category", "is_active")}),
        ("Templates", {"fields": ("title_template", "body_template")}),
        ("Channel Support", {"fields": ("supports_email", "supports_sms", "supports_in_app")}),
    )


class NotificationDeliveryInline(admin.TabularInline):
    model = NotificationDelivery
    extra = 0
    can_delete = False
    readonly_fields = [
        "channel",
        "status",
        "skipped_reason",
        "attempt_count",
        "sent_at",
        "failed_at",
        "failure_code",
        "failure_reason",
    ]


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """Read-only view of notifications for support."""

    list_display = ["id", "notification_type", "recipient", "title", "is_read", "created_at"]
    list_filter = ["notification_type", "is_read"]
    search_fields = ["title", "recipient__email", "idempotency_key"]
    raw_id_fields = ["recipient"]
    readonly_fields = ["created_at", "updated_at", "read_at", "idempotency_key"]
    inlines = [NotificationDeliveryInline]


@admin.register(NotificationDelivery)
class NotificationDeliveryAdmin(admin.ModelAdmin):
    list_display = ["id", "notification", "channel", "status", "attempt_count", "created_at"]
    list_filter = ["channel", "status", "is_permanent_failure"]
    search_fields = ["provider_message_id", "notification__recipient__email"]
    raw_id_fields = ["notification"]


@admin.register(UserGlobalPreference)
class UserGlobalPreferenceAdmin(admin.ModelAdmin):
    list_display = ["user", "all_disabled", "updated_at"]
    list_filter = ["all_disabled"]
    raw_id_fields = ["user"]


@admin.register(UserNotificationPreference)
class UserNotificationPreferenceAdmin(admin.ModelAdmin):
    list_display = ["user", "notification_type", "disabled", "email_enabled", "sms_enabled"]
    list_filter = ["notification_type", "disabled"]
    raw_id_fields = ["user"]
