"""
Serializers for notification API.

Serializers:
    NotificationSerializer: Inbox entry representation
    NotificationTypeSerializer: Available notification types
    GlobalPreferenceSerializer / TypePreferenceSerializer: Preference updates
    UserPreferencesResponseSerializer: Preference listing
"""

from __future__ import annotations

from rest_framework import serializers

from notifications.models import Notification, NotificationType


class NotificationSerializer(serializers.ModelSerializer):
    """Serializer for a notification in the user's inbox."""

    type_key = serializers.CharField(source="notification_type.key", read_only=True)
    category = serializers.CharField(source="notification_type.category", read_only=True)
    source_type = serializers.SerializerMethodField()

    class Meta:
        model = Notification
        fields = [
            "id",
            "type_key",
            "category",
            "title",
            "body",
            "data",
            "source_type",
            "object_id",
            "is_read",
            "read_at",
            "created_at",
        ]
        read_only_fields = fields

    def get_source_type(self, obj: Notification) -> str | None:
        if obj.content_type_id is None:
            return None
        return f"{obj.content_type.app_label}.{obj.content_type.model}"


class NotificationTypeSerializer(serializers.ModelSerializer):
    class Meta:
        model = NotificationType
        fields = [
            "key",
            "display_name",
            "category",
            "supports_email",
            "supports_sms",
            "supports_in_app",
        ]
        read_only_fields = fields


class UnreadCountSerializer(serializers.Serializer):
    unread_count = serializers.IntegerField()


class MarkAllReadResponseSerializer(serializers.Serializer):
    marked_count = serializers.IntegerField()


class GlobalPreferenceSerializer(serializers.Serializer):
    all_disabled = serializers.BooleanField()


class TypePreferenceSerializer(serializers.Serializer):
    """
    Type-level preference update.

    Omitted channel fields keep their stored value.
    """

    type_key = serializers.CharField(max_length=100)
    disabled = serializers.BooleanField(required=False)
    email_enabled = serializers.BooleanField(required=False, allow_null=True)
    sms_enabled = serializers.BooleanField(required=False, allow_null=True)


class TypePreferenceResponseSerializer(serializers.Serializer):
    type_key = serializers.CharField()
    type_name = serializers.CharField(required=False)
    disabled = serializers.BooleanField()
    email_enabled = serializers.BooleanField(allow_null=True)
    sms_enabled = serializers.BooleanField(allow_null=True)


class UserPreferencesResponseSerializer(serializers.Serializer):
    # Declared explicitly because "global" is a Python keyword
    def get_fields(self):
        return {
            "global": GlobalPreferenceSerializer(),
            "types": TypePreferenceResponseSerializer(many=True),
        }
