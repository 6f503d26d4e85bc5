"""
Views for notification API.

ViewSets:
    NotificationViewSet: Inbox listing with read-status actions
    PreferenceViewSet: User notification preferences
    NotificationTypeViewSet: Available notification types

Endpoints:
    GET  /api/v1/notifications/                      - List own notifications
    GET  /api/v1/notifications/{id}/                 - Notification detail
    GET  /api/v1/notifications/unread-count/         - Unread badge count
    POST /api/v1/notifications/{id}/read/            - Mark one as read
    POST /api/v1/notifications/read-all/             - Mark all as read
    GET  /api/v1/notifications/preferences/          - List preferences
    PATCH /api/v1/notifications/preferences/global/  - Update global mute
    PATCH /api/v1/notifications/preferences/type/    - Update type preference
    GET  /api/v1/notifications/types/                - List notification types
"""

from __future__ import annotations

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
)

from notifications.models import Notification, NotificationType
from notifications.serializers import (
    GlobalPreferenceSerializer,
    MarkAllReadResponseSerializer,
    NotificationSerializer,
    NotificationTypeSerializer,
    TypePreferenceResponseSerializer,
    TypePreferenceSerializer,
    UnreadCountSerializer,
    UserPreferencesResponseSerializer,
)
from notifications.services import NotificationService, PreferenceService


@extend_schema_view(
    list=extend_schema(
        operation_id="list_notifications",
        summary="List notifications",
        parameters=[
            OpenApiParameter(
                name="is_read",
                type=bool,
                location=OpenApiParameter.QUERY,
                description="Filter by read status (true/false)",
                required=False,
            ),
            OpenApiParameter(
                name="type",
                type=str,
                location=OpenApiParameter.QUERY,
                description="Filter by notification type key",
                required=False,
            ),
        ],
        tags=["Notifications - Inbox"],
    ),
    retrieve=extend_schema(
        operation_id="get_notification",
        summary="Get notification",
        tags=["Notifications - Inbox"],
    ),
)
class NotificationViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Inbox of the authenticated user.

    Users only ever see their own notifications.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = NotificationSerializer

    def get_queryset(self):
        queryset = Notification.objects.filter(recipient=self.request.user).select_related(
            "notification_type", "content_type"
        )

        is_read = self.request.query_params.get("is_read")
        if is_read is not None:
            queryset = queryset.filter(is_read=is_read.lower() == "true")

        type_key = self.request.query_params.get("type")
        if type_key:
            queryset = queryset.filter(notification_type__key=type_key)

        return queryset

    @extend_schema(
        operation_id="get_unread_notification_count",
        summary="Get unread notification count",
        responses={200: UnreadCountSerializer},
        tags=["Notifications - Inbox"],
    )
    @action(detail=False, methods=["get"], url_path="unread-count")
    def unread_count(self, request):
        count = Notification.objects.filter(recipient=request.user, is_read=False).count()
        return Response(UnreadCountSerializer({"unread_count": count}).data)

    @extend_schema(
        operation_id="mark_notification_read",
        summary="Mark notification as read",
        request=None,
        responses={
            200: NotificationSerializer,
            404: OpenApiResponse(description="Notification not found"),
        },
        tags=["Notifications - Inbox"],
    )
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        notification = self.get_object()
        result = NotificationService.mark_as_read(notification, request.user)
        if not result.success:
            return Response(result.to_response(), status=status.HTTP_400_BAD_REQUEST)
        return Response(self.get_serializer(result.data).data)

    @extend_schema(
        operation_id="mark_all_notifications_read",
        summary="Mark all notifications as read",
        request=None,
        responses={200: MarkAllReadResponseSerializer},
        tags=["Notifications - Inbox"],
    )
    @action(detail=False, methods=["post"], url_path="read-all")
    def read_all(self, request):
        result = NotificationService.mark_all_as_read(request.user)
        return Response(MarkAllReadResponseSerializer({"marked_count": result.data}).data)


class PreferenceViewSet(viewsets.ViewSet):
    """Notification preferences of the authenticated user."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_notification_preferences",
        summary="List notification preferences",
        responses={200: UserPreferencesResponseSerializer},
        tags=["Notifications - Preferences"],
    )
    def list(self, request):
        result = PreferenceService.get_user_preferences(request.user)
        return Response(UserPreferencesResponseSerializer(result.data).data)

    @extend_schema(
        operation_id="update_global_notification_preference",
        summary="Update global notification preference",
        request=GlobalPreferenceSerializer,
        responses={200: GlobalPreferenceSerializer},
        tags=["Notifications - Preferences"],
    )
    @action(detail=False, methods=["patch"], url_path="global")
    def global_preference(self, request):
        serializer = GlobalPreferenceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = PreferenceService.set_global_preference(
            user=request.user,
            all_disabled=serializer.validated_data["all_disabled"],
        )
        return Response({"all_disabled": result.data.all_disabled})

    @extend_schema(
        operation_id="update_type_notification_preference",
        summary="Update type notification preference",
        request=TypePreferenceSerializer,
        responses={
            200: TypePreferenceResponseSerializer,
            404: OpenApiResponse(description="Notification type not found"),
        },
        tags=["Notifications - Preferences"],
    )
    @action(detail=False, methods=["patch"], url_path="type")
    def type_preference(self, request):
        serializer = TypePreferenceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        validated = serializer.validated_data

        result = PreferenceService.set_type_preference(
            user=request.user,
            type_key=validated["type_key"],
            disabled=validated.get("disabled"),
            email_enabled=validated.get("email_enabled"),
            sms_enabled=validated.get("sms_enabled"),
        )
        if not result.success:
            return Response(result.to_response(), status=status.HTTP_404_NOT_FOUND)

        pref = result.data
        return Response(
            TypePreferenceResponseSerializer(
                {
                    "type_key": pref.notification_type.key,
                    "type_name": pref.notification_type.display_name,
                    "disabled": pref.disabled,
                    "email_enabled": pref.email_enabled,
                    "sms_enabled": pref.sms_enabled,
                }
            ).data
        )


@extend_schema_view(
    list=extend_schema(
        operation_id="list_notification_types",
        summary="List notification types",
        tags=["Notifications - Types"],
    ),
    retrieve=extend_schema(
        operation_id="get_notification_type",
        summary="Get notification type",
        tags=["Notifications - Types"],
    ),
)
class NotificationTypeViewSet(viewsets.ReadOnlyModelViewSet):
    permission_classes = [IsAuthenticated]
    serializer_class = NotificationTypeSerializer
    lookup_field = "key"
    pagination_class = None

    def get_queryset(self):
        return NotificationType.objects.filter(is_active=True).order_by("category", "key")
