"""
URL configuration for notifications API.

Routes:
    /preferences/           - List preferences (GET)
    /preferences/global/    - Update global mute (PATCH)
    /preferences/type/      - Update type preference (PATCH)
    /types/                 - List notification types (GET)
    /                       - List notifications (GET)
    /{id}/                  - Notification detail (GET)
    /unread-count/          - Unread count (GET)
    /{id}/read/             - Mark single as read (POST)
    /read-all/              - Mark all as read (POST)
"""

from rest_framework.routers import DefaultRouter

from notifications.views import (
    NotificationTypeViewSet,
    NotificationViewSet,
    PreferenceViewSet,
)

# Prefixed routes are registered before the empty prefix so that
# "preferences/" is not captured as a notification id.
router = DefaultRouter()
router.include_root_view = False
router.register(r"preferences", PreferenceViewSet, basename="preference")
router.register(r"types", NotificationTypeViewSet, basename="notification-type")
router.register(r"", NotificationViewSet, basename="notification")

app_name = "notifications"
urlpatterns = router.urls
