"""Tests for PreferenceResolver hierarchy and caching."""

import pytest

from notifications.models import SkipReason, UserCategoryPreference
from notifications.preferences import PreferenceResolver
from notifications.tests.factories import (
    UserGlobalPreferenceFactory,
    UserNotificationPreferenceFactory,
)


@pytest.mark.django_db
class TestPreferenceResolver:
    def test_defaults_follow_type_support(self, user, notification_type):
        prefs = PreferenceResolver.resolve(user, notification_type)

        assert prefs.email_enabled
        assert prefs.in_app_enabled
        assert not prefs.sms_enabled
        assert not prefs.blocked

    def test_global_mute_blocks(self, user, notification_type):
        UserGlobalPreferenceFactory(user=user, all_disabled=True)

        prefs = PreferenceResolver.resolve(user, notification_type)

        assert prefs.blocked
        assert prefs.blocked_reason == SkipReason.GLOBAL_DISABLED
        assert not prefs.is_channel_enabled("in_app")

    def test_category_mute_blocks(self, user, notification_type):
        UserCategoryPreference.objects.create(user=user, category="transactional", disabled=True)

        prefs = PreferenceResolver.resolve(user, notification_type)

        assert prefs.blocked_reason == SkipReason.CATEGORY_DISABLED

    def test_type_disabled_blocks(self, user, notification_type):
        UserNotificationPreferenceFactory(user=user, notification_type=notification_type, disabled=True)

        prefs = PreferenceResolver.resolve(user, notification_type)

        assert prefs.blocked_reason == SkipReason.TYPE_DISABLED

    def test_channel_override(self, user, all_channels_type):
        UserNotificationPreferenceFactory(
            user=user, notification_type=all_channels_type, email_enabled=False
        )

        prefs = PreferenceResolver.resolve(user, all_channels_type)

        assert not prefs.email_enabled
        assert prefs.sms_enabled

    def test_override_cannot_enable_unsupported_channel(self, user, notification_type):
        UserNotificationPreferenceFactory(user=user, notification_type=notification_type, sms_enabled=True)

        prefs = PreferenceResolver.resolve(user, notification_type)

        assert not prefs.sms_enabled

    def test_result_is_cached_until_invalidated(self, user, notification_type):
        PreferenceResolver.resolve(user, notification_type)
        UserGlobalPreferenceFactory(user=user, all_disabled=True)

        assert not PreferenceResolver.resolve(user, notification_type).blocked

        PreferenceResolver.invalidate_cache(user.id)

        assert PreferenceResolver.resolve(user, notification_type).blocked
