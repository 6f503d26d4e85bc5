"""
Notification preference resolution.

This module handles the hierarchical preference resolution:
Global -> Category -> Type -> Channel

Design Decisions:
    - TTL-based caching (5 min) for preference lookups
    - Preference writes invalidate the affected cache entries

Usage:
    from notifications.preferences import PreferenceResolver

    prefs = PreferenceResolver.resolve(user, notification_type)
    if prefs.is_channel_enabled("sms"):
        ...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import UUID

from django.core.cache import cache

if TYPE_CHECKING:
    from authentication.models import User

    from notifications.models import NotificationType

logger = logging.getLogger(__name__)


PREFERENCE_CACHE_TTL = 300  # 5 minutes
PREFERENCE_CACHE_PREFIX = "notif_pref"


@dataclass(frozen=True)
class ResolvedPreferences:
    """
    Resolved notification preferences for a user/type combination.

    Attributes:
        email_enabled: Whether email notifications are enabled
        sms_enabled: Whether SMS notifications are enabled
        in_app_enabled: Whether the inbox entry is delivered
        blocked: True if a global, category or type switch disabled everything
        blocked_reason: If blocked, the SkipReason value
    """

    email_enabled: bool
    sms_enabled: bool
    in_app_enabled: bool
    blocked: bool = False
    blocked_reason: str | None = None

    @classmethod
    def blocked_by(cls, reason: str) -> ResolvedPreferences:
        return cls(
            email_enabled=False,
            sms_enabled=False,
            in_app_enabled=False,
            blocked=True,
            blocked_reason=reason,
        )

    def is_channel_enabled(self, channel: str) -> bool:
        if self.blocked:
            return False
        return getattr(self, f"{channel}_enabled", False)


class PreferenceResolver:
    """
    Resolves notification preferences using the hierarchy:
    Global -> Category -> Type -> Channel
    """

    @staticmethod
    def _get_cache_key(user_id: UUID | int, notification_type_id: int) -> str:
        return f"{PREFERENCE_CACHE_PREFIX}:{user_id}:{notification_type_id}"

    @classmethod
    def resolve(
        cls,
        user: User,
        notification_type: NotificationType,
        use_cache: bool = True,
    ) -> ResolvedPreferences:
        """
        Resolve preferences for a single user/type combination.

        Args:
            user: The user to resolve preferences for
            notification_type: The notification type
            use_cache: Whether to use cache (default True)
        """
        cache_key = cls._get_cache_key(user.id, notification_type.id)
        if use_cache:
            cached = cache.get(cache_key)
            if cached is not None:
                return cached

        resolved = cls._resolve_from_db(user, notification_type)

        if use_cache:
            cache.set(cache_key, resolved, timeout=PREFERENCE_CACHE_TTL)

        return resolved

    @classmethod
    def _resolve_from_db(
        cls,
        user: User,
        notification_type: NotificationType,
    ) -> ResolvedPreferences:
        """
        Hierarchy:
        1. Global disabled -> block all
        2. Category disabled -> block all
        3. Type disabled -> block all
        4. Per-channel: user override if set, else type default
        """
        from notifications.models import (
            SkipReason,
            UserCategoryPreference,
            UserGlobalPreference,
            UserNotificationPreference,
        )

        if UserGlobalPreference.objects.filter(user=user, all_disabled=True).exists():
            return ResolvedPreferences.blocked_by(SkipReason.GLOBAL_DISABLED)

        if UserCategoryPreference.objects.filter(
            user=user,
            category=notification_type.category,
            disabled=True,
        ).exists():
            return ResolvedPreferences.blocked_by(SkipReason.CATEGORY_DISABLED)

        type_pref = UserNotificationPreference.objects.filter(
            user=user,
            notification_type=notification_type,
        ).first()
        if type_pref and type_pref.disabled:
            return ResolvedPreferences.blocked_by(SkipReason.TYPE_DISABLED)

        def resolve_channel(user_override: bool | None, type_supports: bool) -> bool:
            if not type_supports:
                return False
            if user_override is not None:
                return user_override
            return True

        return ResolvedPreferences(
            email_enabled=resolve_channel(
                type_pref.email_enabled if type_pref else None,
                notification_type.supports_email,
            ),
            sms_enabled=resolve_channel(
                type_pref.sms_enabled if type_pref else None,
                notification_type.supports_sms,
            ),
            in_app_enabled=notification_type.supports_in_app,
        )

    @classmethod
    def invalidate_cache(
        cls,
        user_id: UUID | int,
        notification_type_id: int | None = None,
    ) -> None:
        """
        Invalidate cached preferences for a user.

        Without a type id every active type is invalidated.
        """
        from notifications.models import NotificationType

        if notification_type_id:
            type_ids = [notification_type_id]
        else:
            type_ids = list(NotificationType.objects.values_list("id", flat=True))

        cache.delete_many([cls._get_cache_key(user_id, type_id) for type_id in type_ids])
        logger.debug(f"Invalidated {len(type_ids)} preference cache entries for user {user_id}")
