# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Per-user, per-category notification opt-in.

Resolution order for a (user, category) pair:
1. An explicit notification_preferences row: allowed when is_enabled
   and in_app are both set.
2. For the "message" category, user_settings.message_notifications.
3. Otherwise allowed.
"""

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lms_messaging.infrastructure.database.models.notification import NotificationPreference
from lms_messaging.infrastructure.database.models.user import UserSettings

MESSAGE_CATEGORY = "message"


class NotificationPreferences:
    """Looks up notification opt-ins.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def allows(self, user_id: int, category: str = MESSAGE_CATEGORY) -> bool:
        """Check whether one user accepts notifications of a category."""
        return user_id in await self.allowed([user_id], category)

    async def allowed(
        self,
        user_ids: Iterable[int],
        category: str = MESSAGE_CATEGORY,
    ) -> set[int]:
        """Filter users down to those who accept a category.

        Args:
            user_ids: Candidate recipients.
            category: Notification category.

        Returns:
            The subset of user_ids that may be notified.
        """
        ids = {int(user_id) for user_id in user_ids}
        if not ids:
            return set()

        result = await self.db.execute(
            select(
                NotificationPreference.user_id,
                NotificationPreference.is_enabled,
                NotificationPreference.in_app,
            ).where(
                NotificationPreference.user_id.in_(ids),
                NotificationPreference.notification_type == category,
            )
        )
        explicit = {user_id: is_enabled and in_app for user_id, is_enabled, in_app in result.all()}

        settings: dict[int, bool] = {}
        if category == MESSAGE_CATEGORY:
            result = await self.db.execute(
                select(UserSettings.user_id, UserSettings.message_notifications).where(
                    UserSettings.user_id.in_(ids)
                )
            )
            settings = {user_id: enabled for user_id, enabled in result.all()}

        allowed = set()
        for user_id in ids:
            if user_id in explicit:
                if explicit[user_id]:
                    allowed.add(user_id)
            elif settings.get(user_id, True):
                allowed.add(user_id)
        return allowed
