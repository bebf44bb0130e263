# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""User directory lookups used by the messaging service.

The directory resolves display data (name, avatar, campus) for message
senders and conversation partners, validates that participant ids exist,
and backs the "start a conversation" user search.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from lms_messaging.infrastructure.database.models.user import User
from lms_messaging.models.messaging import UserProfile

logger = logging.getLogger(__name__)


def to_profile(user: User) -> UserProfile:
    """Build a profile from a loaded user row.

    The avatar prefers the settings profile picture over the legacy
    users.profile_image column.
    """
    return UserProfile(
        id=user.id,
        full_name=user.full_name,
        email=user.email,
        role=user.role,
        campus=user.campus,
        profile_image=user.avatar_url,
    )


class UserDirectory:
    """Read-only access to LMS users.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize the directory.

        Args:
            db: Async database session.
        """
        self.db = db

    async def get_profiles(self, user_ids: Iterable[int]) -> dict[int, UserProfile]:
        """Load profiles for a set of users in one query.

        Args:
            user_ids: Users to load.

        Returns:
            Mapping of user id to profile. Unknown ids are absent.
        """
        ids = {int(user_id) for user_id in user_ids}
        if not ids:
            return {}

        result = await self.db.execute(select(User).where(User.id.in_(ids)))
        return {user.id: to_profile(user) for user in result.scalars().all()}

    async def get_profile(self, user_id: int) -> UserProfile | None:
        """Load a single profile.

        Args:
            user_id: User to load.

        Returns:
            The profile, or None if the user does not exist.
        """
        profiles = await self.get_profiles([user_id])
        return profiles.get(int(user_id))

    async def missing_users(self, user_ids: Iterable[int]) -> set[int]:
        """Return the ids that do not belong to an active user.

        Args:
            user_ids: Candidate ids.

        Returns:
            Ids with no active user row.
        """
        ids = {int(user_id) for user_id in user_ids}
        if not ids:
            return set()

        result = await self.db.execute(
            select(User.id).where(User.id.in_(ids), User.is_active.is_(True))
        )
        found = set(result.scalars().all())
        return ids - found

    async def search(
        self,
        requester_id: int,
        query: str | None,
        limit: int = 20,
    ) -> list[UserProfile]:
        """Search active users by name or email.

        The requester is always excluded. An empty query lists users
        alphabetically.

        Args:
            requester_id: Caller, excluded from results.
            query: Case-insensitive substring of name or email.
            limit: Maximum results.

        Returns:
            Matching profiles ordered by full name.
        """
        stmt = select(User).where(User.id != requester_id, User.is_active.is_(True))

        term = (query or "").strip().lower()
        if term:
            stmt = stmt.where(
                or_(
                    func.lower(User.full_name).contains(term, autoescape=True),
                    func.lower(User.email).contains(term, autoescape=True),
                )
            )

        stmt = stmt.order_by(User.full_name, User.id).limit(limit)
        result = await self.db.execute(stmt)
        profiles = [to_profile(user) for user in result.scalars().all()]

        logger.debug(
            "User search by %s for %r returned %d results",
            requester_id,
            term,
            len(profiles),
        )
        return profiles
