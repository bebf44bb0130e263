# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""User directory models.

Users and their settings are owned by the wider LMS. They are mapped here
so the messaging service can resolve display data and message
notification opt-outs without calling another service.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lms_messaging.infrastructure.database.models.base import Base, BigIntId
from lms_messaging.utils.datetime import utc_now


class User(Base):
    """LMS account (student, faculty or admin).

    Attributes:
        id: User identifier.
        email: Login email, unique.
        full_name: Display name.
        role: student, faculty or admin.
        campus: Campus the user belongs to.
        profile_image: Legacy profile image URL.
        is_active: Whether the account is active.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="student")
    campus: Mapped[str | None] = mapped_column(String(100), nullable=True)
    profile_image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    settings: Mapped["UserSettings | None"] = relationship(
        back_populates="user",
        uselist=False,
        lazy="selectin",
    )

    @property
    def avatar_url(self) -> str | None:
        """Profile picture from settings, falling back to the legacy image."""
        if self.settings is not None and self.settings.profile_picture:
            return self.settings.profile_picture
        return self.profile_image


class UserSettings(Base):
    """Per-user preferences relevant to messaging."""

    __tablename__ = "user_settings"

    user_id: Mapped[int] = mapped_column(
        BigIntId,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    profile_picture: Mapped[str | None] = mapped_column(String(500), nullable=True)
    message_notifications: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )

    user: Mapped[User] = relationship(back_populates="settings")
