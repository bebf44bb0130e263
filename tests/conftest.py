# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- An in-memory SQLite database with the full schema
- A seeded user directory
- A messaging service whose notification jobs are recorded instead of queued
"""

import os

# Settings are read once and cached, so the test environment must be in
# place before any lms_messaging module is imported.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-testing-only")
os.environ.setdefault("DRAMATIQ_TEST_MODE", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from lms_messaging.core.config.settings import MessagingSettings
from lms_messaging.domains.messaging import MessagingService, NotificationDispatcher
from lms_messaging.infrastructure.database.models import Base, User, UserSettings
from lms_messaging.infrastructure.notifications.preferences import NotificationPreferences


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (runs the HTTP app)"
    )


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory SQLite engine with the schema created.

    StaticPool keeps a single connection so every session sees the same
    in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to the test engine."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@dataclass(frozen=True)
class SeededUsers:
    """Ids of the users created by the users fixture."""

    ada: int
    ben: int
    cai: int
    dora: int  # inactive


@pytest_asyncio.fixture
async def users(session_factory: async_sessionmaker[AsyncSession]) -> SeededUsers:
    """Seed the user directory in its own session."""
    async with session_factory() as session:
        ada = User(
            email="ada@lms.test",
            full_name="Ada Lovelace",
            role="faculty",
            campus="North",
            profile_image="/legacy/ada.png",
        )
        ben = User(email="ben@lms.test", full_name="Ben Carter", role="student", campus="North")
        cai = User(email="cai@lms.test", full_name="Cai Wen", role="student", campus="South")
        dora = User(email="dora@lms.test", full_name="Dora Gone", role="student", is_active=False)
        session.add_all([ada, ben, cai, dora])
        await session.flush()

        session.add(UserSettings(user_id=ada.id, profile_picture="/avatars/ada.png"))
        await session.commit()

        return SeededUsers(ada=ada.id, ben=ben.id, cai=cai.id, dora=dora.id)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
    users: SeededUsers,
) -> AsyncGenerator[AsyncSession, None]:
    """Create a session for one test, after the users are seeded."""
    async with session_factory() as session:
        yield session


# =============================================================================
# Messaging Fixtures
# =============================================================================


class RecordingEnqueue:
    """Stands in for the job queue and keeps every payload it receives."""

    def __init__(self) -> None:
        self.payloads: list[dict[str, Any]] = []

    def __call__(self, payload: dict[str, Any]) -> None:
        self.payloads.append(payload)

    @property
    def recipients(self) -> list[int]:
        return [payload["recipient_id"] for payload in self.payloads]


@pytest.fixture
def enqueued() -> RecordingEnqueue:
    """Recorded notification jobs."""
    return RecordingEnqueue()


@pytest.fixture
def messaging_settings() -> MessagingSettings:
    """Messaging settings with a short content limit."""
    return MessagingSettings(max_content_length=200, user_search_limit=10)


@pytest.fixture
def messaging_service(
    db_session: AsyncSession,
    messaging_settings: MessagingSettings,
    enqueued: RecordingEnqueue,
) -> MessagingService:
    """Create a messaging service that records notification jobs."""
    dispatcher = NotificationDispatcher(
        preferences=NotificationPreferences(db_session),
        enqueue=enqueued,
    )
    return MessagingService(db_session, settings=messaging_settings, dispatcher=dispatcher)
