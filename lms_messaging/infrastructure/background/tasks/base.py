# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Base utilities for Dramatiq tasks.

Thread-Local Event Loop Management:
    Dramatiq workers use multiple threads (--threads N) to process tasks
    concurrently. SQLAlchemy async engines and asyncpg connections are
    bound to the event loop they were created in.

    Each worker thread therefore keeps one persistent event loop and one
    engine/sessionmaker pair created on that loop. When a thread's loop
    is replaced, its engine is dropped and rebuilt on next use.
"""

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Coroutine, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from lms_messaging.core.config import get_settings
from lms_messaging.infrastructure.database.connection import build_engine_options

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Thread-local storage for event loops and worker engines
_thread_local = threading.local()


def _get_thread_event_loop() -> asyncio.AbstractEventLoop:
    """Get or create a persistent event loop for the current thread.

    When a new loop is created, the thread's cached engine is cleared so
    it is rebuilt on the new loop.

    Returns:
        Event loop for current thread.
    """
    loop = getattr(_thread_local, "event_loop", None)

    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        _thread_local.event_loop = loop
        _clear_thread_db_connections()

        logger.debug(
            "Created new event loop for thread %s",
            threading.current_thread().name,
        )

    return loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run async coroutine in sync Dramatiq worker context.

    Args:
        coro: Coroutine to run.

    Returns:
        Result of coroutine.

    Example:
        @dramatiq.actor
        def my_task(user_id: int):
            async def _process():
                async with worker_session() as session:
                    ...
            return run_async(_process())
    """
    loop = _get_thread_event_loop()
    return loop.run_until_complete(coro)


def _get_worker_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Get the sessionmaker bound to the current thread's engine."""
    factory = getattr(_thread_local, "sessionmaker", None)

    if factory is None:
        settings = get_settings()
        engine = create_async_engine(settings.db.url, **build_engine_options(settings))
        factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        _thread_local.engine = engine
        _thread_local.sessionmaker = factory

    return factory


def _clear_thread_db_connections() -> None:
    """Drop the current thread's cached engine and sessionmaker.

    The old engine belongs to a closed loop, so its pool is discarded
    rather than disposed.
    """
    _thread_local.engine = None
    _thread_local.sessionmaker = None


@asynccontextmanager
async def worker_session() -> AsyncIterator[AsyncSession]:
    """Provide a worker database session that commits on success.

    Yields:
        AsyncSession bound to the current thread's engine.
    """
    factory = _get_worker_sessionmaker()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
