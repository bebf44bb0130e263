# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the messaging HTTP API.

Runs the full application against the in-memory SQLite database with the
request session and notification queue overridden.
"""

from collections.abc import AsyncGenerator
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from fastapi import Depends, FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from lms_messaging.api.app import create_app
from lms_messaging.api.dependencies import get_attachment_store, get_db, get_messaging_service
from lms_messaging.api.routes.health import ComponentHealth
from lms_messaging.core.config import get_settings
from lms_messaging.core.config.settings import AttachmentSettings
from lms_messaging.domains.auth.jwt import JWTManager
from lms_messaging.domains.messaging import (
    MessagingService,
    NotificationDispatcher,
    TransientStoreError,
)
from lms_messaging.infrastructure.notifications import NotificationPreferences
from lms_messaging.infrastructure.storage import LocalAttachmentStore

pytestmark = pytest.mark.integration

BASE = "/api/v1/messages"


def auth(user_id: int) -> dict[str, str]:
    """Authorization header for a user."""
    token = JWTManager(get_settings().jwt).create_access_token(user_id, role="student")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def app(session_factory, users, enqueued, tmp_path: Path) -> FastAPI:
    """Create the app with test database, queue and storage."""
    application = create_app()

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    def override_messaging_service(db: AsyncSession = Depends(get_db)) -> MessagingService:
        dispatcher = NotificationDispatcher(
            preferences=NotificationPreferences(db),
            enqueue=enqueued,
        )
        return MessagingService(db, dispatcher=dispatcher)

    def override_attachment_store() -> LocalAttachmentStore:
        return LocalAttachmentStore(
            AttachmentSettings(directory=str(tmp_path / "uploads"), max_bytes=64)
        )

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_messaging_service] = override_messaging_service
    application.dependency_overrides[get_attachment_store] = override_attachment_store
    return application


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http


class TestAuthentication:
    """Tests for authentication on the messaging routes."""

    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient) -> None:
        """Test requests without a token get 401."""
        response = await client.get(f"{BASE}/conversations")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_invalid_token(self, client: AsyncClient) -> None:
        """Test requests with a bad token get 401."""
        response = await client.get(
            f"{BASE}/conversations", headers={"Authorization": "Bearer not-a-token"}
        )

        assert response.status_code == 401


class TestConversationsApi:
    """Tests for conversation endpoints."""

    @pytest.mark.asyncio
    async def test_create_then_reuse(self, client: AsyncClient, users) -> None:
        """Test the first create is 201 and the repeat is 200 with the same id."""
        first = await client.post(
            f"{BASE}/conversations", json={"participant_ids": [users.ben]}, headers=auth(users.ada)
        )
        second = await client.post(
            f"{BASE}/conversations", json={"participant_ids": [users.ada]}, headers=auth(users.ben)
        )

        assert first.status_code == 201
        assert first.json()["already_exists"] is False
        assert second.status_code == 200
        assert second.json()["already_exists"] is True
        assert second.json()["conversation_id"] == first.json()["conversation_id"]

    @pytest.mark.asyncio
    async def test_create_with_initial_message(self, client: AsyncClient, users, enqueued) -> None:
        """Test an initial message is returned and notifies the partner."""
        response = await client.post(
            f"{BASE}/conversations",
            json={"participant_ids": [users.ben], "initial_message": "Welcome to the course"},
            headers=auth(users.ada),
        )

        assert response.status_code == 201
        assert response.json()["message"]["content"] == "Welcome to the course"
        assert enqueued.recipients == [users.ben]

    @pytest.mark.asyncio
    async def test_invalid_direct_set(self, client: AsyncClient, users) -> None:
        """Test a three-user direct conversation is a 400."""
        response = await client.post(
            f"{BASE}/conversations",
            json={"participant_ids": [users.ben, users.cai]},
            headers=auth(users.ada),
        )

        assert response.status_code == 400
        assert "exactly 2" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_unknown_kind_fails_request_validation(self, client: AsyncClient, users) -> None:
        """Test an unsupported kind is rejected by request validation."""
        response = await client.post(
            f"{BASE}/conversations",
            json={"participant_ids": [users.ben], "kind": "broadcast"},
            headers=auth(users.ada),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_conversations(self, client: AsyncClient, users) -> None:
        """Test the list shows unread counts for the caller."""
        await client.post(
            f"{BASE}/conversations",
            json={"participant_ids": [users.ben], "initial_message": "hi"},
            headers=auth(users.ada),
        )

        response = await client.get(f"{BASE}/conversations", headers=auth(users.ben))

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["items"][0]["unread_count"] == 1
        assert body["items"][0]["other_participant"]["full_name"] == "Ada Lovelace"


class TestMessagesApi:
    """Tests for message endpoints."""

    async def start(self, client: AsyncClient, users) -> int:
        response = await client.post(
            f"{BASE}/conversations", json={"participant_ids": [users.ben]}, headers=auth(users.ada)
        )
        return response.json()["conversation_id"]

    @pytest.mark.asyncio
    async def test_send_and_read(self, client: AsyncClient, users) -> None:
        """Test a sent message is listed for the partner with their read receipt."""
        conversation_id = await self.start(client, users)

        sent = await client.post(
            f"{BASE}/conversations/{conversation_id}/messages",
            json={"content": "See you in class"},
            headers=auth(users.ada),
        )
        listing = await client.get(
            f"{BASE}/conversations/{conversation_id}/messages", headers=auth(users.ben)
        )

        assert sent.status_code == 201
        assert listing.status_code == 200
        body = listing.json()
        assert [m["content"] for m in body["items"]] == ["See you in class"]
        assert body["items"][0]["read_by"] == [users.ben]
        assert body["items"][0]["read_by_all"] is True
        assert body["last_read_message_id"] == sent.json()["id"]

    @pytest.mark.asyncio
    async def test_send_empty_message(self, client: AsyncClient, users) -> None:
        """Test an empty message is a 400."""
        conversation_id = await self.start(client, users)

        response = await client.post(
            f"{BASE}/conversations/{conversation_id}/messages",
            json={"content": "   "},
            headers=auth(users.ada),
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_outsider_forbidden(self, client: AsyncClient, users) -> None:
        """Test a non-participant gets 403 on send and list."""
        conversation_id = await self.start(client, users)

        send = await client.post(
            f"{BASE}/conversations/{conversation_id}/messages",
            json={"content": "hello"},
            headers=auth(users.cai),
        )
        listing = await client.get(
            f"{BASE}/conversations/{conversation_id}/messages", headers=auth(users.cai)
        )

        assert send.status_code == 403
        assert listing.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_conversation(self, client: AsyncClient, users) -> None:
        """Test a missing conversation is a 404."""
        response = await client.get(f"{BASE}/conversations/9999/messages", headers=auth(users.ada))

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_mark_read(self, client: AsyncClient, users) -> None:
        """Test mark-read advances the cursor without listing."""
        conversation_id = await self.start(client, users)
        sent = await client.post(
            f"{BASE}/conversations/{conversation_id}/messages",
            json={"content": "ping"},
            headers=auth(users.ada),
        )

        response = await client.post(
            f"{BASE}/conversations/{conversation_id}/read", headers=auth(users.ben)
        )

        assert response.status_code == 200
        assert response.json() == {
            "conversation_id": conversation_id,
            "last_read_message_id": sent.json()["id"],
        }

    @pytest.mark.asyncio
    async def test_delete_own_message(self, client: AsyncClient, users) -> None:
        """Test the sender can delete and others cannot."""
        conversation_id = await self.start(client, users)
        sent = await client.post(
            f"{BASE}/conversations/{conversation_id}/messages",
            json={"content": "typo"},
            headers=auth(users.ada),
        )
        message_id = sent.json()["id"]

        forbidden = await client.delete(
            f"{BASE}/conversations/{conversation_id}/messages/{message_id}", headers=auth(users.ben)
        )
        deleted = await client.delete(
            f"{BASE}/conversations/{conversation_id}/messages/{message_id}", headers=auth(users.ada)
        )
        listing = await client.get(
            f"{BASE}/conversations/{conversation_id}/messages", headers=auth(users.ada)
        )

        assert forbidden.status_code == 403
        assert deleted.status_code == 204
        assert listing.json()["items"] == []

    @pytest.mark.asyncio
    async def test_store_outage_is_503(self, client: AsyncClient, users) -> None:
        """Test a transient store error maps to 503 with Retry-After."""
        conversation_id = await self.start(client, users)

        with patch.object(
            MessagingService,
            "send_message",
            AsyncMock(side_effect=TransientStoreError("Store unavailable during send_message")),
        ):
            response = await client.post(
                f"{BASE}/conversations/{conversation_id}/messages",
                json={"content": "hello"},
                headers=auth(users.ada),
            )

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "5"


class TestUsersApi:
    """Tests for user search."""

    @pytest.mark.asyncio
    async def test_search(self, client: AsyncClient, users) -> None:
        """Test search excludes the caller and matches by name."""
        response = await client.get(f"{BASE}/users", params={"query": "a"}, headers=auth(users.ada))

        assert response.status_code == 200
        ids = [u["id"] for u in response.json()["items"]]
        assert users.ada not in ids
        assert users.ben in ids


class TestAttachmentsApi:
    """Tests for attachment upload."""

    @pytest.mark.asyncio
    async def test_upload(self, client: AsyncClient, users) -> None:
        """Test an upload returns a reference usable in a message."""
        response = await client.post(
            f"{BASE}/attachments",
            files={"file": ("notes.txt", b"chapter 1 notes", "text/plain")},
            headers=auth(users.ada),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["file_name"] == "notes.txt"
        assert body["size"] == 15
        assert body["url"].endswith(".txt")

    @pytest.mark.asyncio
    async def test_upload_too_large(self, client: AsyncClient, users) -> None:
        """Test uploads over the limit are a 400."""
        response = await client.post(
            f"{BASE}/attachments",
            files={"file": ("big.bin", b"x" * 100, "application/octet-stream")},
            headers=auth(users.ada),
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_upload_requires_auth(self, client: AsyncClient) -> None:
        """Test anonymous uploads are refused."""
        response = await client.post(
            f"{BASE}/attachments", files={"file": ("a.txt", b"a", "text/plain")}
        )

        assert response.status_code == 401


class TestDatabaseUnavailable:
    """Tests for requests before the database is initialized."""

    @pytest.mark.asyncio
    async def test_503_without_database(self, users) -> None:
        """Test the session dependency refuses requests with 503."""
        app = create_app()

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
            response = await http.get(f"{BASE}/conversations", headers=auth(users.ada))

        assert response.status_code == 503


class TestHealthApi:
    """Tests for health endpoints."""

    @pytest.mark.asyncio
    async def test_health_degraded_without_redis(self, client: AsyncClient) -> None:
        """Test a missing Redis degrades a healthy database."""
        with patch(
            "lms_messaging.api.routes.health.check_database",
            AsyncMock(return_value=ComponentHealth(status="healthy", latency_ms=1.0)),
        ), patch(
            "lms_messaging.api.routes.health.check_redis",
            AsyncMock(return_value=ComponentHealth(status="unhealthy", message="refused")),
        ):
            response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "degraded"
        assert body["environment"] == "test"

    @pytest.mark.asyncio
    async def test_health_unhealthy_without_database(self, client: AsyncClient) -> None:
        """Test an uninitialized database makes the service unhealthy."""
        with patch(
            "lms_messaging.api.routes.health.check_redis",
            AsyncMock(return_value=ComponentHealth(status="healthy")),
        ):
            response = await client.get("/health")

        assert response.json()["status"] == "unhealthy"
        assert response.json()["components"]["database"]["message"] == "Database not initialized"

    @pytest.mark.asyncio
    async def test_readiness(self, client: AsyncClient) -> None:
        """Test readiness follows the database only."""
        response = await client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["ready"] is False
