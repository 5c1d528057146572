"""Integration tests for notification inbox and presence (requires running PG + Redis).

The event bus only runs inside the application lifespan, which ASGITransport
does not start, so the inbox here stays empty; handler behaviour is covered by
the unit tests.
"""

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio(loop_scope="session")


class TestInbox:
    async def test_empty_inbox(self, client: AsyncClient, make_user) -> None:
        me = await make_user()
        resp = await client.get("/api/v1/notifications", headers=me["headers"])
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["items"] == []
        assert data["has_more"] is False

        resp = await client.get("/api/v1/notifications/unread-count", headers=me["headers"])
        assert resp.json()["data"]["unread"] == 0

        resp = await client.get("/api/v1/notifications/stats", headers=me["headers"])
        assert resp.json()["data"]["total"] == 0

    async def test_mark_all_read_on_empty_inbox(self, client: AsyncClient, make_user) -> None:
        me = await make_user()
        resp = await client.put("/api/v1/notifications/mark-all-read", headers=me["headers"])
        assert resp.status_code == 200
        assert resp.json()["data"]["updated"] == 0

    async def test_unknown_notification(self, client: AsyncClient, make_user) -> None:
        me = await make_user()
        resp = await client.put("/api/v1/notifications/999999999/read", headers=me["headers"])
        assert resp.status_code == 404
        assert resp.json()["code"] == 7001

    async def test_inbox_requires_token(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/notifications")
        assert resp.status_code == 401


class TestPresence:
    async def test_update_then_read(self, client: AsyncClient, make_user) -> None:
        me, friend = await make_user(), await make_user()
        resp = await client.put(
            "/api/v1/presence",
            json={"state": "active", "screen": "bet_detail"},
            headers=me["headers"],
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["state"] == "active"

        resp = await client.get(f"/api/v1/presence/{me['user_id']}", headers=friend["headers"])
        assert resp.json()["data"]["screen"] == "bet_detail"

        resp = await client.post("/api/v1/presence/heartbeat", headers=me["headers"])
        assert resp.json()["data"]["extended"] is True

    async def test_clear_resets_to_inactive(self, client: AsyncClient, make_user) -> None:
        me = await make_user()
        await client.put("/api/v1/presence", json={"state": "active"}, headers=me["headers"])
        resp = await client.delete("/api/v1/presence", headers=me["headers"])
        assert resp.status_code == 200

        resp = await client.get("/api/v1/presence/me", headers=me["headers"])
        assert resp.json()["data"]["state"] == "inactive"

    async def test_invalid_state_rejected(self, client: AsyncClient, make_user) -> None:
        me = await make_user()
        resp = await client.put("/api/v1/presence", json={"state": "asleep"}, headers=me["headers"])
        assert resp.status_code == 422
