"""Integration tests for group and membership flow (requires running PG + Redis)."""

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio(loop_scope="session")


class TestPublicGroup:
    async def test_create_makes_owner_admin(self, client: AsyncClient, make_user, make_group) -> None:
        owner = await make_user()
        group = await make_group(owner)
        assert group["owner_id"] == owner["user_id"]
        assert group["member_count"] == 1

        resp = await client.get(f"/api/v1/groups/{group['id']}", headers=owner["headers"])
        assert resp.status_code == 200
        assert resp.json()["data"]["user_role"] == "ADMIN"

    async def test_duplicate_name_rejected(self, client: AsyncClient, make_user, make_group) -> None:
        owner = await make_user()
        group = await make_group(owner)
        resp = await client.post(
            "/api/v1/groups", json={"name": group["name"]}, headers=owner["headers"]
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == 2011

    async def test_join_and_leave(self, client: AsyncClient, make_user, make_group) -> None:
        owner, member = await make_user(), await make_user()
        group = await make_group(owner)
        gid = group["id"]

        resp = await client.post(f"/api/v1/groups/{gid}/join", headers=member["headers"])
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "APPROVED"

        resp = await client.post(f"/api/v1/groups/{gid}/join", headers=member["headers"])
        assert resp.status_code == 409
        assert resp.json()["code"] == 2004

        resp = await client.get(f"/api/v1/groups/{gid}/members", headers=owner["headers"])
        assert {m["user_id"] for m in resp.json()["data"]} == {owner["user_id"], member["user_id"]}

        resp = await client.post(f"/api/v1/groups/{gid}/leave", headers=member["headers"])
        assert resp.status_code == 200
        resp = await client.get(f"/api/v1/groups/{gid}", headers=owner["headers"])
        assert resp.json()["data"]["member_count"] == 1

    async def test_my_groups_lists_joined(self, client: AsyncClient, make_user, make_group) -> None:
        owner = await make_user()
        group = await make_group(owner)
        resp = await client.get("/api/v1/groups/my", headers=owner["headers"])
        assert resp.status_code == 200
        assert group["id"] in [g["id"] for g in resp.json()["data"]]


class TestPrivateGroup:
    async def test_join_request_approval(self, client: AsyncClient, make_user, make_group) -> None:
        owner, applicant = await make_user(), await make_user()
        gid = (await make_group(owner, privacy="PRIVATE"))["id"]

        resp = await client.post(f"/api/v1/groups/{gid}/join", headers=applicant["headers"])
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "PENDING"

        resp = await client.post(f"/api/v1/groups/{gid}/join", headers=applicant["headers"])
        assert resp.status_code == 409
        assert resp.json()["code"] == 2005

        resp = await client.get(f"/api/v1/groups/{gid}/requests/count", headers=owner["headers"])
        assert resp.json()["data"]["count"] == 1

        resp = await client.get(f"/api/v1/groups/{gid}/requests", headers=applicant["headers"])
        assert resp.status_code == 403

        requests = (await client.get(
            f"/api/v1/groups/{gid}/requests", headers=owner["headers"]
        )).json()["data"]
        resp = await client.post(
            f"/api/v1/groups/{gid}/requests/{requests[0]['id']}/approve",
            headers=owner["headers"],
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "APPROVED"

        resp = await client.get(f"/api/v1/groups/{gid}", headers=owner["headers"])
        assert resp.json()["data"]["member_count"] == 2

    async def test_denied_request_leaves_group_unchanged(
        self, client: AsyncClient, make_user, make_group
    ) -> None:
        owner, applicant = await make_user(), await make_user()
        gid = (await make_group(owner, privacy="PRIVATE"))["id"]
        await client.post(f"/api/v1/groups/{gid}/join", headers=applicant["headers"])
        requests = (await client.get(
            f"/api/v1/groups/{gid}/requests", headers=owner["headers"]
        )).json()["data"]

        resp = await client.post(
            f"/api/v1/groups/{gid}/requests/{requests[0]['id']}/deny",
            headers=owner["headers"],
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "REJECTED"

        resp = await client.get(f"/api/v1/groups/{gid}", headers=owner["headers"])
        assert resp.json()["data"]["member_count"] == 1


class TestAdministration:
    async def test_last_admin_cannot_leave(self, client: AsyncClient, make_user, make_group) -> None:
        owner, member = await make_user(), await make_user()
        gid = (await make_group(owner))["id"]
        await client.post(f"/api/v1/groups/{gid}/join", headers=member["headers"])

        resp = await client.post(f"/api/v1/groups/{gid}/leave", headers=owner["headers"])
        assert resp.status_code == 422
        assert resp.json()["code"] == 2010

    async def test_admin_removes_member(self, client: AsyncClient, make_user, make_group) -> None:
        owner, member = await make_user(), await make_user()
        gid = (await make_group(owner))["id"]
        await client.post(f"/api/v1/groups/{gid}/join", headers=member["headers"])

        resp = await client.delete(
            f"/api/v1/groups/{gid}/members/{owner['user_id']}", headers=member["headers"]
        )
        assert resp.status_code == 403

        resp = await client.delete(
            f"/api/v1/groups/{gid}/members/{member['user_id']}", headers=owner["headers"]
        )
        assert resp.status_code == 200
        resp = await client.get(f"/api/v1/groups/{gid}/members", headers=owner["headers"])
        assert [m["user_id"] for m in resp.json()["data"]] == [owner["user_id"]]
