"""Team, member and audit endpoint tests."""

import uuid

import pytest
from httpx import AsyncClient

from tests.team_helpers import auth_headers


def _uid() -> str:
    return uuid.uuid4().hex[:8]


def _headers(prefix: str) -> dict:
    uid = _uid()
    return auth_headers(sub=f"{prefix}-{uid}", email=f"{prefix}-{uid}@example.com")


async def _create_team(client: AsyncClient, headers: dict, name: str = "Alex's Care Team") -> str:
    resp = await client.post("/api/v1/teams/", json={"name": name}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


async def _invite_and_accept(
    client: AsyncClient,
    team_id: str,
    admin_headers: dict,
    member_headers: dict,
    *,
    email: str,
    role: str = "CAREGIVER",
    access_level: str = "FULL",
) -> dict:
    invite = await client.post(
        f"/api/v1/teams/{team_id}/invites/",
        json={"email": email, "role": role, "access_level": access_level},
        headers=admin_headers,
    )
    assert invite.status_code == 201, invite.text
    accepted = await client.post(
        "/api/v1/invites/accept",
        json={"invite_code": invite.json()["code"]},
        headers=member_headers,
    )
    assert accepted.status_code == 200, accepted.text
    return accepted.json()


@pytest.mark.asyncio
async def test_create_team_and_read_capabilities(client: AsyncClient):
    headers = _headers("owner")
    team_id = await _create_team(client, headers)

    resp = await client.get(f"/api/v1/teams/{team_id}", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["name"] == "Alex's Care Team"

    me = await client.get(f"/api/v1/teams/{team_id}/me", headers=headers)
    assert me.status_code == 200
    data = me.json()
    assert data["is_admin"] is True
    assert data["access_level"] == "FULL"
    assert all(data["capabilities"].values())
    assert data["can_access_journey"] is True
    assert data["can_edit_journey"] is True


@pytest.mark.asyncio
async def test_unauthenticated_request_gets_problem_detail(client: AsyncClient):
    resp = await client.post("/api/v1/teams/", json={"name": "Nobody's Team"})
    assert resp.status_code == 401
    assert resp.headers["content-type"].startswith("application/problem+json")
    body = resp.json()
    assert body["code"] == "UNAUTHENTICATED"
    assert body["status"] == 401
    assert body["instance"] == "/api/v1/teams/"


@pytest.mark.asyncio
async def test_invalid_token_rejected(client: AsyncClient):
    resp = await client.post(
        "/api/v1/teams/",
        json={"name": "Team"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert resp.status_code == 401
    assert resp.json()["detail"].startswith("Invalid token")


@pytest.mark.asyncio
async def test_non_member_cannot_read_team(client: AsyncClient):
    team_id = await _create_team(client, _headers("owner"))

    resp = await client.get(f"/api/v1/teams/{team_id}", headers=_headers("stranger"))
    assert resp.status_code == 403
    assert resp.json()["code"] == "NO_MEMBERSHIP"


@pytest.mark.asyncio
async def test_sole_admin_cannot_leave(client: AsyncClient):
    headers = _headers("owner")
    team_id = await _create_team(client, headers)

    resp = await client.post(f"/api/v1/teams/{team_id}/leave", headers=headers)
    assert resp.status_code == 400
    assert resp.json()["code"] == "SOLE_ADMIN_CANNOT_LEAVE"

    # Still a member afterwards
    me = await client.get(f"/api/v1/teams/{team_id}/me", headers=headers)
    assert me.status_code == 200


@pytest.mark.asyncio
async def test_admin_hands_over_then_leaves(client: AsyncClient):
    admin = _headers("admin-a")
    successor = _headers("admin-b")
    team_id = await _create_team(client, admin)
    accepted = await _invite_and_accept(
        client, team_id, admin, successor, email="successor@example.com"
    )

    promote = await client.patch(
        f"/api/v1/teams/{team_id}/members/{accepted['member_id']}",
        json={"is_admin": True},
        headers=admin,
    )
    assert promote.status_code == 200, promote.text
    assert promote.json()["is_admin"] is True

    left = await client.post(f"/api/v1/teams/{team_id}/leave", headers=admin)
    assert left.status_code == 204

    blocked = await client.post(f"/api/v1/teams/{team_id}/leave", headers=successor)
    assert blocked.status_code == 400
    assert blocked.json()["code"] == "SOLE_ADMIN_CANNOT_LEAVE"


@pytest.mark.asyncio
async def test_member_list_and_permission_edit(client: AsyncClient):
    admin = _headers("admin")
    viewer = _headers("viewer")
    team_id = await _create_team(client, admin)
    accepted = await _invite_and_accept(
        client, team_id, admin, viewer, email="viewer@example.com", access_level="READ_ONLY"
    )
    member_id = accepted["member_id"]

    members = await client.get(f"/api/v1/teams/{team_id}/members/", headers=admin)
    assert members.status_code == 200
    assert len(members.json()) == 2
    assert {m["status"] for m in members.json()} == {"ACTIVE"}

    edit = await client.patch(
        f"/api/v1/teams/{team_id}/members/{member_id}/permissions",
        json={"can_create_tasks": True, "can_view_notes": False},
        headers=admin,
    )
    assert edit.status_code == 200, edit.text
    permissions = edit.json()["permissions"]
    assert permissions["can_create_tasks"] is False
    assert permissions["can_view_notes"] is False
    assert permissions["can_view_tasks"] is True

    unknown = await client.patch(
        f"/api/v1/teams/{team_id}/members/{member_id}/permissions",
        json={"can_fly": True},
        headers=admin,
    )
    assert unknown.status_code == 422

    denied = await client.patch(
        f"/api/v1/teams/{team_id}/members/{member_id}/permissions",
        json={"can_view_tasks": False},
        headers=viewer,
    )
    assert denied.status_code == 403
    assert denied.json()["code"] == "INSUFFICIENT_ACCESS_LEVEL"


@pytest.mark.asyncio
async def test_remove_member(client: AsyncClient):
    admin = _headers("admin")
    member = _headers("member")
    team_id = await _create_team(client, admin)
    accepted = await _invite_and_accept(client, team_id, admin, member, email="m@example.com")

    resp = await client.delete(
        f"/api/v1/teams/{team_id}/members/{accepted['member_id']}", headers=admin
    )
    assert resp.status_code == 204

    gone = await client.get(f"/api/v1/teams/{team_id}/me", headers=member)
    assert gone.status_code == 403
    assert gone.json()["code"] == "NO_MEMBERSHIP"


@pytest.mark.asyncio
async def test_delete_team(client: AsyncClient):
    admin = _headers("admin")
    member = _headers("member")
    team_id = await _create_team(client, admin)
    await _invite_and_accept(client, team_id, admin, member, email="m@example.com")

    denied = await client.delete(f"/api/v1/teams/{team_id}", headers=member)
    assert denied.status_code == 403

    resp = await client.delete(f"/api/v1/teams/{team_id}", headers=admin)
    assert resp.status_code == 204

    after = await client.get(f"/api/v1/teams/{team_id}", headers=admin)
    assert after.status_code == 403
    assert after.json()["code"] == "NO_MEMBERSHIP"


@pytest.mark.asyncio
async def test_audit_log_paginates_newest_first(client: AsyncClient):
    admin = _headers("admin")
    team_id = await _create_team(client, admin)
    for i in range(3):
        resp = await client.post(
            f"/api/v1/teams/{team_id}/invites/",
            json={"email": f"invitee{i}@example.com", "role": "FAMILY", "access_level": "FULL"},
            headers=admin,
        )
        assert resp.status_code == 201

    first = await client.get(f"/api/v1/teams/{team_id}/audit/?limit=3", headers=admin)
    assert first.status_code == 200
    page = first.json()
    assert [e["action"] for e in page["items"]] == ["INVITE_SENT"] * 3
    assert page["items"][0]["metadata"]["email"] == "invitee2@example.com"
    assert page["has_more"] is True

    second = await client.get(
        f"/api/v1/teams/{team_id}/audit/",
        params={"limit": 3, "cursor": page["next_cursor"]},
        headers=admin,
    )
    rest = second.json()
    assert [e["action"] for e in rest["items"]] == ["TEAM_CREATED"]
    assert rest["next_cursor"] is None
    assert rest["has_more"] is False

    too_many = await client.get(f"/api/v1/teams/{team_id}/audit/?limit=101", headers=admin)
    assert too_many.status_code == 422
