"""Invite endpoints: create, public lookup, accept, list, revoke."""

import uuid

import pytest
from httpx import AsyncClient

from tests.team_helpers import auth_headers


def _uid() -> str:
    return uuid.uuid4().hex[:8]


async def _setup(client: AsyncClient) -> tuple[dict, str]:
    uid = _uid()
    headers = auth_headers(sub=f"owner-{uid}", email=f"owner-{uid}@example.com")
    resp = await client.post(
        "/api/v1/teams/", json={"name": "Alex's Care Team"}, headers=headers
    )
    assert resp.status_code == 201, resp.text
    return headers, resp.json()["id"]


async def _invite(client, team_id, headers, email="caregiver@example.com", **body):
    body = {"email": email, "role": "CAREGIVER", "access_level": "READ_ONLY", **body}
    return await client.post(f"/api/v1/teams/{team_id}/invites/", json=body, headers=headers)


@pytest.mark.asyncio
async def test_read_only_invite_end_to_end(client: AsyncClient):
    admin, team_id = await _setup(client)
    created = await _invite(client, team_id, admin, name="Casey")
    assert created.status_code == 201, created.text
    code = created.json()["code"]

    # Public lookup needs no token and exposes only masked contact info
    lookup = await client.get(f"/api/v1/invites/{code}")
    assert lookup.status_code == 200
    info = lookup.json()
    assert info["team_name"] == "Alex's Care Team"
    assert info["masked_email"] == "ca*******@example.com"
    assert info["invited_name"] == "Casey"
    assert info["access_level"] == "READ_ONLY"
    assert "team_id" not in info

    caregiver = auth_headers(sub=f"cg-{_uid()}", email="caregiver@example.com")
    accepted = await client.post(
        "/api/v1/invites/accept", json={"invite_code": code}, headers=caregiver
    )
    assert accepted.status_code == 200, accepted.text
    assert accepted.json()["team_id"] == team_id
    assert accepted.json()["access_level"] == "READ_ONLY"

    me = await client.get(f"/api/v1/teams/{team_id}/me", headers=caregiver)
    caps = me.json()["capabilities"]
    assert caps["can_view_tasks"] is True
    assert caps["can_create_tasks"] is False
    assert me.json()["can_access_journey"] is False

    again = await client.post(
        "/api/v1/invites/accept", json={"invite_code": code}, headers=caregiver
    )
    assert again.status_code == 409
    assert again.json()["code"] == "INVITE_ALREADY_ACCEPTED"

    lookup_after = await client.get(f"/api/v1/invites/{code}")
    assert lookup_after.status_code == 409


@pytest.mark.asyncio
async def test_accept_requires_login(client: AsyncClient):
    admin, team_id = await _setup(client)
    code = (await _invite(client, team_id, admin)).json()["code"]

    resp = await client.post("/api/v1/invites/accept", json={"invite_code": code})
    assert resp.status_code == 401
    assert resp.json()["code"] == "UNAUTHENTICATED"


@pytest.mark.asyncio
@pytest.mark.parametrize("code", ["nope", "0" * 32, "A" * 32])
async def test_lookup_unknown_code(client: AsyncClient, code):
    resp = await client.get(f"/api/v1/invites/{code}")
    assert resp.status_code == 404
    assert resp.json()["code"] == "INVITE_NOT_FOUND"


@pytest.mark.asyncio
async def test_duplicate_invite_conflict(client: AsyncClient):
    admin, team_id = await _setup(client)
    assert (await _invite(client, team_id, admin)).status_code == 201

    dup = await _invite(client, team_id, admin, email="Caregiver@example.com")
    assert dup.status_code == 409
    assert dup.json()["code"] == "DUPLICATE_PENDING_INVITE"


@pytest.mark.asyncio
async def test_invalid_invite_body(client: AsyncClient):
    admin, team_id = await _setup(client)
    resp = await _invite(client, team_id, admin, email="not-an-email", role="SURGEON")
    assert resp.status_code == 422
    assert resp.json()["title"] == "Validation Error"


@pytest.mark.asyncio
async def test_non_admin_cannot_invite(client: AsyncClient):
    admin, team_id = await _setup(client)
    code = (await _invite(client, team_id, admin, access_level="FULL")).json()["code"]
    member = auth_headers(sub=f"m-{_uid()}", email=f"m-{_uid()}@example.com")
    await client.post("/api/v1/invites/accept", json={"invite_code": code}, headers=member)

    resp = await _invite(client, team_id, member, email="other@example.com")
    assert resp.status_code == 403
    assert resp.json()["code"] == "INSUFFICIENT_PERMISSION"


@pytest.mark.asyncio
async def test_list_and_revoke_pending_invites(client: AsyncClient):
    admin, team_id = await _setup(client)
    created = await _invite(client, team_id, admin, email="pending@example.com")
    invite_id = created.json()["id"]
    code = created.json()["code"]

    listed = await client.get(f"/api/v1/teams/{team_id}/invites/", headers=admin)
    assert listed.status_code == 200
    assert [i["id"] for i in listed.json()] == [invite_id]
    assert listed.json()[0]["state"] == "PENDING"

    members = await client.get(f"/api/v1/teams/{team_id}/members/", headers=admin)
    statuses = sorted(m["status"] for m in members.json())
    assert statuses == ["ACTIVE", "PENDING"]

    revoked = await client.delete(
        f"/api/v1/teams/{team_id}/invites/{invite_id}", headers=admin
    )
    assert revoked.status_code == 204

    assert (await client.get(f"/api/v1/invites/{code}")).status_code == 404
    listed = await client.get(f"/api/v1/teams/{team_id}/invites/", headers=admin)
    assert listed.json() == []
