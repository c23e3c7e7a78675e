"""Invitation endpoints.

Team-scoped routes (create, list, revoke) require an admin. The public
routes look an invite up by code without authentication and accept it as
the signed-in user.
"""

import uuid
from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from careteam.core.dependencies import get_db, get_optional_user
from careteam.core.exceptions import raise_for_denial
from careteam.models.care_team import CareTeam
from careteam.models.enums import AccessLevel
from careteam.models.user import User
from careteam.schemas.invite import (
    InviteAccept,
    InviteAccepted,
    InviteCreate,
    InviteCreated,
    InvitePublic,
    PendingInviteResponse,
)
from careteam.services import invites
from careteam.services.access import authorize, require_admin

team_router = APIRouter()
public_router = APIRouter()


@team_router.post("/", response_model=InviteCreated, status_code=201)
async def create_invite(
    team_id: uuid.UUID,
    body: InviteCreate,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Invite someone by email. The invite link is emailed on a best-effort basis."""
    invite = await invites.create_invite(
        db,
        team_id=team_id,
        actor=user,
        email=body.email,
        role=body.role,
        access_level=body.access_level,
        invited_name=body.name,
    )
    raise_for_denial(invite)
    return InviteCreated(id=invite.id, email=invite.invite_email, code=invite.invite_code)


@team_router.get("/", response_model=list[PendingInviteResponse])
async def list_invites(
    team_id: uuid.UUID,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    ctx = await authorize(db, user, team_id, AccessLevel.FULL)
    raise_for_denial(ctx)
    raise_for_denial(require_admin(ctx, "view invitations"))

    pending = await invites.list_pending_invites(db, team_id)
    return [
        PendingInviteResponse(
            id=i.id,
            email=i.invite_email,
            invited_name=i.invited_name,
            role=i.team_role,
            access_level=i.access_level,
            state=invites.invite_state(i),
            invited_at=i.invited_at,
        )
        for i in pending
    ]


@team_router.delete("/{invite_id}", status_code=204)
async def revoke_invite(
    team_id: uuid.UUID,
    invite_id: uuid.UUID,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    raise_for_denial(
        await invites.revoke_invite(db, team_id=team_id, invite_id=invite_id, actor=user)
    )


@public_router.get("/{code}", response_model=InvitePublic)
async def lookup_invite(code: str, db: AsyncSession = Depends(get_db)):
    """Public invite details for the accept page. No authentication required."""
    lookup = await invites.lookup_invite(db, code)
    raise_for_denial(lookup)
    return InvitePublic(**asdict(lookup))


@public_router.post("/accept", response_model=InviteAccepted)
async def accept_invite(
    body: InviteAccept,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    member = await invites.accept_invite(db, body.invite_code.strip(), user)
    raise_for_denial(member)
    team = await db.get(CareTeam, member.team_id)
    return InviteAccepted(
        team_id=member.team_id,
        team_name=team.name,
        member_id=member.id,
        role=member.team_role,
        access_level=member.access_level,
    )
