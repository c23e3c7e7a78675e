"""Team member management endpoints."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from careteam.core.dependencies import get_db, get_optional_user
from careteam.core.exceptions import raise_for_denial
from careteam.models.care_team_member import CareTeamMember
from careteam.models.enums import AccessLevel
from careteam.models.user import User
from careteam.schemas.member import MemberResponse, MemberRoleUpdate, PermissionsUpdate
from careteam.services import membership
from careteam.services.access import authorize, require_capability
from careteam.services.invites import invite_state
from careteam.services.permissions import MembershipSnapshot, resolve_capabilities

router = APIRouter()


def member_response(m: CareTeamMember) -> MemberResponse:
    if m.user_id is not None:
        status = "ACTIVE"
        email = m.user.email if m.user else None
        name = m.user.display_name if m.user else None
    else:
        status = invite_state(m)
        email = m.invite_email
        name = m.invited_name
    return MemberResponse(
        id=m.id,
        user_id=m.user_id,
        email=email,
        name=name,
        team_role=m.team_role,
        is_admin=m.is_admin,
        access_level=m.access_level,
        permissions=resolve_capabilities(MembershipSnapshot.from_member(m)).as_dict(),
        status=status,
        invited_at=m.invited_at,
        accepted_at=m.accepted_at,
    )


@router.get("/", response_model=list[MemberResponse])
async def list_members(
    team_id: uuid.UUID,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """List team members. Pending invites are included for members who may invite."""
    ctx = await authorize(db, user, team_id, AccessLevel.READ_ONLY)
    raise_for_denial(ctx)
    raise_for_denial(require_capability(ctx, "can_view_members", "view team members"))

    members = await membership.list_members(db, ctx)
    return [member_response(m) for m in members]


@router.patch("/{member_id}", response_model=MemberResponse)
async def update_member(
    team_id: uuid.UUID,
    member_id: uuid.UUID,
    body: MemberRoleUpdate,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Change role, access level or admin status. Admin only."""
    member = await membership.update_member_role(
        db,
        team_id=team_id,
        member_id=member_id,
        actor=user,
        team_role=body.team_role,
        access_level=body.access_level,
        is_admin=body.is_admin,
        reset_permissions=body.reset_permissions,
    )
    raise_for_denial(member)
    await db.refresh(member, ["user"])
    return member_response(member)


@router.patch("/{member_id}/permissions", response_model=MemberResponse)
async def update_permissions(
    team_id: uuid.UUID,
    member_id: uuid.UUID,
    body: PermissionsUpdate,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    member = await membership.update_member_permissions(
        db, team_id=team_id, member_id=member_id, actor=user, updates=body.updates()
    )
    raise_for_denial(member)
    await db.refresh(member, ["user"])
    return member_response(member)


@router.delete("/{member_id}", status_code=204)
async def remove_member(
    team_id: uuid.UUID,
    member_id: uuid.UUID,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Remove a member from the team. Cannot remove the last admin."""
    raise_for_denial(
        await membership.remove_member(db, team_id=team_id, member_id=member_id, actor=user)
    )
