"""Care team endpoints: create, read, delete, leave, caller capabilities."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from careteam.core.denials import Denial, DenialCode
from careteam.core.dependencies import get_db, get_optional_user
from careteam.core.exceptions import raise_for_denial
from careteam.models.care_team import CareTeam
from careteam.models.enums import AccessLevel
from careteam.models.user import User
from careteam.schemas.team import CapabilitiesResponse, TeamCreate, TeamResponse
from careteam.services import membership
from careteam.services.access import authorize
from careteam.services.journey import can_access_journey, can_edit_journey

router = APIRouter()


@router.post("/", response_model=TeamResponse, status_code=201)
async def create_team(
    body: TeamCreate,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a care team. The authenticated user becomes its first admin."""
    team = await membership.create_team(db, creator=user, name=body.name)
    raise_for_denial(team)
    return team


@router.get("/{team_id}", response_model=TeamResponse)
async def get_team(
    team_id: uuid.UUID,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    ctx = await authorize(db, user, team_id, AccessLevel.READ_ONLY)
    raise_for_denial(ctx)
    team = await db.get(CareTeam, team_id)
    if team is None:
        raise_for_denial(Denial(DenialCode.TEAM_NOT_FOUND))
    return team


@router.delete("/{team_id}", status_code=204)
async def delete_team(
    team_id: uuid.UUID,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete the team and all of its memberships, invites and journey data. Admin only."""
    raise_for_denial(await membership.delete_team(db, team_id=team_id, actor=user))


@router.post("/{team_id}/leave", status_code=204)
async def leave_team(
    team_id: uuid.UUID,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Leave the team. The last admin must hand over admin rights first."""
    raise_for_denial(await membership.leave_team(db, team_id=team_id, user=user))


@router.get("/{team_id}/me", response_model=CapabilitiesResponse)
async def my_capabilities(
    team_id: uuid.UUID,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's membership and effective capabilities in this team."""
    ctx = await authorize(db, user, team_id, AccessLevel.READ_ONLY)
    raise_for_denial(ctx)
    return CapabilitiesResponse(
        team_id=team_id,
        member_id=ctx.membership.id,
        team_role=ctx.membership.team_role,
        is_admin=ctx.is_admin,
        access_level=ctx.membership.access_level,
        capabilities=ctx.capabilities.as_dict(),
        can_access_journey=can_access_journey(ctx.membership),
        can_edit_journey=can_edit_journey(ctx.membership),
    )
