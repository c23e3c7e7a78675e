"""Access gate tests: membership, access level and fine-grained flag checks."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from careteam.core.denials import Denial, DenialCode
from careteam.models.enums import AccessLevel
from careteam.services.access import (
    AuthorizedContext,
    authorize,
    require_admin,
    require_capability,
)
from tests.team_helpers import add_member, make_team, make_user


@pytest.mark.asyncio
async def test_anonymous_caller_is_unauthenticated(db: AsyncSession):
    admin = await make_user(db)
    team = await make_team(db, admin)

    result = await authorize(db, None, team.id)
    assert isinstance(result, Denial)
    assert result.code == DenialCode.UNAUTHENTICATED
    assert result.status == 401


@pytest.mark.asyncio
async def test_non_member_is_denied(db: AsyncSession):
    admin = await make_user(db)
    outsider = await make_user(db)
    team = await make_team(db, admin)

    result = await authorize(db, outsider, team.id, AccessLevel.READ_ONLY)
    assert isinstance(result, Denial)
    assert result.code == DenialCode.NO_MEMBERSHIP


@pytest.mark.asyncio
async def test_read_only_member_denied_full_access(db: AsyncSession):
    admin = await make_user(db)
    viewer = await make_user(db)
    team = await make_team(db, admin)
    await add_member(db, team, viewer, access_level=AccessLevel.READ_ONLY)

    denied = await authorize(db, viewer, team.id, AccessLevel.FULL)
    assert isinstance(denied, Denial)
    assert denied.code == DenialCode.INSUFFICIENT_ACCESS_LEVEL

    allowed = await authorize(db, viewer, team.id, AccessLevel.READ_ONLY)
    assert isinstance(allowed, AuthorizedContext)


@pytest.mark.asyncio
async def test_full_member_passes_full_gate(db: AsyncSession):
    admin = await make_user(db)
    editor = await make_user(db)
    team = await make_team(db, admin)
    member = await add_member(db, team, editor, access_level=AccessLevel.FULL)

    ctx = await authorize(db, editor, team.id, AccessLevel.FULL)
    assert isinstance(ctx, AuthorizedContext)
    assert ctx.membership.id == member.id
    assert ctx.team_id == team.id
    assert ctx.is_admin is False


@pytest.mark.asyncio
async def test_read_only_admin_passes_full_gate(db: AsyncSession):
    admin = await make_user(db)
    team = await make_team(db, admin)
    other_admin = await make_user(db)
    await add_member(
        db, team, other_admin, access_level=AccessLevel.READ_ONLY, is_admin=True
    )

    ctx = await authorize(db, other_admin, team.id, AccessLevel.FULL)
    assert isinstance(ctx, AuthorizedContext)
    assert ctx.capabilities.can_manage_permissions is True


@pytest.mark.asyncio
async def test_require_capability(db: AsyncSession):
    admin = await make_user(db)
    member_user = await make_user(db)
    team = await make_team(db, admin)
    await add_member(db, team, member_user, can_view_tasks=True, can_delete_tasks=False)

    ctx = await authorize(db, member_user, team.id)
    assert isinstance(ctx, AuthorizedContext)
    assert require_capability(ctx, "can_view_tasks") is None

    denial = require_capability(ctx, "can_delete_tasks", "delete tasks")
    assert isinstance(denial, Denial)
    assert denial.code == DenialCode.INSUFFICIENT_PERMISSION
    assert denial.message == "You do not have permission to delete tasks"

    with pytest.raises(ValueError):
        require_capability(ctx, "can_fly")


@pytest.mark.asyncio
async def test_require_admin(db: AsyncSession):
    admin = await make_user(db)
    member_user = await make_user(db)
    team = await make_team(db, admin)
    await add_member(db, team, member_user)

    admin_ctx = await authorize(db, admin, team.id)
    member_ctx = await authorize(db, member_user, team.id)
    assert require_admin(admin_ctx) is None
    denial = require_admin(member_ctx, "invite team members")
    assert denial.code == DenialCode.INSUFFICIENT_PERMISSION
    assert denial.message == "Only admins can invite team members"
