"""Team and membership mutations guarded by the sole-admin rule.

Every path that removes a member or demotes an admin calls
``guard_removal`` and then writes inside the same transaction. The guard
locks the team row first, so two admins leaving at once are serialized and
the second one sees the first one's removal.
"""

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from careteam.core.denials import Denial, DenialCode
from careteam.models.audit_log import AuditLog
from careteam.models.care_team import CareTeam
from careteam.models.care_team_member import CareTeamMember
from careteam.models.enums import AccessLevel, TeamRole, UserRole
from careteam.models.journey import (
    JourneyEntry,
    JourneySection,
    JourneySectionRevision,
    JourneySnapshot,
    PatientJourney,
)
from careteam.models.user import User
from careteam.services.access import (
    AuthorizedContext,
    authorize,
    require_admin,
    require_capability,
)
from careteam.services.audit import AuditAction, record_audit
from careteam.services.permissions import (
    ALL_GRANTED,
    FLAG_NAMES,
    default_permissions,
    enforce_read_only,
    may_create_burden_scales,
)

logger = logging.getLogger(__name__)


async def count_active_admins(db: AsyncSession, team_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(CareTeamMember)
        .where(
            CareTeamMember.team_id == team_id,
            CareTeamMember.is_admin.is_(True),
            CareTeamMember.user_id.is_not(None),
            CareTeamMember.accepted_at.is_not(None),
        )
    )
    return result.scalar_one()


async def lock_team(db: AsyncSession, team_id: uuid.UUID) -> CareTeam | None:
    result = await db.execute(select(CareTeam).where(CareTeam.id == team_id).with_for_update())
    return result.scalar_one_or_none()


async def guard_removal(
    db: AsyncSession, team_id: uuid.UUID, membership: CareTeamMember
) -> Denial | None:
    """Refuse to remove or demote the last admin of a team.

    Must run in the transaction that then performs the delete or demotion.
    """
    if not membership.is_admin:
        return None

    await lock_team(db, team_id)
    if await count_active_admins(db, team_id) <= 1:
        logger.info("Sole admin %s of team %s blocked from removal", membership.id, team_id)
        return Denial(DenialCode.SOLE_ADMIN_CANNOT_LEAVE)
    return None


async def _get_active_member(
    db: AsyncSession, team_id: uuid.UUID, member_id: uuid.UUID
) -> CareTeamMember | None:
    result = await db.execute(
        select(CareTeamMember).where(
            CareTeamMember.id == member_id,
            CareTeamMember.team_id == team_id,
            CareTeamMember.user_id.is_not(None),
        )
    )
    return result.scalar_one_or_none()


async def create_team(
    db: AsyncSession, *, creator: User | None, name: str
) -> CareTeam | Denial:
    """Create a team whose creator is its first admin."""
    if creator is None:
        return Denial(DenialCode.UNAUTHENTICATED)

    team = CareTeam(name=name.strip())
    if creator.role == UserRole.PATIENT:
        team.patient_id = creator.id
    db.add(team)
    await db.flush()

    team_role = (
        TeamRole(creator.role) if creator.role in TeamRole.__members__ else TeamRole.CAREGIVER
    )
    now = datetime.now(UTC)
    db.add(
        CareTeamMember(
            team_id=team.id,
            user_id=creator.id,
            team_role=team_role,
            is_admin=True,
            access_level=AccessLevel.FULL,
            accepted_at=now,
            joined_at=now,
            **ALL_GRANTED.as_dict(),
        )
    )
    await db.flush()

    await record_audit(
        db,
        team_id=team.id,
        actor_id=creator.id,
        action=AuditAction.TEAM_CREATED,
        entity_type="CareTeam",
        entity_id=team.id,
        metadata={"team_name": team.name},
    )
    await db.refresh(team)
    return team


async def delete_team(
    db: AsyncSession, *, team_id: uuid.UUID, actor: User | None
) -> CareTeam | Denial:
    """Delete a team and everything that references it. Admin only.

    Dependents are deleted explicitly, leaves first, so nothing is left
    pointing at the team whatever the storage layer's cascade settings.
    """
    ctx = await authorize(db, actor, team_id, AccessLevel.FULL)
    if isinstance(ctx, Denial):
        return ctx
    if denial := require_admin(ctx, "delete the team"):
        return denial

    team = await lock_team(db, team_id)
    if team is None:
        return Denial(DenialCode.TEAM_NOT_FOUND)
    team_name = team.name

    journey_ids = select(PatientJourney.id).where(PatientJourney.team_id == team_id)
    section_ids = select(JourneySection.id).where(JourneySection.journey_id.in_(journey_ids))
    for stmt in (
        delete(JourneySectionRevision).where(JourneySectionRevision.section_id.in_(section_ids)),
        delete(JourneySection).where(JourneySection.journey_id.in_(journey_ids)),
        delete(JourneyEntry).where(JourneyEntry.journey_id.in_(journey_ids)),
        delete(JourneySnapshot).where(JourneySnapshot.journey_id.in_(journey_ids)),
        delete(PatientJourney).where(PatientJourney.team_id == team_id),
        delete(CareTeamMember).where(CareTeamMember.team_id == team_id),
        delete(AuditLog).where(AuditLog.team_id == team_id),
        delete(CareTeam).where(CareTeam.id == team_id),
    ):
        await db.execute(stmt.execution_options(synchronize_session=False))
    db.expunge(team)

    await record_audit(
        db,
        team_id=None,
        actor_id=ctx.user.id,
        action=AuditAction.TEAM_DELETED,
        entity_type="CareTeam",
        entity_id=team_id,
        metadata={"team_id": str(team_id), "team_name": team_name},
    )
    logger.info("Team %s deleted by %s", team_id, ctx.user.id)
    return team


async def list_members(db: AsyncSession, ctx: AuthorizedContext) -> list[CareTeamMember]:
    """Active members, plus pending invites for callers who may invite."""
    stmt = (
        select(CareTeamMember)
        .options(selectinload(CareTeamMember.user))
        .where(CareTeamMember.team_id == ctx.team_id)
        .order_by(CareTeamMember.joined_at.asc())
    )
    if not ctx.capabilities.can_invite_members:
        stmt = stmt.where(CareTeamMember.user_id.is_not(None))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def leave_team(
    db: AsyncSession, *, team_id: uuid.UUID, user: User | None
) -> CareTeamMember | Denial:
    """Remove the caller's own membership."""
    ctx = await authorize(db, user, team_id, AccessLevel.READ_ONLY)
    if isinstance(ctx, Denial):
        return ctx

    if denial := await guard_removal(db, team_id, ctx.membership):
        return denial

    await record_audit(
        db,
        team_id=team_id,
        actor_id=ctx.user.id,
        action=AuditAction.MEMBER_LEFT,
        entity_type="CareTeamMember",
        entity_id=ctx.membership.id,
    )
    await db.delete(ctx.membership)
    await db.flush()
    return ctx.membership


async def remove_member(
    db: AsyncSession, *, team_id: uuid.UUID, member_id: uuid.UUID, actor: User | None
) -> CareTeamMember | Denial:
    """Remove another member. Admins, or members granted ``can_remove_members``."""
    ctx = await authorize(db, actor, team_id, AccessLevel.FULL)
    if isinstance(ctx, Denial):
        return ctx
    if denial := require_capability(ctx, "can_remove_members", "remove team members"):
        return denial

    target = await _get_active_member(db, team_id, member_id)
    if target is None:
        return Denial(DenialCode.MEMBER_NOT_FOUND)
    if target.is_admin and (denial := require_admin(ctx, "remove an admin")):
        return denial

    if denial := await guard_removal(db, team_id, target):
        return denial

    await record_audit(
        db,
        team_id=team_id,
        actor_id=ctx.user.id,
        action=AuditAction.MEMBER_REMOVED,
        entity_type="CareTeamMember",
        entity_id=target.id,
        metadata={"user_id": str(target.user_id)},
    )
    await db.delete(target)
    await db.flush()
    return target


async def update_member_role(
    db: AsyncSession,
    *,
    team_id: uuid.UUID,
    member_id: uuid.UUID,
    actor: User | None,
    team_role: TeamRole | None = None,
    access_level: AccessLevel | None = None,
    is_admin: bool | None = None,
    reset_permissions: bool = False,
) -> CareTeamMember | Denial:
    """Change role, access level or admin status. Admin only.

    Stored flags are kept across access-level changes unless
    ``reset_permissions`` asks for the defaults of the new level. Demoting an
    admin always resets the flags to the defaults of its access level.
    """
    ctx = await authorize(db, actor, team_id, AccessLevel.FULL)
    if isinstance(ctx, Denial):
        return ctx
    if denial := require_admin(ctx, "update member roles"):
        return denial

    target = await _get_active_member(db, team_id, member_id)
    if target is None:
        return Denial(DenialCode.MEMBER_NOT_FOUND)

    if is_admin is False and target.is_admin:
        if denial := await guard_removal(db, team_id, target):
            return denial

    before = {
        "team_role": target.team_role,
        "access_level": target.access_level,
        "is_admin": target.is_admin,
    }
    if team_role is not None:
        target.team_role = team_role
    if access_level is not None:
        target.access_level = access_level
    if is_admin is not None:
        target.is_admin = is_admin
    demoted = before["is_admin"] and not target.is_admin
    if reset_permissions or demoted:
        for name, value in default_permissions(target.access_level).as_dict().items():
            setattr(target, name, value)
    if not may_create_burden_scales(target.team_role):
        target.can_create_burden_scales = False
    await db.flush()

    await record_audit(
        db,
        team_id=team_id,
        actor_id=ctx.user.id,
        action=AuditAction.MEMBER_ROLE_CHANGED,
        entity_type="CareTeamMember",
        entity_id=target.id,
        metadata={
            "before": before,
            "after": {
                "team_role": target.team_role,
                "access_level": target.access_level,
                "is_admin": target.is_admin,
            },
            "reset_permissions": reset_permissions or demoted,
        },
    )
    return target


async def update_member_permissions(
    db: AsyncSession,
    *,
    team_id: uuid.UUID,
    member_id: uuid.UUID,
    actor: User | None,
    updates: dict[str, bool],
) -> CareTeamMember | Denial:
    """Partially update a member's flags.

    Write flags of READ_ONLY members are stored as False; admins' flags are
    not editable since admins bypass them.
    """
    unknown = set(updates) - set(FLAG_NAMES)
    if unknown:
        raise ValueError(f"Unknown permission flags: {sorted(unknown)}")

    ctx = await authorize(db, actor, team_id, AccessLevel.FULL)
    if isinstance(ctx, Denial):
        return ctx
    if denial := require_capability(ctx, "can_manage_permissions", "manage permissions"):
        return denial

    target = await _get_active_member(db, team_id, member_id)
    if target is None:
        return Denial(DenialCode.MEMBER_NOT_FOUND)
    if target.is_admin:
        return Denial(DenialCode.CANNOT_MODIFY_ADMIN_PERMISSIONS)
    if target.id == ctx.membership.id and not ctx.is_admin:
        return Denial(
            DenialCode.INSUFFICIENT_PERMISSION, "You cannot change your own permissions"
        )

    enforced = enforce_read_only(updates, target.access_level, target.is_admin)
    if not may_create_burden_scales(target.team_role):
        enforced["can_create_burden_scales"] = False
    changed = {}
    for name, value in enforced.items():
        if getattr(target, name) != value:
            changed[name] = value
            setattr(target, name, value)
    await db.flush()

    await record_audit(
        db,
        team_id=team_id,
        actor_id=ctx.user.id,
        action=AuditAction.PERMISSION_CHANGED,
        entity_type="CareTeamMember",
        entity_id=target.id,
        metadata={"changed": changed},
    )
    return target
