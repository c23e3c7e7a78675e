"""Invite lifecycle: NONE -> PENDING -> ACCEPTED | EXPIRED | REVOKED.

A pending invite is a ``CareTeamMember`` row with ``user_id`` NULL carrying
the role, access level and flags to apply on acceptance. Acceptance binds
the row to the accepting user with a single conditional UPDATE, so two
concurrent acceptances of one code cannot both succeed.
"""

import logging
import re
import secrets
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from careteam.core.config import settings
from careteam.core.denials import Denial, DenialCode
from careteam.models.care_team import CareTeam
from careteam.models.care_team_member import CareTeamMember
from careteam.models.enums import AccessLevel, TeamRole
from careteam.models.user import User
from careteam.services.access import authorize, get_active_membership, require_admin
from careteam.services.audit import AuditAction, record_audit
from careteam.services.email import InviteEmail, send_invite_email
from careteam.services.membership import lock_team
from careteam.services.permissions import invite_permissions

logger = logging.getLogger(__name__)

INVITE_CODE_BYTES = 16  # 128 bits
INVITE_CODE_PATTERN = re.compile(r"^[0-9a-f]{32}$")

EmailSender = Callable[[InviteEmail], Awaitable[bool]]


class InviteState(StrEnum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    EXPIRED = "EXPIRED"


@dataclass(frozen=True)
class InviteLookup:
    """Public view of an invite, safe to show to an unauthenticated visitor."""

    team_name: str
    inviter_name: str
    role: str
    role_display: str
    masked_email: str
    invited_name: str | None
    access_level: str
    invited_at: datetime | None
    expires_at: datetime | None


def invite_expiry() -> timedelta:
    return timedelta(days=settings.INVITE_EXPIRY_DAYS)


def _as_utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt


def invite_state(invite: CareTeamMember, now: datetime | None = None) -> InviteState:
    if invite.accepted_at is not None or invite.user_id is not None:
        return InviteState.ACCEPTED
    now = now or datetime.now(UTC)
    if invite.invited_at is not None and now - _as_utc(invite.invited_at) > invite_expiry():
        return InviteState.EXPIRED
    return InviteState.PENDING


def generate_invite_code() -> str:
    return secrets.token_hex(INVITE_CODE_BYTES)


def mask_email(email: str | None) -> str:
    """``caregiver@example.com`` -> ``ca*******@example.com``."""
    if not email or "@" not in email:
        return ""
    local, domain = email.split("@", 1)
    visible = local[:2] if len(local) > 2 else local[:1]
    return f"{visible}{'*' * max(len(local) - len(visible), 1)}@{domain}"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _denial_for_state(state: InviteState) -> Denial | None:
    if state == InviteState.ACCEPTED:
        return Denial(DenialCode.INVITE_ALREADY_ACCEPTED)
    if state == InviteState.EXPIRED:
        return Denial(DenialCode.INVITE_EXPIRED)
    return None


async def _find_bound_member_by_email(
    db: AsyncSession, team_id: uuid.UUID, email: str
) -> CareTeamMember | None:
    result = await db.execute(
        select(CareTeamMember)
        .join(User, CareTeamMember.user_id == User.id)
        .where(CareTeamMember.team_id == team_id, func.lower(User.email) == email)
    )
    return result.scalars().first()


async def _inviter_name(db: AsyncSession, invite: CareTeamMember) -> str:
    inviter = None
    if invite.invited_by_id is not None:
        inviter = await db.get(User, invite.invited_by_id)
    if inviter is None:
        result = await db.execute(
            select(User)
            .join(CareTeamMember, CareTeamMember.user_id == User.id)
            .where(CareTeamMember.team_id == invite.team_id, CareTeamMember.is_admin.is_(True))
            .order_by(CareTeamMember.joined_at.asc())
            .limit(1)
        )
        inviter = result.scalar_one_or_none()
    return inviter.display_name if inviter else "Team Admin"


async def create_invite(
    db: AsyncSession,
    *,
    team_id: uuid.UUID,
    actor: User | None,
    email: str,
    role: TeamRole,
    access_level: AccessLevel,
    invited_name: str | None = None,
    send_email: EmailSender = send_invite_email,
    now: datetime | None = None,
) -> CareTeamMember | Denial:
    """Issue a pending invite. Admin only. Returns the invite row (with its code)."""
    ctx = await authorize(db, actor, team_id, AccessLevel.FULL)
    if isinstance(ctx, Denial):
        return ctx
    if denial := require_admin(ctx, "invite team members"):
        return denial

    # Serializes concurrent invites to the same team so the duplicate check holds
    team = await lock_team(db, team_id)
    if team is None:
        return Denial(DenialCode.TEAM_NOT_FOUND)

    email = normalize_email(email)
    now = now or datetime.now(UTC)

    if await _find_bound_member_by_email(db, team_id, email) is not None:
        return Denial(DenialCode.ALREADY_TEAM_MEMBER)

    result = await db.execute(
        select(CareTeamMember).where(
            CareTeamMember.team_id == team_id,
            CareTeamMember.user_id.is_(None),
            func.lower(CareTeamMember.invite_email) == email,
        )
    )
    previous = list(result.scalars().all())
    if any(invite_state(p, now) == InviteState.PENDING for p in previous):
        return Denial(DenialCode.DUPLICATE_PENDING_INVITE)
    # Expired invites for this address are replaced by the fresh one
    for stale in previous:
        await db.delete(stale)
    await db.flush()

    invited_name = (invited_name or "").strip() or email.split("@")[0]
    invite = CareTeamMember(
        team_id=team_id,
        user_id=None,
        team_role=role,
        is_admin=False,
        access_level=access_level,
        invite_code=generate_invite_code(),
        invite_email=email,
        invited_name=invited_name,
        invited_by_id=ctx.user.id,
        invited_at=now,
        **invite_permissions(access_level).as_dict(),
    )
    db.add(invite)
    await db.flush()

    await record_audit(
        db,
        team_id=team_id,
        actor_id=ctx.user.id,
        action=AuditAction.INVITE_SENT,
        entity_type="CareTeamMember",
        entity_id=invite.id,
        metadata={"email": email, "role": str(role), "access_level": str(access_level)},
    )

    message = InviteEmail(
        to=email,
        invite_code=invite.invite_code,
        inviter_name=ctx.user.display_name,
        team_name=team.name,
        role=str(role),
        invited_name=invited_name,
    )
    try:
        delivered = await send_email(message)
    except Exception:
        # Delivery is best-effort; the invite stands without the email
        logger.exception("Invite email dispatch failed for team %s", team_id)
        delivered = False
    logger.info(
        "Invite created team=%s role=%s access=%s delivered=%s",
        team_id,
        role,
        access_level,
        delivered,
    )
    return invite


async def lookup_invite(
    db: AsyncSession, code: str, now: datetime | None = None
) -> InviteLookup | Denial:
    """Public invite metadata for the accept page. No authentication."""
    if not code or not INVITE_CODE_PATTERN.match(code):
        return Denial(DenialCode.INVITE_NOT_FOUND)

    result = await db.execute(select(CareTeamMember).where(CareTeamMember.invite_code == code))
    invite = result.scalar_one_or_none()
    if invite is None:
        return Denial(DenialCode.INVITE_NOT_FOUND)

    if denial := _denial_for_state(invite_state(invite, now)):
        return denial

    team = await db.get(CareTeam, invite.team_id)
    invited_at = _as_utc(invite.invited_at) if invite.invited_at else None
    return InviteLookup(
        team_name=team.name,
        inviter_name=await _inviter_name(db, invite),
        role=invite.team_role,
        role_display="Admin" if invite.is_admin else "Team Member",
        masked_email=mask_email(invite.invite_email),
        invited_name=invite.invited_name,
        access_level=invite.access_level,
        invited_at=invited_at,
        expires_at=invited_at + invite_expiry() if invited_at else None,
    )


async def accept_invite(
    db: AsyncSession, code: str, user: User | None, now: datetime | None = None
) -> CareTeamMember | Denial:
    """Bind a pending invite to ``user``.

    The state checks below give precise denials for the common cases; the
    conditional UPDATE is what actually guarantees single use when two
    requests race past them.
    """
    if user is None:
        return Denial(DenialCode.UNAUTHENTICATED)
    if not code or not INVITE_CODE_PATTERN.match(code):
        return Denial(DenialCode.INVITE_NOT_FOUND)

    result = await db.execute(select(CareTeamMember).where(CareTeamMember.invite_code == code))
    invite = result.scalar_one_or_none()
    if invite is None:
        return Denial(DenialCode.INVITE_NOT_FOUND)

    now = now or datetime.now(UTC)
    if denial := _denial_for_state(invite_state(invite, now)):
        return denial

    if await get_active_membership(db, user.id, invite.team_id) is not None:
        return Denial(DenialCode.ALREADY_TEAM_MEMBER)

    try:
        async with db.begin_nested():
            claimed = await db.execute(
                update(CareTeamMember)
                .where(
                    CareTeamMember.id == invite.id,
                    CareTeamMember.accepted_at.is_(None),
                    CareTeamMember.user_id.is_(None),
                )
                .values(user_id=user.id, accepted_at=now)
                .execution_options(synchronize_session=False)
            )
    except IntegrityError:
        # Another invite to this team was accepted by the same user after our check
        logger.info("User %s joined team %s through another invite", user.id, invite.team_id)
        return Denial(DenialCode.ALREADY_TEAM_MEMBER)
    if claimed.rowcount != 1:
        logger.info("Invite %s lost an acceptance race", invite.id)
        return Denial(DenialCode.INVITE_ALREADY_ACCEPTED)

    await db.refresh(invite)
    await record_audit(
        db,
        team_id=invite.team_id,
        actor_id=user.id,
        action=AuditAction.INVITE_ACCEPTED,
        entity_type="CareTeamMember",
        entity_id=invite.id,
        metadata={"role": invite.team_role, "access_level": invite.access_level},
    )
    logger.info("Invite accepted team=%s user=%s", invite.team_id, user.id)
    return invite


async def revoke_invite(
    db: AsyncSession,
    *,
    team_id: uuid.UUID,
    invite_id: uuid.UUID,
    actor: User | None,
    now: datetime | None = None,
) -> CareTeamMember | Denial:
    """Delete a pending invite. Admin only."""
    ctx = await authorize(db, actor, team_id, AccessLevel.FULL)
    if isinstance(ctx, Denial):
        return ctx
    if denial := require_admin(ctx, "revoke invitations"):
        return denial

    invite = await db.get(CareTeamMember, invite_id)
    if invite is None or invite.team_id != team_id:
        return Denial(DenialCode.INVITE_NOT_FOUND)
    if denial := _denial_for_state(invite_state(invite, now)):
        return denial

    await db.delete(invite)
    await db.flush()
    await record_audit(
        db,
        team_id=team_id,
        actor_id=ctx.user.id,
        action=AuditAction.INVITE_REVOKED,
        entity_type="CareTeamMember",
        entity_id=invite.id,
        metadata={"email": invite.invite_email},
    )
    return invite


async def list_pending_invites(
    db: AsyncSession, team_id: uuid.UUID
) -> list[CareTeamMember]:
    """Unaccepted invites of a team, expired ones included, newest first."""
    result = await db.execute(
        select(CareTeamMember)
        .where(CareTeamMember.team_id == team_id, CareTeamMember.user_id.is_(None))
        .order_by(CareTeamMember.invited_at.desc())
    )
    return list(result.scalars().all())
