"""Access gate: the coarse team check every resource handler runs first.

``authorize`` answers "is this caller an active member of the team with at
least the required access level". Action-specific checks go through
``require_capability`` on the returned context afterwards.
"""

import uuid
from dataclasses import dataclass
from functools import cached_property

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from careteam.core.denials import Denial, DenialCode
from careteam.models.care_team_member import CareTeamMember
from careteam.models.enums import AccessLevel
from careteam.models.user import User
from careteam.services.permissions import (
    FLAG_NAMES,
    MembershipSnapshot,
    PermissionFlags,
    resolve_capabilities,
)


@dataclass
class AuthorizedContext:
    user: User
    membership: CareTeamMember

    @property
    def team_id(self) -> uuid.UUID:
        return self.membership.team_id

    @property
    def is_admin(self) -> bool:
        return self.membership.is_admin

    @cached_property
    def snapshot(self) -> MembershipSnapshot:
        return MembershipSnapshot.from_member(self.membership)

    @cached_property
    def capabilities(self) -> PermissionFlags:
        return resolve_capabilities(self.snapshot)


async def get_active_membership(
    db: AsyncSession, user_id: uuid.UUID, team_id: uuid.UUID
) -> CareTeamMember | None:
    result = await db.execute(
        select(CareTeamMember).where(
            CareTeamMember.team_id == team_id,
            CareTeamMember.user_id == user_id,
            CareTeamMember.accepted_at.is_not(None),
        )
    )
    return result.scalar_one_or_none()


def meets_access_level(membership: CareTeamMember, required_level: AccessLevel) -> bool:
    if required_level == AccessLevel.READ_ONLY:
        return True
    return membership.is_admin or membership.access_level == AccessLevel.FULL


async def authorize(
    db: AsyncSession,
    caller: User | None,
    team_id: uuid.UUID,
    required_level: AccessLevel = AccessLevel.FULL,
) -> AuthorizedContext | Denial:
    """Resolve the caller's membership of ``team_id``.

    Returns a Denial (never raises) when the caller is anonymous, is not an
    active member, or is a non-admin READ_ONLY member asking for FULL.
    """
    if caller is None:
        return Denial(DenialCode.UNAUTHENTICATED)

    membership = await get_active_membership(db, caller.id, team_id)
    if membership is None:
        return Denial(DenialCode.NO_MEMBERSHIP)

    if not meets_access_level(membership, required_level):
        return Denial(DenialCode.INSUFFICIENT_ACCESS_LEVEL)

    return AuthorizedContext(user=caller, membership=membership)


def require_capability(
    ctx: AuthorizedContext, flag: str, action: str = "perform this action"
) -> Denial | None:
    """Fine-grained check of one (resource, action) flag."""
    if flag not in FLAG_NAMES:
        raise ValueError(f"Unknown permission flag: {flag}")
    if getattr(ctx.capabilities, flag):
        return None
    return Denial(
        DenialCode.INSUFFICIENT_PERMISSION, f"You do not have permission to {action}"
    )


def require_admin(ctx: AuthorizedContext, action: str = "perform this action") -> Denial | None:
    if ctx.is_admin:
        return None
    return Denial(DenialCode.INSUFFICIENT_PERMISSION, f"Only admins can {action}")
