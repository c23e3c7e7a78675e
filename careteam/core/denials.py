"""Typed denial results.

Services return a ``Denial`` for every expected refusal instead of raising,
so the HTTP layer can map the stable ``code`` to a status and message.
"""

from dataclasses import dataclass
from enum import StrEnum


class DenialCode(StrEnum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    NO_MEMBERSHIP = "NO_MEMBERSHIP"
    INSUFFICIENT_ACCESS_LEVEL = "INSUFFICIENT_ACCESS_LEVEL"
    INSUFFICIENT_PERMISSION = "INSUFFICIENT_PERMISSION"
    INVITE_NOT_FOUND = "INVITE_NOT_FOUND"
    INVITE_EXPIRED = "INVITE_EXPIRED"
    INVITE_ALREADY_ACCEPTED = "INVITE_ALREADY_ACCEPTED"
    ALREADY_TEAM_MEMBER = "ALREADY_TEAM_MEMBER"
    DUPLICATE_PENDING_INVITE = "DUPLICATE_PENDING_INVITE"
    SOLE_ADMIN_CANNOT_LEAVE = "SOLE_ADMIN_CANNOT_LEAVE"
    TEAM_NOT_FOUND = "TEAM_NOT_FOUND"
    SECTION_NOT_FOUND = "SECTION_NOT_FOUND"
    SECTION_VERSION_CONFLICT = "SECTION_VERSION_CONFLICT"
    MEMBER_NOT_FOUND = "MEMBER_NOT_FOUND"
    CANNOT_MODIFY_ADMIN_PERMISSIONS = "CANNOT_MODIFY_ADMIN_PERMISSIONS"
    JOURNEY_ACCESS_DENIED = "JOURNEY_ACCESS_DENIED"


DENIAL_STATUS: dict[DenialCode, int] = {
    DenialCode.UNAUTHENTICATED: 401,
    DenialCode.NO_MEMBERSHIP: 403,
    DenialCode.INSUFFICIENT_ACCESS_LEVEL: 403,
    DenialCode.INSUFFICIENT_PERMISSION: 403,
    DenialCode.INVITE_NOT_FOUND: 404,
    DenialCode.INVITE_EXPIRED: 410,
    DenialCode.INVITE_ALREADY_ACCEPTED: 409,
    DenialCode.ALREADY_TEAM_MEMBER: 409,
    DenialCode.DUPLICATE_PENDING_INVITE: 409,
    DenialCode.SOLE_ADMIN_CANNOT_LEAVE: 400,
    DenialCode.TEAM_NOT_FOUND: 404,
    DenialCode.SECTION_NOT_FOUND: 404,
    DenialCode.SECTION_VERSION_CONFLICT: 409,
    DenialCode.MEMBER_NOT_FOUND: 404,
    DenialCode.CANNOT_MODIFY_ADMIN_PERMISSIONS: 400,
    DenialCode.JOURNEY_ACCESS_DENIED: 403,
}

DEFAULT_MESSAGES: dict[DenialCode, str] = {
    DenialCode.UNAUTHENTICATED: "Authentication required",
    DenialCode.NO_MEMBERSHIP: "Not a member of this team",
    DenialCode.INSUFFICIENT_ACCESS_LEVEL: "Read-only members cannot perform this action",
    DenialCode.INSUFFICIENT_PERMISSION: "You do not have permission to perform this action",
    DenialCode.INVITE_NOT_FOUND: "Invite not found or invalid",
    DenialCode.INVITE_EXPIRED: "This invitation has expired",
    DenialCode.INVITE_ALREADY_ACCEPTED: "This invitation has already been accepted",
    DenialCode.ALREADY_TEAM_MEMBER: "User is already a member of this team",
    DenialCode.DUPLICATE_PENDING_INVITE: (
        "An invitation has already been sent to this email address"
    ),
    DenialCode.SOLE_ADMIN_CANNOT_LEAVE: (
        "You are the only admin. Assign another admin before leaving the team."
    ),
    DenialCode.TEAM_NOT_FOUND: "Team not found",
    DenialCode.SECTION_NOT_FOUND: "Section not found",
    DenialCode.SECTION_VERSION_CONFLICT: "Section was modified by someone else; reload and retry",
    DenialCode.MEMBER_NOT_FOUND: "Member not found in this team",
    DenialCode.CANNOT_MODIFY_ADMIN_PERMISSIONS: (
        "Cannot modify permissions for admins. Admins have full access."
    ),
    DenialCode.JOURNEY_ACCESS_DENIED: (
        "Patient Journey is only available to Admins and Physicians."
    ),
}


@dataclass(frozen=True)
class Denial:
    code: DenialCode
    message: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            object.__setattr__(self, "message", DEFAULT_MESSAGES[self.code])

    @property
    def status(self) -> int:
        return DENIAL_STATUS[self.code]
