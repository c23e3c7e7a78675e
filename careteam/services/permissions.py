"""Permission policy: effective capabilities from a membership record.

Pure functions, no I/O. Two tiers decide what a non-admin member may do:

* ``access_level`` is a hard ceiling. READ_ONLY forces every write-type
  flag to False when capabilities are resolved, whatever is stored.
* the stored per-resource flags are the actual grant below that ceiling.

Admins bypass both tiers.
"""

from dataclasses import asdict, dataclass, fields, replace
from typing import Any

from careteam.models.enums import AccessLevel, TeamRole


@dataclass(frozen=True)
class PermissionFlags:
    can_view_tasks: bool = False
    can_create_tasks: bool = False
    can_edit_tasks: bool = False
    can_delete_tasks: bool = False
    can_view_notes: bool = False
    can_create_notes: bool = False
    can_edit_notes: bool = False
    can_delete_notes: bool = False
    can_view_routines: bool = False
    can_create_routines: bool = False
    can_edit_routines: bool = False
    can_delete_routines: bool = False
    can_view_contacts: bool = False
    can_create_contacts: bool = False
    can_edit_contacts: bool = False
    can_delete_contacts: bool = False
    can_view_moods: bool = False
    can_create_moods: bool = False
    can_view_burden_scales: bool = False
    can_create_burden_scales: bool = False
    can_view_members: bool = False
    can_invite_members: bool = False
    can_remove_members: bool = False
    can_manage_permissions: bool = False

    @classmethod
    def from_object(cls, obj: Any) -> "PermissionFlags":
        """Read every flag attribute off an ORM row or similar object."""
        return cls(**{name: bool(getattr(obj, name)) for name in FLAG_NAMES})

    @classmethod
    def all_granted(cls) -> "PermissionFlags":
        return cls(**dict.fromkeys(FLAG_NAMES, True))

    def as_dict(self) -> dict[str, bool]:
        return asdict(self)


FLAG_NAMES: tuple[str, ...] = tuple(f.name for f in fields(PermissionFlags))
VIEW_FLAGS: frozenset[str] = frozenset(n for n in FLAG_NAMES if n.startswith("can_view_"))
# create/edit/delete plus invite/remove/manage-permissions
WRITE_FLAGS: frozenset[str] = frozenset(FLAG_NAMES) - VIEW_FLAGS

ALL_GRANTED = PermissionFlags.all_granted()


@dataclass(frozen=True)
class MembershipSnapshot:
    """The four authorization axes of a membership, detached from storage."""

    is_admin: bool
    access_level: AccessLevel
    team_role: TeamRole
    flags: PermissionFlags

    @classmethod
    def from_member(cls, member: Any) -> "MembershipSnapshot":
        return cls(
            is_admin=bool(member.is_admin),
            access_level=AccessLevel(member.access_level),
            team_role=TeamRole(member.team_role),
            flags=PermissionFlags.from_object(member),
        )


def resolve_capabilities(membership: MembershipSnapshot) -> PermissionFlags:
    """Compute the effective capability set for a membership."""
    if membership.is_admin:
        return ALL_GRANTED
    if membership.access_level == AccessLevel.READ_ONLY:
        return replace(membership.flags, **dict.fromkeys(WRITE_FLAGS, False))
    return membership.flags


def enforce_read_only(
    updates: dict[str, bool], access_level: AccessLevel | str, is_admin: bool
) -> dict[str, bool]:
    """Force write flags in a partial flag update to False for READ_ONLY rows.

    Applied when flags are written; ``resolve_capabilities`` applies the
    same ceiling again when they are read.
    """
    if is_admin or access_level != AccessLevel.READ_ONLY:
        return dict(updates)
    return {name: (False if name in WRITE_FLAGS else value) for name, value in updates.items()}


def default_permissions(access_level: AccessLevel | str, is_admin: bool = False) -> PermissionFlags:
    """Starting flags for a member at the given access level."""
    if is_admin:
        return ALL_GRANTED
    if access_level == AccessLevel.READ_ONLY:
        return PermissionFlags(**dict.fromkeys(VIEW_FLAGS, True))
    # Team management stays admin-only by default
    return replace(
        ALL_GRANTED,
        can_invite_members=False,
        can_remove_members=False,
        can_manage_permissions=False,
    )


def invite_permissions(access_level: AccessLevel | str) -> PermissionFlags:
    """Flags written onto a pending invite, applied when it is accepted.

    Deletes and burden-scale creation are never granted by default; an
    admin can grant them later (burden scales to CAREGIVER and FAMILY only).
    """
    full = access_level == AccessLevel.FULL
    return PermissionFlags(
        can_view_tasks=True,
        can_create_tasks=full,
        can_edit_tasks=full,
        can_view_notes=True,
        can_create_notes=full,
        can_edit_notes=full,
        can_view_routines=True,
        can_create_routines=full,
        can_edit_routines=full,
        can_view_contacts=True,
        can_create_contacts=full,
        can_edit_contacts=full,
        can_view_moods=True,
        can_create_moods=full,
        can_view_burden_scales=full,
        can_view_members=True,
    )


def may_create_burden_scales(role: TeamRole | str) -> bool:
    return role in (TeamRole.CAREGIVER, TeamRole.FAMILY)
