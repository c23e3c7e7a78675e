"""Member/permission request/response schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, model_validator

from careteam.models.enums import AccessLevel, TeamRole


class MemberResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID | None = None
    email: str | None = None
    name: str | None = None
    team_role: str
    is_admin: bool
    access_level: str
    permissions: dict[str, bool]
    status: str
    invited_at: datetime | None = None
    accepted_at: datetime | None = None


class MemberRoleUpdate(BaseModel):
    team_role: TeamRole | None = None
    access_level: AccessLevel | None = None
    is_admin: bool | None = None
    reset_permissions: bool = False


class PermissionsUpdate(BaseModel):
    """Partial flag update; omitted flags are left as stored."""

    can_view_tasks: bool | None = None
    can_create_tasks: bool | None = None
    can_edit_tasks: bool | None = None
    can_delete_tasks: bool | None = None
    can_view_notes: bool | None = None
    can_create_notes: bool | None = None
    can_edit_notes: bool | None = None
    can_delete_notes: bool | None = None
    can_view_routines: bool | None = None
    can_create_routines: bool | None = None
    can_edit_routines: bool | None = None
    can_delete_routines: bool | None = None
    can_view_contacts: bool | None = None
    can_create_contacts: bool | None = None
    can_edit_contacts: bool | None = None
    can_delete_contacts: bool | None = None
    can_view_moods: bool | None = None
    can_create_moods: bool | None = None
    can_view_burden_scales: bool | None = None
    can_create_burden_scales: bool | None = None
    can_view_members: bool | None = None
    can_invite_members: bool | None = None
    can_remove_members: bool | None = None
    can_manage_permissions: bool | None = None

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def at_least_one_flag(self) -> "PermissionsUpdate":
        if not self.updates():
            raise ValueError("At least one permission flag is required")
        return self

    def updates(self) -> dict[str, bool]:
        return self.model_dump(exclude_none=True)
