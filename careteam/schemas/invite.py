"""Invite request/response schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from careteam.models.enums import AccessLevel, TeamRole


class InviteCreate(BaseModel):
    email: EmailStr
    name: str | None = Field(None, max_length=200)
    role: TeamRole
    access_level: AccessLevel


class InviteCreated(BaseModel):
    id: uuid.UUID
    email: str
    code: str


class InviteAccept(BaseModel):
    invite_code: str = Field(..., min_length=1, max_length=64)


class InviteAccepted(BaseModel):
    team_id: uuid.UUID
    team_name: str
    member_id: uuid.UUID
    role: str
    access_level: str


class InvitePublic(BaseModel):
    team_name: str
    inviter_name: str
    role: str
    role_display: str
    masked_email: str
    invited_name: str | None = None
    access_level: str
    invited_at: datetime | None = None
    expires_at: datetime | None = None


class PendingInviteResponse(BaseModel):
    id: uuid.UUID
    email: str | None = None
    invited_name: str | None = None
    role: str
    access_level: str
    state: str
    invited_at: datetime | None = None
