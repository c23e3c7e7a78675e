"""Team request/response schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class TeamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class TeamResponse(BaseModel):
    id: uuid.UUID
    name: str
    patient_id: uuid.UUID | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class CapabilitiesResponse(BaseModel):
    team_id: uuid.UUID
    member_id: uuid.UUID
    team_role: str
    is_admin: bool
    access_level: str
    capabilities: dict[str, bool]
    can_access_journey: bool
    can_edit_journey: bool
