"""Audit log schemas."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, Field


class AuditEntryResponse(BaseModel):
    id: uuid.UUID
    team_id: uuid.UUID | None = None
    actor_id: uuid.UUID | None = None
    action: str
    entity_type: str | None = None
    entity_id: str | None = None
    metadata: dict[str, Any] = Field(
        default_factory=dict, validation_alias=AliasChoices("details", "metadata")
    )
    created_at: datetime

    model_config = {"from_attributes": True}
