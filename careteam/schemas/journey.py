"""Patient Journey schemas."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from careteam.models.enums import JourneyEntryType


class JourneyAccessResponse(BaseModel):
    can_access: bool
    can_edit: bool


class SectionResponse(BaseModel):
    id: uuid.UUID
    key: str
    title: str
    content: dict[str, Any]
    version: int
    updated_by_id: uuid.UUID | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class JourneyResponse(BaseModel):
    id: uuid.UUID
    team_id: uuid.UUID
    title: str
    patient_display_name: str | None = None
    sections: list[SectionResponse]

    model_config = {"from_attributes": True}


class SectionUpdate(BaseModel):
    content: dict[str, Any]
    expected_version: int | None = Field(None, ge=1)


class RevisionResponse(BaseModel):
    id: uuid.UUID
    section_id: uuid.UUID
    previous_content: dict[str, Any]
    new_content: dict[str, Any]
    edited_by_id: uuid.UUID | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class JourneyEntryCreate(BaseModel):
    type: JourneyEntryType
    title: str = Field(..., min_length=1, max_length=255)
    content: str | dict[str, Any] | None = None
    occurred_at: datetime | None = None
    linked_entity_type: str | None = Field(None, max_length=64)
    linked_entity_id: str | None = Field(None, max_length=64)


class JourneyEntryResponse(BaseModel):
    id: uuid.UUID
    type: str
    title: str
    content: dict[str, Any]
    author_id: uuid.UUID | None = None
    author_name: str
    linked_entity_type: str | None = None
    linked_entity_id: str | None = None
    occurred_at: datetime
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class SnapshotRequest(BaseModel):
    range_days: int = 7


class SnapshotResponse(BaseModel):
    journey_id: uuid.UUID
    range_days: int
    data: dict[str, Any]
    computed_at: datetime

    model_config = {"from_attributes": True}


class ExportedJourney(BaseModel):
    id: uuid.UUID
    title: str
    patient_display_name: str | None = None
    team_name: str


class JourneyExportResponse(BaseModel):
    exported_at: datetime
    range_days: int
    journey: ExportedJourney
    snapshot: SnapshotResponse | None = None
    timeline: list[JourneyEntryResponse]
