"""Patient Journey endpoints. Admins and physicians only."""

import uuid

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from careteam.core.dependencies import get_db, get_optional_user
from careteam.core.exceptions import raise_for_denial
from careteam.models.enums import AccessLevel
from careteam.models.user import User
from careteam.schemas.common import PaginatedResponse
from careteam.schemas.journey import (
    ExportedJourney,
    JourneyAccessResponse,
    JourneyEntryCreate,
    JourneyEntryResponse,
    JourneyExportResponse,
    JourneyResponse,
    RevisionResponse,
    SectionResponse,
    SectionUpdate,
    SnapshotRequest,
    SnapshotResponse,
)
from careteam.services import journey
from careteam.services.access import authorize

router = APIRouter()


@router.get("/", response_model=JourneyResponse)
async def get_journey(
    team_id: uuid.UUID,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Return the team's journey, creating it with empty default sections on first read."""
    result = await journey.get_or_create_journey(db, team_id=team_id, user=user)
    raise_for_denial(result)
    return result


@router.get("/access", response_model=JourneyAccessResponse)
async def journey_access(
    team_id: uuid.UUID,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    ctx = await authorize(db, user, team_id, AccessLevel.READ_ONLY)
    raise_for_denial(ctx)
    return JourneyAccessResponse(
        can_access=journey.can_access_journey(ctx.membership),
        can_edit=journey.can_edit_journey(ctx.membership),
    )


@router.patch("/sections/{section_id}", response_model=SectionResponse)
async def update_section(
    team_id: uuid.UUID,
    section_id: uuid.UUID,
    body: SectionUpdate,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Replace a section's content. Send ``expected_version`` to detect concurrent edits."""
    section = await journey.update_section(
        db,
        team_id=team_id,
        section_id=section_id,
        user=user,
        content=body.content,
        expected_version=body.expected_version,
    )
    raise_for_denial(section)
    return section


@router.get("/sections/{section_id}/revisions", response_model=list[RevisionResponse])
async def list_revisions(
    team_id: uuid.UUID,
    section_id: uuid.UUID,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    revisions = await journey.list_revisions(
        db, team_id=team_id, section_id=section_id, user=user
    )
    raise_for_denial(revisions)
    return revisions


@router.get("/entries", response_model=PaginatedResponse[JourneyEntryResponse])
async def list_entries(
    team_id: uuid.UUID,
    cursor: uuid.UUID | None = Query(None),
    limit: int = Query(journey.ENTRY_PAGE_DEFAULT, ge=1, le=journey.ENTRY_PAGE_MAX),
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Newest-first timeline entries."""
    page = await journey.list_entries(db, team_id=team_id, user=user, cursor=cursor, limit=limit)
    raise_for_denial(page)
    items, next_cursor = page
    return PaginatedResponse[JourneyEntryResponse](
        items=[JourneyEntryResponse.model_validate(e) for e in items],
        next_cursor=str(next_cursor) if next_cursor else None,
        has_more=next_cursor is not None,
    )


@router.post("/entries", response_model=JourneyEntryResponse, status_code=201)
async def create_entry(
    team_id: uuid.UUID,
    body: JourneyEntryCreate,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    entry = await journey.create_entry(
        db,
        team_id=team_id,
        user=user,
        entry_type=body.type,
        title=body.title,
        content=body.content,
        occurred_at=body.occurred_at,
        linked_entity_type=body.linked_entity_type,
        linked_entity_id=body.linked_entity_id,
    )
    raise_for_denial(entry)
    return entry


@router.post("/snapshot", response_model=SnapshotResponse)
async def compute_snapshot(
    team_id: uuid.UUID,
    body: SnapshotRequest,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Recompute the 7- or 30-day summary."""
    snapshot = await journey.compute_snapshot(
        db, team_id=team_id, user=user, range_days=body.range_days
    )
    raise_for_denial(snapshot)
    return snapshot


@router.get("/export", response_model=JourneyExportResponse)
async def export_journey(
    team_id: uuid.UUID,
    response: Response,
    range_days: int = Query(journey.EXPORT_MAX_DAYS),
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Download the snapshot and timeline as a JSON attachment."""
    export = await journey.export_journey(db, team_id=team_id, user=user, range_days=range_days)
    raise_for_denial(export)

    response.headers["Content-Disposition"] = (
        f'attachment; filename="patient-journey-{export.range_days}d-'
        f'{export.exported_at:%Y-%m-%d}.json"'
    )
    return JourneyExportResponse(
        exported_at=export.exported_at,
        range_days=export.range_days,
        journey=ExportedJourney(
            id=export.journey.id,
            title=export.journey.title,
            patient_display_name=export.journey.patient_display_name,
            team_name=export.team_name,
        ),
        snapshot=SnapshotResponse.model_validate(export.snapshot) if export.snapshot else None,
        timeline=[JourneyEntryResponse.model_validate(e) for e in export.timeline],
    )
