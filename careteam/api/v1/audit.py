"""Team audit log endpoint."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from careteam.core.dependencies import get_db, get_optional_user
from careteam.core.exceptions import raise_for_denial
from careteam.models.enums import AccessLevel
from careteam.models.user import User
from careteam.schemas.audit import AuditEntryResponse
from careteam.schemas.common import PaginatedResponse
from careteam.services.access import authorize
from careteam.services.audit import DEFAULT_LIMIT, MAX_LIMIT, list_audit_entries

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[AuditEntryResponse])
async def list_audit(
    team_id: uuid.UUID,
    cursor: uuid.UUID | None = Query(None),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Newest-first audit entries. Pass ``next_cursor`` back as ``cursor`` for the next page."""
    ctx = await authorize(db, user, team_id, AccessLevel.READ_ONLY)
    raise_for_denial(ctx)

    items, next_cursor = await list_audit_entries(db, team_id, cursor=cursor, limit=limit)
    return PaginatedResponse[AuditEntryResponse](
        items=[AuditEntryResponse.model_validate(e) for e in items],
        next_cursor=str(next_cursor) if next_cursor else None,
        has_more=next_cursor is not None,
    )
