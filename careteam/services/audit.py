"""Audit sink: append-only log of membership-affecting changes.

Entries are written in the caller's transaction, so an entry exists only
if the change it describes was committed.
"""

import logging
import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import select, tuple_
from sqlalchemy.ext.asyncio import AsyncSession

from careteam.models.audit_log import AuditLog

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
MAX_LIMIT = 100


class AuditAction(StrEnum):
    TEAM_CREATED = "TEAM_CREATED"
    TEAM_DELETED = "TEAM_DELETED"
    INVITE_SENT = "INVITE_SENT"
    INVITE_ACCEPTED = "INVITE_ACCEPTED"
    INVITE_REVOKED = "INVITE_REVOKED"
    MEMBER_LEFT = "MEMBER_LEFT"
    MEMBER_REMOVED = "MEMBER_REMOVED"
    MEMBER_ROLE_CHANGED = "MEMBER_ROLE_CHANGED"
    PERMISSION_CHANGED = "PERMISSION_CHANGED"
    JOURNEY_SECTION_UPDATED = "JOURNEY_SECTION_UPDATED"
    JOURNEY_ENTRY_CREATED = "JOURNEY_ENTRY_CREATED"
    JOURNEY_SNAPSHOT_COMPUTED = "JOURNEY_SNAPSHOT_COMPUTED"


async def record_audit(
    db: AsyncSession,
    *,
    team_id: uuid.UUID | None,
    actor_id: uuid.UUID | None,
    action: AuditAction,
    entity_type: str | None = None,
    entity_id: uuid.UUID | str | None = None,
    metadata: dict[str, Any] | None = None,
) -> AuditLog:
    entry = AuditLog(
        team_id=team_id,
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        details=metadata or {},
        created_at=datetime.now(UTC),
    )
    db.add(entry)
    await db.flush()
    logger.info(
        "audit %s team=%s actor=%s %s=%s", action, team_id, actor_id, entity_type, entity_id
    )
    return entry


async def list_audit_entries(
    db: AsyncSession,
    team_id: uuid.UUID,
    cursor: uuid.UUID | None = None,
    limit: int = DEFAULT_LIMIT,
) -> tuple[list[AuditLog], uuid.UUID | None]:
    """Newest-first page of a team's audit log.

    ``cursor`` is the id of the last entry of the previous page. Returns the
    page and the cursor for the next one (None when exhausted). A cursor that
    is unknown or belongs to another team yields an empty last page.
    """
    limit = max(1, min(limit, MAX_LIMIT))
    stmt = select(AuditLog).where(AuditLog.team_id == team_id)

    if cursor is not None:
        anchor = await db.get(AuditLog, cursor)
        if anchor is None or anchor.team_id != team_id:
            return [], None
        stmt = stmt.where(
            tuple_(AuditLog.created_at, AuditLog.id) < (anchor.created_at, anchor.id)
        )

    stmt = stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit + 1)
    rows = list((await db.execute(stmt)).scalars().all())

    has_more = len(rows) > limit
    items = rows[:limit]
    return items, (items[-1].id if has_more else None)
