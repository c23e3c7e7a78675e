"""Patient Journey: sections with revisions, the timeline, snapshots and export.

Only admins and physicians see the journey; only admins and FULL-access
physicians edit it. Each section edit appends a revision holding the
before/after content and bumps the section version in one transaction.
"""

import copy
import logging
import uuid
from collections import Counter
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

from sqlalchemy import func, select, tuple_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from careteam.core.denials import Denial, DenialCode
from careteam.models.care_team import CareTeam
from careteam.models.enums import AccessLevel, JourneyEntryType, TeamRole
from careteam.models.journey import (
    JourneyEntry,
    JourneySection,
    JourneySectionRevision,
    JourneySnapshot,
    PatientJourney,
)
from careteam.models.user import User
from careteam.services.access import AuthorizedContext, authorize
from careteam.services.audit import AuditAction, record_audit
from careteam.services.membership import lock_team

logger = logging.getLogger(__name__)

DEFAULT_SECTIONS: tuple[tuple[str, str], ...] = (
    ("BASICS", "Basics"),
    ("SAFETY", "Safety"),
    ("TRIGGERS", "Triggers"),
    ("BASELINE", "Baseline"),
    ("PROVIDERS", "Providers"),
    ("GOALS", "Goals"),
    ("MEDICATIONS", "Medications"),
)


class MemberLike(Protocol):
    is_admin: bool
    team_role: str
    access_level: str


def can_access_journey(member: MemberLike) -> bool:
    return bool(member.is_admin) or member.team_role == TeamRole.PHYSICIAN


def can_edit_journey(member: MemberLike) -> bool:
    if member.is_admin:
        return True
    return member.team_role == TeamRole.PHYSICIAN and member.access_level == AccessLevel.FULL


async def _authorize_journey(
    db: AsyncSession, user: User | None, team_id: uuid.UUID, edit: bool
) -> AuthorizedContext | Denial:
    ctx = await authorize(
        db, user, team_id, AccessLevel.FULL if edit else AccessLevel.READ_ONLY
    )
    if isinstance(ctx, Denial):
        return ctx
    if edit and not can_edit_journey(ctx.membership):
        return Denial(
            DenialCode.JOURNEY_ACCESS_DENIED,
            "Only Admins and Physicians with full access can edit the Patient Journey.",
        )
    if not can_access_journey(ctx.membership):
        return Denial(DenialCode.JOURNEY_ACCESS_DENIED)
    return ctx


async def _load_journey(db: AsyncSession, team_id: uuid.UUID) -> PatientJourney | None:
    result = await db.execute(
        select(PatientJourney)
        .options(selectinload(PatientJourney.sections))
        .where(PatientJourney.team_id == team_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_or_create_journey(
    db: AsyncSession, *, team_id: uuid.UUID, user: User | None
) -> PatientJourney | Denial:
    """Return the team's journey, creating it with the default sections on first read."""
    ctx = await _authorize_journey(db, user, team_id, edit=False)
    if isinstance(ctx, Denial):
        return ctx
    return await _ensure_journey(db, team_id, ctx)


async def _ensure_journey(
    db: AsyncSession, team_id: uuid.UUID, ctx: AuthorizedContext
) -> PatientJourney | Denial:
    journey = await _load_journey(db, team_id)
    if journey is not None:
        return journey

    team = await db.get(CareTeam, team_id)
    if team is None:
        return Denial(DenialCode.TEAM_NOT_FOUND)

    journey = PatientJourney(
        team_id=team_id,
        title="Patient Journey",
        patient_display_name=team.name.removesuffix("'s Care Team") or None,
        created_by_id=ctx.user.id,
    )
    db.add(journey)
    await db.flush()
    for key, title in DEFAULT_SECTIONS:
        db.add(
            JourneySection(
                journey_id=journey.id,
                key=key,
                title=title,
                content={},
                version=1,
                updated_by_id=ctx.user.id,
            )
        )
    await db.flush()
    logger.info("Created patient journey for team %s", team_id)
    return await _load_journey(db, team_id)


async def _find_section(
    db: AsyncSession, team_id: uuid.UUID, section_id: uuid.UUID
) -> JourneySection | None:
    result = await db.execute(
        select(JourneySection)
        .join(PatientJourney, JourneySection.journey_id == PatientJourney.id)
        .where(JourneySection.id == section_id, PatientJourney.team_id == team_id)
    )
    return result.scalar_one_or_none()


async def update_section(
    db: AsyncSession,
    *,
    team_id: uuid.UUID,
    section_id: uuid.UUID,
    user: User | None,
    content: dict[str, Any],
    expected_version: int | None = None,
) -> JourneySection | Denial:
    """Replace a section's content, recording a revision.

    The version bump is a compare-and-set on the version that was read (or
    on ``expected_version`` when the client sends one), so the revision's
    ``previous_content`` is exactly what the update replaced.
    """
    ctx = await _authorize_journey(db, user, team_id, edit=True)
    if isinstance(ctx, Denial):
        return ctx

    section = await _find_section(db, team_id, section_id)
    if section is None:
        return Denial(DenialCode.SECTION_NOT_FOUND)

    base_version = section.version if expected_version is None else expected_version
    if base_version != section.version:
        return Denial(DenialCode.SECTION_VERSION_CONFLICT)

    previous_content = copy.deepcopy(section.content or {})
    new_content = copy.deepcopy(content or {})
    now = datetime.now(UTC)

    bumped = await db.execute(
        update(JourneySection)
        .where(JourneySection.id == section.id, JourneySection.version == base_version)
        .values(
            content=new_content,
            updated_by_id=ctx.user.id,
            updated_at=now,
            version=base_version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if bumped.rowcount != 1:
        return Denial(DenialCode.SECTION_VERSION_CONFLICT)

    db.add(
        JourneySectionRevision(
            section_id=section.id,
            previous_content=previous_content,
            new_content=new_content,
            edited_by_id=ctx.user.id,
            created_at=now,
        )
    )
    await db.flush()
    await db.refresh(section)

    await record_audit(
        db,
        team_id=team_id,
        actor_id=ctx.user.id,
        action=AuditAction.JOURNEY_SECTION_UPDATED,
        entity_type="JourneySection",
        entity_id=section.id,
        metadata={"section_key": section.key, "version": section.version},
    )
    return section


async def list_revisions(
    db: AsyncSession, *, team_id: uuid.UUID, section_id: uuid.UUID, user: User | None
) -> list[JourneySectionRevision] | Denial:
    ctx = await _authorize_journey(db, user, team_id, edit=False)
    if isinstance(ctx, Denial):
        return ctx

    if await _find_section(db, team_id, section_id) is None:
        return Denial(DenialCode.SECTION_NOT_FOUND)

    result = await db.execute(
        select(JourneySectionRevision)
        .where(JourneySectionRevision.section_id == section_id)
        .order_by(JourneySectionRevision.created_at.desc(), JourneySectionRevision.id.desc())
    )
    return list(result.scalars().all())


ENTRY_PAGE_DEFAULT = 20
ENTRY_PAGE_MAX = 50
EXPORT_MIN_DAYS = 7
EXPORT_MAX_DAYS = 30

HIGHLIGHT_SEVERITY: dict[str, str] = {
    JourneyEntryType.SAFETY: "critical",
    JourneyEntryType.BEHAVIOR: "warn",
    JourneyEntryType.MED_CHANGE: "info",
    JourneyEntryType.MILESTONE: "info",
}


@dataclass(frozen=True)
class JourneyExport:
    exported_at: datetime
    range_days: int
    journey: PatientJourney
    team_name: str
    snapshot: JourneySnapshot | None
    timeline: list[JourneyEntry]


def _as_utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt


async def create_entry(
    db: AsyncSession,
    *,
    team_id: uuid.UUID,
    user: User | None,
    entry_type: JourneyEntryType,
    title: str,
    content: str | dict[str, Any] | None = None,
    occurred_at: datetime | None = None,
    linked_entity_type: str | None = None,
    linked_entity_id: str | None = None,
) -> JourneyEntry | Denial:
    """Add a manual timeline entry. Plain-text content is stored as ``{"text": ...}``."""
    ctx = await _authorize_journey(db, user, team_id, edit=True)
    if isinstance(ctx, Denial):
        return ctx
    journey = await _ensure_journey(db, team_id, ctx)
    if isinstance(journey, Denial):
        return journey

    now = datetime.now(UTC)
    entry = JourneyEntry(
        journey_id=journey.id,
        type=JourneyEntryType(entry_type),
        title=title.strip(),
        content={"text": content} if isinstance(content, str) else copy.deepcopy(content or {}),
        author_id=ctx.user.id,
        linked_entity_type=linked_entity_type,
        linked_entity_id=linked_entity_id,
        occurred_at=_as_utc(occurred_at) if occurred_at else now,
        created_at=now,
    )
    db.add(entry)
    await db.flush()
    await db.refresh(entry, ["author"])

    await record_audit(
        db,
        team_id=team_id,
        actor_id=ctx.user.id,
        action=AuditAction.JOURNEY_ENTRY_CREATED,
        entity_type="JourneyEntry",
        entity_id=entry.id,
        metadata={"type": entry.type, "title": entry.title},
    )
    return entry


async def list_entries(
    db: AsyncSession,
    *,
    team_id: uuid.UUID,
    user: User | None,
    cursor: uuid.UUID | None = None,
    limit: int = ENTRY_PAGE_DEFAULT,
) -> tuple[list[JourneyEntry], uuid.UUID | None] | Denial:
    """Newest-first page of the timeline, keyed like the audit log."""
    ctx = await _authorize_journey(db, user, team_id, edit=False)
    if isinstance(ctx, Denial):
        return ctx

    limit = max(1, min(limit, ENTRY_PAGE_MAX))
    stmt = (
        select(JourneyEntry)
        .join(PatientJourney, JourneyEntry.journey_id == PatientJourney.id)
        .options(selectinload(JourneyEntry.author))
        .where(PatientJourney.team_id == team_id)
    )
    if cursor is not None:
        anchor = await db.scalar(
            select(JourneyEntry)
            .join(PatientJourney, JourneyEntry.journey_id == PatientJourney.id)
            .where(JourneyEntry.id == cursor, PatientJourney.team_id == team_id)
        )
        if anchor is None:
            return [], None
        stmt = stmt.where(
            tuple_(JourneyEntry.occurred_at, JourneyEntry.id) < (anchor.occurred_at, anchor.id)
        )

    stmt = (
        stmt.order_by(JourneyEntry.occurred_at.desc(), JourneyEntry.id.desc())
        .limit(limit + 1)
        .execution_options(populate_existing=True)
    )
    rows = list((await db.execute(stmt)).scalars().all())
    items = rows[:limit]
    return items, (items[-1].id if len(rows) > limit else None)


def build_snapshot_data(
    entries: list[JourneyEntry],
    section_edits: int,
    range_days: int,
    since: datetime,
    now: datetime,
) -> dict[str, Any]:
    """Per-day entry counts, totals by type and highlights for notable entry types.

    ``entries`` must be ordered oldest first.
    """
    per_day: dict[str, int] = {}
    day = since.date()
    while day <= now.date():
        per_day[day.isoformat()] = 0
        day += timedelta(days=1)

    by_type: Counter[str] = Counter()
    latest: dict[str, JourneyEntry] = {}
    for entry in entries:
        key = _as_utc(entry.occurred_at).date().isoformat()
        per_day[key] = per_day.get(key, 0) + 1
        by_type[str(entry.type)] += 1
        latest[str(entry.type)] = entry

    highlights = [
        {
            "severity": severity,
            "title": f"{kind.replace('_', ' ').title()}: {by_type[kind]}",
            "detail": latest[kind].title,
        }
        for kind, severity in HIGHLIGHT_SEVERITY.items()
        if by_type[kind]
    ]
    return {
        "range_days": range_days,
        "series": {"entries": [{"date": d, "count": c} for d, c in per_day.items()]},
        "totals": {
            "entries": len(entries),
            "entries_by_type": dict(by_type),
            "section_edits": section_edits,
        },
        "highlights": highlights,
    }


async def compute_snapshot(
    db: AsyncSession,
    *,
    team_id: uuid.UUID,
    user: User | None,
    range_days: int = 7,
    now: datetime | None = None,
) -> JourneySnapshot | Denial:
    """Summarize the last 7 or 30 days of the journey and store it.

    Any other ``range_days`` is treated as 7. The stored snapshot for the
    same range is replaced.
    """
    ctx = await _authorize_journey(db, user, team_id, edit=False)
    if isinstance(ctx, Denial):
        return ctx
    range_days = 30 if range_days == 30 else 7

    journey = await _ensure_journey(db, team_id, ctx)
    if isinstance(journey, Denial):
        return journey

    now = now or datetime.now(UTC)
    since = (now - timedelta(days=range_days)).replace(hour=0, minute=0, second=0, microsecond=0)
    result = await db.execute(
        select(JourneyEntry)
        .where(
            JourneyEntry.journey_id == journey.id,
            JourneyEntry.occurred_at >= since,
            JourneyEntry.occurred_at <= now,
        )
        .order_by(JourneyEntry.occurred_at.asc(), JourneyEntry.id.asc())
    )
    entries = list(result.scalars().all())
    section_edits = await db.scalar(
        select(func.count())
        .select_from(JourneySectionRevision)
        .join(JourneySection, JourneySectionRevision.section_id == JourneySection.id)
        .where(
            JourneySection.journey_id == journey.id,
            JourneySectionRevision.created_at >= since,
        )
    )
    data = build_snapshot_data(entries, section_edits or 0, range_days, since, now)

    # One stored snapshot per (journey, range)
    await lock_team(db, team_id)
    snapshot = await db.scalar(
        select(JourneySnapshot).where(
            JourneySnapshot.journey_id == journey.id, JourneySnapshot.range_days == range_days
        )
    )
    if snapshot is None:
        snapshot = JourneySnapshot(journey_id=journey.id, range_days=range_days)
        db.add(snapshot)
    snapshot.data = data
    snapshot.computed_at = now
    await db.flush()

    await record_audit(
        db,
        team_id=team_id,
        actor_id=ctx.user.id,
        action=AuditAction.JOURNEY_SNAPSHOT_COMPUTED,
        entity_type="JourneySnapshot",
        entity_id=journey.id,
        metadata={"range_days": range_days},
    )
    logger.info("Computed %s-day journey snapshot for team %s", range_days, team_id)
    return snapshot


async def export_journey(
    db: AsyncSession,
    *,
    team_id: uuid.UUID,
    user: User | None,
    range_days: int = EXPORT_MAX_DAYS,
    now: datetime | None = None,
) -> JourneyExport | Denial:
    """Stored snapshot plus the timeline of the last ``range_days``, oldest entry first."""
    ctx = await _authorize_journey(db, user, team_id, edit=False)
    if isinstance(ctx, Denial):
        return ctx
    range_days = max(EXPORT_MIN_DAYS, min(range_days, EXPORT_MAX_DAYS))

    journey = await _ensure_journey(db, team_id, ctx)
    if isinstance(journey, Denial):
        return journey
    team = await db.get(CareTeam, team_id)

    now = now or datetime.now(UTC)
    result = await db.execute(
        select(JourneyEntry)
        .options(selectinload(JourneyEntry.author))
        .where(
            JourneyEntry.journey_id == journey.id,
            JourneyEntry.occurred_at >= now - timedelta(days=range_days),
        )
        .order_by(JourneyEntry.occurred_at.asc(), JourneyEntry.id.asc())
        .execution_options(populate_existing=True)
    )
    snapshot = await db.scalar(
        select(JourneySnapshot).where(
            JourneySnapshot.journey_id == journey.id, JourneySnapshot.range_days == range_days
        )
    )
    return JourneyExport(
        exported_at=now,
        range_days=range_days,
        journey=journey,
        team_name=team.name,
        snapshot=snapshot,
        timeline=list(result.scalars().all()),
    )
