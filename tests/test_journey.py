"""Patient Journey access rules and section revision tests."""

from types import SimpleNamespace

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from careteam.core.denials import Denial, DenialCode
from careteam.models.audit_log import AuditLog
from careteam.models.enums import AccessLevel, TeamRole
from careteam.models.journey import JourneySection, JourneySectionRevision, PatientJourney
from careteam.services.audit import AuditAction
from careteam.services.journey import (
    DEFAULT_SECTIONS,
    can_access_journey,
    can_edit_journey,
    get_or_create_journey,
    list_revisions,
    update_section,
)
from tests.team_helpers import add_member, make_team, make_user


def _member(team_role, access_level, is_admin=False):
    return SimpleNamespace(team_role=team_role, access_level=access_level, is_admin=is_admin)


@pytest.mark.parametrize(
    "member, can_access, can_edit",
    [
        (_member(TeamRole.PHYSICIAN, AccessLevel.READ_ONLY), True, False),
        (_member(TeamRole.PHYSICIAN, AccessLevel.FULL), True, True),
        (_member(TeamRole.CAREGIVER, AccessLevel.FULL), False, False),
        (_member(TeamRole.FAMILY, AccessLevel.FULL), False, False),
        (_member(TeamRole.CAREGIVER, AccessLevel.READ_ONLY, is_admin=True), True, True),
    ],
)
def test_journey_gates(member, can_access, can_edit):
    assert can_access_journey(member) is can_access
    assert can_edit_journey(member) is can_edit


async def _section(db, team, admin, key="SAFETY") -> JourneySection:
    journey = await get_or_create_journey(db, team_id=team.id, user=admin)
    return next(s for s in journey.sections if s.key == key)


async def _revision_count(db, section_id) -> int:
    return await db.scalar(
        select(func.count())
        .select_from(JourneySectionRevision)
        .where(JourneySectionRevision.section_id == section_id)
    )


@pytest.mark.asyncio
async def test_first_read_creates_default_sections_once(db: AsyncSession):
    admin = await make_user(db)
    team = await make_team(db, admin)

    journey = await get_or_create_journey(db, team_id=team.id, user=admin)
    assert isinstance(journey, PatientJourney)
    assert journey.patient_display_name == "Alex"
    assert {s.key for s in journey.sections} == {key for key, _ in DEFAULT_SECTIONS}
    assert all(s.version == 1 and s.content == {} for s in journey.sections)

    again = await get_or_create_journey(db, team_id=team.id, user=admin)
    assert again.id == journey.id
    assert await db.scalar(select(func.count()).select_from(JourneySection)) == 7


@pytest.mark.asyncio
async def test_caregiver_cannot_read_journey(db: AsyncSession):
    admin = await make_user(db)
    caregiver = await make_user(db)
    outsider = await make_user(db)
    team = await make_team(db, admin)
    await add_member(db, team, caregiver, team_role=TeamRole.CAREGIVER)

    denied = await get_or_create_journey(db, team_id=team.id, user=caregiver)
    assert isinstance(denied, Denial)
    assert denied.code == DenialCode.JOURNEY_ACCESS_DENIED

    denied = await get_or_create_journey(db, team_id=team.id, user=outsider)
    assert denied.code == DenialCode.NO_MEMBERSHIP


@pytest.mark.asyncio
async def test_update_appends_revision_and_bumps_version(db: AsyncSession):
    admin = await make_user(db)
    physician = await make_user(db)
    team = await make_team(db, admin)
    await add_member(db, team, physician, team_role=TeamRole.PHYSICIAN)
    section = await _section(db, team, admin)

    first = await update_section(
        db,
        team_id=team.id,
        section_id=section.id,
        user=physician,
        content={"allergies": ["penicillin"]},
    )
    assert isinstance(first, JourneySection)
    assert first.version == 2
    assert first.content == {"allergies": ["penicillin"]}
    assert first.updated_by_id == physician.id

    second = await update_section(
        db,
        team_id=team.id,
        section_id=section.id,
        user=admin,
        content={"allergies": ["penicillin", "latex"]},
        expected_version=2,
    )
    assert second.version == 3

    revisions = await list_revisions(db, team_id=team.id, section_id=section.id, user=physician)
    assert len(revisions) == 2
    newest, oldest = revisions
    assert oldest.previous_content == {}
    assert oldest.new_content == {"allergies": ["penicillin"]}
    assert newest.previous_content == {"allergies": ["penicillin"]}
    assert newest.new_content == {"allergies": ["penicillin", "latex"]}
    assert newest.edited_by_id == admin.id

    audit_count = await db.scalar(
        select(func.count())
        .select_from(AuditLog)
        .where(AuditLog.action == AuditAction.JOURNEY_SECTION_UPDATED)
    )
    assert audit_count == 2


@pytest.mark.asyncio
async def test_stale_version_leaves_section_and_log_unchanged(db: AsyncSession):
    admin = await make_user(db)
    team = await make_team(db, admin)
    section = await _section(db, team, admin)
    await update_section(
        db, team_id=team.id, section_id=section.id, user=admin, content={"a": 1}
    )

    conflict = await update_section(
        db,
        team_id=team.id,
        section_id=section.id,
        user=admin,
        content={"a": 2},
        expected_version=1,
    )
    assert isinstance(conflict, Denial)
    assert conflict.code == DenialCode.SECTION_VERSION_CONFLICT
    assert conflict.status == 409

    await db.refresh(section)
    assert section.version == 2
    assert section.content == {"a": 1}
    assert await _revision_count(db, section.id) == 1


@pytest.mark.asyncio
async def test_read_only_physician_cannot_edit(db: AsyncSession):
    admin = await make_user(db)
    physician = await make_user(db)
    team = await make_team(db, admin)
    await add_member(
        db, team, physician, team_role=TeamRole.PHYSICIAN, access_level=AccessLevel.READ_ONLY
    )
    section = await _section(db, team, admin)

    readable = await get_or_create_journey(db, team_id=team.id, user=physician)
    assert isinstance(readable, PatientJourney)

    denied = await update_section(
        db, team_id=team.id, section_id=section.id, user=physician, content={"x": 1}
    )
    assert isinstance(denied, Denial)
    assert denied.code == DenialCode.INSUFFICIENT_ACCESS_LEVEL
    assert await _revision_count(db, section.id) == 0


@pytest.mark.asyncio
async def test_full_caregiver_cannot_edit(db: AsyncSession):
    admin = await make_user(db)
    caregiver = await make_user(db)
    team = await make_team(db, admin)
    await add_member(db, team, caregiver, team_role=TeamRole.CAREGIVER)
    section = await _section(db, team, admin)

    denied = await update_section(
        db, team_id=team.id, section_id=section.id, user=caregiver, content={"x": 1}
    )
    assert isinstance(denied, Denial)
    assert denied.code == DenialCode.JOURNEY_ACCESS_DENIED
    assert "edit" in denied.message


@pytest.mark.asyncio
async def test_section_of_another_team_is_not_found(db: AsyncSession):
    admin = await make_user(db)
    team = await make_team(db, admin)
    other_team = await make_team(db, admin, name="Other Care Team")
    foreign = await _section(db, other_team, admin)
    await get_or_create_journey(db, team_id=team.id, user=admin)

    result = await update_section(
        db, team_id=team.id, section_id=foreign.id, user=admin, content={"x": 1}
    )
    assert isinstance(result, Denial)
    assert result.code == DenialCode.SECTION_NOT_FOUND
