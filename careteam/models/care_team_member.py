import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    Uuid,
    false,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from careteam.db.base import TeamScopedBase
from careteam.models.enums import AccessLevel, TeamRole


def _flag():
    return mapped_column(Boolean, nullable=False, default=False, server_default=false())


class CareTeamMember(TeamScopedBase):
    """A membership row, or a pending invite while ``user_id`` is NULL."""

    __tablename__ = "care_team_members"
    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_care_team_members_team_user"),
        CheckConstraint(
            "team_role IN ('CAREGIVER', 'FAMILY', 'PHYSICIAN')",
            name="ck_care_team_members_team_role",
        ),
        CheckConstraint(
            "access_level IN ('FULL', 'READ_ONLY')", name="ck_care_team_members_access_level"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # team_id inherited from TeamScopedBase
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True
    )
    team_role: Mapped[str] = mapped_column(String(20), nullable=False, default=TeamRole.CAREGIVER)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    access_level: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AccessLevel.FULL
    )

    can_view_tasks: Mapped[bool] = _flag()
    can_create_tasks: Mapped[bool] = _flag()
    can_edit_tasks: Mapped[bool] = _flag()
    can_delete_tasks: Mapped[bool] = _flag()
    can_view_notes: Mapped[bool] = _flag()
    can_create_notes: Mapped[bool] = _flag()
    can_edit_notes: Mapped[bool] = _flag()
    can_delete_notes: Mapped[bool] = _flag()
    can_view_routines: Mapped[bool] = _flag()
    can_create_routines: Mapped[bool] = _flag()
    can_edit_routines: Mapped[bool] = _flag()
    can_delete_routines: Mapped[bool] = _flag()
    can_view_contacts: Mapped[bool] = _flag()
    can_create_contacts: Mapped[bool] = _flag()
    can_edit_contacts: Mapped[bool] = _flag()
    can_delete_contacts: Mapped[bool] = _flag()
    can_view_moods: Mapped[bool] = _flag()
    can_create_moods: Mapped[bool] = _flag()
    can_view_burden_scales: Mapped[bool] = _flag()
    can_create_burden_scales: Mapped[bool] = _flag()
    can_view_members: Mapped[bool] = _flag()
    can_invite_members: Mapped[bool] = _flag()
    can_remove_members: Mapped[bool] = _flag()
    can_manage_permissions: Mapped[bool] = _flag()

    invite_code: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    invite_email: Mapped[str | None] = mapped_column(String(320), nullable=True, index=True)
    invited_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    invited_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    invited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped["User | None"] = relationship(foreign_keys=[user_id])  # noqa: F821
