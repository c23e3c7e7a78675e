import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from careteam.db.base import Base

JSONContent = JSON().with_variant(JSONB(), "postgresql")


class PatientJourney(Base):
    __tablename__ = "patient_journeys"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    team_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("care_teams.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="Patient Journey")
    patient_display_name: Mapped[str | None] = mapped_column(String(255))
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    sections: Mapped[list["JourneySection"]] = relationship(
        back_populates="journey", order_by="JourneySection.key", passive_deletes=True
    )


class JourneySection(Base):
    __tablename__ = "journey_sections"
    __table_args__ = (
        UniqueConstraint("journey_id", "key", name="uq_journey_sections_journey_key"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    journey_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("patient_journeys.id", ondelete="CASCADE"), nullable=False, index=True
    )
    key: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[dict] = mapped_column(JSONContent, nullable=False, default=dict)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    journey: Mapped["PatientJourney"] = relationship(back_populates="sections")


class JourneySectionRevision(Base):
    """Immutable before/after snapshot written with every section update."""

    __tablename__ = "journey_section_revisions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    section_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("journey_sections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    previous_content: Mapped[dict] = mapped_column(JSONContent, nullable=False)
    new_content: Mapped[dict] = mapped_column(JSONContent, nullable=False)
    edited_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class JourneyEntry(Base):
    """A dated event on the patient's timeline. ``author_id`` is NULL for system entries."""

    __tablename__ = "journey_entries"
    __table_args__ = (
        Index("ix_journey_entries_journey_occurred", "journey_id", "occurred_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    journey_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("patient_journeys.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[dict] = mapped_column(JSONContent, nullable=False, default=dict)
    author_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    linked_entity_type: Mapped[str | None] = mapped_column(String(64))
    linked_entity_id: Mapped[str | None] = mapped_column(String(64))
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    author: Mapped["User | None"] = relationship(foreign_keys=[author_id])  # noqa: F821

    @property
    def author_name(self) -> str:
        return self.author.display_name if self.author else "System"


class JourneySnapshot(Base):
    __tablename__ = "journey_snapshots"
    __table_args__ = (
        UniqueConstraint("journey_id", "range_days", name="uq_journey_snapshots_journey_range"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    journey_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("patient_journeys.id", ondelete="CASCADE"), nullable=False
    )
    range_days: Mapped[int] = mapped_column(Integer, nullable=False)
    data: Mapped[dict] = mapped_column(JSONContent, nullable=False, default=dict)
    computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
