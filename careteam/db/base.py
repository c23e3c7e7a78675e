import uuid

from sqlalchemy import ForeignKey, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class TeamScopedBase(Base):
    """Abstract base for all team-scoped tables. Adds team_id FK + index."""

    __abstract__ = True

    team_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("care_teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
