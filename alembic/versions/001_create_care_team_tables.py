"""Create care team, membership, audit and patient journey tables

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PERMISSION_FLAGS = (
    "can_view_tasks",
    "can_create_tasks",
    "can_edit_tasks",
    "can_delete_tasks",
    "can_view_notes",
    "can_create_notes",
    "can_edit_notes",
    "can_delete_notes",
    "can_view_routines",
    "can_create_routines",
    "can_edit_routines",
    "can_delete_routines",
    "can_view_contacts",
    "can_create_contacts",
    "can_edit_contacts",
    "can_delete_contacts",
    "can_view_moods",
    "can_create_moods",
    "can_view_burden_scales",
    "can_create_burden_scales",
    "can_view_members",
    "can_invite_members",
    "can_remove_members",
    "can_manage_permissions",
)


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        sa.UUID(),
        server_default=sa.text("gen_random_uuid()"),
        primary_key=True,
    )


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        _id_column(),
        sa.Column("auth_sub", sa.String(255), nullable=False, unique=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("first_name", sa.String(255), nullable=True),
        sa.Column("last_name", sa.String(255), nullable=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("image_url", sa.String(1024), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="CAREGIVER"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "role IN ('CAREGIVER', 'FAMILY', 'PHYSICIAN', 'PATIENT')", name="ck_users_role"
        ),
    )

    # --- care_teams ---
    op.create_table(
        "care_teams",
        _id_column(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "patient_id",
            sa.UUID(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    # --- care_team_members (memberships and pending invites) ---
    op.create_table(
        "care_team_members",
        _id_column(),
        sa.Column(
            "team_id",
            sa.UUID(),
            sa.ForeignKey("care_teams.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.UUID(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("team_role", sa.String(20), nullable=False, server_default="CAREGIVER"),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("access_level", sa.String(20), nullable=False, server_default="FULL"),
        *[
            sa.Column(flag, sa.Boolean(), nullable=False, server_default="false")
            for flag in PERMISSION_FLAGS
        ],
        sa.Column("invite_code", sa.String(64), nullable=True, unique=True),
        sa.Column("invite_email", sa.String(320), nullable=True),
        sa.Column("invited_name", sa.String(200), nullable=True),
        sa.Column(
            "invited_by_id",
            sa.UUID(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("invited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint("team_id", "user_id", name="uq_care_team_members_team_user"),
        sa.CheckConstraint(
            "team_role IN ('CAREGIVER', 'FAMILY', 'PHYSICIAN')",
            name="ck_care_team_members_team_role",
        ),
        sa.CheckConstraint(
            "access_level IN ('FULL', 'READ_ONLY')", name="ck_care_team_members_access_level"
        ),
    )
    op.create_index("ix_care_team_members_team_id", "care_team_members", ["team_id"])
    op.create_index("ix_care_team_members_user_id", "care_team_members", ["user_id"])
    op.create_index("ix_care_team_members_invite_email", "care_team_members", ["invite_email"])

    # --- audit_logs (append-only) ---
    op.create_table(
        "audit_logs",
        _id_column(),
        sa.Column(
            "team_id",
            sa.UUID(),
            sa.ForeignKey("care_teams.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "actor_id",
            sa.UUID(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("entity_type", sa.String(64), nullable=True),
        sa.Column("entity_id", sa.String(64), nullable=True),
        sa.Column(
            "metadata",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index("ix_audit_logs_team_created", "audit_logs", ["team_id", "created_at"])

    # --- patient_journeys ---
    op.create_table(
        "patient_journeys",
        _id_column(),
        sa.Column(
            "team_id",
            sa.UUID(),
            sa.ForeignKey("care_teams.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("title", sa.String(255), nullable=False, server_default="Patient Journey"),
        sa.Column("patient_display_name", sa.String(255), nullable=True),
        sa.Column(
            "created_by_id",
            sa.UUID(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
        ),
    )

    # --- journey_sections ---
    op.create_table(
        "journey_sections",
        _id_column(),
        sa.Column(
            "journey_id",
            sa.UUID(),
            sa.ForeignKey("patient_journeys.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("key", sa.String(32), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column(
            "content",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "updated_by_id",
            sa.UUID(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint("journey_id", "key", name="uq_journey_sections_journey_key"),
    )
    op.create_index("ix_journey_sections_journey_id", "journey_sections", ["journey_id"])

    # --- journey_section_revisions (append-only) ---
    op.create_table(
        "journey_section_revisions",
        _id_column(),
        sa.Column(
            "section_id",
            sa.UUID(),
            sa.ForeignKey("journey_sections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("previous_content", postgresql.JSONB(), nullable=False),
        sa.Column("new_content", postgresql.JSONB(), nullable=False),
        sa.Column(
            "edited_by_id",
            sa.UUID(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index(
        "ix_journey_section_revisions_section_id",
        "journey_section_revisions",
        ["section_id"],
    )

    # --- journey_entries (timeline) ---
    op.create_table(
        "journey_entries",
        _id_column(),
        sa.Column(
            "journey_id",
            sa.UUID(),
            sa.ForeignKey("patient_journeys.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column(
            "content",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "author_id",
            sa.UUID(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("linked_entity_type", sa.String(64), nullable=True),
        sa.Column("linked_entity_id", sa.String(64), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index(
        "ix_journey_entries_journey_occurred",
        "journey_entries",
        ["journey_id", "occurred_at"],
    )

    # --- journey_snapshots (one per journey and range) ---
    op.create_table(
        "journey_snapshots",
        _id_column(),
        sa.Column(
            "journey_id",
            sa.UUID(),
            sa.ForeignKey("patient_journeys.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("range_days", sa.Integer(), nullable=False),
        sa.Column(
            "data",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "computed_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint(
            "journey_id", "range_days", name="uq_journey_snapshots_journey_range"
        ),
    )


def downgrade() -> None:
    # Drop tables in reverse dependency order
    op.drop_table("journey_snapshots")
    op.drop_table("journey_entries")
    op.drop_table("journey_section_revisions")
    op.drop_table("journey_sections")
    op.drop_table("patient_journeys")
    op.drop_table("audit_logs")
    op.drop_table("care_team_members")
    op.drop_table("care_teams")
    op.drop_table("users")
