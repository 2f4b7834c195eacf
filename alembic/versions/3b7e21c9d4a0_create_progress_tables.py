"""create progress tables

Revision ID: 3b7e21c9d4a0
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b7e21c9d4a0"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "completion_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "sequence",
            sa.BigInteger(),
            sa.Identity(always=True),
            nullable=False,
            unique=True,
        ),
        sa.Column("user_id", sa.String(length=320), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("resource_id", sa.String(length=255), nullable=False),
        sa.Column("resource_type", sa.String(length=32), nullable=False),
        sa.Column("domain", sa.String(length=255), nullable=False),
        sa.Column("platform", sa.String(length=255), nullable=False),
        sa.Column("title", sa.Text(), nullable=False, server_default=""),
        sa.Column("course_id", sa.String(length=255), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_seconds", sa.Float(), nullable=True),
    )
    op.create_index(
        "ix_completion_events_user_sequence",
        "completion_events",
        ["user_id", "sequence"],
    )
    op.create_index(
        "ix_completion_events_dedup_key",
        "completion_events",
        ["user_id", "resource_id", "resource_type", "course_id"],
    )

    op.create_table(
        "user_stats",
        sa.Column("user_id", sa.String(length=320), primary_key=True),
        sa.Column("xp", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("level", sa.String(length=32), nullable=False, server_default="Beginner"),
        sa.Column(
            "domain_progress_percent", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("streak_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_resources", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("study_seconds", sa.Float(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "achievements",
        sa.Column("user_id", sa.String(length=320), primary_key=True),
        sa.Column("type", sa.String(length=64), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("xp_awarded", sa.Integer(), nullable=False),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "course_progress",
        sa.Column("user_id", sa.String(length=320), primary_key=True),
        sa.Column("course_id", sa.String(length=255), primary_key=True),
        sa.Column(
            "completed_module_ids",
            postgresql.ARRAY(sa.String()),
            nullable=False,
            server_default="{}",
        ),
        sa.Column("total_module_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("percent_complete", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_module_id", sa.String(length=255), nullable=True),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("course_progress")
    op.drop_table("achievements")
    op.drop_table("user_stats")
    op.drop_index("ix_completion_events_dedup_key", table_name="completion_events")
    op.drop_index("ix_completion_events_user_sequence", table_name="completion_events")
    op.drop_table("completion_events")
