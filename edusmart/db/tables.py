"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in edusmart/models/.
Repos convert between rows and dataclasses; nothing outside
edusmart/repos/pg_*.py touches a row.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    DateTime,
    Float,
    Identity,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column

from edusmart.db.engine import Base


class CompletionEventRow(Base):
    """Append-only completion log.  Retries are stored too, so there is no
    unique constraint on the dedup key; it is indexed for the lookup."""

    __tablename__ = "completion_events"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    sequence: Mapped[int] = mapped_column(
        BigInteger, Identity(always=True), unique=True, nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(320), nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)  # resource|module
    resource_id: Mapped[str] = mapped_column(String(255), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(32), nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False)
    platform: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    course_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    duration_seconds: Mapped[float | None] = mapped_column(Float, nullable=True)

    __table_args__ = (
        Index("ix_completion_events_user_sequence", "user_id", "sequence"),
        Index(
            "ix_completion_events_dedup_key",
            "user_id",
            "resource_id",
            "resource_type",
            "course_id",
        ),
    )


class UserStatsRow(Base):
    __tablename__ = "user_stats"

    user_id: Mapped[str] = mapped_column(String(320), primary_key=True)
    xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    level: Mapped[str] = mapped_column(
        String(32), nullable=False, default="Beginner"
    )  # Beginner|Intermediate|Advanced|Expert
    domain_progress_percent: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    streak_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_resources: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    study_seconds: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class AchievementRow(Base):
    """The composite primary key is what makes unlocking idempotent."""

    __tablename__ = "achievements"

    user_id: Mapped[str] = mapped_column(String(320), primary_key=True)
    type: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    xp_awarded: Mapped[int] = mapped_column(Integer, nullable=False)
    unlocked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )


class CourseProgressRow(Base):
    __tablename__ = "course_progress"

    user_id: Mapped[str] = mapped_column(String(320), primary_key=True)
    course_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    completed_module_ids: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=[]
    )
    total_module_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    percent_complete: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_module_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_activity_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
