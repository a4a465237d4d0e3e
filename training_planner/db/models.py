from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import JSON, Date, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""


class TrainingPlanRecord(Base):
    """Persisted training plan.

    Stores:
    - days: canonical day list (JSON list of day records)
    - weeks: derived week grid, rewritten on every save from days
    - version: optimistic-concurrency token, bumped on every commit
    """

    __tablename__ = "training_plans"

    plan_id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    days: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    weeks: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))


class ChatMessageRecord(Base):
    """One transcript entry. Rows are inserted, never updated or deleted."""

    __tablename__ = "chat_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plan_id: Mapped[str] = mapped_column(String, nullable=False)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    message_id: Mapped[str | None] = mapped_column(String, nullable=True)
    role: Mapped[str] = mapped_column(String, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("plan_id", "seq", name="uq_chat_messages_plan_seq"),
        UniqueConstraint("plan_id", "message_id", name="uq_chat_messages_plan_message_id"),
        Index("idx_chat_messages_plan_seq", "plan_id", "seq"),
    )


class PlanRevisionRecord(Base):
    """Audit record of a committed preview."""

    __tablename__ = "plan_revisions"

    revision_id: Mapped[str] = mapped_column(String, primary_key=True)
    plan_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    preview_id: Mapped[str] = mapped_column(String, nullable=False)
    from_version: Mapped[int] = mapped_column(Integer, nullable=False)
    to_version: Mapped[int] = mapped_column(Integer, nullable=False)
    deltas: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    affected_start: Mapped[str | None] = mapped_column(String, nullable=True)
    affected_end: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
