"""Task ORM model."""
from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID

from tandem.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_owner_id_week_id", "owner_id", "week_id"),
        Index("ix_tasks_status", "status"),
        Index("ix_tasks_rolled_from_task_id", "rolled_from_task_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    title = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    owner_type = Column(String(length=16), nullable=False, server_default=sa_text("'self'"))
    created_by = Column(UUID(as_uuid=True), nullable=False)
    week_id = Column(String(length=8), nullable=False)
    status = Column(String(length=32), nullable=False, server_default=sa_text("'pending'"))
    # Back-reference written only on rollover copies; the source row is never touched.
    rolled_from_task_id = Column(
        UUID(as_uuid=True),
        ForeignKey("tasks.id", ondelete="SET NULL"),
        nullable=True,
    )
    rolled_from_week_id = Column(String(length=8), nullable=True)
    review_note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )
