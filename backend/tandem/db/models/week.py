"""Week ORM model."""
from __future__ import annotations

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from tandem.db.base import Base


class Week(Base):
    __tablename__ = "weeks"
    __table_args__ = (Index("ix_weeks_user_id_start_date", "user_id", "start_date"),)

    # ISO week id, e.g. "2026-W01"; unique per user.
    id = Column(String(length=8), primary_key=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    overall_rating = Column(Integer, nullable=True)
    review_note = Column(Text, nullable=True)
    planning_completed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
