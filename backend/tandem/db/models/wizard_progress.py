"""Persisted in-flight wizard progress."""
from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, String, func
from sqlalchemy.dialects.postgresql import UUID

from tandem.db.base import Base
from tandem.db.types import JSONBCompat


class WizardProgressRecord(Base):
    __tablename__ = "wizard_progress"

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    flow = Column(String(length=16), primary_key=True)
    week_id = Column(String(length=8), nullable=False)
    payload = Column(JSONBCompat, nullable=False, default=dict)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
