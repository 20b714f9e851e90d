"""Domain records exchanged between the stores and the wizard engine."""
from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class WizardFlow(str, Enum):
    PLANNING = "planning"
    REVIEW = "review"


class TaskStatus(str, Enum):
    PENDING = "pending"
    PENDING_ACCEPTANCE = "pending_acceptance"
    COMPLETED = "completed"
    TRIED = "tried"
    SKIPPED = "skipped"
    DECLINED = "declined"


class OwnerType(str, Enum):
    SELF = "self"
    PARTNER = "partner"
    SHARED = "shared"


class ReviewMode(str, Enum):
    SOLO = "solo"
    TOGETHER = "together"


# Statuses that end a task's life for the week; anything else is a rollover candidate.
FINISHED_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.SKIPPED, TaskStatus.TRIED})
REVIEW_OUTCOMES = (TaskStatus.COMPLETED, TaskStatus.TRIED, TaskStatus.SKIPPED)


class TaskRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    title: str
    notes: Optional[str] = None
    owner_id: UUID
    owner_type: OwnerType = OwnerType.SELF
    created_by: UUID
    week_id: str
    status: TaskStatus
    rolled_from_task_id: Optional[UUID] = None
    rolled_from_week_id: Optional[str] = None
    review_note: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @property
    def is_partner_request(self) -> bool:
        return self.created_by != self.owner_id


class NewTask(BaseModel):
    title: str
    notes: Optional[str] = None
    owner_id: UUID
    owner_type: OwnerType = OwnerType.SELF
    created_by: UUID
    week_id: str
    status: TaskStatus = TaskStatus.PENDING
    rolled_from_task_id: Optional[UUID] = None
    rolled_from_week_id: Optional[str] = None


class WeekRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    user_id: UUID
    start_date: date
    end_date: date
    overall_rating: Optional[int] = None
    review_note: Optional[str] = None
    planning_completed_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None

    @property
    def is_planned(self) -> bool:
        return self.planning_completed_at is not None

    @property
    def is_reviewed(self) -> bool:
        return self.reviewed_at is not None
