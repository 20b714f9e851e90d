"""Events accepted by the wizard controllers.

Each flow accepts a closed set of event types plus the shared navigation
events.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union, get_args
from uuid import UUID

from tandem.services.records import ReviewMode, TaskStatus


# Planning
@dataclass(frozen=True)
class RolloverTaskAccepted:
    task_id: UUID


@dataclass(frozen=True)
class RolloverTaskSkipped:
    task_id: UUID


@dataclass(frozen=True)
class NewTaskSubmitted:
    title: str
    notes: Optional[str] = None


@dataclass(frozen=True)
class DoneAddingTasks:
    pass


@dataclass(frozen=True)
class PartnerRequestAccepted:
    task_id: UUID


@dataclass(frozen=True)
class PartnerRequestDiscussed:
    task_id: UUID


# Review
@dataclass(frozen=True)
class SelectMode:
    mode: ReviewMode


@dataclass(frozen=True)
class SelectRating:
    rating: int


@dataclass(frozen=True)
class UpdateRatingNote:
    note: str


@dataclass(frozen=True)
class ContinueToTasks:
    pass


@dataclass(frozen=True)
class SelectTaskOutcome:
    task_id: UUID
    status: TaskStatus


@dataclass(frozen=True)
class UpdateTaskNote:
    task_id: UUID
    note: str


@dataclass(frozen=True)
class QuickFinish:
    pass


@dataclass(frozen=True)
class PlanNextWeek:
    pass


# Shared
@dataclass(frozen=True)
class Back:
    pass


@dataclass(frozen=True)
class ExitWithSave:
    pass


@dataclass(frozen=True)
class DiscardProgress:
    pass


@dataclass(frozen=True)
class Retry:
    pass


@dataclass(frozen=True)
class Close:
    pass


PlanningEvent = Union[
    RolloverTaskAccepted,
    RolloverTaskSkipped,
    NewTaskSubmitted,
    DoneAddingTasks,
    PartnerRequestAccepted,
    PartnerRequestDiscussed,
]
ReviewEvent = Union[
    SelectMode,
    SelectRating,
    UpdateRatingNote,
    ContinueToTasks,
    SelectTaskOutcome,
    UpdateTaskNote,
    QuickFinish,
    PlanNextWeek,
]
SharedEvent = Union[Back, ExitWithSave, DiscardProgress, Retry, Close]

PLANNING_EVENTS = get_args(PlanningEvent)
REVIEW_EVENTS = get_args(ReviewEvent)
SHARED_EVENTS = get_args(SharedEvent)
