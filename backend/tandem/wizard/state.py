"""Read-only snapshots published to the presentation shell."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from tandem.services.records import ReviewMode, TaskRecord, TaskStatus, WizardFlow
from tandem.wizard.steps import PlanningStep, ReviewStep


class WizardSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    flow: WizardFlow
    user_id: UUID
    week_id: str
    step_sequence: List[str]
    current_index: int = 0
    validation_message: Optional[str] = None
    progress_saved: bool = True
    can_retry: bool = False
    completed: bool = False
    closed: bool = False
    streak: int = 0


class PlanningSnapshot(WizardSnapshot):
    flow: Literal[WizardFlow.PLANNING] = WizardFlow.PLANNING
    current_step: PlanningStep
    rollover_candidates: List[TaskRecord] = Field(default_factory=list)
    partner_requests: List[TaskRecord] = Field(default_factory=list)
    current_item: Optional[TaskRecord] = None
    processed_task_ids: List[UUID] = Field(default_factory=list)
    added_tasks: List[TaskRecord] = Field(default_factory=list)
    tasks_added: int = 0
    tasks_rolled_over: int = 0
    requests_accepted: int = 0


class ReviewSnapshot(WizardSnapshot):
    flow: Literal[WizardFlow.REVIEW] = WizardFlow.REVIEW
    current_step: ReviewStep
    review_mode: Optional[ReviewMode] = None
    overall_rating: Optional[int] = None
    overall_note: Optional[str] = None
    tasks: List[TaskRecord] = Field(default_factory=list)
    current_task: Optional[TaskRecord] = None
    task_outcomes: Dict[UUID, TaskStatus] = Field(default_factory=dict)
    task_notes: Dict[UUID, str] = Field(default_factory=dict)
    done_count: int = 0
    tried_count: int = 0
    skipped_count: int = 0
    completion_percentage: int = 0
    streak_milestone: Optional[int] = None


class WizardCommit(BaseModel):
    """What a finished session wrote, handed to the commit listener."""

    model_config = ConfigDict(frozen=True)

    flow: WizardFlow
    user_id: UUID
    week_id: str
    committed_at: datetime
    streak: int
    task_count: int = 0
    tasks_added: int = 0
    tasks_rolled_over: int = 0
    requests_accepted: int = 0
    overall_rating: Optional[int] = None
    completion_percentage: Optional[int] = None
    streak_milestone: Optional[int] = None
