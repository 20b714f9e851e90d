"""Schemas for the wizard endpoints."""
from __future__ import annotations

from dataclasses import asdict
from typing import Annotated, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from tandem.services.records import ReviewMode, TaskStatus, WizardFlow
from tandem.wizard import effects, events
from tandem.wizard.state import PlanningSnapshot, ReviewSnapshot


class _EventBody(BaseModel):
    def to_event(self):
        raise NotImplementedError


class RolloverTaskAcceptedBody(_EventBody):
    type: Literal["rollover_task_accepted"]
    task_id: UUID

    def to_event(self):
        return events.RolloverTaskAccepted(task_id=self.task_id)


class RolloverTaskSkippedBody(_EventBody):
    type: Literal["rollover_task_skipped"]
    task_id: UUID

    def to_event(self):
        return events.RolloverTaskSkipped(task_id=self.task_id)


class NewTaskSubmittedBody(_EventBody):
    type: Literal["new_task_submitted"]
    title: str
    notes: Optional[str] = None

    def to_event(self):
        return events.NewTaskSubmitted(title=self.title, notes=self.notes)


class DoneAddingTasksBody(_EventBody):
    type: Literal["done_adding_tasks"]

    def to_event(self):
        return events.DoneAddingTasks()


class PartnerRequestAcceptedBody(_EventBody):
    type: Literal["partner_request_accepted"]
    task_id: UUID

    def to_event(self):
        return events.PartnerRequestAccepted(task_id=self.task_id)


class PartnerRequestDiscussedBody(_EventBody):
    type: Literal["partner_request_discussed"]
    task_id: UUID

    def to_event(self):
        return events.PartnerRequestDiscussed(task_id=self.task_id)


class SelectModeBody(_EventBody):
    type: Literal["select_mode"]
    mode: ReviewMode

    def to_event(self):
        return events.SelectMode(mode=self.mode)


class SelectRatingBody(_EventBody):
    # Range checks happen in the controller so that they surface as a validation message.
    type: Literal["select_rating"]
    rating: int

    def to_event(self):
        return events.SelectRating(rating=self.rating)


class UpdateRatingNoteBody(_EventBody):
    type: Literal["update_rating_note"]
    note: str = ""

    def to_event(self):
        return events.UpdateRatingNote(note=self.note)


class ContinueToTasksBody(_EventBody):
    type: Literal["continue_to_tasks"]

    def to_event(self):
        return events.ContinueToTasks()


class SelectTaskOutcomeBody(_EventBody):
    type: Literal["select_task_outcome"]
    task_id: UUID
    status: TaskStatus

    def to_event(self):
        return events.SelectTaskOutcome(task_id=self.task_id, status=self.status)


class UpdateTaskNoteBody(_EventBody):
    type: Literal["update_task_note"]
    task_id: UUID
    note: str = ""

    def to_event(self):
        return events.UpdateTaskNote(task_id=self.task_id, note=self.note)


class QuickFinishBody(_EventBody):
    type: Literal["quick_finish"]

    def to_event(self):
        return events.QuickFinish()


class PlanNextWeekBody(_EventBody):
    type: Literal["plan_next_week"]

    def to_event(self):
        return events.PlanNextWeek()


class BackBody(_EventBody):
    type: Literal["back"]

    def to_event(self):
        return events.Back()


class ExitWithSaveBody(_EventBody):
    type: Literal["exit_with_save"]

    def to_event(self):
        return events.ExitWithSave()


class DiscardProgressBody(_EventBody):
    type: Literal["discard_progress"]

    def to_event(self):
        return events.DiscardProgress()


class RetryBody(_EventBody):
    type: Literal["retry"]

    def to_event(self):
        return events.Retry()


class CloseBody(_EventBody):
    type: Literal["close"]

    def to_event(self):
        return events.Close()


WizardEventBody = Annotated[
    Union[
        RolloverTaskAcceptedBody,
        RolloverTaskSkippedBody,
        NewTaskSubmittedBody,
        DoneAddingTasksBody,
        PartnerRequestAcceptedBody,
        PartnerRequestDiscussedBody,
        SelectModeBody,
        SelectRatingBody,
        UpdateRatingNoteBody,
        ContinueToTasksBody,
        SelectTaskOutcomeBody,
        UpdateTaskNoteBody,
        QuickFinishBody,
        PlanNextWeekBody,
        BackBody,
        ExitWithSaveBody,
        DiscardProgressBody,
        RetryBody,
        CloseBody,
    ],
    Field(discriminator="type"),
]


class WizardStartRequest(BaseModel):
    user_id: UUID


class WizardEventRequest(BaseModel):
    user_id: UUID
    event: WizardEventBody


class EffectOut(BaseModel):
    type: str
    step: Optional[str] = None
    index: Optional[int] = None
    message: Optional[str] = None
    retryable: Optional[bool] = None
    reason: Optional[str] = None


class WizardStateResponse(BaseModel):
    flow: WizardFlow
    state: Annotated[Union[PlanningSnapshot, ReviewSnapshot], Field(discriminator="flow")]
    effects: List[EffectOut] = Field(default_factory=list)
    request_id: str


class WizardDiscardResponse(BaseModel):
    flow: WizardFlow
    user_id: UUID
    discarded: bool
    request_id: str


_EFFECT_TYPES = {
    effects.NavigateToStep: "navigate_to_step",
    effects.ShowError: "show_error",
    effects.ShowMessage: "show_message",
    effects.ExitFlow: "exit_flow",
    effects.NavigateToPlanning: "navigate_to_planning",
}


def serialize_effect(effect: effects.WizardEffect) -> EffectOut:
    return EffectOut(type=_EFFECT_TYPES[type(effect)], **asdict(effect))
