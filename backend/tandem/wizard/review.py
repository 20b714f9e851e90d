"""Review wizard: rate the week, record an outcome per task, see the summary."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from tandem.services.derivation import current_streak, review_stats, streak_milestone, tasks_for_review
from tandem.services.progress_store import WizardProgress
from tandem.services.records import REVIEW_OUTCOMES, ReviewMode, TaskRecord, TaskStatus, WizardFlow
from tandem.services.week_store import validate_rating
from tandem.wizard.controller import WizardController, items_at
from tandem.wizard.effects import NavigateToPlanning, NavigateToStep
from tandem.wizard.errors import ValidationFailed
from tandem.wizard.events import (
    REVIEW_EVENTS,
    Close,
    ContinueToTasks,
    PlanNextWeek,
    QuickFinish,
    SelectMode,
    SelectRating,
    SelectTaskOutcome,
    UpdateRatingNote,
    UpdateTaskNote,
)
from tandem.wizard.state import ReviewSnapshot, WizardCommit
from tandem.wizard.steps import REVIEW_ORDER, ReviewStep, review_sequence

logger = logging.getLogger(__name__)


class ReviewController(WizardController):
    flow = WizardFlow.REVIEW
    step_type = ReviewStep
    canonical_steps = REVIEW_ORDER
    terminal_step = ReviewStep.SUMMARY
    event_types = REVIEW_EVENTS
    after_close_events = (Close, PlanNextWeek)

    def _reset_accumulators(self) -> None:
        self._mode: Optional[ReviewMode] = None
        self._rating: Optional[int] = None
        self._note: Optional[str] = None
        self._review_tasks: List[TaskRecord] = []
        self._outcomes: Dict[UUID, TaskStatus] = {}
        self._task_notes: Dict[UUID, str] = {}

    def _restore(self, stored: WizardProgress) -> None:
        self._mode = stored.review_mode
        self._rating = stored.overall_rating
        self._note = stored.overall_note
        self._outcomes = dict(stored.task_outcomes)
        self._task_notes = dict(stored.task_notes)

    async def _derive(self) -> None:
        week_tasks = await self._tasks.tasks_for_week(self.week_id, self.user_id)
        self._review_tasks = tasks_for_review(week_tasks)
        task_ids = {task.id for task in self._review_tasks}
        self._outcomes = {task_id: status for task_id, status in self._outcomes.items() if task_id in task_ids}
        self._task_notes = {task_id: note for task_id, note in self._task_notes.items() if task_id in task_ids}
        # Outcomes already recorded elsewhere (e.g. a task ticked off during the week) count as reviewed.
        for task in self._review_tasks:
            if task.status in REVIEW_OUTCOMES:
                self._outcomes.setdefault(task.id, task.status)
        if self._rating is None and self._week is not None and self._week.overall_rating is not None:
            self._rating = self._week.overall_rating
            self._note = self._week.review_note
        self._streak = await current_streak(self._weeks, self.user_id, self._streak_week_id())

    def _build_sequence(self) -> Tuple[ReviewStep, ...]:
        return review_sequence(len(self._review_tasks))

    def _resume_index(self, stored: WizardProgress) -> int:
        """Index of the task that was showing; the review order shifts as outcomes are written."""
        if self._step != ReviewStep.TASK_REVIEW or not self._review_tasks:
            return 0
        task_ids = [task.id for task in self._review_tasks]
        if stored.current_task_id in task_ids:
            return task_ids.index(stored.current_task_id)
        for index, task_id in enumerate(task_ids):
            if task_id not in self._outcomes:
                return index
        return len(task_ids) - 1

    def _back_within_step(self) -> bool:
        if self._step == ReviewStep.TASK_REVIEW and self._index > 0:
            self._move_to(ReviewStep.TASK_REVIEW, self._index - 1)
            return True
        return False

    async def _handle_flow_event(self, event: Any) -> bool:
        if isinstance(event, SelectMode):
            self._require_step(ReviewStep.MODE_SELECT, event)
            try:
                mode = ReviewMode(event.mode)
            except ValueError:
                raise ValidationFailed(f"Unknown review mode {event.mode!r}") from None
            if mode != ReviewMode.SOLO:
                raise ValidationFailed("Reviewing together is not available yet")
            self._mode = mode
            await self._advance()
            return True

        if isinstance(event, SelectRating):
            self._require_step(ReviewStep.RATING, event)
            if event.rating is None:
                raise ValidationFailed("Please select a rating")
            validate_rating(event.rating)
            await self._weeks.update_week_rating(self.user_id, self.week_id, event.rating, self._note)
            self._rating = event.rating
            return True

        if isinstance(event, UpdateRatingNote):
            self._require_step(ReviewStep.RATING, event)
            note = (event.note or "").strip() or None
            await self._weeks.update_week_rating(self.user_id, self.week_id, self._rating, note)
            self._note = note
            return True

        if isinstance(event, ContinueToTasks):
            self._require_step(ReviewStep.RATING, event)
            if self._rating is None:
                raise ValidationFailed("Please select a rating")
            await self._advance()
            return True

        if isinstance(event, SelectTaskOutcome):
            self._require_step(ReviewStep.TASK_REVIEW, event)
            status = _parse_outcome(event.status)
            task = self._current_task()
            if task is None or task.id != event.task_id:
                raise ValidationFailed("That task is not the one currently shown")
            await self._tasks.update_task_status(task.id, status)
            self._outcomes[task.id] = status
            await self._next_task()
            return True

        if isinstance(event, UpdateTaskNote):
            self._require_step(ReviewStep.TASK_REVIEW, event)
            if event.task_id not in {task.id for task in self._review_tasks}:
                raise ValidationFailed("That task is not part of this review")
            note = (event.note or "").strip() or None
            await self._tasks.update_task_review_note(event.task_id, note)
            if note is None:
                self._task_notes.pop(event.task_id, None)
            else:
                self._task_notes[event.task_id] = note
            return True

        if isinstance(event, QuickFinish):
            if self._step not in (ReviewStep.RATING, ReviewStep.TASK_REVIEW):
                raise ValidationFailed(f"QuickFinish is not available on the {self._step.value} step")
            for task in self._review_tasks:
                if task.id in self._outcomes:
                    continue
                await self._tasks.update_task_status(task.id, TaskStatus.SKIPPED)
                self._outcomes[task.id] = TaskStatus.SKIPPED
            logger.info("Quick finish for week %s", self.week_id)
            await self._goto(ReviewStep.SUMMARY)
            return True

        if isinstance(event, PlanNextWeek):
            if not self._completed:
                raise ValidationFailed("Finish the review before planning next week")
            self._emit(NavigateToPlanning())
            return False

        raise TypeError(f"Unhandled review event {type(event).__name__}")

    def _current_task(self) -> Optional[TaskRecord]:
        if self._step != ReviewStep.TASK_REVIEW:
            return None
        return items_at(self._review_tasks, self._index)

    async def _next_task(self) -> None:
        next_index = self._index + 1
        if next_index < len(self._review_tasks):
            self._index = next_index
            self._emit(NavigateToStep(ReviewStep.TASK_REVIEW.value, next_index))
            return
        await self._advance()

    def _progress_fields(self) -> Dict[str, Any]:
        current = self._current_task()
        return {
            "current_task_id": current.id if current else None,
            "review_mode": self._mode,
            "overall_rating": self._rating,
            "overall_note": self._note,
            "task_outcomes": dict(self._outcomes),
            "task_notes": dict(self._task_notes),
        }

    async def _write_completion(self, now: datetime) -> None:
        await self._weeks.mark_review_completed(self.user_id, self.week_id, self._rating, self._note, now)

    def _build_commit(self, now: datetime) -> WizardCommit:
        stats = review_stats(self._outcomes)
        return WizardCommit(
            flow=self.flow,
            user_id=self.user_id,
            week_id=self.week_id,
            committed_at=now,
            streak=self._streak,
            task_count=len(self._review_tasks),
            overall_rating=self._rating,
            completion_percentage=stats.completion_percentage,
            streak_milestone=streak_milestone(self._streak),
        )

    def _build_snapshot(self) -> ReviewSnapshot:
        stats = review_stats(self._outcomes)
        return ReviewSnapshot(
            **self._common_snapshot_fields(),
            review_mode=self._mode,
            overall_rating=self._rating,
            overall_note=self._note,
            tasks=list(self._review_tasks),
            current_task=self._current_task(),
            task_outcomes=dict(self._outcomes),
            task_notes=dict(self._task_notes),
            done_count=stats.done,
            tried_count=stats.tried,
            skipped_count=stats.skipped,
            completion_percentage=stats.completion_percentage,
            streak_milestone=streak_milestone(self._streak) if self._completed else None,
        )


def _parse_outcome(value: Any) -> TaskStatus:
    try:
        status = TaskStatus(value)
    except ValueError:
        raise ValidationFailed(f"Unknown task status {value!r}") from None
    if status not in REVIEW_OUTCOMES:
        raise ValidationFailed("Outcome must be completed, tried or skipped")
    return status
