"""Planning wizard: roll over last week's open tasks, add new ones, triage partner requests."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from tandem.services.derivation import current_streak, incomplete_tasks_of_previous_week, pending_partner_requests
from tandem.services.progress_store import WizardProgress
from tandem.services.records import NewTask, OwnerType, TaskRecord, TaskStatus, WizardFlow
from tandem.services.weeks import previous_week_id
from tandem.wizard.controller import WizardController, items_at
from tandem.wizard.effects import NavigateToStep, ShowMessage
from tandem.wizard.errors import ValidationFailed
from tandem.wizard.events import (
    PLANNING_EVENTS,
    DoneAddingTasks,
    NewTaskSubmitted,
    PartnerRequestAccepted,
    PartnerRequestDiscussed,
    RolloverTaskAccepted,
    RolloverTaskSkipped,
)
from tandem.wizard.state import PlanningSnapshot, WizardCommit
from tandem.wizard.steps import PLANNING_ORDER, PlanningStep, planning_sequence

logger = logging.getLogger(__name__)

DISCUSS_MESSAGE = "Discuss feature coming soon"
WITHDRAWN_MESSAGE = "That request is no longer available"

# PENDING covers a request already accepted by an earlier attempt of the same event.
ACCEPTABLE_STATUSES = frozenset({TaskStatus.PENDING_ACCEPTANCE, TaskStatus.PENDING})


class PlanningController(WizardController):
    flow = WizardFlow.PLANNING
    step_type = PlanningStep
    canonical_steps = PLANNING_ORDER
    terminal_step = PlanningStep.CONFIRMATION
    event_types = PLANNING_EVENTS

    def _reset_accumulators(self) -> None:
        self._rollover: List[TaskRecord] = []
        self._requests: List[TaskRecord] = []
        self._processed: List[UUID] = []
        self._rollover_links: Dict[UUID, UUID] = {}
        self._accepted_requests: List[UUID] = []
        self._added_ids: List[UUID] = []
        self._added_tasks: List[TaskRecord] = []

    def _restore(self, stored: WizardProgress) -> None:
        self._processed = list(stored.processed_task_ids)
        self._rollover_links = dict(stored.rollover_links)
        self._accepted_requests = list(stored.accepted_request_ids)
        self._added_ids = list(stored.added_task_ids)

    async def _derive(self) -> None:
        processed = set(self._processed)
        rollover = await incomplete_tasks_of_previous_week(self._tasks, self.user_id, self.week_id)
        requests = await pending_partner_requests(self._tasks, self.user_id)
        self._rollover = [task for task in rollover if task.id not in processed]
        self._requests = [task for task in requests if task.id not in processed]
        if self._added_ids:
            week_tasks = {task.id: task for task in await self._tasks.tasks_for_week(self.week_id, self.user_id)}
            self._added_tasks = [week_tasks[task_id] for task_id in self._added_ids if task_id in week_tasks]
        self._streak = await current_streak(self._weeks, self.user_id, self._streak_week_id())

    def _streak_week_id(self) -> str:
        # The week being planned cannot be reviewed yet; the streak runs up to the one before it.
        return previous_week_id(self.week_id)

    def _build_sequence(self) -> Tuple[PlanningStep, ...]:
        return planning_sequence(bool(self._rollover), bool(self._requests))

    async def _handle_flow_event(self, event: Any) -> bool:
        if isinstance(event, RolloverTaskAccepted):
            source = self._take_current(PlanningStep.ROLLOVER, event.task_id, event)
            await self._roll_over(source)
            self._mark_processed(source.id)
            await self._next_item()
            return True

        if isinstance(event, RolloverTaskSkipped):
            source = self._take_current(PlanningStep.ROLLOVER, event.task_id, event)
            self._mark_processed(source.id)
            await self._next_item()
            return True

        if isinstance(event, NewTaskSubmitted):
            self._require_step(PlanningStep.ADD_TASKS, event)
            title = (event.title or "").strip()
            if not title:
                raise ValidationFailed("Task title cannot be empty")
            notes = (event.notes or "").strip() or None
            created = await self._tasks.create_task(
                NewTask(
                    title=title,
                    notes=notes,
                    owner_id=self.user_id,
                    owner_type=OwnerType.SELF,
                    created_by=self.user_id,
                    week_id=self.week_id,
                    status=TaskStatus.PENDING,
                )
            )
            self._added_ids.append(created.id)
            self._added_tasks.append(created)
            return True

        if isinstance(event, DoneAddingTasks):
            self._require_step(PlanningStep.ADD_TASKS, event)
            await self._advance()
            return True

        if isinstance(event, PartnerRequestAccepted):
            request = self._take_current(PlanningStep.PARTNER_REQUESTS, event.task_id, event)
            # The partner may have withdrawn or changed the request since the list was derived.
            latest = await self._tasks.get_task(request.id)
            if latest is None or not latest.is_partner_request or latest.status not in ACCEPTABLE_STATUSES:
                self._emit(ShowMessage(WITHDRAWN_MESSAGE))
            else:
                await self._tasks.update_task_status(request.id, TaskStatus.PENDING)
                if request.id not in self._accepted_requests:
                    self._accepted_requests.append(request.id)
            self._mark_processed(request.id)
            await self._next_item()
            return True

        if isinstance(event, PartnerRequestDiscussed):
            request = self._take_current(PlanningStep.PARTNER_REQUESTS, event.task_id, event)
            self._emit(ShowMessage(DISCUSS_MESSAGE))
            self._mark_processed(request.id)
            await self._next_item()
            return True

        raise TypeError(f"Unhandled planning event {type(event).__name__}")

    async def _roll_over(self, source: TaskRecord) -> None:
        # One copy per source; the source row itself is left untouched.
        if source.id in self._rollover_links:
            return
        created = await self._tasks.create_task(
            NewTask(
                title=source.title,
                notes=source.notes,
                owner_id=self.user_id,
                owner_type=OwnerType.SELF,
                created_by=self.user_id,
                week_id=self.week_id,
                status=TaskStatus.PENDING,
                rolled_from_task_id=source.id,
                rolled_from_week_id=source.week_id,
            )
        )
        self._rollover_links[source.id] = created.id
        logger.info("Rolled task %s over from %s as %s", source.id, source.week_id, created.id)

    def _items(self, step: PlanningStep) -> List[TaskRecord]:
        if step == PlanningStep.ROLLOVER:
            return self._rollover
        if step == PlanningStep.PARTNER_REQUESTS:
            return self._requests
        return []

    def _current_item(self) -> Optional[TaskRecord]:
        return items_at(self._items(self._step), self._index)

    def _take_current(self, step: PlanningStep, task_id: UUID, event: Any) -> TaskRecord:
        self._require_step(step, event)
        item = self._current_item()
        if item is None or item.id != task_id:
            raise ValidationFailed("That task is not the one currently shown")
        return item

    def _mark_processed(self, task_id: UUID) -> None:
        if task_id not in self._processed:
            self._processed.append(task_id)

    async def _next_item(self) -> None:
        next_index = self._index + 1
        if next_index < len(self._items(self._step)):
            self._index = next_index
            self._emit(NavigateToStep(self._step.value, next_index))
            return
        await self._advance()

    def _progress_fields(self) -> Dict[str, Any]:
        return {
            "processed_task_ids": list(self._processed),
            "rollover_links": dict(self._rollover_links),
            "accepted_request_ids": list(self._accepted_requests),
            "added_task_ids": list(self._added_ids),
            "tasks_added": len(self._added_ids),
            "tasks_rolled_over": len(self._rollover_links),
            "requests_accepted": len(self._accepted_requests),
        }

    async def _write_completion(self, now: datetime) -> None:
        await self._weeks.mark_planning_completed(self.user_id, self.week_id, now)

    def _build_commit(self, now: datetime) -> WizardCommit:
        return WizardCommit(
            flow=self.flow,
            user_id=self.user_id,
            week_id=self.week_id,
            committed_at=now,
            streak=self._streak,
            task_count=len(self._added_ids) + len(self._rollover_links) + len(self._accepted_requests),
            tasks_added=len(self._added_ids),
            tasks_rolled_over=len(self._rollover_links),
            requests_accepted=len(self._accepted_requests),
        )

    def _build_snapshot(self) -> PlanningSnapshot:
        return PlanningSnapshot(
            **self._common_snapshot_fields(),
            rollover_candidates=list(self._rollover),
            partner_requests=list(self._requests),
            current_item=self._current_item(),
            processed_task_ids=list(self._processed),
            added_tasks=list(self._added_tasks),
            tasks_added=len(self._added_ids),
            tasks_rolled_over=len(self._rollover_links),
            requests_accepted=len(self._accepted_requests),
        )
