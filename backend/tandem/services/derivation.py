"""Read-only queries producing the inputs the wizard steps work through."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, List, Mapping, Optional
from uuid import UUID

from tandem.services.records import FINISHED_STATUSES, TaskRecord, TaskStatus
from tandem.services.task_store import TaskStore
from tandem.services.week_store import WeekStore
from tandem.services.weeks import parse_week_id, previous_week_id

STREAK_MILESTONES = (5, 10, 20, 50)
HIDDEN_FROM_REVIEW = frozenset({TaskStatus.PENDING_ACCEPTANCE, TaskStatus.DECLINED})


@dataclass(frozen=True)
class ReviewStats:
    done: int
    tried: int
    skipped: int
    total: int
    completion_percentage: int


async def incomplete_tasks_of_previous_week(
    tasks: TaskStore, user_id: UUID, current_week_id: str
) -> List[TaskRecord]:
    """Rollover candidates for ``current_week_id``, oldest first.

    Sources already copied into the current week are left out so that a lost
    progress record cannot produce a second copy.
    """
    previous = previous_week_id(current_week_id)
    candidates = await tasks.tasks_for_week(previous, user_id)
    rolled = await tasks.rolled_over_source_ids(current_week_id, user_id)
    remaining = [
        task
        for task in candidates
        if task.owner_id == user_id and task.status not in FINISHED_STATUSES and task.id not in rolled
    ]
    return sorted(remaining, key=lambda task: task.created_at)


async def pending_partner_requests(tasks: TaskStore, user_id: UUID) -> List[TaskRecord]:
    """Tasks the partner asked ``user_id`` to take on, oldest first."""
    pending = await tasks.tasks_by_status(TaskStatus.PENDING_ACCEPTANCE, user_id)
    requests = [task for task in pending if task.owner_id == user_id and task.is_partner_request]
    return sorted(requests, key=lambda task: task.created_at)


async def current_streak(weeks: WeekStore, user_id: UUID, up_to_week_id: Optional[str] = None) -> int:
    """Consecutive reviewed weeks counting back from the most recently started one.

    Weeks starting after ``up_to_week_id`` are ignored. Counting stops at the
    first unreviewed week and at any calendar gap.
    """
    records = await weeks.weeks_for_user(user_id)
    ordered = sorted(records, key=lambda week: week.start_date, reverse=True)
    if up_to_week_id is not None:
        cutoff = parse_week_id(up_to_week_id)
        ordered = [week for week in ordered if week.start_date <= cutoff]

    streak = 0
    expected_start = None
    for week in ordered:
        if expected_start is not None and week.start_date != expected_start:
            break
        if not week.is_reviewed:
            break
        streak += 1
        expected_start = week.start_date - timedelta(days=7)
    return streak


def review_stats(outcomes: Mapping[UUID, TaskStatus]) -> ReviewStats:
    values = list(outcomes.values())
    done = sum(1 for status in values if status == TaskStatus.COMPLETED)
    tried = sum(1 for status in values if status == TaskStatus.TRIED)
    skipped = sum(1 for status in values if status == TaskStatus.SKIPPED)
    total = len(values)
    percentage = done * 100 // total if total else 0
    return ReviewStats(done=done, tried=tried, skipped=skipped, total=total, completion_percentage=percentage)


def tasks_for_review(tasks: Iterable[TaskRecord]) -> List[TaskRecord]:
    """Accepted tasks of a week: open ones first, then completed, each oldest first."""
    accepted = [task for task in tasks if task.status not in HIDDEN_FROM_REVIEW]
    return sorted(accepted, key=lambda task: (task.status == TaskStatus.COMPLETED, task.created_at))


def streak_milestone(streak: int) -> Optional[int]:
    return streak if streak in STREAK_MILESTONES else None
