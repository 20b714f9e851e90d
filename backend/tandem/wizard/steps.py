"""Step identifiers and step-sequence rules for both flows."""
from __future__ import annotations

from enum import Enum
from typing import Sequence, Tuple, TypeVar


class PlanningStep(str, Enum):
    ROLLOVER = "rollover"
    ADD_TASKS = "add_tasks"
    PARTNER_REQUESTS = "partner_requests"
    CONFIRMATION = "confirmation"


class ReviewStep(str, Enum):
    MODE_SELECT = "mode_select"
    RATING = "rating"
    TASK_REVIEW = "task_review"
    SUMMARY = "summary"


PLANNING_ORDER: Tuple[PlanningStep, ...] = tuple(PlanningStep)
REVIEW_ORDER: Tuple[ReviewStep, ...] = tuple(ReviewStep)

StepT = TypeVar("StepT", PlanningStep, ReviewStep)


def planning_sequence(has_rollover: bool, has_requests: bool) -> Tuple[PlanningStep, ...]:
    """Optional steps are dropped when they would have nothing to show."""
    steps = []
    if has_rollover:
        steps.append(PlanningStep.ROLLOVER)
    steps.append(PlanningStep.ADD_TASKS)
    if has_requests:
        steps.append(PlanningStep.PARTNER_REQUESTS)
    steps.append(PlanningStep.CONFIRMATION)
    return tuple(steps)


def review_sequence(task_count: int) -> Tuple[ReviewStep, ...]:
    if task_count > 0:
        return REVIEW_ORDER
    return (ReviewStep.MODE_SELECT, ReviewStep.RATING, ReviewStep.SUMMARY)


def clamp_step(step: StepT, sequence: Sequence[StepT], canonical: Sequence[StepT]) -> StepT:
    """Nearest member of ``sequence`` at or after ``step`` in canonical order.

    Falls back to the last step of the sequence.
    """
    if step in sequence:
        return step
    position = canonical.index(step)
    for candidate in canonical[position:]:
        if candidate in sequence:
            return candidate
    return sequence[-1]
