from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from tandem.services.progress_store import InMemoryProgressStore, WizardProgress
from tandem.services.records import ReviewMode, TaskStatus, WizardFlow
from tandem.services.task_store import SqlTaskStore
from tandem.services.week_store import SqlWeekStore
from tandem.wizard.effects import NavigateToPlanning, NavigateToStep
from tandem.wizard.events import (
    Back,
    ContinueToTasks,
    ExitWithSave,
    NewTaskSubmitted,
    PlanNextWeek,
    QuickFinish,
    SelectMode,
    SelectRating,
    SelectTaskOutcome,
    UpdateRatingNote,
    UpdateTaskNote,
)
from tandem.wizard.review import ReviewController
from tandem.wizard.steps import ReviewStep

CURRENT_WEEK = "2026-W43"
NOW = datetime(2026, 10, 23, 19, 0, tzinfo=timezone.utc)


def build(session_factory, user_id, *, progress=None):
    return ReviewController(
        user_id=user_id,
        week_id=CURRENT_WEEK,
        tasks=SqlTaskStore(session_factory),
        weeks=SqlWeekStore(session_factory),
        progress=progress or InMemoryProgressStore(),
        clock=lambda: NOW,
    )


async def _to_task_review(controller, rating: int = 4):
    await controller.start()
    await controller.dispatch(SelectMode(mode=ReviewMode.SOLO))
    await controller.dispatch(SelectRating(rating=rating))
    return await controller.dispatch(ContinueToTasks())


@pytest.mark.asyncio
async def test_review_lists_accepted_tasks_open_first(session_factory, seed) -> None:
    user_id = seed.user()
    partner_id = seed.user()
    done = seed.task(user_id, CURRENT_WEEK, "Gym", TaskStatus.COMPLETED)
    open_task = seed.task(user_id, CURRENT_WEEK, "Submit report")
    seed.task(user_id, CURRENT_WEEK, "Not accepted", TaskStatus.PENDING_ACCEPTANCE, created_by=partner_id)

    snapshot = await build(session_factory, user_id).start()

    assert snapshot.flow == WizardFlow.REVIEW
    assert snapshot.step_sequence == ["mode_select", "rating", "task_review", "summary"]
    assert [task.id for task in snapshot.tasks] == [open_task, done]
    assert snapshot.task_outcomes == {done: TaskStatus.COMPLETED}


@pytest.mark.asyncio
async def test_together_mode_is_not_available(session_factory, seed) -> None:
    controller = build(session_factory, seed.user())
    await controller.start()

    snapshot = await controller.dispatch(SelectMode(mode=ReviewMode.TOGETHER))

    assert snapshot.validation_message == "Reviewing together is not available yet"
    assert snapshot.current_step == ReviewStep.MODE_SELECT


@pytest.mark.asyncio
@pytest.mark.parametrize("rating", [0, 6])
async def test_out_of_range_rating_is_rejected(session_factory, seed, rating) -> None:
    user_id = seed.user()
    progress = InMemoryProgressStore()
    controller = build(session_factory, user_id, progress=progress)
    await controller.start()
    await controller.dispatch(SelectMode(mode=ReviewMode.SOLO))
    saved = await progress.load(user_id, WizardFlow.REVIEW)

    snapshot = await controller.dispatch(SelectRating(rating=rating))

    assert snapshot.validation_message == "Rating must be between 1 and 5"
    assert snapshot.overall_rating is None
    assert seed.get_week(user_id, CURRENT_WEEK).overall_rating is None
    assert await progress.load(user_id, WizardFlow.REVIEW) == saved


@pytest.mark.asyncio
async def test_continue_requires_a_rating(session_factory, seed) -> None:
    controller = build(session_factory, seed.user())
    await controller.start()
    await controller.dispatch(SelectMode(mode=ReviewMode.SOLO))

    snapshot = await controller.dispatch(ContinueToTasks())

    assert snapshot.validation_message == "Please select a rating"
    assert snapshot.current_step == ReviewStep.RATING


@pytest.mark.asyncio
async def test_rating_survives_exit_and_resume(session_factory, seed) -> None:
    user_id = seed.user()
    seed.task(user_id, CURRENT_WEEK, "Submit report")
    progress = InMemoryProgressStore()
    controller = build(session_factory, user_id, progress=progress)
    await controller.start()
    await controller.dispatch(SelectMode(mode=ReviewMode.SOLO))
    await controller.dispatch(SelectRating(rating=4))
    await controller.dispatch(UpdateRatingNote(note="  Busy but good "))

    resumed = await build(session_factory, user_id, progress=progress).start()

    assert resumed.current_step == ReviewStep.RATING
    assert resumed.overall_rating == 4
    assert resumed.overall_note == "Busy but good"
    assert resumed.review_mode == ReviewMode.SOLO
    week = seed.get_week(user_id, CURRENT_WEEK)
    assert week.overall_rating == 4
    assert week.reviewed_at is None


@pytest.mark.asyncio
async def test_rating_already_on_the_week_is_prefilled(session_factory, seed) -> None:
    user_id = seed.user()
    seed.week(user_id, CURRENT_WEEK, rating=3)

    snapshot = await build(session_factory, user_id).start()

    assert snapshot.overall_rating == 3


@pytest.mark.asyncio
async def test_progress_from_another_week_starts_fresh(session_factory, seed) -> None:
    user_id = seed.user()
    progress = InMemoryProgressStore()
    await progress.save(
        user_id,
        WizardProgress(week_id="2026-W42", flow=WizardFlow.REVIEW, current_step="task_review", overall_rating=2),
    )

    snapshot = await build(session_factory, user_id, progress=progress).start()

    assert snapshot.current_step == ReviewStep.MODE_SELECT
    assert snapshot.overall_rating is None
    assert await progress.load(user_id, WizardFlow.REVIEW) is None


@pytest.mark.asyncio
async def test_outcomes_walk_the_tasks_and_commit_on_summary(session_factory, seed) -> None:
    user_id = seed.user()
    for week_id in ("2026-W41", "2026-W42"):
        seed.week(user_id, week_id, reviewed=True)
    first = seed.task(user_id, CURRENT_WEEK, "Submit report")
    second = seed.task(user_id, CURRENT_WEEK, "Call plumber")
    progress = InMemoryProgressStore()
    controller = build(session_factory, user_id, progress=progress)
    await _to_task_review(controller, rating=5)
    controller.drain_effects()

    snapshot = await controller.dispatch(SelectTaskOutcome(task_id=first, status=TaskStatus.COMPLETED))
    assert snapshot.current_task.id == second
    assert controller.drain_effects() == [NavigateToStep("task_review", 1)]

    snapshot = await controller.dispatch(SelectTaskOutcome(task_id=second, status=TaskStatus.TRIED))

    assert snapshot.current_step == ReviewStep.SUMMARY
    assert snapshot.completed is True
    assert (snapshot.done_count, snapshot.tried_count, snapshot.skipped_count) == (1, 1, 0)
    assert snapshot.completion_percentage == 50
    assert snapshot.streak == 3
    assert snapshot.streak_milestone is None
    assert seed.get_task(first).status == "completed"
    assert seed.get_task(second).status == "tried"
    week = seed.get_week(user_id, CURRENT_WEEK)
    assert week.reviewed_at is not None
    assert week.overall_rating == 5
    assert await progress.load(user_id, WizardFlow.REVIEW) is None


@pytest.mark.asyncio
async def test_reaching_a_milestone_is_reported(session_factory, seed) -> None:
    user_id = seed.user()
    for week_id in ("2026-W39", "2026-W40", "2026-W41", "2026-W42"):
        seed.week(user_id, week_id, reviewed=True)
    task_id = seed.task(user_id, CURRENT_WEEK, "Submit report")
    controller = build(session_factory, user_id)
    await _to_task_review(controller)

    snapshot = await controller.dispatch(SelectTaskOutcome(task_id=task_id, status=TaskStatus.COMPLETED))

    assert snapshot.streak == 5
    assert snapshot.streak_milestone == 5


@pytest.mark.asyncio
async def test_invalid_outcomes_are_rejected(session_factory, seed) -> None:
    user_id = seed.user()
    task_id = seed.task(user_id, CURRENT_WEEK, "Submit report")
    controller = build(session_factory, user_id)
    await _to_task_review(controller)

    pending = await controller.dispatch(SelectTaskOutcome(task_id=task_id, status=TaskStatus.PENDING))
    assert pending.validation_message == "Outcome must be completed, tried or skipped"

    stranger = await controller.dispatch(SelectTaskOutcome(task_id=uuid4(), status=TaskStatus.COMPLETED))
    assert stranger.validation_message == "That task is not the one currently shown"
    assert seed.get_task(task_id).status == "pending"


@pytest.mark.asyncio
async def test_back_moves_through_tasks_then_to_rating(session_factory, seed) -> None:
    user_id = seed.user()
    first = seed.task(user_id, CURRENT_WEEK, "Submit report")
    seed.task(user_id, CURRENT_WEEK, "Call plumber")
    controller = build(session_factory, user_id)
    await _to_task_review(controller)
    await controller.dispatch(SelectTaskOutcome(task_id=first, status=TaskStatus.SKIPPED))

    snapshot = await controller.dispatch(Back())
    assert (snapshot.current_step, snapshot.current_index) == (ReviewStep.TASK_REVIEW, 0)

    snapshot = await controller.dispatch(Back())
    assert snapshot.current_step == ReviewStep.RATING
    assert snapshot.task_outcomes == {first: TaskStatus.SKIPPED}


@pytest.mark.asyncio
async def test_resume_mid_task_review_returns_to_the_task_that_was_showing(session_factory, seed) -> None:
    user_id = seed.user()
    first = seed.task(user_id, CURRENT_WEEK, "Submit report")
    second = seed.task(user_id, CURRENT_WEEK, "Call plumber")
    third = seed.task(user_id, CURRENT_WEEK, "Book flights")
    progress = InMemoryProgressStore()
    controller = build(session_factory, user_id, progress=progress)
    await _to_task_review(controller)
    before = await controller.dispatch(SelectTaskOutcome(task_id=first, status=TaskStatus.COMPLETED))
    assert before.current_task.id == second
    await controller.dispatch(ExitWithSave())

    resumed_controller = build(session_factory, user_id, progress=progress)
    resumed = await resumed_controller.start()

    # The completed task now sorts last, so the saved position alone would point past it.
    assert [task.id for task in resumed.tasks] == [second, third, first]
    assert resumed.current_step == ReviewStep.TASK_REVIEW
    assert resumed.current_task.id == second

    snapshot = await resumed_controller.dispatch(SelectTaskOutcome(task_id=second, status=TaskStatus.TRIED))
    assert snapshot.current_task.id == third
    snapshot = await resumed_controller.dispatch(SelectTaskOutcome(task_id=third, status=TaskStatus.SKIPPED))
    assert snapshot.current_task.id == first
    snapshot = await resumed_controller.dispatch(SelectTaskOutcome(task_id=first, status=TaskStatus.COMPLETED))

    assert snapshot.current_step == ReviewStep.SUMMARY
    assert (snapshot.done_count, snapshot.tried_count, snapshot.skipped_count) == (1, 1, 1)
    assert seed.get_task(second).status == "tried"
    assert seed.get_task(third).status == "skipped"


@pytest.mark.asyncio
async def test_resume_without_a_saved_task_starts_at_the_first_unreviewed_one(session_factory, seed) -> None:
    user_id = seed.user()
    seed.task(user_id, CURRENT_WEEK, "Submit report", TaskStatus.COMPLETED)
    open_task = seed.task(user_id, CURRENT_WEEK, "Call plumber")
    progress = InMemoryProgressStore()
    await progress.save(
        user_id,
        WizardProgress(
            week_id=CURRENT_WEEK,
            flow=WizardFlow.REVIEW,
            current_step="task_review",
            current_index=1,
            review_mode=ReviewMode.SOLO,
            overall_rating=4,
        ),
    )

    snapshot = await build(session_factory, user_id, progress=progress).start()

    assert snapshot.current_step == ReviewStep.TASK_REVIEW
    assert snapshot.current_task.id == open_task


@pytest.mark.asyncio
async def test_task_notes_are_written_immediately(session_factory, seed) -> None:
    user_id = seed.user()
    task_id = seed.task(user_id, CURRENT_WEEK, "Submit report")
    controller = build(session_factory, user_id)
    await _to_task_review(controller)

    snapshot = await controller.dispatch(UpdateTaskNote(task_id=task_id, note=" Needed more time "))
    assert snapshot.task_notes == {task_id: "Needed more time"}
    assert seed.get_task(task_id).review_note == "Needed more time"

    snapshot = await controller.dispatch(UpdateTaskNote(task_id=task_id, note="   "))
    assert snapshot.task_notes == {}
    assert seed.get_task(task_id).review_note is None


@pytest.mark.asyncio
async def test_quick_finish_skips_everything_without_an_outcome(session_factory, seed) -> None:
    user_id = seed.user()
    completed = [seed.task(user_id, CURRENT_WEEK, f"Done {n}", TaskStatus.COMPLETED) for n in range(2)]
    pending = [seed.task(user_id, CURRENT_WEEK, f"Open {n}") for n in range(3)]
    controller = build(session_factory, user_id)
    await _to_task_review(controller, rating=3)

    snapshot = await controller.dispatch(QuickFinish())

    assert snapshot.current_step == ReviewStep.SUMMARY
    assert snapshot.completed is True
    assert (snapshot.done_count, snapshot.skipped_count) == (2, 3)
    assert snapshot.completion_percentage == 40
    assert [seed.get_task(task_id).status for task_id in pending] == ["skipped"] * 3
    assert [seed.get_task(task_id).status for task_id in completed] == ["completed"] * 2
    assert seed.get_week(user_id, CURRENT_WEEK).reviewed_at is not None


@pytest.mark.asyncio
async def test_quick_finish_keeps_outcomes_already_chosen(session_factory, seed) -> None:
    user_id = seed.user()
    first = seed.task(user_id, CURRENT_WEEK, "Submit report")
    second = seed.task(user_id, CURRENT_WEEK, "Call plumber")
    controller = build(session_factory, user_id)
    await _to_task_review(controller)
    await controller.dispatch(SelectTaskOutcome(task_id=first, status=TaskStatus.TRIED))

    snapshot = await controller.dispatch(QuickFinish())

    assert snapshot.task_outcomes == {first: TaskStatus.TRIED, second: TaskStatus.SKIPPED}
    assert seed.get_task(first).status == "tried"


@pytest.mark.asyncio
async def test_quick_finish_is_rejected_on_mode_select(session_factory, seed) -> None:
    controller = build(session_factory, seed.user())
    await controller.start()

    snapshot = await controller.dispatch(QuickFinish())

    assert snapshot.validation_message == "QuickFinish is not available on the mode_select step"
    assert snapshot.completed is False


@pytest.mark.asyncio
async def test_week_without_tasks_goes_straight_to_summary(session_factory, seed) -> None:
    user_id = seed.user()
    controller = build(session_factory, user_id)

    snapshot = await _to_task_review(controller, rating=2)

    assert snapshot.step_sequence == ["mode_select", "rating", "summary"]
    assert snapshot.current_step == ReviewStep.SUMMARY
    assert snapshot.completed is True
    assert snapshot.completion_percentage == 0
    assert seed.get_week(user_id, CURRENT_WEEK).overall_rating == 2


@pytest.mark.asyncio
async def test_plan_next_week_only_after_the_review_is_done(session_factory, seed) -> None:
    controller = build(session_factory, seed.user())
    await controller.start()

    early = await controller.dispatch(PlanNextWeek())
    assert early.validation_message == "Finish the review before planning next week"

    await controller.dispatch(SelectMode(mode=ReviewMode.SOLO))
    await controller.dispatch(SelectRating(rating=4))
    await controller.dispatch(ContinueToTasks())
    controller.drain_effects()
    await controller.dispatch(PlanNextWeek())

    assert controller.drain_effects() == [NavigateToPlanning()]


@pytest.mark.asyncio
async def test_rejects_planning_events(session_factory, seed) -> None:
    controller = build(session_factory, seed.user())
    await controller.start()

    with pytest.raises(TypeError):
        await controller.dispatch(NewTaskSubmitted(title="Nope"))
