from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from tandem.services.records import NewTask, TaskStatus
from tandem.services.task_store import SqlTaskStore
from tandem.services.week_store import SqlWeekStore, validate_rating
from tandem.wizard.errors import TaskValidationError, ValidationFailed

WEEK = "2026-W43"


@pytest.mark.asyncio
async def test_create_task_strips_title_and_creates_owner(session_factory, seed):
    store = SqlTaskStore(session_factory)
    owner = uuid4()

    record = await store.create_task(NewTask(title="  Stretch  ", owner_id=owner, created_by=owner, week_id=WEEK))

    assert record.title == "Stretch"
    assert record.status == TaskStatus.PENDING
    fetched = await store.get_task(record.id)
    assert (fetched.id, fetched.title, fetched.owner_id) == (record.id, "Stretch", owner)


@pytest.mark.asyncio
async def test_create_task_rejects_blank_title(session_factory, seed):
    owner = seed.user()
    store = SqlTaskStore(session_factory)

    with pytest.raises(TaskValidationError, match="Task title cannot be empty"):
        await store.create_task(NewTask(title="   ", owner_id=owner, created_by=owner, week_id=WEEK))

    assert seed.tasks_in_week(owner, WEEK) == []


@pytest.mark.asyncio
async def test_get_task_missing_returns_none(session_factory):
    assert await SqlTaskStore(session_factory).get_task(uuid4()) is None


@pytest.mark.asyncio
async def test_update_missing_task_raises(session_factory):
    store = SqlTaskStore(session_factory)

    with pytest.raises(TaskValidationError):
        await store.update_task_status(uuid4(), TaskStatus.COMPLETED)
    with pytest.raises(TaskValidationError):
        await store.update_task_review_note(uuid4(), "note")


@pytest.mark.asyncio
async def test_tasks_by_status_filters_owner(session_factory, seed):
    owner = seed.user()
    other = seed.user()
    pending = seed.task(owner, WEEK, title="Mine")
    seed.task(owner, WEEK, title="Done", status=TaskStatus.COMPLETED)
    seed.task(other, WEEK, title="Theirs")

    records = await SqlTaskStore(session_factory).tasks_by_status(TaskStatus.PENDING, owner)

    assert [record.id for record in records] == [pending]


@pytest.mark.asyncio
async def test_update_status_and_note(session_factory, seed):
    owner = seed.user()
    task_id = seed.task(owner, WEEK)
    store = SqlTaskStore(session_factory)

    await store.update_task_status(task_id, TaskStatus.TRIED)
    await store.update_task_review_note(task_id, "Halfway there")

    task = seed.get_task(task_id)
    assert task.status == TaskStatus.TRIED.value
    assert task.review_note == "Halfway there"


@pytest.mark.asyncio
async def test_get_or_create_week_sets_bounds(session_factory, seed):
    user = seed.user()
    store = SqlWeekStore(session_factory)

    week = await store.get_or_create_week(user, WEEK)

    assert week.start_date.isoformat() == "2026-10-19"
    assert week.end_date.isoformat() == "2026-10-25"
    assert await store.get_week(user, WEEK) is not None


@pytest.mark.parametrize("rating", [0, 6, True, "3"])
def test_validate_rating_rejects(rating):
    with pytest.raises(ValidationFailed):
        validate_rating(rating)


@pytest.mark.parametrize("rating", [None, 1, 5])
def test_validate_rating_accepts(rating):
    validate_rating(rating)


@pytest.mark.asyncio
async def test_update_week_rating_rejects_out_of_range(session_factory, seed):
    user = seed.user()

    with pytest.raises(ValidationFailed):
        await SqlWeekStore(session_factory).update_week_rating(user, WEEK, 7, None)

    assert seed.get_week(user, WEEK) is None


@pytest.mark.asyncio
async def test_completion_markers_are_write_once(session_factory, seed):
    user = seed.user()
    store = SqlWeekStore(session_factory)
    first = datetime(2026, 10, 18, 19, 0, tzinfo=timezone.utc)
    later = first + timedelta(days=1)

    await store.mark_planning_completed(user, WEEK, first)
    planned = await store.mark_planning_completed(user, WEEK, later)
    await store.mark_review_completed(user, WEEK, 4, "Good", first)
    reviewed = await store.mark_review_completed(user, WEEK, 5, "Better", later)

    assert planned.planning_completed_at.replace(tzinfo=None) == first.replace(tzinfo=None)
    assert reviewed.reviewed_at.replace(tzinfo=None) == first.replace(tzinfo=None)
    assert reviewed.overall_rating == 5
    assert reviewed.review_note == "Better"
