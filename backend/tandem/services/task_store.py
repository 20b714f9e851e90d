"""Task store used by the wizard engine.

The engine only talks to the ``TaskStore`` protocol. ``SqlTaskStore`` backs it
with the application database, one short session per call.
"""
from __future__ import annotations

from typing import List, Optional, Protocol, Set
from uuid import UUID

from sqlalchemy import asc
from sqlalchemy.orm import Session, sessionmaker

from tandem.db.models.task import Task
from tandem.services.records import NewTask, TaskRecord, TaskStatus
from tandem.services.unit_of_work import run_unit_of_work
from tandem.services.user_service import get_or_create_user
from tandem.wizard.errors import TaskValidationError


class TaskStore(Protocol):
    async def get_task(self, task_id: UUID) -> Optional[TaskRecord]:
        ...

    async def tasks_for_week(self, week_id: str, owner_id: UUID) -> List[TaskRecord]:
        ...

    async def tasks_by_status(self, status: TaskStatus, owner_id: UUID) -> List[TaskRecord]:
        ...

    async def rolled_over_source_ids(self, week_id: str, owner_id: UUID) -> Set[UUID]:
        ...

    async def create_task(self, new_task: NewTask) -> TaskRecord:
        ...

    async def update_task_status(self, task_id: UUID, status: TaskStatus) -> TaskRecord:
        ...

    async def update_task_review_note(self, task_id: UUID, note: Optional[str]) -> TaskRecord:
        ...


class SqlTaskStore:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    async def get_task(self, task_id: UUID) -> Optional[TaskRecord]:
        def work(db: Session) -> Optional[TaskRecord]:
            task = db.get(Task, task_id)
            return TaskRecord.model_validate(task) if task else None

        return await run_unit_of_work(self._session_factory, work, operation="task.get")

    async def tasks_for_week(self, week_id: str, owner_id: UUID) -> List[TaskRecord]:
        def work(db: Session) -> List[TaskRecord]:
            rows = (
                db.query(Task)
                .filter(Task.week_id == week_id, Task.owner_id == owner_id)
                .order_by(asc(Task.created_at))
                .all()
            )
            return [TaskRecord.model_validate(row) for row in rows]

        return await run_unit_of_work(self._session_factory, work, operation="task.list_week")

    async def tasks_by_status(self, status: TaskStatus, owner_id: UUID) -> List[TaskRecord]:
        def work(db: Session) -> List[TaskRecord]:
            rows = (
                db.query(Task)
                .filter(Task.status == status.value, Task.owner_id == owner_id)
                .order_by(asc(Task.created_at))
                .all()
            )
            return [TaskRecord.model_validate(row) for row in rows]

        return await run_unit_of_work(self._session_factory, work, operation="task.list_status")

    async def rolled_over_source_ids(self, week_id: str, owner_id: UUID) -> Set[UUID]:
        def work(db: Session) -> Set[UUID]:
            rows = (
                db.query(Task.rolled_from_task_id)
                .filter(
                    Task.week_id == week_id,
                    Task.owner_id == owner_id,
                    Task.rolled_from_task_id.isnot(None),
                )
                .all()
            )
            return {row[0] for row in rows}

        return await run_unit_of_work(self._session_factory, work, operation="task.rollover_sources")

    async def create_task(self, new_task: NewTask) -> TaskRecord:
        title = (new_task.title or "").strip()
        if not title:
            raise TaskValidationError("Task title cannot be empty")

        def work(db: Session) -> TaskRecord:
            get_or_create_user(db, new_task.owner_id)
            task = Task(
                title=title,
                notes=new_task.notes,
                owner_id=new_task.owner_id,
                owner_type=new_task.owner_type.value,
                created_by=new_task.created_by,
                week_id=new_task.week_id,
                status=new_task.status.value,
                rolled_from_task_id=new_task.rolled_from_task_id,
                rolled_from_week_id=new_task.rolled_from_week_id,
            )
            db.add(task)
            db.flush()
            return TaskRecord.model_validate(task)

        return await run_unit_of_work(self._session_factory, work, operation="task.create")

    async def update_task_status(self, task_id: UUID, status: TaskStatus) -> TaskRecord:
        def work(db: Session) -> TaskRecord:
            task = _require_task(db, task_id)
            if task.status != status.value:
                task.status = status.value
                db.flush()
            return TaskRecord.model_validate(task)

        return await run_unit_of_work(self._session_factory, work, operation="task.update_status")

    async def update_task_review_note(self, task_id: UUID, note: Optional[str]) -> TaskRecord:
        def work(db: Session) -> TaskRecord:
            task = _require_task(db, task_id)
            if task.review_note != note:
                task.review_note = note
                db.flush()
            return TaskRecord.model_validate(task)

        return await run_unit_of_work(self._session_factory, work, operation="task.update_review_note")


def _require_task(db: Session, task_id: UUID) -> Task:
    task = db.get(Task, task_id)
    if not task:
        raise TaskValidationError(f"Task {task_id} not found")
    return task
