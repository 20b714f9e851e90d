from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID, uuid4

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tandem.db.models.activity_log import ActivityLog
from tandem.db.models.task import Task
from tandem.db.models.user import User
from tandem.db.models.week import Week
from tandem.db.models.wizard_progress import WizardProgressRecord
from tandem.services.records import TaskStatus
from tandem.services.weeks import week_bounds

TABLES = (User, Week, Task, WizardProgressRecord, ActivityLog)


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):  # pragma: no cover - sqlite setup
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    for model in TABLES:
        model.__table__.create(bind=engine)
    yield TestingSessionLocal
    engine.dispose()


class Seeder:
    """Writes fixture rows directly, bypassing the stores under test."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory
        self._clock = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)

    def user(self, user_id: Optional[UUID] = None, partner_id: Optional[UUID] = None) -> UUID:
        user_id = user_id or uuid4()
        with self._session_factory() as db:
            if partner_id is not None and db.get(User, partner_id) is None:
                db.add(User(id=partner_id))
                db.flush()
            db.add(User(id=user_id, partner_id=partner_id))
            db.commit()
        return user_id

    def link_partners(self, first: UUID, second: UUID) -> None:
        with self._session_factory() as db:
            db.get(User, first).partner_id = second
            db.get(User, second).partner_id = first
            db.commit()

    def task(
        self,
        owner_id: UUID,
        week_id: str,
        title: str = "Task",
        status: TaskStatus = TaskStatus.PENDING,
        created_by: Optional[UUID] = None,
        notes: Optional[str] = None,
    ) -> UUID:
        self._clock += timedelta(minutes=1)
        task = Task(
            title=title,
            notes=notes,
            owner_id=owner_id,
            owner_type="self" if created_by in (None, owner_id) else "partner",
            created_by=created_by or owner_id,
            week_id=week_id,
            status=status.value,
            created_at=self._clock,
            updated_at=self._clock,
        )
        with self._session_factory() as db:
            db.add(task)
            db.commit()
            return task.id

    def week(
        self,
        user_id: UUID,
        week_id: str,
        *,
        reviewed: bool = False,
        planned: bool = False,
        rating: Optional[int] = None,
    ) -> None:
        start, end = week_bounds(week_id)
        marker = datetime.combine(end, datetime.min.time(), tzinfo=timezone.utc)
        with self._session_factory() as db:
            db.add(
                Week(
                    id=week_id,
                    user_id=user_id,
                    start_date=start,
                    end_date=end,
                    overall_rating=rating,
                    reviewed_at=marker if reviewed else None,
                    planning_completed_at=marker if planned else None,
                )
            )
            db.commit()

    def get_task(self, task_id: UUID) -> Task:
        with self._session_factory() as db:
            task = db.get(Task, task_id)
            db.expunge(task)
            return task

    def get_week(self, user_id: UUID, week_id: str) -> Optional[Week]:
        with self._session_factory() as db:
            week = db.get(Week, (week_id, user_id))
            if week is not None:
                db.expunge(week)
            return week

    def tasks_in_week(self, owner_id: UUID, week_id: str) -> list[Task]:
        with self._session_factory() as db:
            rows = (
                db.query(Task)
                .filter(Task.owner_id == owner_id, Task.week_id == week_id)
                .order_by(Task.created_at)
                .all()
            )
            for row in rows:
                db.expunge(row)
            return rows

    def activity(self, user_id: UUID) -> list[ActivityLog]:
        with self._session_factory() as db:
            rows = db.query(ActivityLog).filter(ActivityLog.user_id == user_id).order_by(ActivityLog.created_at).all()
            for row in rows:
                db.expunge(row)
            return rows


@pytest.fixture()
def seed(session_factory) -> Seeder:
    return Seeder(session_factory)
