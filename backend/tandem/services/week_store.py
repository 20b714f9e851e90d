"""Week store used by the wizard engine."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol
from uuid import UUID

from sqlalchemy import desc
from sqlalchemy.orm import Session, sessionmaker

from tandem.db.models.week import Week
from tandem.services.records import WeekRecord
from tandem.services.unit_of_work import run_unit_of_work
from tandem.services.user_service import get_or_create_user
from tandem.services.weeks import week_bounds
from tandem.wizard.errors import ValidationFailed

MIN_RATING = 1
MAX_RATING = 5


class WeekStore(Protocol):
    async def get_week(self, user_id: UUID, week_id: str) -> Optional[WeekRecord]:
        ...

    async def get_or_create_week(self, user_id: UUID, week_id: str) -> WeekRecord:
        ...

    async def weeks_for_user(self, user_id: UUID) -> List[WeekRecord]:
        ...

    async def update_week_rating(
        self, user_id: UUID, week_id: str, rating: Optional[int], note: Optional[str]
    ) -> WeekRecord:
        ...

    async def mark_planning_completed(self, user_id: UUID, week_id: str, at: datetime) -> WeekRecord:
        ...

    async def mark_review_completed(
        self,
        user_id: UUID,
        week_id: str,
        rating: Optional[int],
        note: Optional[str],
        at: datetime,
    ) -> WeekRecord:
        ...


def validate_rating(rating: Optional[int]) -> None:
    if rating is None:
        return
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationFailed(f"Rating must be between {MIN_RATING} and {MAX_RATING}")


class SqlWeekStore:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    async def get_week(self, user_id: UUID, week_id: str) -> Optional[WeekRecord]:
        def work(db: Session) -> Optional[WeekRecord]:
            week = db.get(Week, (week_id, user_id))
            return WeekRecord.model_validate(week) if week else None

        return await run_unit_of_work(self._session_factory, work, operation="week.get")

    async def get_or_create_week(self, user_id: UUID, week_id: str) -> WeekRecord:
        def work(db: Session) -> WeekRecord:
            return WeekRecord.model_validate(_get_or_create(db, user_id, week_id))

        return await run_unit_of_work(self._session_factory, work, operation="week.get_or_create")

    async def weeks_for_user(self, user_id: UUID) -> List[WeekRecord]:
        """Weeks of ``user_id``, most recently started first."""

        def work(db: Session) -> List[WeekRecord]:
            rows = db.query(Week).filter(Week.user_id == user_id).order_by(desc(Week.start_date)).all()
            return [WeekRecord.model_validate(row) for row in rows]

        return await run_unit_of_work(self._session_factory, work, operation="week.list")

    async def update_week_rating(
        self, user_id: UUID, week_id: str, rating: Optional[int], note: Optional[str]
    ) -> WeekRecord:
        validate_rating(rating)

        def work(db: Session) -> WeekRecord:
            week = _get_or_create(db, user_id, week_id)
            week.overall_rating = rating
            week.review_note = note
            db.flush()
            return WeekRecord.model_validate(week)

        return await run_unit_of_work(self._session_factory, work, operation="week.update_rating")

    async def mark_planning_completed(self, user_id: UUID, week_id: str, at: datetime) -> WeekRecord:
        def work(db: Session) -> WeekRecord:
            week = _get_or_create(db, user_id, week_id)
            if week.planning_completed_at is None:
                week.planning_completed_at = at
                db.flush()
            return WeekRecord.model_validate(week)

        return await run_unit_of_work(self._session_factory, work, operation="week.mark_planned")

    async def mark_review_completed(
        self,
        user_id: UUID,
        week_id: str,
        rating: Optional[int],
        note: Optional[str],
        at: datetime,
    ) -> WeekRecord:
        validate_rating(rating)

        def work(db: Session) -> WeekRecord:
            week = _get_or_create(db, user_id, week_id)
            week.overall_rating = rating
            week.review_note = note
            # Completion markers are write-once.
            if week.reviewed_at is None:
                week.reviewed_at = at
            db.flush()
            return WeekRecord.model_validate(week)

        return await run_unit_of_work(self._session_factory, work, operation="week.mark_reviewed")


def _get_or_create(db: Session, user_id: UUID, week_id: str) -> Week:
    week = db.get(Week, (week_id, user_id))
    if week:
        return week
    get_or_create_user(db, user_id)
    start, end = week_bounds(week_id)
    week = Week(id=week_id, user_id=user_id, start_date=start, end_date=end)
    db.add(week)
    db.flush()
    return week
