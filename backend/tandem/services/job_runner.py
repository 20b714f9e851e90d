"""Batch jobs reminding users when the planning and review windows open."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from tandem.core.config import settings
from tandem.db.models.user import User
from tandem.db.models.week import Week
from tandem.services.notifications.hooks import notify_window_open
from tandem.services.records import WizardFlow
from tandem.services.time_window import planning_target_week_id
from tandem.services.weeks import current_week_id


logger = logging.getLogger(__name__)


@dataclass
class JobRunResult:
    users_processed: int
    notifications_sent: int
    skipped_already_done: int = 0


def run_review_reminders(
    db: Session,
    *,
    now: Optional[datetime] = None,
    user_ids: Optional[Iterable[UUID]] = None,
) -> JobRunResult:
    """Remind every user whose current week has not been reviewed yet."""
    tz = ZoneInfo(settings.timezone)
    week_id = current_week_id(now or datetime.now(timezone.utc), tz)
    return _run_reminders(db, WizardFlow.REVIEW, week_id, user_ids)


def run_planning_reminders(
    db: Session,
    *,
    now: Optional[datetime] = None,
    user_ids: Optional[Iterable[UUID]] = None,
) -> JobRunResult:
    """Remind every user who has not planned the upcoming week yet."""
    tz = ZoneInfo(settings.timezone)
    week_id = planning_target_week_id(
        now or datetime.now(timezone.utc),
        tz,
        planning_hour=settings.planning_window_hour,
    )
    return _run_reminders(db, WizardFlow.PLANNING, week_id, user_ids)


def _run_reminders(
    db: Session,
    flow: WizardFlow,
    week_id: str,
    user_ids: Optional[Iterable[UUID]],
) -> JobRunResult:
    ids = _normalize_user_ids(user_ids, db)
    done = _users_done(db, flow, week_id, ids)
    users_processed = 0
    sent = 0
    skipped = 0
    for uid in ids:
        if uid in done:
            skipped += 1
            logger.debug("Skipping %s reminder for user %s; week %s already done", flow.value, uid, week_id)
            continue
        try:
            result = notify_window_open(db, uid, flow, week_id)
        except Exception:  # pragma: no cover - one user's failure must not stop the batch
            db.rollback()
            logger.exception("%s reminder failed for user %s", flow.value, uid)
            continue
        users_processed += 1
        if result.status != "skipped":
            sent += 1
    return JobRunResult(users_processed=users_processed, notifications_sent=sent, skipped_already_done=skipped)


def _normalize_user_ids(user_ids: Optional[Iterable[UUID]], db: Session) -> List[UUID]:
    if user_ids is None:
        return [row[0] for row in db.query(User.id).all()]
    return list(dict.fromkeys(user_ids))


def _users_done(db: Session, flow: WizardFlow, week_id: str, user_ids: List[UUID]) -> set[UUID]:
    if not user_ids:
        return set()
    marker = Week.reviewed_at if flow == WizardFlow.REVIEW else Week.planning_completed_at
    rows = (
        db.query(Week.user_id)
        .filter(Week.id == week_id, Week.user_id.in_(user_ids), marker.isnot(None))
        .all()
    )
    return {row[0] for row in rows}
