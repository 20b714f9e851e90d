"""Feed entries and notifications triggered by wizard commits and reminder jobs."""
from __future__ import annotations

import logging
from time import perf_counter
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from tandem.core.config import settings
from tandem.core.context import get_request_id
from tandem.db.models.activity_log import ActivityLog
from tandem.observability.metrics import log_metric
from tandem.observability.tracing import trace
from tandem.services.notifications.base import NotificationResult
from tandem.services.notifications.factory import get_notification_service
from tandem.services.records import WizardFlow
from tandem.services.user_service import get_partner_id
from tandem.wizard.state import WizardCommit


logger = logging.getLogger(__name__)

FEED_ACTIONS = {
    WizardFlow.PLANNING: "week_planned",
    WizardFlow.REVIEW: "week_reviewed",
}


class WizardCommitRecorder:
    """Commit listener writing feed entries and notifying the partner."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    async def __call__(self, commit: WizardCommit) -> None:
        request_id = get_request_id()
        await run_in_threadpool(self._record, commit, request_id)

    def _record(self, commit: WizardCommit, request_id: str | None) -> None:
        db = self._session_factory()
        try:
            record_wizard_commit(db, commit, request_id)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def record_wizard_commit(db: Session, commit: WizardCommit, request_id: str | None = None) -> List[ActivityLog]:
    """Write the user's feed entry, mirror it into the partner's feed and notify the partner."""
    action_type = FEED_ACTIONS[commit.flow]
    payload = {
        "week_id": commit.week_id,
        "committed_at": commit.committed_at.isoformat(),
        "streak": commit.streak,
        "request_id": request_id or "",
    }
    if commit.flow == WizardFlow.PLANNING:
        payload.update(
            {
                "task_count": commit.task_count,
                "tasks_added": commit.tasks_added,
                "tasks_rolled_over": commit.tasks_rolled_over,
                "requests_accepted": commit.requests_accepted,
            }
        )
        reason = "Week planned"
    else:
        payload.update(
            {
                "rating": commit.overall_rating,
                "completion_percentage": commit.completion_percentage,
                "streak_milestone": commit.streak_milestone,
            }
        )
        reason = "Week reviewed"

    partner_id = get_partner_id(db, commit.user_id)
    entries = [
        ActivityLog(
            user_id=commit.user_id,
            actor_id=commit.user_id,
            action_type=action_type,
            week_id=commit.week_id,
            action_payload=payload,
            reason=reason,
        )
    ]
    if partner_id is not None:
        entries.append(
            ActivityLog(
                user_id=partner_id,
                actor_id=commit.user_id,
                action_type=action_type,
                week_id=commit.week_id,
                action_payload={**payload, "from_partner": True},
                reason=f"Partner {reason.lower()}",
            )
        )
    db.add_all(entries)
    db.commit()
    log_metric("feed.items_written", len(entries), metadata={"action": action_type})

    notify_partner_of_commit(db, commit, partner_id, request_id)
    return entries


def notify_partner_of_commit(
    db: Session,
    commit: WizardCommit,
    partner_id: Optional[UUID],
    request_id: str | None,
) -> NotificationResult:
    job_name = FEED_ACTIONS[commit.flow]
    extra = {
        "streak": commit.streak,
        "task_count": commit.task_count,
        "rating": commit.overall_rating,
    }
    if not settings.notifications_enabled:
        result = NotificationResult(status="skipped", reason="notifications disabled")
        _record_notification_log(
            db,
            user_id=commit.user_id,
            actor_id=commit.user_id,
            job_name=job_name,
            week_id=commit.week_id,
            result=result,
            request_id=request_id,
            extra=extra,
        )
        return result
    if partner_id is None:
        result = NotificationResult(status="skipped", reason="no partner connected")
        _record_notification_log(
            db,
            user_id=commit.user_id,
            actor_id=commit.user_id,
            job_name=job_name,
            week_id=commit.week_id,
            result=result,
            request_id=request_id,
            extra=extra,
        )
        return result

    service = get_notification_service()
    metadata = {
        "user_id": str(commit.user_id),
        "partner_id": str(partner_id),
        "week_id": commit.week_id,
        "provider": settings.notifications_provider,
    }
    metadata.update({k: v for k, v in extra.items() if v is not None})
    start = perf_counter()
    with trace(
        f"notifications.{job_name}",
        metadata=metadata,
        user_id=str(commit.user_id),
        request_id=request_id,
    ) as notification_trace:
        if commit.flow == WizardFlow.PLANNING:
            result = service.notify_partner_week_planned(
                partner_id=partner_id,
                user_id=commit.user_id,
                week_id=commit.week_id,
                task_count=commit.task_count,
                request_id=request_id,
            )
        else:
            result = service.notify_partner_week_reviewed(
                partner_id=partner_id,
                user_id=commit.user_id,
                week_id=commit.week_id,
                rating=commit.overall_rating,
                streak=commit.streak,
                request_id=request_id,
            )
        if notification_trace:
            notification_trace.update(output={"status": result.status, "reason": result.reason})
    duration_ms = (perf_counter() - start) * 1000
    log_metric("notifications.sent", 1, metadata={"job": job_name, "provider": settings.notifications_provider})
    log_metric("notifications.duration_ms", duration_ms, metadata={"job": job_name})
    _record_notification_log(
        db,
        user_id=partner_id,
        actor_id=commit.user_id,
        job_name=job_name,
        week_id=commit.week_id,
        result=result,
        request_id=request_id,
        extra=extra,
    )
    return result


def notify_window_open(
    db: Session,
    user_id: UUID,
    flow: WizardFlow,
    week_id: str,
    request_id: str | None = None,
) -> NotificationResult:
    """Remind ``user_id`` that the planning or review window for ``week_id`` is open."""
    job_name = f"{flow.value}_reminder"
    extra = {"flow": flow.value}
    if not settings.notifications_enabled:
        result = NotificationResult(status="skipped", reason="notifications disabled")
    else:
        service = get_notification_service()
        with trace(
            f"notifications.{job_name}",
            metadata={"week_id": week_id, "provider": settings.notifications_provider},
            user_id=str(user_id),
            request_id=request_id,
        ):
            result = service.notify_window_open(
                user_id=user_id,
                flow=flow.value,
                week_id=week_id,
                request_id=request_id,
            )
        log_metric("notifications.sent", 1, metadata={"job": job_name, "provider": settings.notifications_provider})
    _record_notification_log(
        db,
        user_id=user_id,
        actor_id=user_id,
        job_name=job_name,
        week_id=week_id,
        result=result,
        request_id=request_id,
        extra=extra,
    )
    return result


def _record_notification_log(
    db: Session,
    *,
    user_id: UUID,
    actor_id: UUID,
    job_name: str,
    week_id: str,
    result: NotificationResult,
    request_id: str | None,
    extra: dict,
) -> ActivityLog:
    if result.status == "skipped":
        log_metric("notifications.skipped", 1, metadata={"job": job_name, "reason": result.reason})
    payload = {
        "week_id": week_id,
        "provider": settings.notifications_provider,
        "result": result.__dict__,
        "extras": extra,
        "request_id": request_id or "",
    }
    notification_log = ActivityLog(
        user_id=user_id,
        actor_id=actor_id,
        action_type=f"notification_{job_name}",
        week_id=week_id,
        action_payload=payload,
        reason="Notification dispatched" if result.status != "skipped" else "Notification skipped",
    )
    db.add(notification_log)
    db.commit()
    logger.debug("Recorded %s notification for user %s: %s", job_name, user_id, result.status)
    return notification_log
