"""Week status API routes."""
from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import sessionmaker

from tandem.api.schemas.weeks import CurrentWeekResponse
from tandem.core.config import get_settings
from tandem.db.deps import get_session_factory
from tandem.observability.metrics import log_metric
from tandem.observability.tracing import trace
from tandem.services.derivation import current_streak
from tandem.services.records import WizardFlow
from tandem.services.week_store import SqlWeekStore
from tandem.services.weeks import current_week_id, week_bounds
from tandem.wizard.errors import StoreUnavailableError
from tandem.wizard.registry import target_week_id, window_open

router = APIRouter()


@router.get("/weeks/current", response_model=CurrentWeekResponse, tags=["weeks"])
async def get_current_week(
    http_request: Request,
    user_id: UUID = Query(..., description="User whose week is shown"),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> CurrentWeekResponse:
    """Current week status, review streak and whether each wizard may be entered now."""
    request_id = getattr(http_request.state, "request_id", None)
    now = datetime.now(timezone.utc)
    week_id = current_week_id(now, ZoneInfo(get_settings().timezone))
    planning_week_id = target_week_id(WizardFlow.PLANNING, now)
    weeks = SqlWeekStore(session_factory)

    with trace(
        "weeks.current",
        metadata={"route": "/weeks/current", "week_id": week_id},
        user_id=str(user_id),
        request_id=request_id,
    ):
        try:
            week = await weeks.get_week(user_id, week_id)
            streak = await current_streak(weeks, user_id, week_id)
        except StoreUnavailableError as exc:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    start_date, end_date = week_bounds(week_id)
    log_metric("weeks.current.success", 1, metadata={"streak": streak})
    return CurrentWeekResponse(
        week_id=week_id,
        start_date=start_date,
        end_date=end_date,
        is_planned=bool(week and week.is_planned),
        is_reviewed=bool(week and week.is_reviewed),
        overall_rating=week.overall_rating if week else None,
        streak=streak,
        planning_week_id=planning_week_id,
        planning_window_open=window_open(WizardFlow.PLANNING, now, planning_week_id),
        review_window_open=window_open(WizardFlow.REVIEW, now, week_id),
        request_id=request_id or "",
    )
