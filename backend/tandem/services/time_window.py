"""Time-window gate for entering the planning and review wizards.

Pure functions of wall-clock time; callers decide how often to re-evaluate.
A device clock or timezone change can open or close a window, which is fine.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, tzinfo

from tandem.services.records import WizardFlow
from tandem.services.weeks import local_now, next_week_id, parse_week_id, week_id_for

FRIDAY = 4
SUNDAY = 6
DEFAULT_OPENING_HOUR = 18


def is_window_open(
    flow: WizardFlow,
    now: datetime,
    tz: tzinfo,
    week_start: date | None = None,
    *,
    planning_hour: int = DEFAULT_OPENING_HOUR,
    review_hour: int = DEFAULT_OPENING_HOUR,
) -> bool:
    """Return True when ``flow`` may be entered at ``now`` in zone ``tz``."""
    local = local_now(now, tz)
    if flow is WizardFlow.REVIEW:
        return _review_open(local, review_hour)
    if week_start is None:
        week_start = parse_week_id(week_id_for(local.date()))
    return _planning_open(local, week_start, planning_hour)


def planning_target_week_id(
    now: datetime,
    tz: tzinfo,
    *,
    planning_hour: int = DEFAULT_OPENING_HOUR,
) -> str:
    """Week a planning session started at ``now`` should plan.

    Sunday evening belongs to the upcoming week.
    """
    local = local_now(now, tz)
    week_id = week_id_for(local.date())
    if local.weekday() == SUNDAY and local.hour >= planning_hour:
        return next_week_id(week_id)
    return week_id


def _review_open(local: datetime, opening_hour: int) -> bool:
    weekday = local.weekday()
    if weekday == FRIDAY:
        return local.hour >= opening_hour
    # Saturday and all of Sunday through 23:59:59.
    return weekday > FRIDAY


def _planning_open(local: datetime, week_start: date, opening_hour: int) -> bool:
    opens_at = datetime.combine(week_start - timedelta(days=1), time(hour=opening_hour), tzinfo=local.tzinfo)
    closes_at = datetime.combine(week_start + timedelta(days=7), time.min, tzinfo=local.tzinfo)
    return opens_at <= local < closes_at
