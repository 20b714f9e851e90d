"""ISO-8601 week calendar helpers.

Week ids look like ``2026-W01``. Weeks start on Monday and end on Sunday;
week 1 is the week containing the year's first Thursday, so the first days
of January can belong to the last week of the previous year.
"""
from __future__ import annotations

import re
from datetime import date, datetime, timedelta, tzinfo
from typing import Tuple

WEEK_ID_PATTERN = re.compile(r"^(\d{4})-W(\d{2})$")


def week_id_for(day: date) -> str:
    iso_year, iso_week, _ = day.isocalendar()
    return f"{iso_year:04d}-W{iso_week:02d}"


def parse_week_id(week_id: str) -> date:
    """Return the Monday of ``week_id``; raise ValueError on malformed ids."""
    match = WEEK_ID_PATTERN.match(week_id or "")
    if not match:
        raise ValueError(f"Invalid week id {week_id!r}; expected YYYY-Www")
    year, week = int(match.group(1)), int(match.group(2))
    try:
        return date.fromisocalendar(year, week, 1)
    except ValueError as exc:
        raise ValueError(f"Invalid week id {week_id!r}: {exc}") from exc


def week_bounds(week_id: str) -> Tuple[date, date]:
    monday = parse_week_id(week_id)
    return monday, monday + timedelta(days=6)


def previous_week_id(week_id: str) -> str:
    return week_id_for(parse_week_id(week_id) - timedelta(days=7))


def next_week_id(week_id: str) -> str:
    return week_id_for(parse_week_id(week_id) + timedelta(days=7))


def local_now(now: datetime, tz: tzinfo) -> datetime:
    if now.tzinfo is None:
        raise ValueError("Expected a timezone-aware datetime")
    return now.astimezone(tz)


def current_week_id(now: datetime, tz: tzinfo) -> str:
    """Week id of ``now`` as seen on the local wall clock."""
    return week_id_for(local_now(now, tz).date())
