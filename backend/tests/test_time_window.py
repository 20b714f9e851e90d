from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from tandem.services.records import WizardFlow
from tandem.services.time_window import is_window_open, planning_target_week_id

UTC = timezone.utc
# 2026-W43 runs Monday 2026-10-19 through Sunday 2026-10-25.
WEEK_43_START = date(2026, 10, 19)


def _at(day: int, hour: int, minute: int = 0, second: int = 0) -> datetime:
    return datetime(2026, 10, day, hour, minute, second, tzinfo=UTC)


@pytest.mark.parametrize(
    ("now", "expected"),
    [
        (_at(14, 12), False),  # Wednesday
        (_at(16, 17, 59, 59), False),  # Friday just before opening
        (_at(16, 18), True),  # Friday opening
        (_at(17, 9), True),  # Saturday
        (_at(18, 23, 59, 59), True),  # Sunday last second
        (_at(19, 0), False),  # Monday
    ],
)
def test_review_window(now: datetime, expected: bool) -> None:
    assert is_window_open(WizardFlow.REVIEW, now, UTC) is expected


def test_review_window_is_evaluated_in_the_user_timezone() -> None:
    # 20:00 UTC on Friday is 16:00 in New York (EDT).
    now = _at(16, 20)

    assert is_window_open(WizardFlow.REVIEW, now, UTC) is True
    assert is_window_open(WizardFlow.REVIEW, now, ZoneInfo("America/New_York")) is False


def test_review_opening_hour_is_configurable() -> None:
    assert is_window_open(WizardFlow.REVIEW, _at(16, 12), UTC, review_hour=12) is True


@pytest.mark.parametrize(
    ("now", "expected"),
    [
        (_at(18, 17, 59), False),  # Sunday before the week, too early
        (_at(18, 18), True),  # Sunday evening before the week
        (_at(21, 10), True),  # mid-week
        (_at(25, 23, 59, 59), True),  # last second of the week
        (_at(26, 0), False),  # following Monday
    ],
)
def test_planning_window_for_a_given_week(now: datetime, expected: bool) -> None:
    assert is_window_open(WizardFlow.PLANNING, now, UTC, WEEK_43_START) is expected


def test_planning_window_defaults_to_the_owning_week() -> None:
    assert is_window_open(WizardFlow.PLANNING, _at(21, 10), UTC) is True


@pytest.mark.parametrize(
    ("now", "expected"),
    [
        (_at(18, 17), "2026-W42"),
        (_at(18, 18, 30), "2026-W43"),
        (_at(19, 8), "2026-W43"),
        (_at(23, 20), "2026-W43"),
    ],
)
def test_planning_target_week_switches_on_sunday_evening(now: datetime, expected: str) -> None:
    assert planning_target_week_id(now, UTC) == expected


def test_window_checks_reject_naive_datetimes() -> None:
    with pytest.raises(ValueError):
        is_window_open(WizardFlow.REVIEW, datetime(2026, 10, 16, 19, 0), UTC)
