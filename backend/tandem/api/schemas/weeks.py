"""Schemas for week status endpoints."""
from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel


class CurrentWeekResponse(BaseModel):
    week_id: str
    start_date: date
    end_date: date
    is_planned: bool
    is_reviewed: bool
    overall_rating: Optional[int]
    streak: int
    planning_week_id: str
    planning_window_open: bool
    review_window_open: bool
    request_id: str
