"""Notification service interface."""
from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass
class NotificationResult:
    status: str
    reason: str


class NotificationService:
    """Base interface for notification providers."""

    def notify_partner_week_planned(
        self,
        *,
        partner_id: UUID,
        user_id: UUID,
        week_id: str,
        task_count: int,
        request_id: str | None,
    ) -> NotificationResult:
        raise NotImplementedError

    def notify_partner_week_reviewed(
        self,
        *,
        partner_id: UUID,
        user_id: UUID,
        week_id: str,
        rating: int | None,
        streak: int,
        request_id: str | None,
    ) -> NotificationResult:
        raise NotImplementedError

    def notify_window_open(
        self,
        *,
        user_id: UUID,
        flow: str,
        week_id: str,
        request_id: str | None,
    ) -> NotificationResult:
        raise NotImplementedError
