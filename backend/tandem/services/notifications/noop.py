"""No-op notification provider (logs only)."""
from __future__ import annotations

import logging
from uuid import UUID

from tandem.services.notifications.base import NotificationResult, NotificationService


logger = logging.getLogger(__name__)

NOOP_RESULT_REASON = "notification provider is noop"


class NoopNotificationService(NotificationService):
    def notify_partner_week_planned(
        self,
        *,
        partner_id: UUID,
        user_id: UUID,
        week_id: str,
        task_count: int,
        request_id: str | None,
    ) -> NotificationResult:
        logger.info(
            "Notification queued (noop) week_planned partner=%s user=%s week=%s tasks=%s",
            partner_id,
            user_id,
            week_id,
            task_count,
        )
        return NotificationResult(status="noop", reason=NOOP_RESULT_REASON)

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
        logger.info(
            "Notification queued (noop) week_reviewed partner=%s user=%s week=%s rating=%s streak=%s",
            partner_id,
            user_id,
            week_id,
            rating,
            streak,
        )
        return NotificationResult(status="noop", reason=NOOP_RESULT_REASON)

    def notify_window_open(
        self,
        *,
        user_id: UUID,
        flow: str,
        week_id: str,
        request_id: str | None,
    ) -> NotificationResult:
        logger.info("Notification queued (noop) %s_window_open user=%s week=%s", flow, user_id, week_id)
        return NotificationResult(status="noop", reason=NOOP_RESULT_REASON)
