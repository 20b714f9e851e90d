"""Live wizard sessions for the HTTP shell, one per user and flow."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.orm import sessionmaker

from tandem.core.config import get_settings
from tandem.services.notifications.hooks import WizardCommitRecorder
from tandem.services.progress_store import InMemoryProgressStore, ProgressStore, SqlProgressStore
from tandem.services.records import WizardFlow
from tandem.services.task_store import SqlTaskStore
from tandem.services.time_window import is_window_open, planning_target_week_id
from tandem.services.week_store import SqlWeekStore
from tandem.services.weeks import current_week_id, parse_week_id
from tandem.wizard.controller import WizardController
from tandem.wizard.errors import SessionNotFoundError, WindowClosedError
from tandem.wizard.planning import PlanningController
from tandem.wizard.review import ReviewController

logger = logging.getLogger(__name__)

CONTROLLERS = {
    WizardFlow.PLANNING: PlanningController,
    WizardFlow.REVIEW: ReviewController,
}

_memory_progress_store = InMemoryProgressStore()


def build_progress_store(session_factory: sessionmaker) -> ProgressStore:
    if get_settings().progress_backend.lower() == "memory":
        return _memory_progress_store
    return SqlProgressStore(session_factory)


def target_week_id(flow: WizardFlow, now: datetime) -> str:
    """Week a session of ``flow`` opened at ``now`` works on."""
    cfg = get_settings()
    tz = ZoneInfo(cfg.timezone)
    if flow == WizardFlow.PLANNING:
        return planning_target_week_id(now, tz, planning_hour=cfg.planning_window_hour)
    return current_week_id(now, tz)


def window_open(flow: WizardFlow, now: datetime, week_id: str) -> bool:
    cfg = get_settings()
    return is_window_open(
        flow,
        now,
        ZoneInfo(cfg.timezone),
        parse_week_id(week_id),
        planning_hour=cfg.planning_window_hour,
        review_hour=cfg.review_window_hour,
    )


class WizardSessionRegistry:
    def __init__(self) -> None:
        self._sessions: Dict[Tuple[UUID, WizardFlow], WizardController] = {}
        self._lock = asyncio.Lock()

    async def open(
        self,
        flow: WizardFlow,
        user_id: UUID,
        session_factory: sessionmaker,
        *,
        now: Optional[datetime] = None,
    ) -> WizardController:
        """Return the live session for ``user_id``, starting one when needed.

        Closed sessions and sessions for a week that is no longer current are
        replaced; the replacement resumes from stored progress.
        """
        now = now or datetime.now(timezone.utc)
        week_id = target_week_id(flow, now)
        if get_settings().enforce_time_windows and not window_open(flow, now, week_id):
            raise WindowClosedError(f"The {flow.value} window is closed right now")

        key = (user_id, flow)
        async with self._lock:
            controller = self._sessions.get(key)
            if controller is not None and not controller.closed and controller.week_id == week_id:
                return controller
            controller = CONTROLLERS[flow](
                user_id=user_id,
                week_id=week_id,
                tasks=SqlTaskStore(session_factory),
                weeks=SqlWeekStore(session_factory),
                progress=build_progress_store(session_factory),
                on_commit=WizardCommitRecorder(session_factory),
            )
            await controller.start()
            self._sessions[key] = controller
            logger.info("Opened %s session for user %s week %s", flow.value, user_id, week_id)
            return controller

    def get(self, flow: WizardFlow, user_id: UUID) -> WizardController:
        controller = self._sessions.get((user_id, flow))
        if controller is None:
            raise SessionNotFoundError(f"No {flow.value} session for user {user_id}")
        return controller

    async def discard(self, flow: WizardFlow, user_id: UUID, session_factory: sessionmaker) -> None:
        """Drop the live session and its stored progress; idempotent.

        A live session clears its own record under its event lock, so an
        event still being processed cannot write the progress back.
        """
        key = (user_id, flow)
        async with self._lock:
            controller = self._sessions.get(key)
        if controller is not None:
            await controller.discard()
        else:
            await build_progress_store(session_factory).clear(user_id, flow)
        async with self._lock:
            if self._sessions.get(key) is controller:
                self._sessions.pop(key, None)
        logger.info("Discarded %s session for user %s", flow.value, user_id)

    def clear(self) -> None:
        self._sessions.clear()


registry = WizardSessionRegistry()


def get_registry() -> WizardSessionRegistry:
    return registry
