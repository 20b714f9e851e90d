"""Durable storage for one in-flight wizard session per user and flow.

A stored record is only meaningful for the week it was written in. The
controller compares ``WizardProgress.week_id`` against the current week and
discards mismatches; the store itself never interprets the payload beyond
parsing it.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional, Protocol, Tuple
from uuid import UUID

from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.orm import Session, sessionmaker

from tandem.db.models.wizard_progress import WizardProgressRecord
from tandem.services.records import ReviewMode, TaskStatus, WizardFlow
from tandem.services.unit_of_work import run_unit_of_work
from tandem.wizard.errors import ProgressStoreError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WizardProgress(BaseModel):
    week_id: str
    flow: WizardFlow
    current_step: str
    current_index: int = 0
    current_task_id: Optional[UUID] = None
    review_mode: Optional[ReviewMode] = None
    overall_rating: Optional[int] = None
    overall_note: Optional[str] = None
    task_outcomes: Dict[UUID, TaskStatus] = Field(default_factory=dict)
    task_notes: Dict[UUID, str] = Field(default_factory=dict)
    processed_task_ids: List[UUID] = Field(default_factory=list)
    rollover_links: Dict[UUID, UUID] = Field(default_factory=dict)
    accepted_request_ids: List[UUID] = Field(default_factory=list)
    added_task_ids: List[UUID] = Field(default_factory=list)
    tasks_added: int = 0
    tasks_rolled_over: int = 0
    requests_accepted: int = 0
    updated_at: datetime = Field(default_factory=_utcnow)


class ProgressStore(Protocol):
    async def load(self, user_id: UUID, flow: WizardFlow) -> Optional[WizardProgress]:
        ...

    async def save(self, user_id: UUID, progress: WizardProgress) -> None:
        ...

    async def clear(self, user_id: UUID, flow: WizardFlow) -> None:
        ...


def _parse(payload, user_id: UUID, flow: WizardFlow) -> Optional[WizardProgress]:
    try:
        if isinstance(payload, str):
            return WizardProgress.model_validate_json(payload)
        return WizardProgress.model_validate(payload)
    except ValidationError as exc:
        logger.warning("Ignoring unreadable %s progress for user %s: %s", flow.value, user_id, exc)
        return None


class SqlProgressStore:
    """Progress persisted as a JSON payload in ``wizard_progress``."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    async def load(self, user_id: UUID, flow: WizardFlow) -> Optional[WizardProgress]:
        def work(db: Session):
            record = db.get(WizardProgressRecord, (user_id, flow.value))
            return record.payload if record else None

        payload = await run_unit_of_work(
            self._session_factory,
            work,
            operation="progress.load",
            error_cls=ProgressStoreError,
        )
        if payload is None:
            return None
        return _parse(payload, user_id, flow)

    async def save(self, user_id: UUID, progress: WizardProgress) -> None:
        payload = progress.model_dump(mode="json")

        def work(db: Session) -> None:
            record = db.get(WizardProgressRecord, (user_id, progress.flow.value))
            if record is None:
                record = WizardProgressRecord(user_id=user_id, flow=progress.flow.value)
                db.add(record)
            record.week_id = progress.week_id
            record.payload = payload
            record.updated_at = progress.updated_at

        await run_unit_of_work(
            self._session_factory,
            work,
            operation="progress.save",
            error_cls=ProgressStoreError,
        )

    async def clear(self, user_id: UUID, flow: WizardFlow) -> None:
        def work(db: Session) -> None:
            db.query(WizardProgressRecord).filter(
                WizardProgressRecord.user_id == user_id,
                WizardProgressRecord.flow == flow.value,
            ).delete(synchronize_session=False)

        await run_unit_of_work(
            self._session_factory,
            work,
            operation="progress.clear",
            error_cls=ProgressStoreError,
        )


class InMemoryProgressStore:
    """Process-local store holding serialized records, for tests and single-process runs."""

    def __init__(self) -> None:
        self._records: Dict[Tuple[UUID, WizardFlow], str] = {}
        self._lock = Lock()

    async def load(self, user_id: UUID, flow: WizardFlow) -> Optional[WizardProgress]:
        with self._lock:
            raw = self._records.get((user_id, flow))
        if raw is None:
            return None
        return _parse(raw, user_id, flow)

    async def save(self, user_id: UUID, progress: WizardProgress) -> None:
        raw = progress.model_dump_json()
        with self._lock:
            self._records[(user_id, progress.flow)] = raw

    async def clear(self, user_id: UUID, flow: WizardFlow) -> None:
        with self._lock:
            self._records.pop((user_id, flow), None)

