"""Shared state machine behind the planning and review wizards.

A controller drives exactly one session for one user, flow and week. The
presentation shell feeds it events through ``dispatch`` and observes two
channels: state snapshots (``snapshot`` / ``subscribe``) and one-shot effects
(``next_effect`` / ``drain_effects``).

Events are processed one at a time, in arrival order, under a per-session
lock. The only suspension points are calls into the task/week store and the
progress store, so a snapshot is never published half-way through an event.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from tandem.core.context import wizard_session_ctx_var
from tandem.observability.metrics import log_metric
from tandem.services.derivation import current_streak
from tandem.services.progress_store import ProgressStore, WizardProgress
from tandem.services.records import WeekRecord, WizardFlow
from tandem.services.task_store import TaskStore
from tandem.services.week_store import WeekStore
from tandem.services.weeks import parse_week_id
from tandem.wizard.effects import ExitFlow, NavigateToStep, ShowError, WizardEffect
from tandem.wizard.errors import ProgressStoreError, StoreUnavailableError, ValidationFailed, WizardError
from tandem.wizard.events import SHARED_EVENTS, Back, Close, DiscardProgress, ExitWithSave, Retry
from tandem.wizard.state import WizardCommit, WizardSnapshot
from tandem.wizard.steps import clamp_step

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[WizardSnapshot], None]
CommitListener = Callable[[WizardCommit], Awaitable[None]]
Clock = Callable[[], datetime]

STORE_ERROR_MESSAGE = "Couldn't save your changes. Check your connection and try again."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WizardController:
    """Base controller; subclasses define the flow's steps, inputs and handlers."""

    flow: WizardFlow
    step_type: type
    canonical_steps: Tuple[Any, ...] = ()
    terminal_step: Any = None
    event_types: Tuple[type, ...] = ()
    after_close_events: Tuple[type, ...] = (Close,)

    def __init__(
        self,
        *,
        user_id: UUID,
        week_id: str,
        tasks: TaskStore,
        weeks: WeekStore,
        progress: ProgressStore,
        on_commit: Optional[CommitListener] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        parse_week_id(week_id)
        self.user_id = user_id
        self.week_id = week_id
        self._tasks = tasks
        self._weeks = weeks
        self._progress = progress
        self._on_commit = on_commit
        self._clock = clock or _utcnow

        self._lock = asyncio.Lock()
        self._effects: "asyncio.Queue[WizardEffect]" = asyncio.Queue()
        self._listeners: List[SnapshotListener] = []
        self._snapshot: Optional[WizardSnapshot] = None

        self._week: Optional[WeekRecord] = None
        self._sequence: Tuple[Any, ...] = ()
        self._step: Any = None
        self._index = 0
        self._streak = 0
        self._started = False
        self._closed = False
        self._completed = False
        self._progress_saved = True
        self._validation_message: Optional[str] = None
        self._failed_event: Optional[Any] = None

    # Public surface

    @property
    def snapshot(self) -> WizardSnapshot:
        if self._snapshot is None:
            raise WizardError("Wizard session has not been started")
        return self._snapshot

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def session_label(self) -> str:
        return f"{self.flow.value}:{self.user_id}"

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register ``listener``; it receives the current snapshot right away."""
        self._listeners.append(listener)
        if self._snapshot is not None:
            listener(self._snapshot)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def next_effect(self) -> WizardEffect:
        return await self._effects.get()

    def drain_effects(self) -> List[WizardEffect]:
        drained: List[WizardEffect] = []
        while True:
            try:
                drained.append(self._effects.get_nowait())
            except asyncio.QueueEmpty:
                return drained

    async def start(self) -> WizardSnapshot:
        """Load or discard stored progress, derive inputs and publish the first snapshot."""
        async with self._lock:
            if self._started:
                return self.snapshot
            token = wizard_session_ctx_var.set(self.session_label)
            try:
                self._week = await self._weeks.get_or_create_week(self.user_id, self.week_id)
                stored = await self._load_progress()
                await self._begin(stored)
                self._started = True
                logger.info(
                    "Started %s wizard for week %s at %s (resumed=%s)",
                    self.flow.value,
                    self.week_id,
                    self._step.value,
                    stored is not None,
                )
            finally:
                wizard_session_ctx_var.reset(token)
            log_metric(
                "wizard.session.started",
                1,
                metadata={"flow": self.flow.value, "resumed": stored is not None},
            )
            self._publish()
            return self.snapshot

    async def dispatch(self, event: Any) -> WizardSnapshot:
        """Apply one event and return the resulting snapshot."""
        if not isinstance(event, self.event_types + SHARED_EVENTS):
            raise TypeError(f"{type(event).__name__} is not a {self.flow.value} wizard event")
        async with self._lock:
            if not self._started:
                raise WizardError("Wizard session has not been started")
            token = wizard_session_ctx_var.set(self.session_label)
            try:
                await self._process(event)
            finally:
                wizard_session_ctx_var.reset(token)
            self._publish()
            return self.snapshot

    async def discard(self) -> None:
        """Clear stored progress and end the session once any in-flight event has finished."""
        async with self._lock:
            token = wizard_session_ctx_var.set(self.session_label)
            try:
                await self._progress.clear(self.user_id, self.flow)
                if not self._closed:
                    self._end("discarded")
                logger.info("Discarded %s session for week %s", self.flow.value, self.week_id)
            finally:
                wizard_session_ctx_var.reset(token)
            if self._started:
                self._publish()

    # Event processing

    async def _process(self, event: Any) -> None:
        self._validation_message = None
        if self._closed and not isinstance(event, self.after_close_events):
            self._emit(ShowError("This session has already ended.", retryable=False))
            return
        if isinstance(event, Retry):
            if self._failed_event is None:
                return
            event = self._failed_event
        self._failed_event = None

        try:
            changed = await self._handle(event)
        except ValidationFailed as exc:
            self._validation_message = str(exc)
            self._emit(ShowError(str(exc), retryable=False))
            log_metric(
                "wizard.validation_failed",
                1,
                metadata={"flow": self.flow.value, "event": type(event).__name__},
            )
            return
        except StoreUnavailableError as exc:
            logger.warning("%s could not be applied: %s", type(event).__name__, exc)
            self._failed_event = event
            self._emit(ShowError(STORE_ERROR_MESSAGE, retryable=True))
            log_metric(
                "wizard.store_error",
                1,
                metadata={"flow": self.flow.value, "event": type(event).__name__},
            )
            changed = True

        if changed and not self._completed:
            await self._persist()

    async def _handle(self, event: Any) -> bool:
        """Return True when the event changed state that belongs in stored progress."""
        if isinstance(event, Back):
            return await self._back()
        if isinstance(event, ExitWithSave):
            await self._persist()
            self._end("saved")
            return False
        if isinstance(event, DiscardProgress):
            await self._discard()
            return False
        if isinstance(event, Close):
            self._end("closed")
            return False
        return await self._handle_flow_event(event)

    async def _back(self) -> bool:
        if self._back_within_step():
            return True
        position = self._sequence.index(self._step)
        if position == 0:
            self._emit(ExitFlow("back"))
            return False
        self._move_to(self._sequence[position - 1])
        return True

    async def _discard(self) -> None:
        await self._clear_progress()
        self._week = await self._weeks.get_or_create_week(self.user_id, self.week_id)
        await self._begin(None)
        logger.info("Discarded %s progress for week %s", self.flow.value, self.week_id)
        self._emit(NavigateToStep(self._step.value, self._index))

    def _end(self, reason: str) -> None:
        self._closed = True
        self._emit(ExitFlow(reason))

    # Step movement

    def _require_step(self, step: Any, event: Any) -> None:
        if self._step != step:
            raise ValidationFailed(f"{type(event).__name__} is not available on the {self._step.value} step")

    def _move_to(self, step: Any, index: int = 0) -> None:
        self._step = step
        self._index = index
        self._emit(NavigateToStep(step.value, index))

    async def _advance(self) -> None:
        position = self._sequence.index(self._step)
        await self._goto(self._sequence[position + 1])

    async def _goto(self, step: Any) -> None:
        # The commit runs before the step changes so a failed commit can be retried.
        if step == self.terminal_step:
            await self._commit()
        self._move_to(step)

    async def _commit(self) -> None:
        now = self._clock()
        await self._write_completion(now)
        self._streak = await current_streak(self._weeks, self.user_id, self._streak_week_id())
        await self._clear_progress()
        self._completed = True
        self._closed = True
        commit = self._build_commit(now)
        logger.info("Committed %s for week %s (streak=%s)", self.flow.value, self.week_id, self._streak)
        log_metric("wizard.session.completed", 1, metadata={"flow": self.flow.value, "streak": self._streak})
        if self._on_commit is None:
            return
        try:
            await self._on_commit(commit)
        except Exception:  # pragma: no cover - listener failures never undo a commit
            logger.exception("Commit listener failed for %s week %s", self.flow.value, self.week_id)

    # Session setup

    async def _begin(self, stored: Optional[WizardProgress]) -> None:
        self._reset_accumulators()
        if stored is not None:
            self._restore(stored)
        await self._derive()
        self._sequence = self._build_sequence()
        self._failed_event = None
        self._validation_message = None
        if stored is None:
            self._step = self._sequence[0]
            self._index = 0
            return
        self._step = self._resume_step(stored.current_step)
        self._index = self._resume_index(stored)

    def _resume_step(self, raw_step: str) -> Any:
        try:
            step = self.step_type(raw_step)
        except ValueError:
            return self._sequence[0]
        step = clamp_step(step, self._sequence, self.canonical_steps)
        if step == self.terminal_step:
            # Resuming never re-enters the terminal step; the commit happens on arrival.
            step = self._sequence[-2]
        return step

    async def _load_progress(self) -> Optional[WizardProgress]:
        try:
            stored = await self._progress.load(self.user_id, self.flow)
        except ProgressStoreError as exc:
            logger.warning("Could not load %s progress; starting fresh: %s", self.flow.value, exc)
            return None
        if stored is None:
            return None
        if stored.week_id != self.week_id or stored.flow != self.flow:
            logger.info(
                "Discarding stale %s progress for week %s (current week %s)",
                self.flow.value,
                stored.week_id,
                self.week_id,
            )
            await self._clear_progress()
            return None
        return stored

    # Persistence

    async def _persist(self) -> None:
        progress = WizardProgress(
            week_id=self.week_id,
            flow=self.flow,
            current_step=self._step.value,
            current_index=self._index,
            updated_at=self._clock(),
            **self._progress_fields(),
        )
        try:
            await self._progress.save(self.user_id, progress)
        except ProgressStoreError as exc:
            self._progress_saved = False
            logger.warning("Could not save %s progress for week %s: %s", self.flow.value, self.week_id, exc)
            log_metric("wizard.progress.save_failed", 1, metadata={"flow": self.flow.value})
            return
        self._progress_saved = True

    async def _clear_progress(self) -> None:
        try:
            await self._progress.clear(self.user_id, self.flow)
        except ProgressStoreError as exc:
            logger.warning("Could not clear %s progress for week %s: %s", self.flow.value, self.week_id, exc)

    # Channels

    def _emit(self, effect: WizardEffect) -> None:
        self._effects.put_nowait(effect)

    def _publish(self) -> None:
        self._snapshot = self._build_snapshot()
        for listener in list(self._listeners):
            listener(self._snapshot)

    def _common_snapshot_fields(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "week_id": self.week_id,
            "step_sequence": [step.value for step in self._sequence],
            "current_step": self._step,
            "current_index": self._index,
            "validation_message": self._validation_message,
            "progress_saved": self._progress_saved,
            "can_retry": self._failed_event is not None,
            "completed": self._completed,
            "closed": self._closed,
            "streak": self._streak,
        }

    # Flow hooks

    def _reset_accumulators(self) -> None:
        raise NotImplementedError

    def _restore(self, stored: WizardProgress) -> None:
        raise NotImplementedError

    async def _derive(self) -> None:
        raise NotImplementedError

    def _build_sequence(self) -> Tuple[Any, ...]:
        raise NotImplementedError

    def _resume_index(self, stored: WizardProgress) -> int:
        return 0

    def _streak_week_id(self) -> str:
        return self.week_id

    def _back_within_step(self) -> bool:
        return False

    async def _handle_flow_event(self, event: Any) -> bool:
        raise NotImplementedError

    def _progress_fields(self) -> Dict[str, Any]:
        raise NotImplementedError

    async def _write_completion(self, now: datetime) -> None:
        raise NotImplementedError

    def _build_commit(self, now: datetime) -> WizardCommit:
        raise NotImplementedError

    def _build_snapshot(self) -> WizardSnapshot:
        raise NotImplementedError


def items_at(items: Sequence[Any], index: int) -> Optional[Any]:
    if 0 <= index < len(items):
        return items[index]
    return None
