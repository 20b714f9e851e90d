"""Wizard API routes exposing the planning and review sessions to the app shell."""
from __future__ import annotations

from time import perf_counter
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import sessionmaker

from tandem.api.schemas.wizard import (
    WizardDiscardResponse,
    WizardEventRequest,
    WizardStartRequest,
    WizardStateResponse,
    serialize_effect,
)
from tandem.db.deps import get_session_factory
from tandem.observability.metrics import log_metric
from tandem.observability.tracing import trace
from tandem.services.records import WizardFlow
from tandem.wizard.controller import WizardController
from tandem.wizard.errors import (
    ProgressStoreError,
    SessionNotFoundError,
    StoreUnavailableError,
    WindowClosedError,
    WizardError,
)
from tandem.wizard.registry import WizardSessionRegistry, get_registry

router = APIRouter()


@router.post("/wizard/{flow}/start", response_model=WizardStateResponse, tags=["wizard"])
async def start_wizard(
    flow: WizardFlow,
    payload: WizardStartRequest,
    http_request: Request,
    session_factory: sessionmaker = Depends(get_session_factory),
    registry: WizardSessionRegistry = Depends(get_registry),
) -> WizardStateResponse:
    """Start a session, or return the live one, for the current planning/review week."""
    request_id = getattr(http_request.state, "request_id", None)
    start = perf_counter()
    with trace(
        f"wizard.{flow.value}.start",
        metadata={"route": f"/wizard/{flow.value}/start", "flow": flow.value},
        user_id=str(payload.user_id),
        request_id=request_id,
    ):
        try:
            controller = await registry.open(flow, payload.user_id, session_factory)
        except WindowClosedError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        except StoreUnavailableError as exc:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    log_metric("wizard.start.success", 1, metadata={"flow": flow.value})
    log_metric("wizard.start.latency_ms", (perf_counter() - start) * 1000, metadata={"flow": flow.value})
    return _state_response(flow, controller, request_id)


@router.get("/wizard/{flow}", response_model=WizardStateResponse, tags=["wizard"])
async def get_wizard_state(
    flow: WizardFlow,
    http_request: Request,
    user_id: UUID = Query(..., description="User owning the session"),
    registry: WizardSessionRegistry = Depends(get_registry),
) -> WizardStateResponse:
    """Return the latest snapshot of a live session plus any undelivered effects."""
    request_id = getattr(http_request.state, "request_id", None)
    with trace(
        f"wizard.{flow.value}.state",
        metadata={"route": f"/wizard/{flow.value}", "flow": flow.value},
        user_id=str(user_id),
        request_id=request_id,
    ):
        controller = _live_controller(registry, flow, user_id)
    return _state_response(flow, controller, request_id)


@router.post("/wizard/{flow}/events", response_model=WizardStateResponse, tags=["wizard"])
async def dispatch_wizard_event(
    flow: WizardFlow,
    payload: WizardEventRequest,
    http_request: Request,
    registry: WizardSessionRegistry = Depends(get_registry),
) -> WizardStateResponse:
    """Apply one event to the live session and return the new snapshot and effects."""
    request_id = getattr(http_request.state, "request_id", None)
    event_type = payload.event.type
    start = perf_counter()
    with trace(
        f"wizard.{flow.value}.event",
        metadata={"route": f"/wizard/{flow.value}/events", "flow": flow.value, "event": event_type},
        user_id=str(payload.user_id),
        request_id=request_id,
    ):
        controller = _live_controller(registry, flow, payload.user_id)
        try:
            await controller.dispatch(payload.event.to_event())
        except TypeError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
        except WizardError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    log_metric("wizard.event.success", 1, metadata={"flow": flow.value, "event": event_type})
    log_metric(
        "wizard.event.latency_ms",
        (perf_counter() - start) * 1000,
        metadata={"flow": flow.value, "event": event_type},
    )
    return _state_response(flow, controller, request_id)


@router.delete("/wizard/{flow}", response_model=WizardDiscardResponse, tags=["wizard"])
async def discard_wizard(
    flow: WizardFlow,
    http_request: Request,
    user_id: UUID = Query(..., description="User owning the session"),
    session_factory: sessionmaker = Depends(get_session_factory),
    registry: WizardSessionRegistry = Depends(get_registry),
) -> WizardDiscardResponse:
    """Drop the live session and any stored progress for the flow."""
    request_id = getattr(http_request.state, "request_id", None)
    with trace(
        f"wizard.{flow.value}.discard",
        metadata={"route": f"/wizard/{flow.value}", "flow": flow.value},
        user_id=str(user_id),
        request_id=request_id,
    ):
        try:
            await registry.discard(flow, user_id, session_factory)
        except ProgressStoreError as exc:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    log_metric("wizard.discard.success", 1, metadata={"flow": flow.value})
    return WizardDiscardResponse(flow=flow, user_id=user_id, discarded=True, request_id=request_id or "")


def _live_controller(registry: WizardSessionRegistry, flow: WizardFlow, user_id: UUID) -> WizardController:
    try:
        return registry.get(flow, user_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


def _state_response(flow: WizardFlow, controller: WizardController, request_id: str | None) -> WizardStateResponse:
    return WizardStateResponse(
        flow=flow,
        state=controller.snapshot,
        effects=[serialize_effect(effect) for effect in controller.drain_effects()],
        request_id=request_id or "",
    )
