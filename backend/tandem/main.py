"""Main FastAPI application for the Tandem backend."""
from fastapi import FastAPI, Request

from tandem.api.routes.weeks import router as weeks_router
from tandem.api.routes.wizard import router as wizard_router
from tandem.core.config import settings
from tandem.core.logging import configure_logging
from tandem.core.middleware import RequestIDMiddleware
from tandem.observability.client import init_opik, shutdown_opik
from tandem.observability.tracing import trace

configure_logging(log_level=settings.log_level)

app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(RequestIDMiddleware)
app.include_router(wizard_router)
app.include_router(weeks_router)


@app.on_event("startup")
async def startup_observability() -> None:
    """Initialize observability backends after the event loop starts."""
    init_opik()


@app.on_event("shutdown")
async def shutdown_observability() -> None:
    shutdown_opik()


@app.get("/health", tags=["health"], summary="Readiness probe")
async def health_check(request: Request) -> dict[str, str]:
    """Return a simple status payload so automation can probe the API."""
    with trace("http.health_check", metadata={"route": "/health"}, request_id=request.state.request_id):
        return {"status": "ok"}
