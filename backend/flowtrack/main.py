"""Main FastAPI application for the FlowTrack backend."""
from fastapi import FastAPI, Request

from flowtrack.api.routes.ai_schedule import router as ai_schedule_router
from flowtrack.api.routes.balance import router as balance_router
from flowtrack.api.routes.chat import router as chat_router
from flowtrack.api.routes.goal_plan import router as goal_plan_router
from flowtrack.core.config import settings
from flowtrack.core.logging import configure_logging
from flowtrack.core.middleware import RequestContextMiddleware
from flowtrack.observability.client import init_opik
from flowtrack.observability.tracing import trace

configure_logging(log_level=settings.log_level)

app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(RequestContextMiddleware)
app.include_router(ai_schedule_router)
app.include_router(balance_router)
app.include_router(goal_plan_router)
app.include_router(chat_router)


@app.on_event("startup")
async def startup_observability() -> None:
    """Initialize observability backends after the event loop starts."""
    init_opik()


@app.get("/health", tags=["health"], summary="Readiness probe")
async def health_check(request: Request) -> dict[str, str]:
    """Return a simple status payload so automation can probe the API."""
    with trace("http.health_check", metadata={"route": "/health"}, request_id=request.state.request_id):
        return {"status": "ok"}
