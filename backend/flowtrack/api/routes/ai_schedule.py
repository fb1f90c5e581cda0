"""Schedule generation endpoint."""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import List, Optional, Tuple
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError
from sqlalchemy.orm import Session

from flowtrack.api.deps import commit_or_500, get_orchestrator
from flowtrack.api.schemas.schedule import ScheduleRequest, ScheduleResponse
from flowtrack.core.context import bind_user_id
from flowtrack.db.deps import get_db
from flowtrack.db.models.event import Event
from flowtrack.observability.tracing import trace
from flowtrack.services.orchestrator import BalanceOrchestrator, InvalidRequestError
from flowtrack.services.plan_models import ScheduleItem, SchedulePlanResponse
from flowtrack.services.storage import describe_goal, events_for_day, recent_goals, save_schedule
from flowtrack.services.user_service import get_or_create_user

router = APIRouter()


@router.post("/ai/generate-schedule", response_model=ScheduleResponse, tags=["ai"])
async def generate_schedule(
    request: ScheduleRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    orchestrator: BalanceOrchestrator = Depends(get_orchestrator),
) -> ScheduleResponse:
    """Generate a balanced day from free-text goals and optionally store it as events."""
    request_id = getattr(http_request.state, "request_id", None)
    bind_user_id(request.user_id)
    day = request.day or datetime.now(timezone.utc).date()
    metadata = {"route": "/ai/generate-schedule", "day": day.isoformat(), "save": request.save}

    with trace("ai.generate_schedule.request", metadata=metadata, user_id=str(request.user_id), request_id=request_id):
        current, goals = await run_in_threadpool(_load_schedule_context, db, request.user_id, day)
        try:
            generated = await orchestrator.generate_schedule(
                request.goals,
                request.preferences,
                current_schedule=current,
                existing_goals=goals,
            )
        except InvalidRequestError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

        event_ids: List[UUID] = []
        if request.save:
            event_ids = await run_in_threadpool(_store_schedule, db, request.user_id, day, generated.value)

    return ScheduleResponse(
        plan=generated.value,
        event_ids=event_ids,
        fallback_used=generated.fallback_used,
        request_id=request_id,
    )


def _load_schedule_context(db: Session, user_id: UUID, day: date) -> Tuple[List[ScheduleItem], List[str]]:
    get_or_create_user(db, user_id)
    current = [item for item in map(_as_schedule_item, events_for_day(db, user_id, day)) if item]
    goals = [describe_goal(goal) for goal in recent_goals(db, user_id)]
    commit_or_500(db, "Failed to save user")
    return current, goals


def _store_schedule(db: Session, user_id: UUID, day: date, plan: SchedulePlanResponse) -> List[UUID]:
    event_ids = [event.id for event in save_schedule(db, user_id, day, plan)]
    commit_or_500(db, "Failed to save generated schedule")
    return event_ids


def _as_schedule_item(event: Event) -> Optional[ScheduleItem]:
    try:
        return ScheduleItem(
            title=event.title,
            category=event.category,
            start_time=event.start_time.strftime("%H:%M"),
            end_time=event.end_time.strftime("%H:%M"),
        )
    except ValidationError:
        # Events that cross midnight do not fit a single-day schedule.
        return None
