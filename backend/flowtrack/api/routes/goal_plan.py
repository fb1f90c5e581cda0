"""Goal planning endpoint."""
from __future__ import annotations

from typing import List, Tuple
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from flowtrack.api.deps import commit_or_500, get_orchestrator
from flowtrack.api.schemas.goal_plan import GoalPlanRequest, GoalPlanResponse
from flowtrack.core.context import bind_user_id
from flowtrack.db.deps import get_db
from flowtrack.observability.tracing import trace
from flowtrack.services.orchestrator import BalanceOrchestrator, InvalidRequestError
from flowtrack.services.plan_models import GoalPlan
from flowtrack.services.storage import describe_event, describe_goal, recent_events, recent_goals, save_goal_plan
from flowtrack.services.user_service import get_or_create_user

router = APIRouter()


@router.post("/ai/goal-plan", response_model=GoalPlanResponse, tags=["ai"])
async def create_goal_plan(
    request: GoalPlanRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    orchestrator: BalanceOrchestrator = Depends(get_orchestrator),
) -> GoalPlanResponse:
    """Decompose a goal into milestones, daily tasks and a two-week schedule."""
    request_id = getattr(http_request.state, "request_id", None)
    bind_user_id(request.user_id)
    metadata = {"route": "/ai/goal-plan", "timeframe": request.timeframe, "save": request.save}

    with trace("ai.goal_plan.request", metadata=metadata, user_id=str(request.user_id), request_id=request_id):
        existing_goals, existing_events = await run_in_threadpool(_load_plan_context, db, request.user_id)
        try:
            generated = await orchestrator.create_goal_plan(
                request.description,
                request.timeframe,
                request.preferences,
                title=request.title,
                existing_goals=existing_goals,
                existing_events=existing_events,
                start_date=request.start_date,
            )
        except InvalidRequestError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

        response = GoalPlanResponse(plan=generated.value, fallback_used=generated.fallback_used, request_id=request_id)
        if request.save:
            goal_id, milestone_ids, event_ids = await run_in_threadpool(
                _store_plan, db, request.user_id, generated.value, not generated.fallback_used
            )
            response.goal_id = goal_id
            response.milestone_ids = milestone_ids
            response.event_ids = event_ids

    return response


def _load_plan_context(db: Session, user_id: UUID) -> Tuple[List[str], List[str]]:
    get_or_create_user(db, user_id)
    goals = [describe_goal(goal) for goal in recent_goals(db, user_id)]
    events = [describe_event(event) for event in recent_events(db, user_id)]
    commit_or_500(db, "Failed to save user")
    return goals, events


def _store_plan(db: Session, user_id: UUID, plan: GoalPlan, ai_generated: bool) -> Tuple[UUID, List[UUID], List[UUID]]:
    saved = save_goal_plan(db, user_id, plan, ai_generated=ai_generated)
    ids = (saved.goal.id, [milestone.id for milestone in saved.milestones], [event.id for event in saved.events])
    commit_or_500(db, "Failed to save goal plan")
    return ids
