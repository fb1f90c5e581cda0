"""Balance analysis, snapshot history and suggestion endpoints."""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import List, Optional, Tuple
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from flowtrack.api.deps import commit_or_500, get_orchestrator
from flowtrack.api.schemas.balance import (
    BalanceAnalyzeRequest,
    BalanceHistoryResponse,
    BalanceResponse,
    BalanceSnapshot,
    LatestBalanceResponse,
    SuggestionsResponse,
)
from flowtrack.core.context import bind_user_id
from flowtrack.db.deps import get_db
from flowtrack.db.models.daily_balance import DailyBalance
from flowtrack.observability.metrics import log_metric
from flowtrack.observability.tracing import trace
from flowtrack.services.orchestrator import BalanceOrchestrator
from flowtrack.services.plan_models import ActivityEvent
from flowtrack.services.storage import (
    balance_history,
    describe_goal,
    events_for_day,
    latest_daily_balance,
    recent_goals,
    record_daily_balance,
    snapshot_result,
)
from flowtrack.services.user_service import get_or_create_user

router = APIRouter()

MAX_HISTORY_DAYS = 90


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _snapshot(row: DailyBalance) -> BalanceSnapshot:
    return BalanceSnapshot(day=row.day, result=snapshot_result(row))


@router.get("/ai/analyze-balance", response_model=BalanceResponse, tags=["balance"])
def analyze_stored_balance(
    request: Request,
    user_id: UUID = Query(..., description="User ID"),
    day: Optional[date] = Query(default=None, alias="date", description="Day to score (defaults to today, UTC)"),
    db: Session = Depends(get_db),
    orchestrator: BalanceOrchestrator = Depends(get_orchestrator),
) -> BalanceResponse:
    """Score the stored events of one day and keep the snapshot."""
    request_id = getattr(request.state, "request_id", None)
    day = day or _today()

    with trace("balance.analyze", metadata={"day": day.isoformat()}, user_id=str(user_id), request_id=request_id):
        get_or_create_user(db, user_id)
        result = orchestrator.analyze_balance(events_for_day(db, user_id, day))
        record_daily_balance(db, user_id, day, result)
        commit_or_500(db, "Failed to save balance snapshot")

    log_metric("balance.score", result.score, metadata={"user_id": str(user_id)})
    return BalanceResponse(day=day, result=result, request_id=request_id)


@router.post("/ai/analyze-balance", response_model=BalanceResponse, tags=["balance"])
def analyze_inline_balance(
    payload: BalanceAnalyzeRequest,
    request: Request,
    orchestrator: BalanceOrchestrator = Depends(get_orchestrator),
) -> BalanceResponse:
    """Score events supplied in the request body; nothing is stored."""
    request_id = getattr(request.state, "request_id", None)
    result = orchestrator.analyze_balance(payload.events)
    return BalanceResponse(result=result, request_id=request_id)


@router.get("/balance/today", response_model=LatestBalanceResponse, tags=["balance"])
def latest_balance(
    request: Request,
    user_id: UUID = Query(..., description="User ID"),
    db: Session = Depends(get_db),
) -> LatestBalanceResponse:
    """Most recent stored snapshot; ``snapshot`` is null until a day has been analyzed."""
    request_id = getattr(request.state, "request_id", None)
    with trace("balance.latest", user_id=str(user_id), request_id=request_id):
        row = latest_daily_balance(db, user_id)
    return LatestBalanceResponse(snapshot=_snapshot(row) if row else None, request_id=request_id)


@router.get("/balance/history", response_model=BalanceHistoryResponse, tags=["balance"])
def balance_snapshot_history(
    request: Request,
    user_id: UUID = Query(..., description="User ID"),
    days: int = Query(default=7, ge=1, le=MAX_HISTORY_DAYS),
    db: Session = Depends(get_db),
) -> BalanceHistoryResponse:
    request_id = getattr(request.state, "request_id", None)
    with trace("balance.history", metadata={"days": days}, user_id=str(user_id), request_id=request_id):
        rows = balance_history(db, user_id, days, today=_today())
    return BalanceHistoryResponse(days=days, snapshots=[_snapshot(row) for row in rows], request_id=request_id)


def _load_suggestion_inputs(db: Session, user_id: UUID, day: date) -> Tuple[List[ActivityEvent], List[str]]:
    get_or_create_user(db, user_id)
    events = [
        ActivityEvent(category=event.category, start_time=event.start_time, end_time=event.end_time)
        for event in events_for_day(db, user_id, day)
    ]
    goals = [describe_goal(goal) for goal in recent_goals(db, user_id)]
    commit_or_500(db, "Failed to save user")
    return events, goals


@router.get("/ai/suggestions", response_model=SuggestionsResponse, tags=["balance"])
async def balance_suggestions(
    request: Request,
    user_id: UUID = Query(..., description="User ID"),
    day: Optional[date] = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
    orchestrator: BalanceOrchestrator = Depends(get_orchestrator),
) -> SuggestionsResponse:
    request_id = getattr(request.state, "request_id", None)
    bind_user_id(user_id)
    day = day or _today()

    with trace("balance.suggestions", metadata={"day": day.isoformat()}, user_id=str(user_id), request_id=request_id):
        events, goals = await run_in_threadpool(_load_suggestion_inputs, db, user_id, day)
        generated = await orchestrator.generate_suggestions(events, goals)

    return SuggestionsResponse(
        day=day,
        suggestions=generated.value,
        fallback_used=generated.fallback_used,
        request_id=request_id,
    )
