"""Persistence for balance snapshots, generated plans and chat history.

Routes call these after the orchestrator has produced plain values. Functions add and
flush rows but leave committing to the caller.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from flowtrack.db.models.chat_message import ChatMessage
from flowtrack.db.models.daily_balance import DailyBalance
from flowtrack.db.models.event import Event
from flowtrack.db.models.goal import Goal
from flowtrack.services.plan_models import (
    BalanceResult,
    CategoryBreakdown,
    ChatTurn,
    EventExtraction,
    GoalPlan,
    SchedulePlanResponse,
)
from flowtrack.services.prompt_builder import MAX_CONTEXT_EVENTS, MAX_CONTEXT_GOALS, MAX_CONTEXT_TURNS

logger = logging.getLogger(__name__)


@dataclass
class SavedGoalPlan:
    goal: Goal
    milestones: List[Goal]
    events: List[Event]


def _day_bounds(day: date) -> Tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def _at(day: date, clock: str) -> datetime:
    hours, minutes = clock.split(":")
    return datetime.combine(day, time(int(hours), int(minutes)), tzinfo=timezone.utc)


def events_for_day(db: Session, user_id: UUID, day: date) -> List[Event]:
    """Events that start on ``day`` (UTC), ordered by start time."""
    start, end = _day_bounds(day)
    return (
        db.query(Event)
        .filter(Event.user_id == user_id, Event.start_time >= start, Event.start_time < end)
        .order_by(Event.start_time.asc())
        .all()
    )


def record_daily_balance(db: Session, user_id: UUID, day: date, result: BalanceResult) -> DailyBalance:
    """Insert or update the one snapshot row kept per user and day."""
    row = db.query(DailyBalance).filter(DailyBalance.user_id == user_id, DailyBalance.day == day).one_or_none()
    if row is None:
        row = DailyBalance(user_id=user_id, day=day)
        db.add(row)
    breakdown = result.breakdown
    row.work_percentage = breakdown.work
    row.health_percentage = breakdown.health
    row.leisure_percentage = breakdown.leisure
    row.social_percentage = breakdown.social
    row.learning_percentage = breakdown.learning
    row.overall_score = result.score
    row.suggestions = list(result.suggestions)
    db.flush()
    return row


def latest_daily_balance(db: Session, user_id: UUID) -> Optional[DailyBalance]:
    return (
        db.query(DailyBalance)
        .filter(DailyBalance.user_id == user_id)
        .order_by(DailyBalance.day.desc())
        .first()
    )


def balance_history(db: Session, user_id: UUID, days: int, *, today: date) -> List[DailyBalance]:
    """Snapshots from the last ``days`` days up to and including ``today``, oldest first."""
    return (
        db.query(DailyBalance)
        .filter(
            DailyBalance.user_id == user_id,
            DailyBalance.day >= today - timedelta(days=days),
            DailyBalance.day <= today,
        )
        .order_by(DailyBalance.day.asc())
        .all()
    )


def snapshot_result(row: DailyBalance) -> BalanceResult:
    return BalanceResult(
        score=row.overall_score,
        breakdown=CategoryBreakdown(
            work=row.work_percentage,
            health=row.health_percentage,
            leisure=row.leisure_percentage,
            social=row.social_percentage,
            learning=row.learning_percentage,
        ),
        suggestions=list(row.suggestions or []),
    )


def save_schedule(db: Session, user_id: UUID, day: date, plan: SchedulePlanResponse) -> List[Event]:
    events = [
        Event(
            user_id=user_id,
            title=item.title,
            description=item.description,
            category=item.category,
            start_time=_at(day, item.start_time),
            end_time=_at(day, item.end_time),
            ai_generated=True,
        )
        for item in plan.schedule
    ]
    db.add_all(events)
    db.flush()
    logger.info("Saved %s generated events for %s", len(events), day.isoformat())
    return events


def save_goal_plan(db: Session, user_id: UUID, plan: GoalPlan, *, ai_generated: bool = True) -> SavedGoalPlan:
    """Store a plan as a goal, one sub-goal per milestone and one event per schedule item."""
    start_day = min(item.day for item in plan.schedule)
    goal = Goal(
        user_id=user_id,
        title=plan.goal_title,
        description=plan.description,
        category=plan.category,
        priority="high",
        target_date=start_day + timedelta(days=plan.timeframe_days),
        ai_generated=ai_generated,
        metadata_json={
            "timeframeDays": plan.timeframe_days,
            "dailyHours": plan.daily_hours,
            "dailyTasks": [task.model_dump(by_alias=True, mode="json") for task in plan.daily_tasks],
            "analysis": plan.analysis.model_dump(by_alias=True, mode="json"),
            "trackingMetrics": [metric.model_dump(by_alias=True, mode="json") for metric in plan.tracking_metrics],
        },
    )
    db.add(goal)
    db.flush()

    milestones = [
        Goal(
            user_id=user_id,
            parent_id=goal.id,
            title=milestone.title,
            description=milestone.description,
            category=plan.category,
            priority=milestone.priority,
            target_date=milestone.due_date,
            ai_generated=ai_generated,
            metadata_json={"weekIndex": milestone.week_index},
        )
        for milestone in plan.milestones
    ]
    events = [
        Event(
            user_id=user_id,
            goal_id=goal.id,
            title=item.title,
            description=item.description,
            category=item.category,
            start_time=_at(item.day, item.start_time),
            end_time=_at(item.day, item.end_time),
            ai_generated=ai_generated,
        )
        for item in plan.schedule
    ]
    db.add_all(milestones + events)
    db.flush()
    logger.info("Saved goal plan %s with %s milestones and %s events", goal.id, len(milestones), len(events))
    return SavedGoalPlan(goal=goal, milestones=milestones, events=events)


def save_extracted_events(db: Session, user_id: UUID, extraction: EventExtraction, *, ai_generated: bool = True) -> List[Event]:
    events = [
        Event(
            user_id=user_id,
            title=event.title,
            description=event.description,
            category=event.category,
            start_time=event.start_time,
            end_time=event.end_time,
            ai_generated=ai_generated,
        )
        for event in extraction.events
    ]
    db.add_all(events)
    db.flush()
    return events


def record_chat_exchange(
    db: Session,
    user_id: UUID,
    message: str,
    reply: str,
    metadata: Optional[Dict[str, Any]] = None,
) -> Tuple[ChatMessage, ChatMessage]:
    """Store the user's message and the reply linked to it."""
    sent_at = datetime.now(timezone.utc)
    user_message = ChatMessage(user_id=user_id, message=message, message_type="user", created_at=sent_at)
    db.add(user_message)
    db.flush()
    ai_message = ChatMessage(
        user_id=user_id,
        message=reply,
        message_type="ai",
        related_message_id=user_message.id,
        metadata_json={k: v for k, v in (metadata or {}).items() if v is not None} or None,
        created_at=sent_at + timedelta(milliseconds=1),
    )
    db.add(ai_message)
    db.flush()
    return user_message, ai_message


def recent_chat_turns(db: Session, user_id: UUID, limit: int = MAX_CONTEXT_TURNS) -> List[ChatTurn]:
    """The latest ``limit`` messages, oldest first."""
    rows = (
        db.query(ChatMessage)
        .filter(ChatMessage.user_id == user_id)
        .order_by(ChatMessage.created_at.desc())
        .limit(limit)
        .all()
    )
    return [ChatTurn(role=row.message_type, text=row.message) for row in reversed(rows)]


def recent_events(db: Session, user_id: UUID, limit: int = MAX_CONTEXT_EVENTS) -> List[Event]:
    return (
        db.query(Event)
        .filter(Event.user_id == user_id)
        .order_by(Event.start_time.desc())
        .limit(limit)
        .all()
    )


def recent_goals(db: Session, user_id: UUID, limit: int = MAX_CONTEXT_GOALS) -> List[Goal]:
    """Open top-level goals, newest first."""
    return (
        db.query(Goal)
        .filter(Goal.user_id == user_id, Goal.parent_id.is_(None), Goal.completed.is_(False))
        .order_by(Goal.created_at.desc())
        .limit(limit)
        .all()
    )


def describe_event(event: Event) -> str:
    return f"{event.title} ({event.category}) on {event.start_time.isoformat()}"


def describe_goal(goal: Goal) -> str:
    return f"{goal.title} ({goal.category})"
