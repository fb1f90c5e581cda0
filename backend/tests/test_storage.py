from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from flowtrack.db.models.chat_message import ChatMessage
from flowtrack.db.models.daily_balance import DailyBalance
from flowtrack.db.models.event import Event
from flowtrack.db.models.goal import Goal
from flowtrack.db.models.user import User
from flowtrack.services import storage
from flowtrack.services.balance_scorer import analyze_events
from flowtrack.services.fallback_generator import fallback_goal_plan, fallback_schedule
from flowtrack.services.user_service import get_or_create_user

DAY = date(2025, 3, 3)


@pytest.fixture()
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):  # pragma: no cover - sqlite setup
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    for model in (User, Goal, Event, DailyBalance, ChatMessage):
        model.__table__.create(bind=engine)

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def test_get_or_create_user_is_idempotent(db_session) -> None:
    user_id = uuid4()

    first = get_or_create_user(db_session, user_id)
    second = get_or_create_user(db_session, user_id)

    assert first.id == second.id == user_id
    assert db_session.query(User).count() == 1


def test_schedule_is_stored_on_the_requested_day(db_session) -> None:
    user = get_or_create_user(db_session, uuid4())
    storage.save_schedule(db_session, user.id, DAY, fallback_schedule())
    storage.save_schedule(db_session, user.id, date(2025, 3, 4), fallback_schedule())
    db_session.commit()

    events = storage.events_for_day(db_session, user.id, DAY)

    assert len(events) == 5
    assert events[0].title == fallback_schedule().schedule[0].title
    assert [e.start_time for e in events] == sorted(e.start_time for e in events)
    assert analyze_events(events).score == 100


def test_daily_balance_snapshot_is_updated_in_place(db_session) -> None:
    user = get_or_create_user(db_session, uuid4())
    schedule = fallback_schedule()

    storage.record_daily_balance(db_session, user.id, DAY, analyze_events([]))
    storage.record_daily_balance(db_session, user.id, DAY, analyze_events(schedule.schedule))
    db_session.commit()

    rows = db_session.query(DailyBalance).all()
    assert len(rows) == 1
    assert rows[0].overall_score == 100
    assert rows[0].health_percentage == 25


def test_balance_history_window_and_latest_snapshot(db_session) -> None:
    user = get_or_create_user(db_session, uuid4())
    result = analyze_events(fallback_schedule().schedule)
    for offset in (10, 3, 0):
        storage.record_daily_balance(db_session, user.id, DAY - timedelta(days=offset), result)
    db_session.commit()

    rows = storage.balance_history(db_session, user.id, 7, today=DAY)
    latest = storage.latest_daily_balance(db_session, user.id)

    assert [row.day for row in rows] == [DAY - timedelta(days=3), DAY]
    assert latest.day == DAY
    assert storage.snapshot_result(latest) == result
    assert storage.latest_daily_balance(db_session, uuid4()) is None


def test_goal_plan_is_split_into_parent_milestones_and_events(db_session) -> None:
    user = get_or_create_user(db_session, uuid4())
    plan = fallback_goal_plan("Learn Spanish", timeframe_days=21, daily_hours=1.0, start_date=DAY)

    saved = storage.save_goal_plan(db_session, user.id, plan, ai_generated=False)
    db_session.commit()

    assert saved.goal.target_date == date(2025, 3, 24)
    assert saved.goal.metadata_json["dailyHours"] == 1.0
    assert len(saved.milestones) == 3
    assert all(m.parent_id == saved.goal.id for m in saved.milestones)
    assert len(saved.events) == 14
    assert storage.recent_goals(db_session, user.id) == [saved.goal]
    assert storage.describe_goal(saved.goal) == f"{plan.goal_title} (learning)"


def test_chat_history_is_returned_oldest_first(db_session) -> None:
    user = get_or_create_user(db_session, uuid4())
    storage.record_chat_exchange(db_session, user.id, "hi", "Hello!")
    storage.record_chat_exchange(db_session, user.id, "plan my day", "Start with a walk.", metadata={"fallback_used": True})
    db_session.commit()

    turns = storage.recent_chat_turns(db_session, user.id, limit=3)

    assert [(turn.role, turn.text) for turn in turns] == [
        ("ai", "Hello!"),
        ("user", "plan my day"),
        ("ai", "Start with a walk."),
    ]


def test_describe_event_mentions_category_and_start() -> None:
    started = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)
    row = Event(title="Standup", category="work", start_time=started, end_time=started)

    assert storage.describe_event(row) == "Standup (work) on 2025-03-03T09:00:00+00:00"
