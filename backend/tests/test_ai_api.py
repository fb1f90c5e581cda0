from __future__ import annotations

import asyncio
import json
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from flowtrack.api.deps import get_orchestrator
from flowtrack.api.routes import ai_schedule as ai_schedule_routes
from flowtrack.api.routes import balance as balance_routes
from flowtrack.api.routes import goal_plan as goal_plan_routes
from flowtrack.db.deps import get_db
from flowtrack.db.models.chat_message import ChatMessage
from flowtrack.db.models.daily_balance import DailyBalance
from flowtrack.db.models.event import Event
from flowtrack.db.models.goal import Goal
from flowtrack.db.models.user import User
from flowtrack.main import app
from flowtrack.services.ai_gateway import AIGateway
from flowtrack.services.orchestrator import BalanceOrchestrator
from flowtrack.services.user_service import get_or_create_user

DAY = "2025-03-03"


class _ScriptedCompletions:
    def __init__(self, replies):
        self.replies = list(replies)

    async def create(self, **kwargs):
        if not self.replies:
            raise RuntimeError("model unavailable")
        content = self.replies.pop(0)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


async def _no_sleep(seconds: float) -> None:
    return None


def _orchestrator(replies=None) -> BalanceOrchestrator:
    client = SimpleNamespace(chat=SimpleNamespace(completions=_ScriptedCompletions(replies))) if replies else None
    return BalanceOrchestrator(AIGateway(client, sleep=_no_sleep))


@pytest.fixture()
def client():
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

    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    for model in (User, Goal, Event, DailyBalance, ChatMessage):
        model.__table__.create(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_orchestrator] = lambda: _orchestrator()
    with TestClient(app) as test_client:
        yield test_client, TestingSessionLocal
    app.dependency_overrides.clear()


def test_generate_schedule_falls_back_and_persists_events(client):
    test_client, session_factory = client
    user_id = uuid4()

    response = test_client.post(
        "/ai/generate-schedule",
        json={"user_id": str(user_id), "goals": "Get fit and ship my side project", "day": DAY},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["fallback_used"] is True
    assert data["request_id"]
    assert len(data["plan"]["schedule"]) == 5
    assert data["plan"]["schedule"][0]["startTime"] == "07:00"
    assert data["plan"]["balanceAnalysis"]["workPercentage"] == 40
    assert len(data["event_ids"]) == 5

    with session_factory() as db:
        events = db.query(Event).all()
        assert len(events) == 5
        assert all(e.user_id == user_id and e.ai_generated for e in events)
        assert {e.start_time.date() for e in events} == {date(2025, 3, 3)}
        assert db.query(User).count() == 1


def test_generate_schedule_uses_model_when_available(client):
    test_client, _ = client
    reply = json.dumps(
        {"schedule": [{"title": "Swim", "category": "health", "startTime": "06:30", "endTime": "07:30"}]}
    )
    app.dependency_overrides[get_orchestrator] = lambda: _orchestrator([reply])

    response = test_client.post(
        "/ai/generate-schedule",
        json={"user_id": str(uuid4()), "goals": "Swim more", "save": False},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["fallback_used"] is False
    assert data["plan"]["schedule"][0]["title"] == "Swim"
    assert data["event_ids"] == []


def test_generate_schedule_rejects_blank_goals(client):
    test_client, _ = client

    response = test_client.post("/ai/generate-schedule", json={"user_id": str(uuid4()), "goals": "   "})

    assert response.status_code == 422
    assert response.json()["detail"] == "goals must not be empty"


def test_stored_balance_is_scored_and_upserted(client):
    test_client, session_factory = client
    user_id = str(uuid4())
    test_client.post("/ai/generate-schedule", json={"user_id": user_id, "goals": "Balance", "day": DAY})

    first = test_client.get("/ai/analyze-balance", params={"user_id": user_id, "date": DAY})
    second = test_client.get("/ai/analyze-balance", params={"user_id": user_id, "date": DAY})

    assert first.status_code == 200
    assert first.json()["result"]["score"] == 100
    assert first.json()["day"] == DAY
    assert second.json()["result"] == first.json()["result"]
    with session_factory() as db:
        rows = db.query(DailyBalance).all()
        assert len(rows) == 1
        assert rows[0].overall_score == 100
        assert rows[0].work_percentage == 40


def test_empty_day_gets_default_balance(client):
    test_client, _ = client

    response = test_client.get("/ai/analyze-balance", params={"user_id": str(uuid4()), "date": DAY})

    assert response.status_code == 200
    result = response.json()["result"]
    assert result["score"] == 60
    assert sum(result["breakdown"].values()) == 0
    assert len(result["suggestions"]) == 3


def test_inline_balance_analysis(client):
    test_client, _ = client
    payload = {
        "events": [
            {"category": "work", "startTime": "2025-03-03T09:00:00Z", "endTime": "2025-03-03T17:00:00Z"},
        ]
    }

    response = test_client.post("/ai/analyze-balance", json=payload)

    assert response.status_code == 200
    result = response.json()["result"]
    assert result["score"] == 54
    assert result["breakdown"]["work"] == 100
    assert result["suggestions"][0].startswith("Consider reducing work")


def test_suggestions_fall_back_to_scorer(client):
    test_client, _ = client

    response = test_client.get("/ai/suggestions", params={"user_id": str(uuid4()), "date": DAY})

    assert response.status_code == 200
    data = response.json()
    assert data["fallback_used"] is True
    assert 1 <= len(data["suggestions"]) <= 3


def test_goal_plan_is_split_into_goal_milestones_and_events(client):
    test_client, session_factory = client
    user_id = uuid4()

    response = test_client.post(
        "/ai/goal-plan",
        json={
            "user_id": str(user_id),
            "description": "Learn Python for data analysis",
            "timeframe": "1 month",
            "start_date": "2025-03-03",
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["fallback_used"] is True
    assert data["plan"]["timeframeDays"] == 30
    assert len(data["plan"]["milestones"]) == 4
    assert len(data["milestone_ids"]) == 4
    assert len(data["event_ids"]) == 14

    with session_factory() as db:
        goal = db.get(Goal, UUID(data["goal_id"]))
        assert goal.parent_id is None
        assert goal.metadata_json["timeframeDays"] == 30
        assert goal.ai_generated is False
        assert db.query(Goal).filter(Goal.parent_id == goal.id).count() == 4
        assert db.query(Event).filter(Event.goal_id == goal.id).count() == 14


def test_goal_plan_rejects_blank_description(client):
    test_client, _ = client

    response = test_client.post("/ai/goal-plan", json={"user_id": str(uuid4()), "description": " "})

    assert response.status_code == 422


def test_unbounded_timeframe_is_capped_and_saved(client):
    test_client, session_factory = client

    response = test_client.post(
        "/ai/goal-plan",
        json={"user_id": str(uuid4()), "description": "Learn the cello", "timeframe": "9000 years", "start_date": DAY},
    )

    assert response.status_code == 200
    assert response.json()["plan"]["timeframeDays"] == 365
    with session_factory() as db:
        goal = db.get(Goal, UUID(response.json()["goal_id"]))
        assert goal.target_date == date(2025, 3, 3) + timedelta(days=365)


def test_balance_today_and_history_read_stored_snapshots(client):
    test_client, _ = client
    user_id = str(uuid4())
    today = datetime.now(timezone.utc).date()
    yesterday = today - timedelta(days=1)
    old = today - timedelta(days=30)

    assert test_client.get("/balance/today", params={"user_id": user_id}).json()["snapshot"] is None

    test_client.post("/ai/generate-schedule", json={"user_id": user_id, "goals": "Balance", "day": yesterday.isoformat()})
    for day in (old, yesterday, today):
        test_client.get("/ai/analyze-balance", params={"user_id": user_id, "date": day.isoformat()})

    latest = test_client.get("/balance/today", params={"user_id": user_id})
    history = test_client.get("/balance/history", params={"user_id": user_id, "days": 7})

    assert latest.status_code == 200
    assert latest.json()["snapshot"]["day"] == today.isoformat()
    assert latest.json()["snapshot"]["result"]["score"] == 60
    assert history.status_code == 200
    snapshots = history.json()["snapshots"]
    assert [s["day"] for s in snapshots] == [yesterday.isoformat(), today.isoformat()]
    assert snapshots[0]["result"]["score"] == 100
    assert snapshots[0]["result"]["breakdown"]["work"] == 40


def test_balance_history_rejects_out_of_range_days(client):
    test_client, _ = client

    response = test_client.get("/balance/history", params={"user_id": str(uuid4()), "days": 0})

    assert response.status_code == 422


def test_suggestions_provision_the_user(client):
    test_client, session_factory = client
    user_id = uuid4()

    test_client.get("/ai/suggestions", params={"user_id": str(user_id), "date": DAY})

    with session_factory() as db:
        assert db.get(User, user_id) is not None


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def test_generation_routes_query_the_database_off_the_event_loop(client, monkeypatch):
    test_client, _ = client
    calls = []

    def recording_get_or_create_user(db, user_id):
        calls.append(_loop_running())
        return get_or_create_user(db, user_id)

    for module in (ai_schedule_routes, balance_routes, goal_plan_routes):
        monkeypatch.setattr(module, "get_or_create_user", recording_get_or_create_user)
    user_id = str(uuid4())

    test_client.post("/ai/generate-schedule", json={"user_id": user_id, "goals": "Balance", "save": False})
    test_client.get("/ai/suggestions", params={"user_id": user_id})
    test_client.post("/ai/goal-plan", json={"user_id": user_id, "description": "Read more", "save": False})

    assert calls == [False, False, False]
