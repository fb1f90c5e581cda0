"""End-to-end tests for the orchestrator entry points with a scripted model client."""
from __future__ import annotations

import json
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Dict, List

import pytest

from flowtrack.services import orchestrator as orchestrator_module
from flowtrack.services.ai_gateway import AIGateway
from flowtrack.services.fallback_generator import fallback_schedule
from flowtrack.services.orchestrator import BalanceOrchestrator, InvalidRequestError
from flowtrack.services.plan_models import ActivityEvent, ChatTurn

NOW = datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)

SCHEDULE_JSON = json.dumps(
    {
        "schedule": [
            {"title": "Run", "category": "health", "startTime": "07:00", "endTime": "08:00"},
            {"title": "Write", "category": "work", "startTime": "09:00", "endTime": "12:00"},
        ],
        "suggestions": ["Stretch after the run"],
    }
)


class _FakeCompletions:
    def __init__(self, outcomes: List[Any]):
        self.outcomes = list(outcomes)
        self.calls: List[Dict[str, Any]] = []

    async def create(self, **kwargs: Any):
        self.calls.append(kwargs)
        if not self.outcomes:
            raise RuntimeError("model unavailable")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=outcome))])


class _Harness:
    def __init__(self, outcomes: List[Any] | None, *, enabled: bool = True):
        self.completions = _FakeCompletions(outcomes or [])
        self.delays: List[float] = []
        client = SimpleNamespace(chat=SimpleNamespace(completions=self.completions)) if enabled else None
        self.orchestrator = BalanceOrchestrator(AIGateway(client, sleep=self._sleep), clock=lambda: NOW)

    async def _sleep(self, seconds: float) -> None:
        self.delays.append(seconds)

    @property
    def prompts(self) -> List[str]:
        return [call["messages"][0]["content"] for call in self.completions.calls]


@pytest.fixture()
def metrics(monkeypatch):
    recorded: Dict[str, Any] = {}
    monkeypatch.setattr(orchestrator_module, "log_metric", lambda name, value, metadata=None: recorded.__setitem__(name, value))
    return recorded


@pytest.mark.asyncio
async def test_generate_schedule_uses_model_output(metrics) -> None:
    harness = _Harness([SCHEDULE_JSON])

    generated = await harness.orchestrator.generate_schedule("Run more and write daily")

    assert not generated.fallback_used
    assert generated.attempts == 1
    assert [item.title for item in generated.value.schedule] == ["Run", "Write"]
    assert generated.value.balance_analysis.work_percentage == 75
    assert "Run more and write daily" in harness.prompts[0]
    assert metrics["ai.schedule.fallback_used"] == 0
    assert metrics["ai.schedule.attempts"] == 1


@pytest.mark.asyncio
async def test_generate_schedule_falls_back_after_retry_exhaustion(metrics) -> None:
    harness = _Harness([ConnectionError("down")] * 3)

    generated = await harness.orchestrator.generate_schedule("Balance my week")

    assert generated.fallback_used
    assert generated.attempts == 3
    assert generated.value == fallback_schedule()
    assert harness.delays == [1.0, 2.0]
    assert sum(harness.delays) <= 7.0
    assert metrics["ai.schedule.fallback_used"] == 1


@pytest.mark.asyncio
async def test_generate_schedule_treats_prose_as_failure() -> None:
    harness = _Harness(["Here are some ideas: wake up early and go for a run!"])

    generated = await harness.orchestrator.generate_schedule("Balance my week")

    assert generated.fallback_used
    assert generated.attempts == 1
    assert "no JSON object" in generated.reason
    assert len(generated.value.schedule) == 5


@pytest.mark.asyncio
async def test_disabled_gateway_goes_straight_to_fallback() -> None:
    harness = _Harness(None, enabled=False)

    generated = await harness.orchestrator.generate_schedule("Balance my week")

    assert generated.fallback_used
    assert generated.attempts == 0


@pytest.mark.asyncio
async def test_blank_goals_are_rejected_before_any_call() -> None:
    harness = _Harness([SCHEDULE_JSON])

    with pytest.raises(InvalidRequestError):
        await harness.orchestrator.generate_schedule("   ")

    assert harness.completions.calls == []


@pytest.mark.asyncio
async def test_chat_reply_does_not_retry() -> None:
    harness = _Harness([RuntimeError("down"), "unused"])

    generated = await harness.orchestrator.chat_reply("How do I stay focused?")

    assert generated.fallback_used
    assert generated.value.strip()
    assert len(harness.completions.calls) == 1
    assert harness.delays == []


@pytest.mark.asyncio
async def test_chat_reply_passes_recent_context() -> None:
    harness = _Harness(["Try time blocking."])
    context = [ChatTurn(role="user", text=f"older-{i}") for i in range(8)]

    generated = await harness.orchestrator.chat_reply("Any tips?", context)

    assert generated.value == "Try time blocking."
    assert not generated.fallback_used
    assert "older-2" not in harness.prompts[0]
    assert "older-7" in harness.prompts[0]
    assert harness.completions.calls[0]["temperature"] >= 0.7


@pytest.mark.asyncio
async def test_blank_chat_message_is_rejected() -> None:
    with pytest.raises(InvalidRequestError):
        await _Harness(["hi"]).orchestrator.chat_reply("")


def test_analyze_balance_is_pure() -> None:
    harness = _Harness([])
    events = [ActivityEvent(category="work", start_time=NOW, end_time=NOW + timedelta(hours=8))]

    result = harness.orchestrator.analyze_balance(events)

    assert result.breakdown.work == 100
    assert result.score == 54
    assert harness.completions.calls == []


@pytest.mark.asyncio
async def test_create_goal_plan_falls_back_on_malformed_response() -> None:
    harness = _Harness(["I think you should practise a lot. Good luck!"] * 3)

    generated = await harness.orchestrator.create_goal_plan("Learn guitar", "2 months")

    plan = generated.value
    assert generated.fallback_used
    assert plan.timeframe_days == 60
    assert plan.milestones and plan.daily_tasks and plan.schedule and plan.tracking_metrics
    assert plan.analysis.key_success_factors
    assert plan.schedule[0].day == NOW.date()
    assert len(plan.milestones) == 8


@pytest.mark.asyncio
async def test_create_goal_plan_accepts_valid_model_plan() -> None:
    payload = {
        "goalTitle": "Guitar basics",
        "description": "Play three songs",
        "category": "learning",
        "milestones": [{"title": "Open chords", "weekIndex": 1, "dueDate": "YYYY-MM-DD", "priority": "high"}],
        "dailyTasks": [{"title": "Chord drills", "category": "learning", "durationMinutes": 30}],
        "schedule": [{"date": "YYYY-MM-DD", "title": "Practice", "category": "learning", "startTime": "19:00", "endTime": "20:00"}],
        "analysis": {
            "feasibilityScore": 85,
            "estimatedSuccessRate": 75,
            "keySuccessFactors": ["Daily practice"],
            "potentialChallenges": ["Sore fingers"],
            "recommendedAdjustments": ["Short sessions"],
        },
        "trackingMetrics": [{"name": "Songs learned", "target": "3"}],
    }
    harness = _Harness([json.dumps(payload)])
    start = date(2025, 2, 1)

    generated = await harness.orchestrator.create_goal_plan(
        "Learn guitar",
        "3 weeks",
        start_date=start,
    )

    assert not generated.fallback_used
    assert generated.value.goal_title == "Guitar basics"
    assert generated.value.timeframe_days == 21
    assert generated.value.milestones[0].due_date == start + timedelta(days=7)
    assert generated.value.schedule[0].day == start
    assert "Total plan duration: 21 days." in harness.prompts[0]


@pytest.mark.asyncio
async def test_create_goal_plan_rejects_empty_description() -> None:
    harness = _Harness([])

    with pytest.raises(InvalidRequestError):
        await harness.orchestrator.create_goal_plan("", "2 months")


@pytest.mark.asyncio
async def test_generate_suggestions_falls_back_to_scorer() -> None:
    harness = _Harness([RuntimeError("down")])
    events = [ActivityEvent(category="work", start_time=NOW, end_time=NOW + timedelta(hours=8))]

    generated = await harness.orchestrator.generate_suggestions(events)

    assert generated.fallback_used
    assert generated.value[0] == "Consider reducing work time by 60% to improve balance"
    assert len(harness.completions.calls) == 1


@pytest.mark.asyncio
async def test_generate_suggestions_uses_model_phrasing() -> None:
    harness = _Harness(['{"suggestions": ["Take a lunchtime walk", "Call a friend tonight"]}'])

    generated = await harness.orchestrator.generate_suggestions([], goals=["Get fit (health)"])

    assert generated.value == ["Take a lunchtime walk", "Call a friend tonight"]
    assert "Get fit (health)" in harness.prompts[0]


@pytest.mark.asyncio
async def test_parse_chat_to_event_fallback_uses_clock() -> None:
    harness = _Harness(["Sure, I'll add that!"] * 3)

    generated = await harness.orchestrator.parse_chat_to_event("Dentist appointment next week")

    event = generated.value.events[0]
    assert generated.fallback_used
    assert event.title == "Dentist appointment next week"
    assert event.start_time == NOW + timedelta(hours=1)
    assert event.category == "work"
