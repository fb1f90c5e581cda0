"""Tests for duration aggregation and balance scoring."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from flowtrack.services.balance_scorer import (
    BALANCED_MESSAGE,
    aggregate_minutes,
    analyze_events,
    balance_suggestions,
    event_minutes,
    round_half_up,
    score_breakdown,
    to_breakdown,
)
from flowtrack.services.fallback_generator import DEFAULT_SUGGESTIONS
from flowtrack.services.plan_models import ActivityEvent, CategoryBreakdown

DAY_START = datetime(2025, 3, 3, 6, 0, tzinfo=timezone.utc)


def _events(**minutes_by_category: int) -> list[ActivityEvent]:
    events = []
    cursor = DAY_START
    for category, minutes in minutes_by_category.items():
        events.append(ActivityEvent(category=category, start_time=cursor, end_time=cursor + timedelta(minutes=minutes)))
        cursor += timedelta(minutes=minutes)
    return events


def test_perfectly_optimal_day_scores_100_with_affirmation() -> None:
    result = analyze_events(_events(work=240, health=150, leisure=120, social=60, learning=30))

    assert result.breakdown.as_dict() == {"work": 40, "health": 25, "leisure": 20, "social": 10, "learning": 5}
    assert result.score == 100
    assert result.suggestions == [BALANCED_MESSAGE]


def test_all_work_day_is_penalised_and_suggests_reducing_work() -> None:
    result = analyze_events(_events(work=8 * 60))

    assert result.breakdown.as_dict() == {"work": 100, "health": 0, "leisure": 0, "social": 0, "learning": 0}
    # 100 - (60*1.0 + 25*1.2 + 20*0.8 + 10*0.6 + 5*0.7) * 0.4 = 53.8
    assert result.score == 54
    assert result.suggestions == [
        "Consider reducing work time by 60% to improve balance",
        "Try to increase health activities by 25% for better wellness",
        "Try to increase leisure activities by 20% for better wellness",
    ]


def test_empty_input_returns_default_result() -> None:
    result = analyze_events([])

    assert result.score == 60
    assert result.breakdown.total == 0
    assert result.suggestions == DEFAULT_SUGGESTIONS


def test_empty_input_is_deterministic() -> None:
    assert analyze_events([]) == analyze_events([])


def test_unknown_categories_are_ignored() -> None:
    events = _events(work=60) + [
        ActivityEvent(category="sleep", start_time=DAY_START, end_time=DAY_START + timedelta(hours=8))
    ]

    minutes = aggregate_minutes(events)

    assert minutes["work"] == 60
    assert "sleep" not in minutes
    assert analyze_events(events).breakdown.work == 100


def test_only_unknown_categories_counts_as_empty() -> None:
    events = [ActivityEvent(category="commute", start_time=DAY_START, end_time=DAY_START + timedelta(hours=1))]

    assert analyze_events(events).score == 60


def test_negative_durations_are_clamped_to_zero() -> None:
    inverted = ActivityEvent(category="work", start_time=DAY_START + timedelta(hours=2), end_time=DAY_START)

    assert inverted.duration_minutes == 0
    assert event_minutes(inverted) == 0
    assert to_breakdown(aggregate_minutes([inverted])) is None


def test_event_minutes_accepts_mappings_and_row_like_objects() -> None:
    row = SimpleNamespace(category="health", start_time=DAY_START, end_time=DAY_START + timedelta(minutes=45))

    assert event_minutes({"category": "work", "duration": 30}) == 30
    assert event_minutes({"category": "work", "duration": -5}) == 0
    assert event_minutes(row) == 45
    assert event_minutes({"category": "work"}) == 0


def test_category_names_are_normalised() -> None:
    events = [{"category": " Health ", "duration": 60}, {"category": "WORK", "duration": 60}]

    assert analyze_events(events).breakdown.as_dict()["health"] == 50


@pytest.mark.parametrize(
    "minutes",
    [
        {"work": 100, "health": 100, "leisure": 100},
        {"work": 7, "health": 13, "leisure": 17, "social": 19, "learning": 23},
        {"work": 1, "health": 1, "leisure": 1, "social": 1, "learning": 1, "other": 3},
        {"learning": 1, "social": 2},
    ],
)
def test_percentages_sum_to_roughly_100(minutes) -> None:
    events = [{"category": category, "duration": value} for category, value in minutes.items()]

    breakdown = analyze_events(events).breakdown

    assert 98 <= breakdown.total <= 102


def test_score_is_clamped_to_bounds() -> None:
    extreme = CategoryBreakdown(work=100, health=100, leisure=100, social=100, learning=100)

    assert score_breakdown(extreme) == 0
    assert 0 <= score_breakdown(CategoryBreakdown(learning=100)) <= 100


def test_suggestions_are_capped_and_ordered_by_deviation() -> None:
    breakdown = CategoryBreakdown(work=0, health=0, leisure=0, social=60, learning=40)

    suggestions = balance_suggestions(breakdown)

    assert len(suggestions) == 3
    assert suggestions[0].startswith("Consider reducing social time by 50%")
    assert "increase work" in suggestions[1]
    assert suggestions[2].startswith("Consider reducing learning time by 35%")


def test_deviation_at_threshold_does_not_trigger_suggestion() -> None:
    breakdown = CategoryBreakdown(work=55, health=25, leisure=5, social=10, learning=5)

    assert balance_suggestions(breakdown) == [BALANCED_MESSAGE]


def test_round_half_up() -> None:
    assert round_half_up(2.5) == 3
    assert round_half_up(53.8) == 54
    assert round_half_up(0.49) == 0
