"""Duration aggregation and life-balance scoring."""
from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from flowtrack.services.fallback_generator import fallback_balance_result
from flowtrack.services.plan_models import BalanceResult, CategoryBreakdown
from flowtrack.services.taxonomy import CATEGORIES, CATEGORY_WEIGHTS, OPTIMAL_DISTRIBUTION, normalize_category

DEVIATION_DAMPING = 0.4
SUGGESTION_THRESHOLD = 15
MAX_SUGGESTIONS = 3
BALANCED_MESSAGE = "Your schedule shows excellent balance! Keep up the great work."


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def event_minutes(event: Any) -> float:
    """Duration of an event-like object in minutes, never negative.

    Accepts objects or mappings exposing ``duration_minutes``/``duration`` or a
    ``start_time``/``end_time`` pair (ORM rows, ``ActivityEvent``, plain dicts).
    """
    duration = _read(event, "duration_minutes", "duration")
    if duration is None:
        start = _read(event, "start_time", "startTime")
        end = _read(event, "end_time", "endTime")
        if not isinstance(start, datetime) or not isinstance(end, datetime):
            return 0.0
        if (start.tzinfo is None) != (end.tzinfo is None):
            start = start if start.tzinfo else start.replace(tzinfo=timezone.utc)
            end = end if end.tzinfo else end.replace(tzinfo=timezone.utc)
        duration = (end - start).total_seconds() / 60
    try:
        return max(0.0, float(duration))
    except (TypeError, ValueError):
        return 0.0


def aggregate_minutes(events: Iterable[Any]) -> Dict[str, float]:
    """Total tracked minutes per category; unknown categories are ignored."""
    totals = {category: 0.0 for category in CATEGORIES}
    for event in events:
        category = normalize_category(_read(event, "category"))
        if category is None:
            continue
        totals[category] += event_minutes(event)
    return totals


def to_breakdown(minutes: Dict[str, float]) -> Optional[CategoryBreakdown]:
    """Convert per-category minutes into integer percentages.

    Returns None when nothing was tracked so callers can switch to the empty-day result.
    Rounding drift of a point or two is left as is.
    """
    total = sum(minutes.get(category, 0.0) for category in CATEGORIES)
    if total <= 0:
        return None
    return CategoryBreakdown(
        **{category: round_half_up(minutes.get(category, 0.0) / total * 100) for category in CATEGORIES}
    )


def score_breakdown(breakdown: CategoryBreakdown) -> int:
    score = 100.0
    for category, actual in breakdown.as_dict().items():
        deviation = abs(actual - OPTIMAL_DISTRIBUTION[category])
        score -= deviation * CATEGORY_WEIGHTS[category] * DEVIATION_DAMPING
    return round_half_up(min(100.0, max(0.0, score)))


def balance_suggestions(breakdown: CategoryBreakdown) -> List[str]:
    """One directive per category that is more than SUGGESTION_THRESHOLD points off target.

    Largest deviations come first; ties keep category order.
    """
    deviations = []
    for category, actual in breakdown.as_dict().items():
        diff = actual - OPTIMAL_DISTRIBUTION[category]
        if abs(diff) > SUGGESTION_THRESHOLD:
            deviations.append((category, diff))
    deviations.sort(key=lambda entry: abs(entry[1]), reverse=True)

    suggestions: List[str] = []
    for category, diff in deviations[:MAX_SUGGESTIONS]:
        if diff > 0:
            suggestions.append(f"Consider reducing {category} time by {diff}% to improve balance")
        else:
            suggestions.append(f"Try to increase {category} activities by {abs(diff)}% for better wellness")
    return suggestions or [BALANCED_MESSAGE]


def analyze_events(events: Iterable[Any]) -> BalanceResult:
    breakdown = to_breakdown(aggregate_minutes(events))
    if breakdown is None:
        return fallback_balance_result()
    return BalanceResult(
        score=score_breakdown(breakdown),
        breakdown=breakdown,
        suggestions=balance_suggestions(breakdown),
    )


def _read(event: Any, *names: str) -> Any:
    for name in names:
        if isinstance(event, dict):
            if name in event:
                return event[name]
        elif hasattr(event, name):
            return getattr(event, name)
    return None
