"""Turn free-form model text into validated plan objects or an ``InvalidPayload``."""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from flowtrack.services.balance_scorer import aggregate_minutes, balance_suggestions, to_breakdown
from flowtrack.services.fallback_generator import MAX_PLAN_WEEKS, detect_skill
from flowtrack.services.plan_models import (
    BalanceAnalysis,
    CategoryBreakdown,
    DailyTask,
    DatedScheduleItem,
    EventExtraction,
    ExtractedEvent,
    GoalPlan,
    Milestone,
    PlanAnalysis,
    ScheduleItem,
    SchedulePlanResponse,
    TrackingMetric,
)
from flowtrack.services.taxonomy import normalize_category

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_SMART_QUOTES = str.maketrans({"“": '"', "”": '"', "‘": "'", "’": "'"})

SCHEDULE_ITEM_FIELDS = ("title", "category", "startTime", "endTime")
GOAL_PLAN_SECTIONS = ("milestones", "dailyTasks", "schedule", "analysis", "trackingMetrics")
MAX_SUGGESTIONS = 3


@dataclass(frozen=True)
class InvalidPayload:
    """Model output that could not be turned into the expected structure."""

    reason: str

    def __bool__(self) -> bool:
        return False


def extract_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """Return the widest ``{...}`` span of ``text`` parsed as a JSON object.

    Prose and markdown fences around the object are ignored. Trailing commas and curly
    quotes are repaired once; if the greedy span still fails, the first complete object
    starting at the first brace is tried.
    """
    if not text:
        return None
    match = _JSON_OBJECT.search(text)
    if not match:
        return None
    candidate = match.group(0)
    for attempt in (candidate, _repair(candidate)):
        try:
            parsed = json.loads(attempt)
        except json.JSONDecodeError:
            continue
        return parsed if isinstance(parsed, dict) else None
    try:
        parsed, _ = json.JSONDecoder().raw_decode(_repair(candidate))
    except json.JSONDecodeError:
        logger.debug("Model output contained braces but no parseable JSON object")
        return None
    return parsed if isinstance(parsed, dict) else None


def _repair(candidate: str) -> str:
    return _TRAILING_COMMA.sub(r"\1", candidate.translate(_SMART_QUOTES))


# ---------------------------------------------------------------------------
# Schedules
# ---------------------------------------------------------------------------


def parse_schedule_response(text: Optional[str]) -> Union[SchedulePlanResponse, InvalidPayload]:
    payload = extract_json_object(text)
    if payload is None:
        return InvalidPayload("no JSON object in schedule response")
    return validate_schedule_payload(payload)


def validate_schedule_payload(payload: Dict[str, Any]) -> Union[SchedulePlanResponse, InvalidPayload]:
    """Keep every well-formed schedule item and rebuild what the model left out.

    Items missing one of the four required fields, naming an unknown category, or ending
    before they start are dropped. A missing or malformed ``balanceAnalysis`` is computed
    from the kept items; missing suggestions come from the balance scorer.
    """
    raw_items = payload.get("schedule")
    if not isinstance(raw_items, list):
        return InvalidPayload("schedule is not a list")

    items: List[ScheduleItem] = []
    for index, entry in enumerate(raw_items):
        if not isinstance(entry, dict) or any(not entry.get(key) for key in SCHEDULE_ITEM_FIELDS):
            logger.debug("Dropping schedule item %s: missing required fields", index)
            continue
        item = _validate(ScheduleItem, entry, f"schedule item {index}")
        if item is not None:
            items.append(item)
    if not items:
        return InvalidPayload("no valid schedule items")

    analysis = _validate(BalanceAnalysis, payload.get("balanceAnalysis"), "balanceAnalysis")
    if analysis is None:
        analysis = BalanceAnalysis.from_breakdown(to_breakdown(aggregate_minutes(items)) or CategoryBreakdown())

    suggestions = _string_list(payload.get("suggestions"))
    if not suggestions:
        suggestions = balance_suggestions(_breakdown_from_analysis(analysis))

    return SchedulePlanResponse(schedule=items, balance_analysis=analysis, suggestions=suggestions)


def _breakdown_from_analysis(analysis: BalanceAnalysis) -> CategoryBreakdown:
    return CategoryBreakdown(
        work=analysis.work_percentage,
        health=analysis.health_percentage,
        leisure=analysis.leisure_percentage,
        social=analysis.social_percentage,
        learning=analysis.learning_percentage,
    )


# ---------------------------------------------------------------------------
# Goal plans
# ---------------------------------------------------------------------------


def parse_goal_plan_response(
    text: Optional[str],
    *,
    description: str,
    start_date: date,
    timeframe_days: int,
    daily_hours: float,
    fallback_title: Optional[str] = None,
) -> Union[GoalPlan, InvalidPayload]:
    payload = extract_json_object(text)
    if payload is None:
        return InvalidPayload("no JSON object in goal plan response")
    return validate_goal_plan_payload(
        payload,
        description=description,
        start_date=start_date,
        timeframe_days=timeframe_days,
        daily_hours=daily_hours,
        fallback_title=fallback_title,
    )


def validate_goal_plan_payload(
    payload: Dict[str, Any],
    *,
    description: str,
    start_date: date,
    timeframe_days: int,
    daily_hours: float,
    fallback_title: Optional[str] = None,
) -> Union[GoalPlan, InvalidPayload]:
    """Build a ``GoalPlan`` from model JSON, backfilling placeholder dates.

    Milestone due dates fall back to ``start_date + weekIndex * 7`` and schedule dates to
    ``start_date + item index`` whenever the model wrote a placeholder such as
    ``YYYY-MM-DD``. Every section must keep at least one valid entry.
    """
    missing = [section for section in GOAL_PLAN_SECTIONS if not payload.get(section)]
    if missing:
        return InvalidPayload(f"goal plan missing {', '.join(missing)}")

    week_limit = max(MAX_PLAN_WEEKS, -(-timeframe_days // 7))
    milestones = []
    for index, entry in enumerate(_dict_list(payload.get("milestones"))):
        week_index = min(_positive_int(entry.get("weekIndex") or entry.get("week")) or index + 1, week_limit)
        entry = {
            **entry,
            "weekIndex": week_index,
            "dueDate": _resolve_date(entry.get("dueDate"), _days_after(start_date, week_index * 7)),
        }
        milestone = _validate(Milestone, entry, f"milestone {index}")
        if milestone is not None:
            milestones.append(milestone)

    daily_tasks = _validate_each(DailyTask, payload.get("dailyTasks"), "daily task")

    schedule = []
    for index, entry in enumerate(_dict_list(payload.get("schedule"))):
        entry = {**entry, "date": _resolve_date(entry.get("date"), _days_after(start_date, index))}
        item = _validate(DatedScheduleItem, entry, f"plan schedule item {index}")
        if item is not None:
            schedule.append(item)

    analysis = _validate(PlanAnalysis, payload.get("analysis"), "plan analysis")
    tracking_metrics = _validate_each(TrackingMetric, payload.get("trackingMetrics"), "tracking metric")

    empty = [
        name
        for name, section in (
            ("milestones", milestones),
            ("dailyTasks", daily_tasks),
            ("schedule", schedule),
            ("trackingMetrics", tracking_metrics),
        )
        if not section
    ]
    if analysis is None:
        empty.append("analysis")
    if empty:
        return InvalidPayload(f"goal plan has no valid {', '.join(empty)}")

    title = _clean_text(payload.get("goalTitle")) or _clean_text(fallback_title) or description.strip()[:100]
    category = normalize_category(payload.get("category")) or detect_skill(description)[1]
    try:
        return GoalPlan(
            goal_title=title,
            description=_clean_text(payload.get("description")) or description.strip(),
            category=category,
            timeframe_days=timeframe_days,
            daily_hours=daily_hours,
            milestones=milestones,
            daily_tasks=daily_tasks,
            schedule=schedule,
            analysis=analysis,
            tracking_metrics=tracking_metrics,
        )
    except ValidationError as exc:
        return InvalidPayload(f"goal plan failed validation: {exc.error_count()} errors")


# ---------------------------------------------------------------------------
# Chat-to-event extraction and suggestions
# ---------------------------------------------------------------------------


def parse_event_extraction(text: Optional[str]) -> Union[EventExtraction, InvalidPayload]:
    """Validate extracted events, reporting skipped ones in ``errors`` instead of failing."""
    payload = extract_json_object(text)
    if payload is None:
        return InvalidPayload("no JSON object in event extraction response")
    raw_events = payload.get("events")
    if not isinstance(raw_events, list):
        return InvalidPayload("events is not a list")

    events: List[ExtractedEvent] = []
    errors: List[str] = []
    for index, entry in enumerate(raw_events):
        if not isinstance(entry, dict):
            errors.append(f"Event {index + 1}: not an object")
            continue
        label = _clean_text(entry.get("title")) or f"Event {index + 1}"
        raw_category = entry.get("category")
        if raw_category not in (None, "") and normalize_category(raw_category) is None:
            errors.append(f"{label}: unknown category '{raw_category}'")
            continue
        try:
            events.append(ExtractedEvent.model_validate(entry))
        except ValidationError as exc:
            errors.append(f"{label}: {_first_error(exc)}")
    if not events:
        return InvalidPayload("no valid events extracted")

    return EventExtraction(
        events=events,
        suggestions=_string_list(payload.get("suggestions")),
        clarifications=_string_list(payload.get("clarifications")),
        errors=errors,
    )


def parse_suggestions(text: Optional[str]) -> Union[List[str], InvalidPayload]:
    payload = extract_json_object(text)
    if payload is None:
        return InvalidPayload("no JSON object in suggestions response")
    suggestions = _string_list(payload.get("suggestions"))[:MAX_SUGGESTIONS]
    if not suggestions:
        return InvalidPayload("no suggestions in response")
    return suggestions


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _validate(model: Type[ModelT], data: Any, label: str) -> Optional[ModelT]:
    if not isinstance(data, dict):
        return None
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.debug("Dropping %s: %s", label, _first_error(exc))
        return None


def _validate_each(model: Type[ModelT], data: Any, label: str) -> List[ModelT]:
    results = []
    for index, entry in enumerate(_dict_list(data)):
        validated = _validate(model, entry, f"{label} {index}")
        if validated is not None:
            results.append(validated)
    return results


def _dict_list(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, dict)]


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [entry.strip() for entry in value if isinstance(entry, str) and entry.strip()]


def _clean_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _positive_int(value: Any) -> Optional[int]:
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if number > 0 else None


def _days_after(start: date, days: int) -> date:
    try:
        return start + timedelta(days=days)
    except OverflowError:
        return start


def _resolve_date(value: Any, default: date) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    return default


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "invalid"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
