"""Entry points that sequence prompt -> gateway -> parser -> fallback for each AI task."""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import date, datetime, timezone
from time import perf_counter
from typing import Any, Callable, Generic, Iterable, List, Optional, Sequence, TypeVar, Union

from flowtrack.core.config import Settings, settings
from flowtrack.observability.metrics import log_metric
from flowtrack.observability.tracing import annotate, trace
from flowtrack.services import fallback_generator
from flowtrack.services.ai_gateway import (
    CHAT_PARAMS,
    ENHANCED_CHAT_PARAMS,
    EVENT_EXTRACTION_PARAMS,
    GOAL_PLAN_PARAMS,
    SCHEDULE_PARAMS,
    SUGGESTIONS_PARAMS,
    AIGateway,
    GenerationParams,
)
from flowtrack.services.balance_scorer import analyze_events
from flowtrack.services.plan_models import (
    BalanceResult,
    ChatOptions,
    ChatTurn,
    EventExtraction,
    GoalPlan,
    Preferences,
    ScheduleItem,
    SchedulePlanResponse,
)
from flowtrack.services.prompt_builder import (
    MAX_CONTEXT_TURNS,
    ChatPrompt,
    EventExtractionPrompt,
    GoalPlanPrompt,
    SchedulePrompt,
    SuggestionsPrompt,
    render_prompt,
)
from flowtrack.services.response_parser import (
    InvalidPayload,
    parse_event_extraction,
    parse_goal_plan_response,
    parse_schedule_response,
    parse_suggestions,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InvalidRequestError(ValueError):
    """Request that no fallback can answer, such as an empty goal description."""


@dataclass(frozen=True)
class Generated(Generic[T]):
    """A generation result plus how it was produced."""

    value: T
    fallback_used: bool
    attempts: int
    reason: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_text(value: Optional[str], field_name: str) -> str:
    if value is None or not value.strip():
        raise InvalidRequestError(f"{field_name} must not be empty")
    return value.strip()


class BalanceOrchestrator:
    """Top-level AI workflows. Every generation method returns a complete value.

    The gateway is injected; nothing here reads global settings or touches the database.
    """

    def __init__(
        self,
        gateway: AIGateway,
        *,
        schedule_model: str = "gpt-4o-mini",
        chat_model: str = "gpt-4o-mini",
        clock: Callable[[], datetime] = _utcnow,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.gateway = gateway
        self.schedule_model = schedule_model
        self.chat_model = chat_model
        self._clock = clock
        self._rng = rng

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "BalanceOrchestrator":
        config = config or settings
        return cls(
            AIGateway.from_settings(config),
            schedule_model=config.llm_schedule_model,
            chat_model=config.llm_chat_model,
        )

    async def generate_schedule(
        self,
        goals: str,
        preferences: Optional[Preferences] = None,
        *,
        current_schedule: Sequence[ScheduleItem] = (),
        existing_goals: Sequence[str] = (),
    ) -> Generated[SchedulePlanResponse]:
        prompt = SchedulePrompt(
            goals=_require_text(goals, "goals"),
            preferences=preferences,
            current_schedule=tuple(current_schedule),
            existing_goals=tuple(existing_goals),
        )
        return await self._generate(
            "schedule",
            prompt,
            self.schedule_model,
            SCHEDULE_PARAMS,
            parse=parse_schedule_response,
            fallback=fallback_generator.fallback_schedule,
        )

    async def chat_reply(
        self,
        message: str,
        context: Sequence[ChatTurn] = (),
        options: Optional[ChatOptions] = None,
    ) -> Generated[str]:
        options = options or ChatOptions()
        prompt = ChatPrompt(
            message=_require_text(message, "message"),
            context=tuple(context)[-MAX_CONTEXT_TURNS:],
            options=options,
        )
        return await self._generate(
            "chat",
            prompt,
            self.chat_model,
            ENHANCED_CHAT_PARAMS if options.enhance else CHAT_PARAMS,
            parse=lambda text: text.strip() or InvalidPayload("empty reply"),
            fallback=lambda: fallback_generator.fallback_chat_reply(message, rng=self._rng),
            retry=False,
            metadata={"enhanced": options.enhance},
        )

    def analyze_balance(self, events: Iterable[Any]) -> BalanceResult:
        with trace("orchestrator.analyze_balance") as span:
            result = analyze_events(events)
            annotate(span, score=result.score)
        return result

    async def generate_suggestions(self, events: Iterable[Any], goals: Sequence[str] = ()) -> Generated[List[str]]:
        """Scorer suggestions refined by the model; the scorer's list is the fallback."""
        balance = self.analyze_balance(events)
        return await self._generate(
            "suggestions",
            SuggestionsPrompt(balance=balance, goals=tuple(goals)),
            self.chat_model,
            SUGGESTIONS_PARAMS,
            parse=parse_suggestions,
            fallback=lambda: list(balance.suggestions),
            retry=False,
        )

    async def create_goal_plan(
        self,
        description: str,
        timeframe: Optional[str] = None,
        preferences: Optional[Preferences] = None,
        *,
        title: Optional[str] = None,
        existing_goals: Sequence[str] = (),
        existing_events: Sequence[str] = (),
        start_date: Optional[date] = None,
    ) -> Generated[GoalPlan]:
        description = _require_text(description, "description")
        start_date = start_date or self._clock().date()
        prompt = GoalPlanPrompt(
            description=description,
            timeframe=timeframe,
            start_date=start_date,
            preferences=preferences,
            existing_goals=tuple(existing_goals),
            existing_events=tuple(existing_events),
        )
        timeframe_days, daily_hours = prompt.timeframe_days, prompt.daily_hours
        return await self._generate(
            "goal_plan",
            prompt,
            self.schedule_model,
            GOAL_PLAN_PARAMS,
            parse=lambda text: parse_goal_plan_response(
                text,
                description=description,
                start_date=start_date,
                timeframe_days=timeframe_days,
                daily_hours=daily_hours,
                fallback_title=title,
            ),
            fallback=lambda: fallback_generator.fallback_goal_plan(
                description,
                timeframe_days=timeframe_days,
                daily_hours=daily_hours,
                start_date=start_date,
                title=title,
            ),
            metadata={"timeframe_days": timeframe_days, "daily_hours": daily_hours},
        )

    async def parse_chat_to_event(
        self,
        message: str,
        *,
        recent_events: Sequence[str] = (),
        goals: Sequence[str] = (),
        preferences: Optional[Preferences] = None,
        now: Optional[datetime] = None,
    ) -> Generated[EventExtraction]:
        message = _require_text(message, "message")
        now = now or self._clock()
        prompt = EventExtractionPrompt(
            message=message,
            now=now,
            recent_events=tuple(recent_events),
            goals=tuple(goals),
            preferences=preferences,
        )
        return await self._generate(
            "event_extraction",
            prompt,
            self.chat_model,
            EVENT_EXTRACTION_PARAMS,
            parse=parse_event_extraction,
            fallback=lambda: fallback_generator.fallback_event_extraction(message, now),
        )

    async def _generate(
        self,
        task: str,
        prompt: Any,
        model: str,
        params: GenerationParams,
        *,
        parse: Callable[[str], Union[T, InvalidPayload]],
        fallback: Callable[[], T],
        retry: bool = True,
        metadata: Optional[dict] = None,
    ) -> Generated[T]:
        started = perf_counter()
        with trace(f"orchestrator.{task}", metadata={"model": model, "retry": retry, **(metadata or {})}) as span:
            result = await self.gateway.invoke(render_prompt(prompt), model, params, retry=retry)
            if result.available:
                parsed = parse(result.text)
            else:
                parsed = InvalidPayload(result.error or "ai unavailable")

            reason = None
            if isinstance(parsed, InvalidPayload):
                reason = parsed.reason
                if result.attempts:
                    logger.warning("AI %s output unusable (%s); using fallback", task, reason)
                else:
                    logger.info("AI %s disabled; using fallback", task)
                value = fallback()
            else:
                value = parsed
            fallback_used = reason is not None
            annotate(span, fallback_used=fallback_used, attempts=result.attempts, reason=reason)

        latency_ms = round((perf_counter() - started) * 1000, 1)
        metric_metadata = {"model": model, "reason": reason}
        log_metric(f"ai.{task}.fallback_used", 1 if fallback_used else 0, metric_metadata)
        log_metric(f"ai.{task}.attempts", result.attempts, metric_metadata)
        log_metric(f"ai.{task}.latency_ms", latency_ms, metric_metadata)
        return Generated(value=value, fallback_used=fallback_used, attempts=result.attempts, reason=reason)
