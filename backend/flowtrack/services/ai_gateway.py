"""Thin async wrapper around the chat-completions API with bounded retries."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from time import perf_counter
from typing import Any, Awaitable, Callable, Optional

from openai import AsyncOpenAI

from flowtrack.core.config import Settings, settings
from flowtrack.observability.tracing import annotate, trace

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[Any]]


class GatewayError(RuntimeError):
    """Raised for a single failed attempt; never leaves ``AIGateway.invoke``."""


@dataclass(frozen=True)
class GenerationParams:
    max_tokens: int
    temperature: float
    json_mode: bool = False


SCHEDULE_PARAMS = GenerationParams(max_tokens=700, temperature=0.35, json_mode=True)
CHAT_PARAMS = GenerationParams(max_tokens=250, temperature=0.75)
ENHANCED_CHAT_PARAMS = GenerationParams(max_tokens=600, temperature=0.7)
GOAL_PLAN_PARAMS = GenerationParams(max_tokens=1200, temperature=0.4, json_mode=True)
EVENT_EXTRACTION_PARAMS = GenerationParams(max_tokens=500, temperature=0.3, json_mode=True)
SUGGESTIONS_PARAMS = GenerationParams(max_tokens=250, temperature=0.6, json_mode=True)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_backoff_seconds: float = 1.0
    multiplier: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Pause after the given failed attempt (1-based): 1s, 2s, 4s with the defaults."""
        return self.initial_backoff_seconds * (self.multiplier ** (attempt - 1))


NO_RETRY = RetryPolicy(max_attempts=1, initial_backoff_seconds=0.0)


@dataclass(frozen=True)
class GatewayResult:
    text: Optional[str]
    attempts: int
    error: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.text is not None


class AIGateway:
    """Sends one prompt to the model and returns its text, or reports that none arrived.

    ``invoke`` never raises for provider failures. Every attempt is traced; after the
    last failed attempt the result carries ``text=None`` so callers switch to their
    deterministic fallback. Cancellation is not caught and propagates to the caller.
    """

    def __init__(
        self,
        client: Optional[Any],
        retry_policy: RetryPolicy = RetryPolicy(),
        sleep: SleepFn = asyncio.sleep,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._client = client
        self._retry_policy = retry_policy
        self._sleep = sleep
        self._timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "AIGateway":
        config = config or settings
        client = None
        if config.llm_api_key:
            client = AsyncOpenAI(
                api_key=config.llm_api_key,
                base_url=config.llm_base_url,
                timeout=config.llm_timeout_seconds,
                max_retries=0,
            )
        else:
            logger.info("LLM API key missing; AI features will use rule-based fallbacks.")
        policy = RetryPolicy(
            max_attempts=max(1, config.llm_max_attempts),
            initial_backoff_seconds=config.llm_backoff_initial_seconds,
        )
        return cls(client, retry_policy=policy, timeout_seconds=config.llm_timeout_seconds)

    @property
    def enabled(self) -> bool:
        return self._client is not None

    async def invoke(self, prompt: str, model: str, params: GenerationParams, *, retry: bool = True) -> GatewayResult:
        if not self.enabled:
            return GatewayResult(text=None, attempts=0, error="disabled")

        policy = self._retry_policy if retry else NO_RETRY
        last_error: Optional[str] = None
        for attempt in range(1, policy.max_attempts + 1):
            metadata = {"model": model, "attempt": attempt, "max_attempts": policy.max_attempts}
            started = perf_counter()
            try:
                with trace("ai.gateway.invoke", metadata=metadata) as span:
                    text = await self._complete(prompt, model, params)
                    annotate(span, latency_ms=round((perf_counter() - started) * 1000, 1), chars=len(text))
                return GatewayResult(text=text, attempts=attempt)
            except Exception as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                logger.warning("AI request failed (attempt %s/%s, model=%s): %s", attempt, policy.max_attempts, model, last_error)
            if attempt < policy.max_attempts:
                await self._sleep(policy.delay_for(attempt))

        logger.error("AI request gave up after %s attempts", policy.max_attempts)
        return GatewayResult(text=None, attempts=policy.max_attempts, error=last_error)

    async def _complete(self, prompt: str, model: str, params: GenerationParams) -> str:
        request: dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
        }
        if params.json_mode:
            request["response_format"] = {"type": "json_object"}
        completion = await asyncio.wait_for(
            self._client.chat.completions.create(**request),
            timeout=self._timeout_seconds,
        )
        if not completion.choices:
            raise GatewayError("completion returned no choices")
        content = (completion.choices[0].message.content or "").strip()
        if not content:
            raise GatewayError("completion returned empty content")
        return content
