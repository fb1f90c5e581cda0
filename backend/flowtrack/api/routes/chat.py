"""Chat endpoints: conversational replies, chat-to-event and prompt analysis."""
from __future__ import annotations

from typing import Any, Dict, List, Tuple
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from flowtrack.api.deps import commit_or_500, get_orchestrator
from flowtrack.api.schemas.chat import (
    AnalyzePromptRequest,
    AnalyzePromptResponse,
    ChatMessageRequest,
    ChatMessageResponse,
    CreatedEvent,
    CreateEventRequest,
    CreateEventResponse,
)
from flowtrack.core.context import bind_user_id
from flowtrack.db.deps import get_db
from flowtrack.observability.metrics import log_metric
from flowtrack.observability.tracing import trace
from flowtrack.services.orchestrator import BalanceOrchestrator, InvalidRequestError
from flowtrack.services.plan_models import ChatTurn, EventExtraction
from flowtrack.services.prompt_builder import analyze_prompt
from flowtrack.services.storage import (
    describe_event,
    describe_goal,
    recent_chat_turns,
    recent_events,
    recent_goals,
    record_chat_exchange,
    save_extracted_events,
)
from flowtrack.services.user_service import get_or_create_user

router = APIRouter()


@router.post("/chat/message", response_model=ChatMessageResponse, tags=["chat"])
async def chat_message(
    request: ChatMessageRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    orchestrator: BalanceOrchestrator = Depends(get_orchestrator),
) -> ChatMessageResponse:
    """Reply to a chat message using the last few stored turns as context."""
    request_id = getattr(http_request.state, "request_id", None)
    bind_user_id(request.user_id)
    metadata = {"route": "/chat/message", "enhanced": request.options.enhance, "message_length": len(request.message)}

    with trace("chat.message", metadata=metadata, user_id=str(request.user_id), request_id=request_id):
        context = await run_in_threadpool(_load_chat_context, db, request.user_id)
        try:
            generated = await orchestrator.chat_reply(request.message, context, request.options)
        except InvalidRequestError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

        message_id, reply_id = await run_in_threadpool(
            _store_exchange,
            db,
            request.user_id,
            request.message.strip(),
            generated.value,
            {
                "fallback_used": generated.fallback_used,
                "request_id": request_id,
                "options": request.options.model_dump(by_alias=True) if request.options.enhance else None,
            },
        )

    return ChatMessageResponse(
        reply=generated.value,
        message_id=message_id,
        reply_id=reply_id,
        fallback_used=generated.fallback_used,
        request_id=request_id,
    )


@router.post("/chat/create-event", response_model=CreateEventResponse, tags=["chat"])
async def create_event_from_chat(
    request: CreateEventRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    orchestrator: BalanceOrchestrator = Depends(get_orchestrator),
) -> CreateEventResponse:
    """Turn a natural-language request into stored calendar events."""
    request_id = getattr(http_request.state, "request_id", None)
    bind_user_id(request.user_id)

    with trace("chat.create_event", metadata={"route": "/chat/create-event"}, user_id=str(request.user_id), request_id=request_id):
        events_context, goals_context = await run_in_threadpool(_load_event_context, db, request.user_id)
        try:
            generated = await orchestrator.parse_chat_to_event(
                request.message,
                recent_events=events_context,
                goals=goals_context,
                preferences=request.preferences,
            )
        except InvalidRequestError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

        extraction = generated.value
        created = await run_in_threadpool(
            _store_events, db, request.user_id, extraction, not generated.fallback_used
        )

    log_metric("chat.create_event.count", len(created), metadata={"user_id": str(request.user_id)})
    return CreateEventResponse(
        events=created,
        suggestions=extraction.suggestions,
        clarifications=extraction.clarifications,
        errors=extraction.errors,
        fallback_used=generated.fallback_used,
        request_id=request_id,
    )


@router.post("/chat/analyze-prompt", response_model=AnalyzePromptResponse, tags=["chat"])
def analyze_chat_prompt(request: AnalyzePromptRequest) -> AnalyzePromptResponse:
    """Classify a message and recommend response settings without calling the model."""
    return AnalyzePromptResponse(**analyze_prompt(request.message))


def _load_chat_context(db: Session, user_id: UUID) -> List[ChatTurn]:
    get_or_create_user(db, user_id)
    context = recent_chat_turns(db, user_id)
    commit_or_500(db, "Failed to save user")
    return context


def _store_exchange(db: Session, user_id: UUID, message: str, reply: str, metadata: Dict[str, Any]) -> Tuple[UUID, UUID]:
    user_message, ai_message = record_chat_exchange(db, user_id, message, reply, metadata=metadata)
    ids = (user_message.id, ai_message.id)
    commit_or_500(db, "Failed to save chat messages")
    return ids


def _load_event_context(db: Session, user_id: UUID) -> Tuple[List[str], List[str]]:
    get_or_create_user(db, user_id)
    events = [describe_event(event) for event in recent_events(db, user_id)]
    goals = [describe_goal(goal) for goal in recent_goals(db, user_id)]
    commit_or_500(db, "Failed to save user")
    return events, goals


def _store_events(db: Session, user_id: UUID, extraction: EventExtraction, ai_generated: bool) -> List[CreatedEvent]:
    created = [
        CreatedEvent.model_validate(event)
        for event in save_extracted_events(db, user_id, extraction, ai_generated=ai_generated)
    ]
    commit_or_500(db, "Failed to save events")
    return created
