"""Pydantic schemas for the chat endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from flowtrack.services.plan_models import ChatOptions, Preferences


class ChatMessageRequest(BaseModel):
    user_id: UUID
    message: str = Field(..., min_length=1, max_length=4000)
    options: ChatOptions = Field(default_factory=ChatOptions)


class ChatMessageResponse(BaseModel):
    reply: str
    message_id: UUID
    reply_id: UUID
    fallback_used: bool
    request_id: Optional[str] = None


class CreateEventRequest(BaseModel):
    user_id: UUID
    message: str = Field(..., min_length=1, max_length=2000)
    preferences: Optional[Preferences] = None


class CreatedEvent(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: Optional[str] = None
    category: str
    start_time: datetime
    end_time: datetime


class CreateEventResponse(BaseModel):
    events: List[CreatedEvent]
    suggestions: List[str] = Field(default_factory=list)
    clarifications: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    fallback_used: bool
    request_id: Optional[str] = None


class AnalyzePromptRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)


class AnalyzePromptResponse(BaseModel):
    detected_type: str
    recommended_settings: Dict[str, str]
    enhancement_options: Dict[str, str]
    examples: List[str]
