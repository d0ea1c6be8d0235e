from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from service_connect.schemas.messages import MessageRead, MessageSender


class ConversationCreateRequest(BaseModel):
    participant_id: str = Field(min_length=1, max_length=64)
    service_id: str | None = Field(default=None, min_length=1, max_length=64)
    initial_message: str | None = None


class ServiceReference(BaseModel):
    id: str
    title: str | None


class LastMessage(BaseModel):
    content: str
    sender_id: str | None
    timestamp: datetime
    is_from_current_user: bool


class ConversationSummary(BaseModel):
    id: str
    other_participant: MessageSender
    participant_ids: list[str]
    service: ServiceReference | None
    last_message: LastMessage
    unread_count: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ConversationStarted(BaseModel):
    conversation: ConversationSummary
    message: MessageRead | None = None
