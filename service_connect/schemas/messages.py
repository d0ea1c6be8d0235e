from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class ImageAttachment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type: Literal["image"] = "image"
    url: str = Field(min_length=1, max_length=2048)
    filename: str | None = Field(default=None, max_length=255)
    size: int | None = Field(default=None, ge=0)


class FileAttachment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type: Literal["file"] = "file"
    url: str = Field(min_length=1, max_length=2048)
    filename: str = Field(min_length=1, max_length=255)
    size: int | None = Field(default=None, ge=0)


Attachment = Annotated[ImageAttachment | FileAttachment, Field(discriminator="type")]


class SendMessageRequest(BaseModel):
    # Length and type rules are enforced by the message store so that every
    # write path reports them the same way.
    content: str
    message_type: str = "text"
    attachments: list[Attachment] = Field(default_factory=list, max_length=10)
    reply_to: str | None = Field(default=None, max_length=64)


class EditMessageRequest(BaseModel):
    content: str


class MessageSender(BaseModel):
    id: str
    name: str
    first_name: str | None = None
    last_name: str | None = None
    avatar: str | None = None


class ReplyPreview(BaseModel):
    id: str
    content: str
    sender_name: str


class MessageRead(BaseModel):
    id: str
    conversation_id: str
    seq: int
    content: str
    message_type: str
    sender: MessageSender
    is_from_current_user: bool
    attachments: list[Attachment] = Field(default_factory=list)
    is_read: bool
    read_at: datetime | None
    is_edited: bool
    edited_at: datetime | None
    reply_to: ReplyPreview | None = None
    created_at: datetime


class Pagination(BaseModel):
    current: int
    total_pages: int
    count: int
    total_items: int


class MessagePage(BaseModel):
    messages: list[MessageRead]
    pagination: Pagination


class MessageSearchHit(BaseModel):
    id: str
    conversation_id: str
    content: str
    sender: MessageSender
    created_at: datetime


class MessageSearchResponse(BaseModel):
    messages: list[MessageSearchHit]
    count: int


class UnreadCountResponse(BaseModel):
    unread_count: int
