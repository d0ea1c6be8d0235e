"""Conversation and message use cases.

Every operation re-checks that the requester participates in the conversation
it touches and commits exactly once. The message store and the conversation
directory only flush, so a send (message row + conversation summary) is
either fully visible or not visible at all.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import TypedDict

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from service_connect.core.errors import (
    APIError,
    ConflictError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    SelfConversationError,
    ValidationError,
)
from service_connect.core.identifiers import as_utc, normalize_id
from service_connect.models import Conversation, Message, User
from service_connect.services import conversation_service, identity_service, listing_service, message_service

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class ConversationPayload(TypedDict):
    id: str
    other_participant: dict[str, object]
    participant_ids: list[str]
    service: dict[str, object] | None
    last_message: dict[str, object]
    unread_count: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


class MessagePayload(TypedDict):
    id: str
    conversation_id: str
    seq: int
    content: str
    message_type: str
    sender: dict[str, object]
    is_from_current_user: bool
    attachments: list[dict[str, object]]
    is_read: bool
    read_at: datetime | None
    is_edited: bool
    edited_at: datetime | None
    reply_to: dict[str, object] | None
    created_at: datetime


@contextmanager
def _unit_of_work(db: Session, operation: str) -> Iterator[None]:
    try:
        yield
        db.commit()
    except APIError:
        db.rollback()
        raise
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Storage conflict operation=%s error=%s", operation, exc.orig)
        raise ConflictError("The request conflicts with existing data", code="storage_conflict") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Storage failure operation=%s", operation)
        raise InternalError() from exc


def _require_conversation(db: Session, *, requester_id: str, conversation_id: str) -> Conversation:
    conversation = conversation_service.get_conversation(db, conversation_id)
    if (
        conversation is None
        or not conversation.is_active
        or not conversation_service.has_participant(conversation, requester_id)
    ):
        # Outsiders get the same answer as for a missing conversation.
        logger.warning("Conversation access denied user_id=%s conversation_id=%s", requester_id, conversation_id)
        raise NotFoundError("Conversation not found", code="conversation_not_found")
    return conversation


def _require_message(db: Session, *, requester_id: str, message_id: str) -> tuple[Message, Conversation]:
    message = message_service.get_message(db, message_id)
    if message is not None:
        conversation = conversation_service.get_conversation(db, message.conversation_id)
        if (
            conversation is not None
            and conversation.is_active
            and conversation_service.has_participant(conversation, requester_id)
        ):
            return message, conversation
    logger.warning("Message access denied user_id=%s message_id=%s", requester_id, message_id)
    raise NotFoundError("Message not found", code="message_not_found")


def _conversation_payloads(
    db: Session,
    *,
    viewer_id: str,
    conversations: Sequence[Conversation],
) -> list[ConversationPayload]:
    other_ids = {
        participant.user_id
        for conversation in conversations
        for participant in conversation.participants
        if participant.user_id != viewer_id
    }
    users = identity_service.users_by_id(db, other_ids)

    payload: list[ConversationPayload] = []
    for conversation in conversations:
        other = next(
            (participant for participant in conversation.participants if participant.user_id != viewer_id),
            None,
        )
        if other is None:
            logger.error("Conversation has no counterpart conversation_id=%s viewer_id=%s", conversation.id, viewer_id)
            raise InternalError()
        counts = conversation_service.unread_counts(conversation)
        payload.append(
            {
                "id": conversation.id,
                "other_participant": identity_service.serialize_participant(
                    users.get(other.user_id), user_id=other.user_id, fallback_name=other.display_name
                ),
                "participant_ids": conversation.participant_ids,
                "service": (
                    {"id": conversation.service_id, "title": conversation.service_title}
                    if conversation.service_id
                    else None
                ),
                "last_message": {
                    "content": conversation.last_message_content,
                    "sender_id": conversation.last_message_sender_id,
                    "timestamp": as_utc(conversation.last_message_at),
                    "is_from_current_user": conversation.last_message_sender_id == viewer_id,
                },
                "unread_count": counts.get(viewer_id, 0),
                "is_active": conversation.is_active,
                "created_at": as_utc(conversation.created_at),
                "updated_at": as_utc(conversation.updated_at),
            }
        )
    return payload


def _message_payloads(db: Session, *, viewer_id: str, messages: Sequence[Message]) -> list[MessagePayload]:
    users = identity_service.users_by_id(db, {message.sender_id for message in messages})
    replies = message_service.get_messages_by_ids(db, {message.reply_to_id for message in messages if message.reply_to_id})

    payload: list[MessagePayload] = []
    for message in messages:
        reply = replies.get(message.reply_to_id) if message.reply_to_id else None
        payload.append(
            {
                "id": message.id,
                "conversation_id": message.conversation_id,
                "seq": message.seq,
                "content": message.content,
                "message_type": message.message_type,
                "sender": identity_service.serialize_participant(
                    users.get(message.sender_id), user_id=message.sender_id, fallback_name=message.sender_name
                ),
                "is_from_current_user": message.sender_id == viewer_id,
                "attachments": [
                    {"type": item.type, "url": item.url, "filename": item.filename, "size": item.size}
                    for item in message.attachments
                ],
                "is_read": message.is_read,
                "read_at": as_utc(message.read_at),
                "is_edited": message.is_edited,
                "edited_at": as_utc(message.edited_at),
                "reply_to": (
                    {"id": reply.id, "content": reply.content, "sender_name": reply.sender_name}
                    if reply is not None
                    else None
                ),
                "created_at": as_utc(message.created_at),
            }
        )
    return payload


def _get_or_create(
    db: Session,
    requester: User,
    *,
    participant_id: str,
    service_id: str | None,
) -> tuple[Conversation, bool]:
    normalized_id = normalize_id(participant_id)
    if normalized_id is None:
        raise ValidationError.for_field("participant_id", "Invalid user id")
    participant_id = normalized_id
    if participant_id == requester.id:
        logger.warning("Self conversation rejected user_id=%s", requester.id)
        raise SelfConversationError()

    other_user = identity_service.get_active_user(db, participant_id)
    if other_user is None:
        logger.warning("Conversation target not found participant_id=%s", participant_id)
        raise NotFoundError("User not found", code="user_not_found")

    existing = conversation_service.find_between(db, requester.id, other_user.id)
    if existing is not None:
        return existing, False

    service_title: str | None = None
    if service_id:
        listing = listing_service.require_active_listing(db, service_id)
        service_id = listing.id
        service_title = listing.title

    conversation = conversation_service.create(
        db,
        user_a=requester,
        user_b=other_user,
        service_id=service_id or None,
        service_title=service_title,
    )
    return conversation, True


def _append_and_sync(
    db: Session,
    conversation: Conversation,
    sender: User,
    *,
    content: str,
    message_type: str = "text",
    attachments: Sequence[object] | None = None,
    reply_to: str | None = None,
) -> Message:
    message = message_service.append(
        db,
        conversation_id=conversation.id,
        sender_id=sender.id,
        sender_name=identity_service.display_name(sender),
        content=content,
        message_type=message_type,
        attachments=attachments,
        reply_to=reply_to,
    )
    conversation_service.update_last_message(
        db,
        conversation,
        content=message.content,
        sender_id=sender.id,
        timestamp=message.created_at,
    )
    return message


def get_or_create_conversation(
    db: Session,
    requester: User,
    *,
    participant_id: str,
    service_id: str | None = None,
) -> ConversationPayload:
    with _unit_of_work(db, "get_or_create_conversation"):
        conversation, created = _get_or_create(db, requester, participant_id=participant_id, service_id=service_id)
    logger.info(
        "Conversation resolved conversation_id=%s requester_id=%s created=%s",
        conversation.id,
        requester.id,
        created,
    )
    return _conversation_payloads(db, viewer_id=requester.id, conversations=[conversation])[0]


def start_conversation(
    db: Session,
    requester: User,
    *,
    participant_id: str,
    content: str,
    service_id: str | None = None,
) -> dict[str, object]:
    with _unit_of_work(db, "start_conversation"):
        conversation, created = _get_or_create(db, requester, participant_id=participant_id, service_id=service_id)
        message = _append_and_sync(db, conversation, requester, content=content)
    logger.info(
        "Conversation started conversation_id=%s requester_id=%s created=%s message_id=%s",
        conversation.id,
        requester.id,
        created,
        message.id,
    )
    return {
        "conversation": _conversation_payloads(db, viewer_id=requester.id, conversations=[conversation])[0],
        "message": _message_payloads(db, viewer_id=requester.id, messages=[message])[0],
    }


def send_message(
    db: Session,
    requester: User,
    *,
    conversation_id: str,
    content: str,
    message_type: str = "text",
    attachments: Sequence[object] | None = None,
    reply_to: str | None = None,
) -> MessagePayload:
    with _unit_of_work(db, "send_message"):
        conversation = _require_conversation(db, requester_id=requester.id, conversation_id=conversation_id)
        message = _append_and_sync(
            db,
            conversation,
            requester,
            content=content,
            message_type=message_type,
            attachments=attachments,
            reply_to=reply_to,
        )
    logger.info("Message sent message_id=%s conversation_id=%s sender_id=%s", message.id, conversation.id, requester.id)
    return _message_payloads(db, viewer_id=requester.id, messages=[message])[0]


def list_conversations(db: Session, requester: User) -> list[ConversationPayload]:
    conversations = conversation_service.list_for_user(db, requester.id)
    return _conversation_payloads(db, viewer_id=requester.id, conversations=conversations)


def open_conversation(db: Session, requester: User, *, conversation_id: str) -> ConversationPayload:
    with _unit_of_work(db, "open_conversation"):
        conversation = _require_conversation(db, requester_id=requester.id, conversation_id=conversation_id)
        conversation_service.mark_read(db, conversation, requester.id)
    return _conversation_payloads(db, viewer_id=requester.id, conversations=[conversation])[0]


def list_messages(
    db: Session,
    requester: User,
    *,
    conversation_id: str,
    page: int = 1,
    limit: int = 50,
) -> dict[str, object]:
    """Chronological page of messages, then mark the other party's messages read.

    The returned ``is_read`` flags are the ones stored before this call.
    """
    errors: list[dict[str, str]] = []
    if page < 1:
        errors.append({"field": "page", "message": "Page must be a positive integer"})
    if not 1 <= limit <= MAX_PAGE_SIZE:
        errors.append({"field": "limit", "message": f"Limit must be between 1 and {MAX_PAGE_SIZE}"})
    if errors:
        raise ValidationError("Invalid parameters", errors=errors)

    with _unit_of_work(db, "list_messages"):
        conversation = _require_conversation(db, requester_id=requester.id, conversation_id=conversation_id)
        rows = message_service.list_by_conversation(db, conversation.id, limit=limit, offset=(page - 1) * limit)
        total = message_service.count_in_conversation(db, conversation.id)
        messages = _message_payloads(db, viewer_id=requester.id, messages=list(reversed(rows)))
        marked = message_service.mark_all_read_in_conversation(db, conversation.id, except_sender_id=requester.id)

    logger.debug(
        "Messages listed conversation_id=%s page=%s returned=%s newly_read=%s",
        conversation_id,
        page,
        len(messages),
        marked,
    )
    return {
        "messages": messages,
        "pagination": {
            "current": page,
            "total_pages": math.ceil(total / limit),
            "count": len(messages),
            "total_items": total,
        },
    }


def mark_conversation_read(db: Session, requester: User, *, conversation_id: str) -> dict[str, object]:
    with _unit_of_work(db, "mark_conversation_read"):
        conversation = _require_conversation(db, requester_id=requester.id, conversation_id=conversation_id)
        conversation_service.mark_read(db, conversation, requester.id)
        marked = message_service.mark_all_read_in_conversation(db, conversation.id, except_sender_id=requester.id)
    logger.info("Conversation marked read conversation_id=%s user_id=%s messages=%s", conversation_id, requester.id, marked)
    return {"conversation_id": conversation.id, "marked_messages": marked}


def mark_message_read(db: Session, requester: User, *, message_id: str) -> MessagePayload:
    with _unit_of_work(db, "mark_message_read"):
        message, conversation = _require_message(db, requester_id=requester.id, message_id=message_id)
        # A sender's own messages are read by definition from their side.
        if message.sender_id != requester.id and not message.is_read:
            message_service.mark_read(db, message)
            conversation_service.decrement_unread(db, conversation, requester.id)
    return _message_payloads(db, viewer_id=requester.id, messages=[message])[0]


def edit_message(db: Session, requester: User, *, message_id: str, content: str) -> MessagePayload:
    with _unit_of_work(db, "edit_message"):
        message, _ = _require_message(db, requester_id=requester.id, message_id=message_id)
        if message.sender_id != requester.id:
            logger.warning("Edit rejected, not the sender user_id=%s message_id=%s", requester.id, message_id)
            raise ForbiddenError("You can only edit your own messages", code="not_message_sender")
        message_service.edit_content(db, message, content)
    logger.info("Message edited message_id=%s", message.id)
    return _message_payloads(db, viewer_id=requester.id, messages=[message])[0]


def unread_total(db: Session, requester: User) -> int:
    return message_service.count_unread_for_user(db, requester.id)


def search_messages(
    db: Session,
    requester: User,
    *,
    query: str,
    conversation_id: str | None = None,
) -> list[MessagePayload]:
    term = query.strip() if isinstance(query, str) else ""
    if not term:
        raise ValidationError.for_field("q", "Search term is required")

    if conversation_id:
        if normalize_id(conversation_id) is None:
            raise ValidationError.for_field("conversation_id", "Invalid conversation id")
        conversation = _require_conversation(db, requester_id=requester.id, conversation_id=conversation_id)
        rows = message_service.search_in_conversation(db, conversation.id, term)
    else:
        rows = message_service.search_for_user(db, requester.id, term)
    logger.debug("Message search user_id=%s scoped=%s hits=%s", requester.id, bool(conversation_id), len(rows))
    return _message_payloads(db, viewer_id=requester.id, messages=rows)


def archive_conversation(db: Session, requester: User, *, conversation_id: str) -> ConversationPayload:
    with _unit_of_work(db, "archive_conversation"):
        conversation = _require_conversation(db, requester_id=requester.id, conversation_id=conversation_id)
        conversation_service.deactivate(db, conversation)
    logger.info("Conversation archived conversation_id=%s by user_id=%s", conversation_id, requester.id)
    return _conversation_payloads(db, viewer_id=requester.id, conversations=[conversation])[0]
