from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import and_, func, select, update
from sqlalchemy.orm import Session

from service_connect.core.errors import NotFoundError, ValidationError
from service_connect.core.identifiers import normalize_id, utcnow
from service_connect.core.settings import get_settings
from service_connect.models import Conversation, ConversationParticipant, Message, MessageAttachment
from service_connect.models.message import MESSAGE_TYPES
from service_connect.schemas.messages import Attachment

logger = logging.getLogger(__name__)

_attachments_adapter = TypeAdapter(list[Attachment])


def _content_error(content: object) -> str | None:
    max_length = get_settings().message_max_length
    if not isinstance(content, str) or not content.strip():
        return "Message content is required"
    if len(content.strip()) > max_length:
        return f"Message must contain between 1 and {max_length} characters"
    return None


def _parse_attachments(attachments: Iterable[object] | None, errors: list[dict[str, str]]) -> list[Attachment]:
    if not attachments:
        return []
    try:
        return _attachments_adapter.validate_python(
            [item.model_dump() if hasattr(item, "model_dump") else item for item in attachments]
        )
    except PydanticValidationError as exc:
        for error in exc.errors():
            location = ".".join(str(part) for part in error["loc"])
            errors.append({"field": f"attachments.{location}", "message": error["msg"]})
        return []


def _allocate_seq(db: Session, conversation_id: str) -> int:
    # The UPDATE takes the row lock, so concurrent senders serialize here.
    result = db.execute(
        update(Conversation)
        .where(Conversation.id == conversation_id)
        .where(Conversation.is_active.is_(True))
        .values(last_seq=Conversation.last_seq + 1)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        logger.warning("Append rejected, conversation missing or inactive conversation_id=%s", conversation_id)
        raise NotFoundError("Conversation not found", code="conversation_not_found")
    return db.scalar(select(Conversation.last_seq).where(Conversation.id == conversation_id))


def append(
    db: Session,
    *,
    conversation_id: str,
    sender_id: str,
    sender_name: str,
    content: str,
    message_type: str = "text",
    attachments: Sequence[object] | None = None,
    reply_to: str | None = None,
) -> Message:
    errors: list[dict[str, str]] = []

    normalized_conversation_id = normalize_id(conversation_id)
    if normalized_conversation_id is None:
        errors.append({"field": "conversation_id", "message": "Invalid conversation id"})
    content_error = _content_error(content)
    if content_error is not None:
        errors.append({"field": "content", "message": content_error})
    if message_type not in MESSAGE_TYPES:
        errors.append({"field": "message_type", "message": f"Message type must be one of: {', '.join(MESSAGE_TYPES)}"})
    parsed_attachments = _parse_attachments(attachments, errors)

    reply_to_id = normalize_id(reply_to) if reply_to is not None else None
    if reply_to is not None:
        if reply_to_id is None:
            errors.append({"field": "reply_to", "message": "Invalid message id"})
        elif not errors:
            replied = db.get(Message, reply_to_id)
            if replied is not None and replied.conversation_id != normalized_conversation_id:
                errors.append({"field": "reply_to", "message": "Replies must target a message in the same conversation"})

    if errors:
        logger.info("Message rejected conversation_id=%s fields=%s", conversation_id, [e["field"] for e in errors])
        raise ValidationError("Invalid message", errors=errors)

    conversation_id = normalized_conversation_id
    seq = _allocate_seq(db, conversation_id)
    now = utcnow()
    message = Message(
        conversation_id=conversation_id,
        seq=seq,
        sender_id=sender_id,
        sender_name=sender_name,
        content=content.strip(),
        message_type=message_type,
        reply_to_id=reply_to_id,
        created_at=now,
        updated_at=now,
    )
    message.attachments = [
        MessageAttachment(
            position=position,
            type=attachment.type,
            url=attachment.url,
            filename=attachment.filename,
            size=attachment.size,
        )
        for position, attachment in enumerate(parsed_attachments)
    ]
    db.add(message)
    db.flush()
    logger.debug("Message appended message_id=%s conversation_id=%s seq=%s", message.id, conversation_id, seq)
    return message


def get_message(db: Session, message_id: str) -> Message | None:
    normalized = normalize_id(message_id)
    if normalized is None:
        return None
    return db.get(Message, normalized)


def get_messages_by_ids(db: Session, message_ids: Iterable[str]) -> dict[str, Message]:
    ids = [message_id for message_id in set(message_ids) if message_id]
    if not ids:
        return {}
    return {message.id: message for message in db.scalars(select(Message).where(Message.id.in_(ids))).all()}


def list_by_conversation(db: Session, conversation_id: str, *, limit: int = 50, offset: int = 0) -> list[Message]:
    """Newest first. Callers reverse the page for chronological display."""
    return list(
        db.scalars(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.seq.desc())
            .limit(limit)
            .offset(offset)
        ).all()
    )


def count_in_conversation(db: Session, conversation_id: str) -> int:
    return db.scalar(select(func.count(Message.id)).where(Message.conversation_id == conversation_id)) or 0


def mark_read(db: Session, message: Message) -> Message:
    if message.is_read:
        return message
    message.is_read = True
    message.read_at = utcnow()
    db.flush()
    return message


def mark_all_read_in_conversation(db: Session, conversation_id: str, *, except_sender_id: str) -> int:
    result = db.execute(
        update(Message)
        .where(Message.conversation_id == conversation_id)
        .where(Message.sender_id != except_sender_id)
        .where(Message.is_read.is_(False))
        .values(is_read=True, read_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    logger.debug(
        "Bulk read conversation_id=%s reader_id=%s updated=%s",
        conversation_id,
        except_sender_id,
        result.rowcount,
    )
    return result.rowcount or 0


def edit_content(db: Session, message: Message, new_content: str) -> Message:
    content_error = _content_error(new_content)
    if content_error is not None:
        raise ValidationError.for_field("content", content_error)

    now = utcnow()
    message.content = new_content.strip()
    message.is_edited = True
    message.edited_at = now
    db.flush()
    return message


def _contains(substring: str):
    escaped = substring.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return Message.content.ilike(f"%{escaped}%", escape="\\")


def search_in_conversation(db: Session, conversation_id: str, substring: str) -> list[Message]:
    limit = get_settings().search_result_limit
    return list(
        db.scalars(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .where(_contains(substring))
            .order_by(Message.created_at.desc(), Message.seq.desc())
            .limit(limit)
        ).all()
    )


def search_for_user(db: Session, user_id: str, substring: str) -> list[Message]:
    limit = get_settings().search_result_limit
    return list(
        db.scalars(
            select(Message)
            .join(Conversation, Conversation.id == Message.conversation_id)
            .join(
                ConversationParticipant,
                and_(
                    ConversationParticipant.conversation_id == Message.conversation_id,
                    ConversationParticipant.user_id == user_id,
                ),
            )
            .where(Conversation.is_active.is_(True))
            .where(_contains(substring))
            .order_by(Message.created_at.desc())
            .limit(limit)
        ).all()
    )


def count_unread_for_user(db: Session, user_id: str) -> int:
    per_conversation = (
        select(Message.conversation_id, func.count(Message.id).label("unread"))
        .join(
            ConversationParticipant,
            and_(
                ConversationParticipant.conversation_id == Message.conversation_id,
                ConversationParticipant.user_id == user_id,
            ),
        )
        .where(Message.sender_id != user_id)
        .where(Message.is_read.is_(False))
        .group_by(Message.conversation_id)
        .subquery()
    )
    total = db.scalar(select(func.coalesce(func.sum(per_conversation.c.unread), 0)))
    return int(total or 0)
