from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import case, distinct, func, select, update
from sqlalchemy.orm import Session

from service_connect.core.identifiers import as_utc, normalize_id, utcnow
from service_connect.core.settings import get_settings
from service_connect.models import Conversation, ConversationParticipant, User
from service_connect.services import identity_service

logger = logging.getLogger(__name__)


def get_conversation(db: Session, conversation_id: str) -> Conversation | None:
    normalized = normalize_id(conversation_id)
    if normalized is None:
        logger.debug("Malformed conversation id=%r", conversation_id)
        return None
    return db.get(Conversation, normalized)


def find_between(db: Session, user_a: str, user_b: str) -> Conversation | None:
    """Active conversation shared by the two users, in either order."""
    if user_a == user_b:
        return None

    shared_ids = (
        select(ConversationParticipant.conversation_id)
        .where(ConversationParticipant.user_id.in_([user_a, user_b]))
        .group_by(ConversationParticipant.conversation_id)
        .having(func.count(distinct(ConversationParticipant.user_id)) == 2)
    )
    conversation = db.scalar(
        select(Conversation)
        .where(Conversation.id.in_(shared_ids))
        .where(Conversation.is_active.is_(True))
        .order_by(Conversation.created_at.asc())
        .limit(1)
    )
    logger.debug(
        "Conversation lookup between user_a=%s user_b=%s found=%s",
        user_a,
        user_b,
        conversation.id if conversation is not None else None,
    )
    return conversation


def create(
    db: Session,
    *,
    user_a: User,
    user_b: User,
    service_id: str | None = None,
    service_title: str | None = None,
) -> Conversation:
    # Pair uniqueness is checked by the caller through find_between.
    now = utcnow()
    conversation = Conversation(
        service_id=service_id,
        service_title=service_title,
        last_message_at=now,
        created_at=now,
        updated_at=now,
    )
    conversation.participants = [
        ConversationParticipant(user_id=user.id, display_name=identity_service.display_name(user), unread_count=0)
        for user in (user_a, user_b)
    ]
    db.add(conversation)
    db.flush()
    logger.info(
        "Conversation created conversation_id=%s users=%s,%s service_id=%s",
        conversation.id,
        user_a.id,
        user_b.id,
        service_id,
    )
    return conversation


def list_for_user(db: Session, user_id: str) -> list[Conversation]:
    rows = db.scalars(
        select(Conversation)
        .join(ConversationParticipant, ConversationParticipant.conversation_id == Conversation.id)
        .where(ConversationParticipant.user_id == user_id)
        .where(Conversation.is_active.is_(True))
        .order_by(Conversation.updated_at.desc())
    ).all()
    logger.debug("Found %s conversations for user_id=%s", len(rows), user_id)
    return list(rows)


def has_participant(conversation: Conversation, user_id: str) -> bool:
    return any(participant.user_id == user_id for participant in conversation.participants)


def unread_counts(conversation: Conversation) -> dict[str, int]:
    return conversation.unread_count


def update_last_message(
    db: Session,
    conversation: Conversation,
    *,
    content: str,
    sender_id: str,
    timestamp: datetime | None = None,
) -> Conversation:
    """Refresh the last-message summary and bump every other participant's counter."""
    settings = get_settings()
    moment = as_utc(timestamp) or utcnow()
    previous = as_utc(conversation.last_message_at)
    if previous is not None and previous > moment:
        moment = previous

    conversation.last_message_content = content[: settings.last_message_preview_length]
    conversation.last_message_sender_id = sender_id
    conversation.last_message_at = moment
    conversation.updated_at = moment

    result = db.execute(
        update(ConversationParticipant)
        .where(ConversationParticipant.conversation_id == conversation.id)
        .where(ConversationParticipant.user_id != sender_id)
        .values(unread_count=ConversationParticipant.unread_count + 1)
    )
    db.flush()
    logger.debug(
        "Last message updated conversation_id=%s sender_id=%s counters_bumped=%s",
        conversation.id,
        sender_id,
        result.rowcount,
    )
    return conversation


def mark_read(db: Session, conversation: Conversation, user_id: str) -> Conversation:
    db.execute(
        update(ConversationParticipant)
        .where(ConversationParticipant.conversation_id == conversation.id)
        .where(ConversationParticipant.user_id == user_id)
        .values(unread_count=0)
    )
    db.flush()
    logger.debug("Unread counter reset conversation_id=%s user_id=%s", conversation.id, user_id)
    return conversation


def decrement_unread(db: Session, conversation: Conversation, user_id: str) -> Conversation:
    db.execute(
        update(ConversationParticipant)
        .where(ConversationParticipant.conversation_id == conversation.id)
        .where(ConversationParticipant.user_id == user_id)
        .values(
            unread_count=case(
                (ConversationParticipant.unread_count > 0, ConversationParticipant.unread_count - 1),
                else_=0,
            )
        )
        .execution_options(synchronize_session="fetch")
    )
    db.flush()
    return conversation


def deactivate(db: Session, conversation: Conversation) -> Conversation:
    conversation.is_active = False
    conversation.updated_at = utcnow()
    db.flush()
    logger.info("Conversation deactivated conversation_id=%s", conversation.id)
    return conversation
