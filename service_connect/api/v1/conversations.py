from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from service_connect.api.deps import get_current_user
from service_connect.core.errors import success_response
from service_connect.db.session import get_db
from service_connect.models import User
from service_connect.schemas.conversations import ConversationCreateRequest, ConversationStarted, ConversationSummary
from service_connect.schemas.messages import MessagePage, MessageRead, SendMessageRequest
from service_connect.services import messaging_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/messages/conversations", tags=["conversations"])


@router.get("")
def list_conversations(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    logger.info("List conversations endpoint hit user_id=%s", current_user.id)
    conversations = messaging_service.list_conversations(db, current_user)
    payload = [ConversationSummary.model_validate(item).model_dump(mode="json") for item in conversations]
    return success_response(payload)


@router.post("")
def create_conversation(
    payload: ConversationCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    logger.info(
        "Create conversation endpoint hit user_id=%s participant_id=%s service_id=%s",
        current_user.id,
        payload.participant_id,
        payload.service_id,
    )
    if payload.initial_message is None:
        conversation = messaging_service.get_or_create_conversation(
            db,
            current_user,
            participant_id=payload.participant_id,
            service_id=payload.service_id,
        )
        body = ConversationStarted(conversation=ConversationSummary.model_validate(conversation))
        return success_response(body.model_dump(mode="json"))

    started = messaging_service.start_conversation(
        db,
        current_user,
        participant_id=payload.participant_id,
        content=payload.initial_message,
        service_id=payload.service_id,
    )
    body = ConversationStarted.model_validate(started)
    return success_response(body.model_dump(mode="json"), status_code=status.HTTP_201_CREATED)


@router.get("/{conversation_id}")
def open_conversation(
    conversation_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    conversation = messaging_service.open_conversation(db, current_user, conversation_id=conversation_id)
    return success_response(ConversationSummary.model_validate(conversation).model_dump(mode="json"))


@router.delete("/{conversation_id}")
def archive_conversation(
    conversation_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    conversation = messaging_service.archive_conversation(db, current_user, conversation_id=conversation_id)
    return success_response(ConversationSummary.model_validate(conversation).model_dump(mode="json"))


@router.get("/{conversation_id}/messages")
def list_messages(
    conversation_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=messaging_service.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    result = messaging_service.list_messages(
        db,
        current_user,
        conversation_id=conversation_id,
        page=page,
        limit=limit,
    )
    return success_response(MessagePage.model_validate(result).model_dump(mode="json"))


@router.post("/{conversation_id}/messages")
def send_message(
    conversation_id: str,
    payload: SendMessageRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    message = messaging_service.send_message(
        db,
        current_user,
        conversation_id=conversation_id,
        content=payload.content,
        message_type=payload.message_type,
        attachments=payload.attachments,
        reply_to=payload.reply_to,
    )
    return success_response(MessageRead.model_validate(message).model_dump(mode="json"), status_code=status.HTTP_201_CREATED)


@router.put("/{conversation_id}/read")
def mark_conversation_read(
    conversation_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    result = messaging_service.mark_conversation_read(db, current_user, conversation_id=conversation_id)
    return success_response(result)
