from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from service_connect.api.deps import get_current_user
from service_connect.core.errors import success_response
from service_connect.db.session import get_db
from service_connect.models import User
from service_connect.schemas.messages import (
    EditMessageRequest,
    MessageRead,
    MessageSearchHit,
    MessageSearchResponse,
    UnreadCountResponse,
)
from service_connect.services import messaging_service

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("/unread-count")
def unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    total = messaging_service.unread_total(db, current_user)
    return success_response(UnreadCountResponse(unread_count=total).model_dump(mode="json"))


@router.get("/search")
def search_messages(
    q: str = Query(max_length=200),
    conversation_id: str | None = Query(default=None, max_length=64),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    hits = messaging_service.search_messages(db, current_user, query=q, conversation_id=conversation_id)
    body = MessageSearchResponse(
        messages=[MessageSearchHit.model_validate(hit) for hit in hits],
        count=len(hits),
    )
    return success_response(body.model_dump(mode="json"))


@router.patch("/{message_id}")
def edit_message(
    message_id: str,
    payload: EditMessageRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    message = messaging_service.edit_message(db, current_user, message_id=message_id, content=payload.content)
    return success_response(MessageRead.model_validate(message).model_dump(mode="json"))


@router.put("/{message_id}/read")
def mark_message_read(
    message_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    message = messaging_service.mark_message_read(db, current_user, message_id=message_id)
    return success_response(MessageRead.model_validate(message).model_dump(mode="json"))
