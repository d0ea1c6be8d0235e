from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from service_connect.api.deps import get_current_user
from service_connect.core.errors import success_response
from service_connect.db.session import get_db
from service_connect.models import User
from service_connect.schemas.users import UserProfile
from service_connect.services import auth_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return success_response(UserProfile.model_validate(current_user).model_dump(mode="json"))


@router.delete("/me")
def deactivate_me(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    logger.info("Account deactivation endpoint hit user_id=%s", current_user.id)
    auth_service.deactivate_user(db, current_user)
    return success_response({"ok": True})
