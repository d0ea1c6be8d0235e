from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from service_connect.core.errors import success_response
from service_connect.core.rate_limit import enforce_auth_rate_limit
from service_connect.db.session import get_db
from service_connect.schemas.auth import AuthResponse, LoginRequest, RegisterRequest
from service_connect.schemas.users import UserPublic
from service_connect.services import auth_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", dependencies=[Depends(enforce_auth_rate_limit)])
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    logger.info("Auth register endpoint hit account_type=%s", payload.account_type)
    user, tokens = auth_service.register_user(db, payload)
    body = AuthResponse(user=UserPublic.model_validate(user), tokens=tokens)
    return success_response(body.model_dump(mode="json"), status_code=status.HTTP_201_CREATED)


@router.post("/login", dependencies=[Depends(enforce_auth_rate_limit)])
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    logger.info("Auth login endpoint hit")
    user, tokens = auth_service.authenticate_user(db, payload)
    body = AuthResponse(user=UserPublic.model_validate(user), tokens=tokens)
    return success_response(body.model_dump(mode="json"))
