from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from service_connect.core.errors import APIError, ConflictError
from service_connect.core.security import create_access_token, hash_password, verify_password
from service_connect.models import User
from service_connect.schemas.auth import AccessToken, LoginRequest, RegisterRequest

logger = logging.getLogger(__name__)


def _issue_token(user: User) -> AccessToken:
    token, expires_in = create_access_token(subject=user.id)
    return AccessToken(access_token=token, token_type="bearer", expires_in=expires_in)


def register_user(db: Session, payload: RegisterRequest) -> tuple[User, AccessToken]:
    existing_user = db.scalar(select(User).where(User.phone == payload.phone))
    if existing_user is not None:
        logger.warning("Registration rejected, phone already in use")
        raise ConflictError("An account with this phone number already exists", code="phone_taken")

    user = User(
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
        password_hash=hash_password(payload.password),
        account_type=payload.account_type,
        last_login_at=datetime.now(UTC),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User registered user_id=%s account_type=%s", user.id, user.account_type)
    return user, _issue_token(user)


def authenticate_user(db: Session, payload: LoginRequest) -> tuple[User, AccessToken]:
    user = db.scalar(select(User).where(User.phone == payload.phone))
    if user is None or not verify_password(payload.password, user.password_hash):
        raise APIError(status_code=401, code="invalid_credentials", message="Invalid phone number or password")
    if not user.is_active:
        logger.warning("Login attempt on deactivated account user_id=%s", user.id)
        raise APIError(status_code=401, code="account_disabled", message="This account has been deactivated")

    user.last_login_at = datetime.now(UTC)
    db.commit()
    db.refresh(user)
    return user, _issue_token(user)


def deactivate_user(db: Session, user: User) -> User:
    user.is_active = False
    db.commit()
    logger.info("User deactivated user_id=%s", user.id)
    return user
