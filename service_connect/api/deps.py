from __future__ import annotations

import logging

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from service_connect.core.errors import APIError
from service_connect.core.security import decode_access_token
from service_connect.db.session import get_db
from service_connect.models import User
from service_connect.services import identity_service

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/v1/auth/login")


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    payload = decode_access_token(token)
    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        logger.warning("Token subject is invalid")
        raise APIError(status_code=401, code="invalid_token", message="Token payload is invalid")

    user = identity_service.get_user(db, subject)
    if user is None:
        logger.warning("Token user_id=%s not found", subject)
        raise APIError(status_code=401, code="invalid_token", message="Token user was not found")
    if not identity_service.is_active(user):
        logger.warning("Token user_id=%s is deactivated", subject)
        raise APIError(status_code=401, code="account_disabled", message="This account has been deactivated")

    return user
