from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from service_connect.core.errors import APIError
from service_connect.core.settings import get_settings

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    is_valid = pwd_context.verify(plain_password, hashed_password)
    logger.debug("Password verification result=%s", is_valid)
    return is_valid


def create_access_token(*, subject: str, expires_delta: timedelta | None = None) -> tuple[str, int]:
    """Return the signed token and its lifetime in seconds."""
    settings = get_settings()
    now = datetime.now(UTC)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    expire = now + lifetime
    payload = {"sub": subject, "type": "access", "iat": int(now.timestamp()), "exp": int(expire.timestamp())}
    logger.debug("Creating access token subject=%s expires_at=%s", subject, expire.isoformat())
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, int(lifetime.total_seconds())


def decode_access_token(token: str) -> dict[str, object]:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError as exc:
        logger.info("Access token expired")
        raise APIError(status_code=401, code="token_expired", message="Access token has expired") from exc
    except JWTError as exc:
        logger.warning("Access token decode failed")
        raise APIError(status_code=401, code="invalid_token", message="Invalid access token") from exc

    if payload.get("type") != "access":
        logger.warning("Invalid token type in access token payload")
        raise APIError(status_code=401, code="invalid_token", message="Invalid token type")

    return payload
