from __future__ import annotations

import logging
from typing import Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from service_connect.core.identifiers import normalize_id
from service_connect.models import User

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: str) -> User | None:
    normalized = normalize_id(user_id)
    if normalized is None:
        return None
    return db.get(User, normalized)


def is_active(user: User | None) -> bool:
    return user is not None and bool(user.is_active)


def display_name(user: User) -> str:
    return user.full_name


def get_active_user(db: Session, user_id: str) -> User | None:
    user = get_user(db, user_id)
    if not is_active(user):
        logger.debug("User lookup found no active user user_id=%s", user_id)
        return None
    return user


def fetch_users_by_ids(db: Session, user_ids: Iterable[str]) -> list[User]:
    normalized_ids = [user_id.strip() for user_id in user_ids if isinstance(user_id, str) and user_id.strip()]
    if not normalized_ids:
        return []

    deduped_ids = list(dict.fromkeys(normalized_ids))
    rows = db.scalars(select(User).where(User.id.in_(deduped_ids))).all()
    logger.debug("Fetched users requested=%s returned=%s", len(deduped_ids), len(rows))
    return list(rows)


def serialize_participant(user: User | None, *, user_id: str, fallback_name: str) -> dict[str, object]:
    """Public profile of a conversation participant or message sender.

    ``fallback_name`` is the name snapshot stored on the conversation or
    message; it is what callers see when the account no longer resolves.
    """
    if user is None:
        return {"id": user_id, "name": fallback_name, "first_name": None, "last_name": None, "avatar": None}
    return {
        "id": user.id,
        "name": fallback_name,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "avatar": user.avatar,
    }


def users_by_id(db: Session, user_ids: Iterable[str]) -> Mapping[str, User]:
    return {user.id: user for user in fetch_users_by_ids(db, user_ids)}
