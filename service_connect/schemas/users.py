from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

AccountType = Literal["individual", "provider"]


class UserPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    first_name: str
    last_name: str
    full_name: str
    account_type: AccountType
    avatar: str | None = None
    created_at: datetime


class UserProfile(UserPublic):
    phone: str
    bio: str
    last_login_at: datetime | None = None
