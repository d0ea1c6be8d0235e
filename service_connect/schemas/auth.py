from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from service_connect.schemas.users import AccountType, UserPublic

PHONE_PATTERN = r"^[0-9+\-\s()]+$"


class RegisterRequest(BaseModel):
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    phone: str = Field(min_length=6, max_length=32, pattern=PHONE_PATTERN)
    password: str = Field(min_length=6, max_length=128)
    account_type: AccountType

    @field_validator("first_name", "last_name", "phone", mode="before")
    @classmethod
    def strip_whitespace(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


class LoginRequest(BaseModel):
    phone: str = Field(min_length=6, max_length=32, pattern=PHONE_PATTERN)
    password: str = Field(min_length=6, max_length=128)

    @field_validator("phone", mode="before")
    @classmethod
    def strip_phone(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


class AccessToken(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class AuthResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user: UserPublic
    tokens: AccessToken
