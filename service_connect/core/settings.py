from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    debug: bool = False
    app_name: str = "Service Connect"
    api_v1_prefix: str = "/v1"
    database_url: str = "sqlite:///./service_connect.db"

    # No default: a process without a signing secret must not start.
    secret_key: str = Field(min_length=16)
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7

    cors_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173"]
    )

    message_max_length: int = 1000
    last_message_preview_length: int = 100
    search_result_limit: int = 20
    auth_rate_limit_window_seconds: int = 60
    auth_rate_limit_max_requests: int = 12

    @field_validator("secret_key")
    @classmethod
    def reject_blank_secret(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("SECRET_KEY must not be blank")
        return value

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, list):
            return value
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return []


@lru_cache
def get_settings() -> Settings:
    return Settings()
