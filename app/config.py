from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables with validation."""

    model_config = SettingsConfigDict(
        env_file=(str(Path(__file__).resolve().parents[1] / ".env"), ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    app_name: str = Field(default="Ko-fi Subscriber Hub", alias="APP_NAME")
    app_env: Literal["development", "staging", "production", "test"] = Field(
        default="production",
        alias="APP_ENV",
    )
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, ge=1, le=65535, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    api_v1_prefix: str = Field(default="/api/v1", alias="API_V1_PREFIX")

    kofi_verification_token: SecretStr = Field(
        default=SecretStr(""),
        alias="KOFI_VERIFICATION_TOKEN",
    )
    subscribers_file: Path = Field(
        default=Path("subscribers.json"),
        alias="SUBSCRIBERS_FILE",
    )
    reconcile_policy: Literal["lookup", "flags"] = Field(
        default="lookup",
        alias="RECONCILE_POLICY",
    )

    dashboard_auth: Literal["none", "basic"] = Field(default="none", alias="DASHBOARD_AUTH")
    dashboard_username: str = Field(default="admin", alias="DASHBOARD_USERNAME")
    dashboard_password: SecretStr = Field(
        default=SecretStr("admin"),
        alias="DASHBOARD_PASSWORD",
    )

    @field_validator("api_v1_prefix")
    @classmethod
    def validate_api_prefix(cls, value: str) -> str:
        """Ensure the API prefix starts with a slash and has no trailing slash."""
        normalized = value.strip()
        if not normalized.startswith("/"):
            raise ValueError("API_V1_PREFIX must start with '/'.")
        if len(normalized) > 1 and normalized.endswith("/"):
            normalized = normalized.rstrip("/")
        return normalized

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    @field_validator("reconcile_policy", "dashboard_auth", mode="before")
    @classmethod
    def lowercase_choice(cls, value: str) -> str:
        """Accept policy names in any case from the environment."""
        if isinstance(value, str):
            return value.strip().lower()
        return value


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()


settings: Settings = get_settings()
