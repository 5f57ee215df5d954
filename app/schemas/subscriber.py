from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.tier import UNKNOWN_TIER


class SubscriberRecord(BaseModel):
    # Unknown keys written by older deployments survive a load/save cycle.
    model_config = ConfigDict(extra="allow")

    id: str | None = None
    email: str
    name: str | None = None
    tier: str = UNKNOWN_TIER
    amount: str | None = None
    currency: str | None = None
    subscribed_at: str
    last_payment: str | None = None
    active: bool = True
    failed_at: str | None = None

    @field_validator("amount", "id", mode="before")
    @classmethod
    def number_to_str(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("tier", mode="before")
    @classmethod
    def blank_tier(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return UNKNOWN_TIER
        return value


class SubscriberDocument(BaseModel):
    subscribers: list[SubscriberRecord] = Field(default_factory=list)
