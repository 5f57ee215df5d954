from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from app.core.exceptions import PayloadError

SUBSCRIPTION_TYPE = "Subscription"

# Fields a Subscription event must carry before it may touch the store.
REQUIRED_SUBSCRIPTION_FIELDS = ("email",)


class KofiEvent(BaseModel):
    """Ko-fi webhook payload.

    Everything except the three payment flags is optional at parse time:
    token and type are checked by the webhook service, and the
    per-field fallbacks live in the reconciler.
    """

    model_config = ConfigDict(extra="ignore")

    verification_token: str | None = None
    message_id: str | None = None
    type: str | None = None
    email: str | None = None
    from_name: str | None = None
    tier_name: str | None = None
    amount: str | None = None
    currency: str | None = None
    kofi_transaction_id: str | None = None
    timestamp: str | None = None
    is_first_subscription_payment: bool = False
    is_subscription_payment: bool = False
    is_subscription_payment_failed: bool = False

    @field_validator(
        "verification_token",
        "message_id",
        "type",
        "email",
        "from_name",
        "tier_name",
        "amount",
        "currency",
        "kofi_transaction_id",
        "timestamp",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, value: Any) -> str | None:
        if value is None:
            return None
        if isinstance(value, bool):
            raise ValueError("expected a string")
        if isinstance(value, (int, float)):
            value = str(value)
        if isinstance(value, str):
            value = value.strip()
            return value or None
        raise ValueError("expected a string")

    @field_validator(
        "is_first_subscription_payment",
        "is_subscription_payment",
        "is_subscription_payment_failed",
        mode="before",
    )
    @classmethod
    def null_flag_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    @property
    def is_subscription(self) -> bool:
        return self.type == SUBSCRIPTION_TYPE

    def missing_subscription_fields(self) -> list[str]:
        return [name for name in REQUIRED_SUBSCRIPTION_FIELDS if not getattr(self, name)]


def parse_kofi_payload(payload: str | bytes | dict[str, Any] | None) -> KofiEvent:
    """Decode a webhook body into a KofiEvent.

    Accepts the JSON string Ko-fi puts in the ``data`` form field, a raw
    JSON body, or an already decoded mapping. A JSON object that only wraps
    ``data`` is unwrapped once.
    """
    if payload is None:
        raise PayloadError("Webhook body has no data field")

    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except (ValueError, UnicodeDecodeError) as exc:
            raise PayloadError(f"Webhook data is not valid JSON: {exc}") from exc

    if isinstance(payload, dict) and set(payload) == {"data"} and isinstance(payload["data"], str):
        return parse_kofi_payload(payload["data"])

    if not isinstance(payload, dict):
        raise PayloadError("Webhook data must be a JSON object")

    try:
        return KofiEvent.model_validate(payload)
    except ValidationError as exc:
        raise PayloadError(f"Webhook data failed validation: {exc.error_count()} error(s)") from exc
