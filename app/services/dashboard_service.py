"""
Dashboard aggregation, kept free of HTML so it can be tested directly.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from app.models.tier import OTHER_TIER, TIERS, Tier, get_tier
from app.schemas.subscriber import SubscriberRecord

NOT_AVAILABLE = "N/A"


@dataclass
class TierRow:
    tier: Tier
    subscribers: int


@dataclass
class SubscriberRow:
    name: str
    email: str
    tier: str
    messages: str
    amount: str
    subscribed_at: str
    last_payment: str


@dataclass
class DashboardView:
    total_active: int
    tiers: list[TierRow]
    other_count: int
    subscribers: list[SubscriberRow] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_active": self.total_active,
            "tiers": [
                {
                    "name": row.tier.name,
                    "price": row.tier.price,
                    "api": row.tier.api,
                    "messages": row.tier.messages,
                    "subscribers": row.subscribers,
                }
                for row in self.tiers
            ],
            "other_count": self.other_count,
            "subscribers": [vars(row) for row in self.subscribers],
        }


def format_timestamp(value: str | None) -> str:
    """Render an ISO timestamp as ``YYYY-MM-DD HH:MM UTC``; unparseable values pass through."""
    if not value:
        return NOT_AVAILABLE
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    if parsed.tzinfo is not None:
        return parsed.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    return parsed.strftime("%Y-%m-%d %H:%M")


def active_subscribers(records: list[SubscriberRecord]) -> list[SubscriberRecord]:
    return [r for r in records if r.active]


def count_by_tier(records: list[SubscriberRecord]) -> dict[str, int]:
    """Active subscribers per catalogue tier; anything else lands in ``Other``."""
    counts = {name: 0 for name in TIERS}
    counts[OTHER_TIER] = 0
    for record in active_subscribers(records):
        key = record.tier if record.tier in TIERS else OTHER_TIER
        counts[key] += 1
    return counts


def _subscriber_row(record: SubscriberRecord) -> SubscriberRow:
    tier = get_tier(record.tier)
    amount = f"{record.amount or NOT_AVAILABLE} {record.currency or ''}".strip()
    return SubscriberRow(
        name=record.name or "",
        email=record.email,
        tier=record.tier,
        messages=str(tier.messages) if tier else NOT_AVAILABLE,
        amount=amount,
        subscribed_at=format_timestamp(record.subscribed_at),
        last_payment=format_timestamp(record.last_payment),
    )


def build_dashboard(records: list[SubscriberRecord]) -> DashboardView:
    active = active_subscribers(records)
    counts = count_by_tier(records)
    # Stable sort keeps store order within a tier.
    ordered = sorted(active, key=lambda r: r.tier.casefold())
    return DashboardView(
        total_active=len(active),
        tiers=[TierRow(tier=tier, subscribers=counts[name]) for name, tier in TIERS.items()],
        other_count=counts[OTHER_TIER],
        subscribers=[_subscriber_row(r) for r in ordered],
    )
