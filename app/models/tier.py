"""Fixed tier catalogue for Ko-fi memberships."""
from dataclasses import dataclass

UNKNOWN_TIER = "Unknown"
OTHER_TIER = "Other"


@dataclass(frozen=True)
class Tier:
    name: str
    price: str
    api: str
    messages: int


TIERS: dict[str, Tier] = {
    tier.name: tier
    for tier in (
        Tier(name="Basic", price="$10", api="No API", messages=0),
        Tier(name="Plus", price="$20", api="$5 API tier", messages=50),
        Tier(name="Platinum", price="$30", api="$10 API tier", messages=125),
        Tier(name="Supporter", price="$50", api="$20 API tier", messages=300),
        Tier(name="Supporter Ultimate", price="$100", api="$40 API tier", messages=700),
    )
}


def get_tier(name: str | None) -> Tier | None:
    if not name:
        return None
    return TIERS.get(name)
