"""
Domain models for the subscriber hub.
"""
from app.models.tier import OTHER_TIER, TIERS, UNKNOWN_TIER, Tier, get_tier

__all__ = ["OTHER_TIER", "TIERS", "UNKNOWN_TIER", "Tier", "get_tier"]
