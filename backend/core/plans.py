"""
Plan configuration for subscription tiers.

This module is the single source of truth for music generation limits and
billing product mappings.  It lives in core/ so both service and API layers
can import from it without creating circular dependencies.
"""

from datetime import datetime, timedelta
from typing import Optional

# Plan configuration with limits
PLANS = {
    "free": {
        "name": "Free",
        "price": 0,
        "music_generations_per_period": 7,
        "period_days": 30,
    },
    "weekly": {
        "name": "Premium Weekly",
        "price": 3.99,
        "music_generations_per_period": 25,
        "period_days": 7,
    },
    "monthly": {
        "name": "Premium Monthly",
        "price": 9.99,
        "music_generations_per_period": 90,
        "period_days": 30,
    },
    "yearly": {
        "name": "Premium Annual",
        "price": 99.99,
        "music_generations_per_period": 1000,
        "period_days": 365,
    },
}

DEFAULT_TIER = "free"
FREE_PRODUCT_ID = "free-tier"

# RevenueCat product identifiers -> plan tier
PRODUCT_TIERS = {
    "eveokee_premium_weekly": "weekly",
    "eveokee_premium_monthly": "monthly",
    "eveokee_premium_annual": "yearly",
    FREE_PRODUCT_ID: "free",
}

# RevenueCat store names -> subscription platform
STORE_PLATFORMS = {
    "APP_STORE": "app_store",
    "PLAY_STORE": "play_store",
    "STRIPE": "stripe",
    "AMAZON": "amazon",
    "MAC_APP_STORE": "mac_app_store",
    "PROMOTIONAL": "promotional",
}

# Statuses that keep a paid tier's entitlements
ENTITLED_STATUSES = ("active", "in_grace")


def get_plan(tier: str) -> dict:
    """Return the plan for *tier*, falling back to the free plan."""
    return PLANS.get(tier, PLANS[DEFAULT_TIER])


def tier_for_product(product_id: Optional[str]) -> str:
    """Map a billing product identifier to a plan tier (unknown products are free)."""
    if not product_id:
        return DEFAULT_TIER
    return PRODUCT_TIERS.get(product_id, DEFAULT_TIER)


def effective_tier(product_id: Optional[str], status: str) -> str:
    """Tier the user is entitled to right now: paid tiers only while active or in grace."""
    if status not in ENTITLED_STATUSES:
        return DEFAULT_TIER
    return tier_for_product(product_id)


def platform_for_store(store: Optional[str]) -> Optional[str]:
    return STORE_PLATFORMS.get(store) if store else None


def music_limit(tier: str, custom_limit: Optional[int] = None) -> int:
    """Effective generation limit: a manual override wins over the plan default."""
    if custom_limit is not None:
        return custom_limit
    return get_plan(tier)["music_generations_per_period"]


def reset_due(tier: str, last_reset_at: datetime, now: datetime) -> bool:
    """True when the usage window for *tier* has elapsed since *last_reset_at*."""
    period = timedelta(days=get_plan(tier)["period_days"])
    return now > last_reset_at + period
