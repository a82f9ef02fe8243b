"""
Subscription state and music generation quota.

Billing events from RevenueCat overwrite the user's subscription snapshot and
append to the audit log.  Quota bookkeeping (record, release) runs against the
same snapshot under a row lock so a concurrent generation cannot push usage
past the plan limit.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.revenuecat import RevenueCatEvent, RevenueCatEventType
from core.plans import effective_tier, get_plan, music_limit, platform_for_store, reset_due
from infrastructure.database.models import (
    SubscriptionLog,
    SubscriptionState,
    SubscriptionStatus,
    User,
)
from infrastructure.database.models.base import as_utc, utc_now

logger = logging.getLogger(__name__)

USAGE_LIMIT_REACHED = "USAGE_LIMIT_REACHED"
NO_SUBSCRIPTION = "NO_SUBSCRIPTION"

_ACTIVE_EVENT_TYPES = frozenset({
    RevenueCatEventType.INITIAL_PURCHASE,
    RevenueCatEventType.RENEWAL,
    RevenueCatEventType.UNCANCELLATION,
    RevenueCatEventType.SUBSCRIPTION_UNPAUSED,
    RevenueCatEventType.SUBSCRIPTION_RESUMED,
})


class BillingError(Exception):
    """Base exception for billing operations."""


class UserNotFoundError(BillingError):
    pass


@dataclass
class UsageResult:
    """Outcome of a quota check-and-increment."""

    success: bool
    current_usage: int
    limit: int
    remaining_quota: int
    tier: str
    code: Optional[str] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None


def derive_status(event_type: str, entitlement_ids: Optional[list[str]]) -> str:
    """Subscription status implied by a billing event."""
    has_entitlements = bool(entitlement_ids)
    if event_type in _ACTIVE_EVENT_TYPES:
        return SubscriptionState.ACTIVE.value
    if event_type == RevenueCatEventType.CANCELLATION:
        return SubscriptionState.CANCELED.value
    if event_type == RevenueCatEventType.EXPIRATION:
        return SubscriptionState.EXPIRED.value
    if event_type == RevenueCatEventType.BILLING_ISSUE:
        return SubscriptionState.IN_GRACE.value
    # PRODUCT_CHANGE and everything else follow the entitlements
    return SubscriptionState.ACTIVE.value if has_entitlements else SubscriptionState.EXPIRED.value


class BillingService:
    """Applies billing events and enforces generation quotas."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_user(self, user_id: str) -> User:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if not user:
            raise UserNotFoundError(f"User {user_id} not found")
        return user

    async def _locked_subscription(self, user: User) -> Optional[SubscriptionStatus]:
        if not user.active_subscription_id:
            return None
        result = await self.db.execute(
            select(SubscriptionStatus)
            .where(SubscriptionStatus.id == user.active_subscription_id)
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def apply_billing_event(
        self,
        user_id: str,
        event: RevenueCatEvent,
        raw_event: Optional[dict[str, Any]] = None,
    ) -> SubscriptionStatus:
        """Overwrite the subscription snapshot from *event* and append an audit row."""
        user = await self._get_user(user_id)
        now = utc_now()

        product_id = event.effective_product_id
        entitlement_ids = event.resolved_entitlement_ids
        status = derive_status(event.type, entitlement_ids)
        tier = effective_tier(product_id, status)
        platform = platform_for_store(event.store)
        expires_at = event.expires_at

        subscription = await self._locked_subscription(user)
        if subscription is None:
            subscription = SubscriptionStatus(
                user_id=user.id,
                product_id=product_id,
                status=status,
                subscription_tier=tier,
                music_generations_used=0,
                last_reset_at=now,
                last_verified_at=now,
            )
            self.db.add(subscription)
            await self.db.flush()
            user.active_subscription_id = subscription.id

        previous_status = subscription.status
        if platform:
            subscription.platform = platform
        subscription.product_id = product_id
        subscription.status = status
        subscription.subscription_tier = tier
        if expires_at is not None:
            subscription.expires_at = expires_at
        if status == SubscriptionState.CANCELED.value and previous_status != status:
            subscription.canceled_at = now
        elif status == SubscriptionState.ACTIVE.value:
            subscription.canceled_at = None
        subscription.entitlement_ids = entitlement_ids
        subscription.store = event.store
        subscription.environment = event.environment
        subscription.last_verified_at = now

        self.db.add(
            SubscriptionLog(
                user_id=user.id,
                event_type=event.type.value,
                product_id=product_id,
                platform=platform,
                subscription_tier=tier,
                status=status,
                expires_at=expires_at,
                purchased_at=event.purchased_at,
                is_trial_conversion=event.is_trial_conversion,
                entitlement_ids=entitlement_ids,
                store=event.store,
                environment=event.environment,
                raw_event=raw_event,
                recorded_at=now,
            )
        )
        await self.db.flush()

        logger.info(
            "Applied %s for user %s: status=%s tier=%s product=%s",
            event.type.value, user.id, status, tier, product_id,
        )
        return subscription

    def _apply_lazy_reset(self, subscription: SubscriptionStatus, now: datetime) -> None:
        if reset_due(subscription.subscription_tier, as_utc(subscription.last_reset_at), now):
            subscription.music_generations_used = 0
            subscription.last_reset_at = now
            subscription.last_verified_at = now

    async def record_music_generation(self, user_id: str) -> UsageResult:
        """Check the quota and count one generation, atomically."""
        user = await self._get_user(user_id)
        subscription = await self._locked_subscription(user)
        if subscription is None:
            return UsageResult(
                success=False, code=NO_SUBSCRIPTION,
                current_usage=0, limit=0, remaining_quota=0, tier="free",
            )

        now = utc_now()
        self._apply_lazy_reset(subscription, now)

        tier = subscription.subscription_tier
        limit = music_limit(tier, subscription.custom_music_limit)
        used = subscription.music_generations_used
        period_start = as_utc(subscription.last_reset_at)
        period_end = period_start + timedelta(days=get_plan(tier)["period_days"])

        if used >= limit:
            await self.db.flush()
            return UsageResult(
                success=False,
                code=USAGE_LIMIT_REACHED,
                current_usage=used,
                limit=limit,
                remaining_quota=0,
                tier=tier,
                period_start=period_start,
                period_end=period_end,
            )

        subscription.music_generations_used = used + 1
        subscription.last_verified_at = now
        await self.db.flush()
        return UsageResult(
            success=True,
            current_usage=used + 1,
            limit=limit,
            remaining_quota=max(0, limit - (used + 1)),
            tier=tier,
            period_start=period_start,
            period_end=period_end,
        )

    async def release_generation_credits(self, user_id: str, credits: int = 1) -> Optional[int]:
        """Give back *credits* after a failed generation; usage never drops below 0.

        Returns the new usage, or None when the user has no subscription.
        """
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if not user:
            return None
        subscription = await self._locked_subscription(user)
        if subscription is None:
            return None

        subscription.music_generations_used = max(0, subscription.music_generations_used - credits)
        subscription.last_verified_at = utc_now()
        await self.db.flush()
        return subscription.music_generations_used
