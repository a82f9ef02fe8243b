"""
User provisioning from identity-provider sign-ups.

``provision_user`` is idempotent on the Clerk user id: a re-delivered
``user.created`` event finds the existing row and only fills in a missing
free subscription.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.plans import DEFAULT_TIER, FREE_PRODUCT_ID
from infrastructure.database.models import (
    SubscriptionPlatform,
    SubscriptionState,
    SubscriptionStatus,
    User,
)
from infrastructure.database.models.base import utc_now

logger = logging.getLogger(__name__)


@dataclass
class ProvisionResult:
    user: User
    subscription: SubscriptionStatus
    created: bool


class UserService:
    """Creates users and their free-tier subscription."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_clerk_id(self, clerk_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.clerk_id == clerk_id))
        return result.scalar_one_or_none()

    async def get_by_id(self, user_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def ensure_free_subscription(self, user: User) -> SubscriptionStatus:
        """Attach a free subscription unless the user already has an active one."""
        if user.active_subscription_id:
            result = await self.db.execute(
                select(SubscriptionStatus).where(SubscriptionStatus.id == user.active_subscription_id)
            )
            existing = result.scalar_one_or_none()
            if existing:
                return existing

        now = utc_now()
        subscription = SubscriptionStatus(
            user_id=user.id,
            platform=SubscriptionPlatform.CLERK.value,
            product_id=FREE_PRODUCT_ID,
            status=SubscriptionState.ACTIVE.value,
            subscription_tier=DEFAULT_TIER,
            music_generations_used=0,
            last_reset_at=now,
            last_verified_at=now,
        )
        self.db.add(subscription)
        await self.db.flush()

        user.active_subscription_id = subscription.id
        await self.db.flush()
        return subscription

    async def provision_user(
        self,
        clerk_id: str,
        email: Optional[str] = None,
        name: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> ProvisionResult:
        existing = await self.get_by_clerk_id(clerk_id)
        if existing:
            subscription = await self.ensure_free_subscription(existing)
            logger.info("User %s already exists, skipping creation", clerk_id)
            return ProvisionResult(user=existing, subscription=subscription, created=False)

        user = User(clerk_id=clerk_id, email=email, name=name, tags=tags)
        try:
            async with self.db.begin_nested():
                self.db.add(user)
                await self.db.flush()
        except IntegrityError:
            # Concurrent delivery inserted the same clerk_id first
            existing = await self.get_by_clerk_id(clerk_id)
            if existing is None:
                raise
            subscription = await self.ensure_free_subscription(existing)
            return ProvisionResult(user=existing, subscription=subscription, created=False)

        subscription = await self.ensure_free_subscription(user)
        logger.info("Provisioned user %s with free subscription", user.id)
        return ProvisionResult(user=user, subscription=subscription, created=True)
