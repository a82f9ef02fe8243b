"""
User, subscription status and subscription audit log models.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, utc_now


class SubscriptionPlatform(str, Enum):
    """Where a subscription originates."""

    APP_STORE = "app_store"
    PLAY_STORE = "play_store"
    STRIPE = "stripe"
    AMAZON = "amazon"
    MAC_APP_STORE = "mac_app_store"
    PROMOTIONAL = "promotional"
    CLERK = "clerk"  # Free tier provisioned at sign-up


class SubscriptionState(str, Enum):
    """Subscription status enumeration."""

    ACTIVE = "active"
    CANCELED = "canceled"
    EXPIRED = "expired"
    IN_GRACE = "in_grace"


class SubscriptionTier(str, Enum):
    """Subscription tier enumeration."""

    FREE = "free"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class User(Base, TimestampMixin):
    """Application user, keyed externally by the identity provider's user id."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    clerk_id: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    active_subscription_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    tags: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, clerk_id={self.clerk_id})>"


class SubscriptionStatus(Base, TimestampMixin):
    """Current entitlement state for a user (one row per user, never deleted)."""

    __tablename__ = "subscription_statuses"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    platform: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    product_id: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=SubscriptionState.ACTIVE.value, nullable=False, index=True
    )
    subscription_tier: Mapped[str] = mapped_column(
        String(20), default=SubscriptionTier.FREE.value, nullable=False, index=True
    )

    # Usage counters
    music_generations_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_reset_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    custom_music_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    last_verified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    canceled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Billing provider details
    entitlement_ids: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    store: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    environment: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    __table_args__ = (
        Index("ix_subscription_statuses_last_verified_at", "last_verified_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<SubscriptionStatus(user_id={self.user_id}, tier={self.subscription_tier}, "
            f"status={self.status})>"
        )


class SubscriptionLog(Base):
    """Append-only audit trail of billing events applied to a user."""

    __tablename__ = "subscription_logs"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    product_id: Mapped[str] = mapped_column(String(255), nullable=False)
    platform: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    subscription_tier: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    purchased_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_trial_conversion: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    entitlement_ids: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    store: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    environment: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    raw_event: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        Index("ix_subscription_logs_user_recorded", "user_id", "recorded_at"),
    )

    def __repr__(self) -> str:
        return f"<SubscriptionLog(user_id={self.user_id}, event_type={self.event_type})>"
