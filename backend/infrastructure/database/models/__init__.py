"""
SQLAlchemy database models.
"""

from .base import Base, TimestampMixin
from .blog import BlogPost, BlogPostRevision, BlogPostStatus
from .call import CallCadence, CallJob, CallJobStatus, CallSession, CallSettings
from .media import Diary, GenerationStatus, Music, MusicVideo
from .user import (
    SubscriptionLog,
    SubscriptionPlatform,
    SubscriptionState,
    SubscriptionStatus,
    SubscriptionTier,
    User,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "User",
    "SubscriptionStatus",
    "SubscriptionLog",
    "SubscriptionPlatform",
    "SubscriptionState",
    "SubscriptionTier",
    "Diary",
    "Music",
    "MusicVideo",
    "GenerationStatus",
    "CallSettings",
    "CallJob",
    "CallSession",
    "CallJobStatus",
    "CallCadence",
    "BlogPost",
    "BlogPostRevision",
    "BlogPostStatus",
]
