"""
Service layer for business logic.

Services wrap an ``AsyncSession`` and flush their changes; the caller owns
the transaction and commits.
"""

from services.billing import BillingService
from services.blog import BlogService
from services.calls import CallService
from services.music import MusicService
from services.users import UserService
from services.videos import VideoService

__all__ = [
    "BillingService",
    "BlogService",
    "CallService",
    "MusicService",
    "UserService",
    "VideoService",
]
