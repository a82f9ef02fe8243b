"""
Music video completion and failure handling.

Failure is idempotent: credits are refunded only when the video was still
pending, so retried failure callbacks never refund twice.  A ready video is
never downgraded to failed.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.models import GenerationStatus, Music, MusicVideo
from services.billing import BillingService

logger = logging.getLogger(__name__)


@dataclass
class VideoFailure:
    found: bool
    refunded: bool = False
    already_failed: bool = False
    already_ready: bool = False


class VideoService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_task_id(self, kie_task_id: str) -> Optional[MusicVideo]:
        result = await self.db.execute(
            select(MusicVideo).where(MusicVideo.kie_task_id == kie_task_id).limit(1)
        )
        return result.scalar_one_or_none()

    async def fail_video(self, kie_task_id: str, error_message: Optional[str] = None) -> VideoFailure:
        video = await self.get_by_task_id(kie_task_id)
        if video is None:
            logger.warning("No video record found for kieTaskId %s", kie_task_id)
            return VideoFailure(found=False)

        if video.status == GenerationStatus.FAILED.value:
            logger.info("Video %s already marked as failed, skipping refund", kie_task_id)
            return VideoFailure(found=True, already_failed=True)
        if video.status == GenerationStatus.READY.value:
            logger.warning("Ignoring failure for video %s that is already ready", kie_task_id)
            return VideoFailure(found=True, already_ready=True)

        should_refund = video.status == GenerationStatus.PENDING.value
        video.status = GenerationStatus.FAILED.value
        video.meta = {**(video.meta or {}), "errorMessage": error_message}

        if should_refund and video.credits_charged:
            usage = await BillingService(self.db).release_generation_credits(
                video.user_id, video.credits_charged
            )
            logger.info(
                "Refunded %d credits for failed video %s (usage now %s)",
                video.credits_charged, kie_task_id, usage,
            )

        await self.db.flush()
        return VideoFailure(found=True, refunded=should_refund and bool(video.credits_charged))

    async def complete_video(
        self,
        kie_task_id: str,
        video_path: str,
        duration: Optional[float] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Optional[MusicVideo]:
        """Mark the video ready and make it the track's primary video."""
        video = await self.get_by_task_id(kie_task_id)
        if video is None:
            logger.warning("No video record found for kieTaskId %s", kie_task_id)
            return None

        video.video_path = video_path
        if isinstance(duration, (int, float)):
            video.duration = float(duration)
        video.status = GenerationStatus.READY.value
        video.meta = metadata

        result = await self.db.execute(select(Music).where(Music.id == video.music_id))
        music = result.scalar_one_or_none()
        if music:
            music.primary_video_id = video.id

        await self.db.flush()
        return video
