"""
Generated music records: pending rows for a Suno task and their completion.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.generation import SunoTrack
from infrastructure.database.models import Diary, GenerationStatus, Music

logger = logging.getLogger(__name__)


@dataclass
class SunoCompletion:
    """What a completion callback changed."""

    found: bool = True
    ready: list[Music] = field(default_factory=list)
    failed: list[Music] = field(default_factory=list)
    skipped: list[Music] = field(default_factory=list)

    @property
    def already_processed(self) -> bool:
        return self.found and not self.ready and not self.failed and bool(self.skipped)


def _sort_key(music: Music) -> int:
    return music.music_index if music.music_index is not None else 2**53 - 1


class MusicService:
    """Creates and completes music rows keyed by (task_id, music_index)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_task(self, task_id: str) -> list[Music]:
        result = await self.db.execute(select(Music).where(Music.task_id == task_id))
        return sorted(result.scalars().all(), key=_sort_key)

    async def get(self, music_id: str) -> Optional[Music]:
        result = await self.db.execute(select(Music).where(Music.id == music_id))
        return result.scalar_one_or_none()

    async def create_pending_music(
        self,
        user_id: str,
        diary_id: Optional[str],
        task_id: str,
        prompt: Optional[str] = None,
        model: Optional[str] = None,
        track_count: int = 2,
    ) -> list[Music]:
        """Insert one pending row per expected track; returns existing rows on repeat calls."""
        if track_count <= 0:
            raise ValueError("track_count must be positive")

        existing = await self.get_by_task(task_id)
        if existing:
            return existing

        rows = []
        for index in range(track_count):
            music = Music(
                user_id=user_id,
                diary_id=diary_id,
                task_id=task_id,
                music_index=index,
                status=GenerationStatus.PENDING.value,
                lyric=prompt,
                meta={"model": model} if model else None,
            )
            self.db.add(music)
            rows.append(music)
        await self.db.flush()
        return rows

    async def complete_suno_task(self, task_id: str, tracks: list[SunoTrack]) -> SunoCompletion:
        """Match tracks to rows by index; rows already ready/failed are left untouched."""
        rows = await self.get_by_task(task_id)
        if not rows:
            logger.warning("No pending music records found for taskId %s", task_id)
            return SunoCompletion(found=False)

        if len(tracks) > len(rows):
            logger.warning(
                "Received %d tracks but only %d music records for taskId %s",
                len(tracks), len(rows), task_id,
            )

        completion = SunoCompletion()
        for position, music in enumerate(rows):
            if music.status in GenerationStatus.terminal():
                completion.skipped.append(music)
                continue

            track = tracks[position] if position < len(tracks) else None
            if track is None:
                music.status = GenerationStatus.FAILED.value
                completion.failed.append(music)
                continue

            music.status = GenerationStatus.READY.value
            music.meta = {**(music.meta or {}), **track.to_metadata()}
            if track.id:
                music.audio_id = track.id
            music.audio_url = track.audio_url or track.source_audio_url or music.audio_url
            music.image_url = track.image_url or track.source_image_url or music.image_url
            if track.duration is not None:
                music.duration = track.duration
            if track.title:
                music.title = track.title
            if track.prompt:
                music.lyric = track.prompt
            completion.ready.append(music)

        first = next((m for m in completion.ready if m.music_index == 0), None)
        if first is not None and first.diary_id:
            result = await self.db.execute(select(Diary).where(Diary.id == first.diary_id))
            diary = result.scalar_one_or_none()
            if diary:
                diary.primary_music_id = first.id

        await self.db.flush()
        logger.info(
            "Suno task %s completed: %d ready, %d failed, %d already processed",
            task_id, len(completion.ready), len(completion.failed), len(completion.skipped),
        )
        return completion

    async def store_lyric_alignment(self, music_id: str, alignment: dict[str, Any]) -> bool:
        music = await self.get(music_id)
        if music is None:
            logger.warning("Music %s not found for lyric alignment", music_id)
            return False
        music.lyric_with_time = alignment
        await self.db.flush()
        return True
