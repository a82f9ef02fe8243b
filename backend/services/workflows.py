"""
Background workflows started by webhooks.

Webhook handlers never wait for these: they schedule a workflow on the
in-process task queue and respond.  The queue task id doubles as the
deduplication key, so a re-delivered webhook cannot start the same workflow
twice while the first run is in flight.

Each workflow opens its own database sessions and commits its own work.
"""

import logging
from typing import Any, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from adapters.ai.diary_writer import DiaryGenerationError, DiaryWriter, diary_writer
from adapters.music.suno_adapter import SONGS_PER_REQUEST, SunoAdapter, SunoError, suno_adapter
from infrastructure.config.settings import settings
from infrastructure.database.connection import async_session_maker
from infrastructure.database.models import Diary
from infrastructure.database.models.base import utc_now
from services.billing import BillingService
from services.calls import CallService
from services.music import MusicService
from services.task_queue import TaskQueue, task_queue

logger = logging.getLogger(__name__)

TRANSCRIPT_CHAR_LIMIT = 12000
TRUNCATION_NOTICE = "\n\n[Transcript truncated due to length]"
NO_TRANSCRIPT_ERROR = "No transcript available"

_SPEAKER_LABELS = {"user": "User", "assistant": "Assistant", "bot": "Assistant"}


def _message_text(content: Any) -> str:
    """Message content is either a string or a list of {type: "text", text} parts."""
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts = [
            part.get("text", "")
            for part in content
            if isinstance(part, dict) and part.get("type") == "text" and isinstance(part.get("text"), str)
        ]
        return " ".join(p.strip() for p in parts if p.strip())
    return ""


def build_transcript(transcript: Any, messages: Any) -> str:
    """Prefer the provider's transcript; otherwise rebuild it from chat messages."""
    if isinstance(transcript, str) and transcript.strip():
        return transcript.strip()
    if not isinstance(messages, list):
        return ""

    lines = []
    for message in messages:
        if not isinstance(message, dict):
            continue
        label = _SPEAKER_LABELS.get(message.get("role"))
        if label is None:
            continue
        text = _message_text(message.get("content", message.get("message")))
        if text:
            lines.append(f"{label}: {text}")
    return "\n".join(lines)


def truncate_transcript(text: str, limit: int = TRANSCRIPT_CHAR_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_NOTICE


class WorkflowOrchestrator:
    """Schedules and runs the diary, music and lyric workflows."""

    def __init__(
        self,
        queue: Optional[TaskQueue] = None,
        session_factory: Optional[Callable[[], AsyncSession]] = None,
        writer: Optional[DiaryWriter] = None,
        suno: Optional[SunoAdapter] = None,
    ):
        self.queue = queue or task_queue
        self.session_factory = session_factory or async_session_maker
        self.writer = writer or diary_writer
        self.suno = suno or suno_adapter

    # ── Scheduling ──────────────────────────────────────────────────────────

    async def schedule_diary(self, session_id: str, vapi_call_id: str) -> Optional[str]:
        """Queue diary generation for a finished call; returns the task id or None."""
        task_id = f"diary:{vapi_call_id}"
        try:
            return await self.queue.enqueue(task_id, self.run_diary_workflow(session_id))
        except Exception as e:
            logger.error("Failed to schedule diary workflow %s: %s", task_id, e, exc_info=True)
            return None

    async def schedule_lyrics(self, task_id: str, index: int, music_id: str, audio_id: str) -> Optional[str]:
        queue_id = f"lyrics:{task_id}:{index}"
        try:
            return await self.queue.enqueue(queue_id, self.run_lyrics_workflow(task_id, music_id, audio_id))
        except Exception as e:
            logger.error("Failed to schedule lyric alignment %s: %s", queue_id, e, exc_info=True)
            return None

    # ── Workflows ───────────────────────────────────────────────────────────

    async def run_diary_workflow(self, session_id: str) -> Optional[str]:
        """Write a diary entry from the call transcript, then start music generation.

        Returns the diary id, or None when no diary was written.
        """
        async with self.session_factory() as db:
            calls = CallService(db)
            session = await calls.get_session(session_id)
            if session is None:
                logger.warning("Call session %s not found, skipping diary generation", session_id)
                return None
            if session.diary_id:
                logger.info("Call session %s already has diary %s", session_id, session.diary_id)
                return session.diary_id

            meta = session.meta or {}
            transcript = build_transcript(meta.get("transcript"), meta.get("messages"))
            if not transcript:
                logger.warning("No transcript available for call session %s", session_id)
                await calls.record_diary_error(session, NO_TRANSCRIPT_ERROR)
                await db.commit()
                return None

            try:
                content = await self.writer.generate_diary(truncate_transcript(transcript))
            except DiaryGenerationError as e:
                logger.error("Diary generation failed for call session %s: %s", session_id, e)
                await calls.record_diary_error(session, f"Failed to generate diary: {e}")
                await db.commit()
                return None

            user_id = session.user_id
            diary = Diary(user_id=user_id, content=content, date=session.ended_at or utc_now())
            db.add(diary)
            await db.flush()
            await calls.attach_diary(session, diary.id)
            await db.commit()
            diary_id = diary.id

        logger.info("Created diary %s from call session %s", diary_id, session_id)
        await self.start_music_generation(user_id, diary_id, content)
        return diary_id

    async def start_music_generation(self, user_id: str, diary_id: str, diary_content: str) -> Optional[str]:
        """Charge one generation, ask Suno for songs and stage pending rows.

        The charged generation is released again when the request never
        reaches Suno.  Returns the Suno task id, or None.
        """
        async with self.session_factory() as db:
            usage = await BillingService(db).record_music_generation(user_id)
            await db.commit()
        if not usage.success:
            logger.info(
                "Music generation skipped for user %s: %s (%d/%d used)",
                user_id, usage.code, usage.current_usage, usage.limit,
            )
            return None

        try:
            callback_url = settings.suno_music_callback_url
            if not callback_url:
                raise SunoError("SUNO_CALLBACK_URL or SITE_URL must be configured")
            draft = await self.writer.compose_song(diary_content)
            task_id = await self.suno.request_generation(
                prompt=draft.lyric,
                style=draft.style,
                title=draft.title,
                callback_url=callback_url,
            )
        except (DiaryGenerationError, SunoError) as e:
            logger.error("Music generation failed for diary %s: %s", diary_id, e)
            async with self.session_factory() as db:
                await BillingService(db).release_generation_credits(user_id, 1)
                await db.commit()
            return None

        async with self.session_factory() as db:
            await MusicService(db).create_pending_music(
                user_id=user_id,
                diary_id=diary_id,
                task_id=task_id,
                prompt=draft.lyric,
                model=settings.suno_model,
                track_count=SONGS_PER_REQUEST,
            )
            await db.commit()

        logger.info("Started music generation %s for diary %s", task_id, diary_id)
        return task_id

    async def run_lyrics_workflow(self, task_id: str, music_id: str, audio_id: str) -> bool:
        """Fetch word timings for a ready track; failures are logged and dropped."""
        try:
            alignment = await self.suno.get_timestamped_lyrics(task_id, audio_id)
        except SunoError as e:
            logger.warning("Lyric alignment failed for music %s (task %s): %s", music_id, task_id, e)
            return False

        async with self.session_factory() as db:
            stored = await MusicService(db).store_lyric_alignment(music_id, alignment.to_dict())
            await db.commit()
        return stored


# Singleton instance
workflow_orchestrator = WorkflowOrchestrator()
