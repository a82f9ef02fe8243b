"""
Anthropic Claude adapter for diary entries and song drafts.
"""

import asyncio
import json
import logging
import random
from dataclasses import dataclass
from typing import Optional

import anthropic

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

DIARY_SYSTEM_PROMPT = """You are a thoughtful diary writer. Based on the conversation transcript from a wellness check-in call, create a personal diary entry that:
- Captures the main thoughts, feelings, and experiences shared
- Writes in first person as if the user is writing their own diary
- Maintains an authentic, personal tone
- Focuses on emotional insights and meaningful moments
- Is concise but meaningful (200-400 words)
- Uses the same language as the conversation

Do not mention that this is from a call or conversation. Write as if the user is naturally reflecting on their day."""

SONG_SYSTEM_PROMPT = """You are a creative lyricist and music curator. Generate a song based on the diary entry provided.
Create lyrics with structure tags like [Verse], [Chorus], [Bridge], etc. Keep concise and emotional for a 1-2 minute song.
Choose an appropriate music genre/style (e.g., 'indie pop, acoustic, melancholic' or 'electronic, upbeat, synthpop').
Create a creative song title.
Use the same language as the diary entry for lyrics and title.

Respond with ONLY a JSON object of the form:
{"lyric": "...", "style": "...", "title": "..."}"""


class DiaryGenerationError(Exception):
    """Raised when the model call fails or returns unusable output."""


# Worth another attempt: throttling, overload and network trouble
_TRANSIENT_ERRORS = (
    anthropic.RateLimitError,
    anthropic.InternalServerError,
    anthropic.APIConnectionError,
)


async def _with_retries(call, attempts: int = 4, base_delay: float = 1.0):
    """Await ``call()``, retrying transient API errors with jittered exponential backoff."""
    for attempt in range(1, attempts + 1):
        try:
            return await call()
        except _TRANSIENT_ERRORS as e:
            if attempt == attempts:
                raise
            delay = base_delay * 2 ** (attempt - 1) + random.uniform(0, 1)
            logger.warning(
                "Anthropic %s (attempt %d/%d), retrying in %.1fs", type(e).__name__, attempt, attempts, delay,
            )
            await asyncio.sleep(delay)


@dataclass
class SongDraft:
    """Lyrics, style tags and title for a Suno custom-mode request."""

    lyric: str
    style: str
    title: str


def _extract_json(response_text: str) -> dict:
    # Handle markdown code blocks around the JSON
    if "```json" in response_text:
        response_text = response_text.split("```json")[1].split("```")[0]
    elif "```" in response_text:
        response_text = response_text.split("```")[1].split("```")[0]
    return json.loads(response_text.strip())


class DiaryWriter:
    """Turns call transcripts into diary entries and diary entries into song drafts."""

    def __init__(self, api_key: Optional[str] = None):
        api_key = api_key or settings.anthropic_api_key
        if api_key:
            self._client = anthropic.AsyncAnthropic(
                api_key=api_key,
                timeout=float(settings.anthropic_timeout),
            )
        else:
            self._client = None
        self._model = settings.anthropic_model
        self._max_tokens = settings.anthropic_max_tokens

    @property
    def configured(self) -> bool:
        return self._client is not None

    def _require_client(self):
        if self._client is None:
            raise DiaryGenerationError("ANTHROPIC_API_KEY is not configured")
        return self._client

    async def generate_diary(self, transcript: str) -> str:
        """Write a first-person diary entry from a call transcript."""
        client = self._require_client()
        try:
            message = await _with_retries(lambda: client.messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                system=DIARY_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": f"Conversation transcript:\n\n{transcript}"}],
            ))
        except anthropic.APIError as e:
            raise DiaryGenerationError(str(e)) from e

        content = message.content[0].text.strip() if message.content else ""
        if not content:
            raise DiaryGenerationError("Empty response from model")
        logger.debug(f"Generated diary entry ({len(content)} chars)")
        return content

    async def compose_song(self, diary_content: str) -> SongDraft:
        """Draft lyrics, style and title for a song based on a diary entry."""
        client = self._require_client()
        try:
            message = await _with_retries(lambda: client.messages.create(
                model=self._model,
                max_tokens=1000,
                system=SONG_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": diary_content}],
            ))
        except anthropic.APIError as e:
            raise DiaryGenerationError(str(e)) from e

        response_text = message.content[0].text if message.content else ""
        try:
            data = _extract_json(response_text)
        except (json.JSONDecodeError, IndexError) as e:
            raise DiaryGenerationError(f"Could not parse song data: {e}") from e

        if not isinstance(data, dict) or not all(data.get(k) for k in ("lyric", "style", "title")):
            raise DiaryGenerationError("Song data missing required fields (lyric, style, or title)")
        return SongDraft(lyric=data["lyric"], style=data["style"], title=data["title"])


# Singleton instance
diary_writer = DiaryWriter()
