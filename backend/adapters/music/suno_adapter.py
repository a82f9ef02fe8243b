"""
Suno music generation client.

Two endpoints are used:

- ``POST /generate`` starts a custom-mode generation of two tracks.  Suno calls
  back to ``/callback/suno-music-generation`` when the tracks are ready.
- ``POST /generate/get-timestamped-lyrics`` returns word-level lyric alignment
  for a finished track.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

SONGS_PER_REQUEST = 2


class SunoError(Exception):
    """Raised when the Suno API rejects a request or returns an unusable response."""


@dataclass
class LyricAlignment:
    """Word-level lyric timing for one track."""

    aligned_words: list[dict[str, Any]] = field(default_factory=list)
    waveform_data: list[float] = field(default_factory=list)
    hoot_cer: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "alignedWords": self.aligned_words,
            "waveformData": self.waveform_data,
            "hootCer": self.hoot_cer,
        }


class SunoAdapter:
    """Thin async client for the Suno API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        self.api_key = api_key or settings.suno_api_key
        self.base_url = (base_url or settings.suno_api_base_url).rstrip("/")
        self.timeout = timeout or settings.suno_timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        if not self.api_key:
            raise SunoError("SUNO_API_KEY is not configured")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}{path}",
                    json=payload,
                    headers=self._headers(),
                )
        except httpx.TimeoutException as e:
            raise SunoError(f"Suno API request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise SunoError(f"Suno API request failed: {e}") from e

        if response.status_code != 200:
            raise SunoError(
                f"Suno API request failed: {response.status_code} - {response.text[:500]}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise SunoError("Suno API returned invalid JSON") from e

        if body.get("code") != 200:
            raise SunoError(f"Suno API returned error code {body.get('code')}: {body.get('msg')}")
        return body

    async def request_generation(
        self,
        prompt: str,
        style: str,
        title: str,
        callback_url: str,
    ) -> str:
        """Start a custom-mode generation and return Suno's task id."""
        body = await self._post(
            "/generate",
            {
                "prompt": prompt,
                "style": style,
                "title": title,
                "customMode": True,
                "instrumental": False,
                "model": settings.suno_model,
                "callBackUrl": callback_url,
            },
        )
        task_id = (body.get("data") or {}).get("taskId")
        if not task_id:
            raise SunoError("Suno API response missing taskId")

        logger.info("Suno generation requested: task_id=%s", task_id)
        return task_id

    async def get_timestamped_lyrics(self, task_id: str, audio_id: str) -> LyricAlignment:
        """Fetch word-level lyric timing for one generated track."""
        body = await self._post(
            "/generate/get-timestamped-lyrics",
            {"taskId": task_id, "audioId": audio_id},
        )
        data = body.get("data") or {}
        words = [
            {
                "word": w.get("word", ""),
                "startS": w.get("startS"),
                "endS": w.get("endS"),
                "palign": w.get("palign", 0),
            }
            for w in data.get("alignedWords") or []
            if isinstance(w, dict)
        ]
        return LyricAlignment(
            aligned_words=words,
            waveform_data=list(data.get("waveformData") or []),
            hoot_cer=data.get("hootCer"),
        )


# Singleton instance
suno_adapter = SunoAdapter()
