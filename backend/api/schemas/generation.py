"""
Suno (music) and Kie (video) completion callback schemas.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from .parsing import ParseFailure, ParseResult, ParseSuccess

CALLBACK_COMPLETE = "complete"
KIE_COMPLETE_TYPES = frozenset({"complete", "completed", "success"})
KIE_FAILURE_TYPES = frozenset({"fail", "failed", "error"})


class SunoTrack(BaseModel):
    """One generated track inside a Suno ``complete`` callback."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    audio_url: Optional[str] = None
    source_audio_url: Optional[str] = None
    stream_audio_url: Optional[str] = None
    source_stream_audio_url: Optional[str] = None
    image_url: Optional[str] = None
    source_image_url: Optional[str] = None
    prompt: Optional[str] = None
    model_name: Optional[str] = None
    title: Optional[str] = None
    tags: Optional[str] = None
    createTime: Optional[Any] = None
    duration: Optional[float] = None

    def to_metadata(self) -> dict[str, Any]:
        return {
            "data": self.model_dump(mode="json"),
            "id": self.id,
            "source_audio_url": self.source_audio_url,
            "stream_audio_url": self.stream_audio_url,
            "source_stream_audio_url": self.source_stream_audio_url,
            "source_image_url": self.source_image_url,
            "model_name": self.model_name,
            "createTime": self.createTime,
            "prompt": self.prompt,
            "tags": self.tags,
        }


@dataclass
class SunoCallback:
    task_id: Optional[str]
    callback_type: Optional[str]
    code: Any = None
    tracks: list[SunoTrack] = field(default_factory=list)
    has_data: bool = True

    @property
    def is_complete(self) -> bool:
        return self.callback_type == CALLBACK_COMPLETE


def parse_suno_callback(payload: Any) -> ParseResult[SunoCallback]:
    """Parse a Suno callback; a body without a ``data`` object parses with has_data=False."""
    if not isinstance(payload, dict):
        return ParseFailure("Invalid payload")

    data = payload.get("data")
    if not isinstance(data, dict):
        return ParseSuccess(SunoCallback(task_id=None, callback_type=None, code=payload.get("code"), has_data=False))

    task_id = data.get("task_id") or data.get("taskId")
    callback_type = data.get("callbackType")
    raw_tracks = data.get("data") if isinstance(data.get("data"), list) else []

    tracks = []
    for raw in raw_tracks:
        if not isinstance(raw, dict):
            return ParseFailure("Invalid track entry: expected an object")
        tracks.append(SunoTrack.model_validate(raw))

    return ParseSuccess(
        SunoCallback(
            task_id=task_id if isinstance(task_id, str) and task_id else None,
            callback_type=callback_type if isinstance(callback_type, str) else None,
            code=payload.get("code"),
            tracks=tracks,
        )
    )


@dataclass
class KieCallback:
    task_id: Optional[str]
    video_url: Optional[str]
    callback_type: str
    code: int = 200
    video_data: dict[str, Any] = field(default_factory=dict)
    error_message: Optional[str] = None

    def to_metadata(self) -> dict[str, Any]:
        return {
            "data": self.video_data,
            "videoUrl": self.video_url,
            "model": self.video_data.get("model"),
            "aspectRatio": self.video_data.get("aspectRatio"),
            "nFrames": self.video_data.get("nFrames"),
        }

    @property
    def is_failure(self) -> bool:
        return self.callback_type in KIE_FAILURE_TYPES

    @property
    def is_complete(self) -> bool:
        return self.callback_type == CALLBACK_COMPLETE


def _dig(payload: dict[str, Any], *path: str) -> Any:
    current: Any = payload
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _first_string(*values: Any) -> Optional[str]:
    for value in values:
        if isinstance(value, str) and value:
            return value
    return None


def _result_json_url(result_json: Any) -> Optional[str]:
    """First url of resultUrls inside Kie's resultJson (usually a JSON-encoded string)."""
    if isinstance(result_json, str):
        try:
            result_json = json.loads(result_json)
        except json.JSONDecodeError:
            return None
    if isinstance(result_json, dict):
        urls = result_json.get("resultUrls")
        if isinstance(urls, list) and urls:
            return _first_string(urls[0])
    return None


def parse_kie_callback(payload: Any) -> ParseResult[KieCallback]:
    """Parse a Kie callback; the task id, video url and status each have several possible locations."""
    if not isinstance(payload, dict):
        return ParseFailure("Invalid payload")
    if "data" in payload and not isinstance(payload["data"], dict):
        return ParseFailure("Invalid payload structure")

    task_id = _first_string(
        payload.get("taskId"),
        _dig(payload, "data", "taskId"),
        _dig(payload, "data", "task_id"),
        _dig(payload, "data", "data", "taskId"),
    )
    video_url = _first_string(
        _result_json_url(_dig(payload, "data", "resultJson")),
        payload.get("videoUrl"),
        _dig(payload, "data", "videoUrl"),
        _dig(payload, "data", "video", "videoUrl"),
        _dig(payload, "data", "data", "videoUrl"),
    )
    raw_type = _first_string(
        _dig(payload, "data", "callbackType"),
        _dig(payload, "data", "type"),
        _dig(payload, "data", "status"),
        _dig(payload, "data", "state"),
        payload.get("status"),
    )
    callback_type = (raw_type or CALLBACK_COMPLETE).lower()
    if callback_type in KIE_COMPLETE_TYPES:
        callback_type = CALLBACK_COMPLETE

    if not task_id:
        return ParseFailure("Missing taskId")
    if callback_type == CALLBACK_COMPLETE and not video_url:
        return ParseFailure("Missing videoUrl")

    video_data = None
    for candidate in (_dig(payload, "data", "data"), _dig(payload, "data", "video"), payload.get("data")):
        if isinstance(candidate, dict):
            video_data = candidate
            break

    error_message = _first_string(
        _dig(payload, "data", "failMsg"),
        _dig(payload, "data", "errorMessage"),
        payload.get("msg"),
    )

    return ParseSuccess(
        KieCallback(
            task_id=task_id,
            video_url=video_url,
            callback_type=callback_type,
            code=payload.get("code") if isinstance(payload.get("code"), int) else 200,
            video_data=video_data or {},
            error_message=error_message,
        )
    )
