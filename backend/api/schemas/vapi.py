"""
VAPI server message schemas and end-of-call-report extraction.
"""

import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from .parsing import ParseResult, parse_model

END_OF_CALL_REPORT = "end-of-call-report"
DEFAULT_DISPOSITION = "completed"


class VapiMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    call: Optional[dict[str, Any]] = None
    customer: Optional[dict[str, Any]] = None
    durationSeconds: Any = None
    artifact: Any = None
    endedReason: Any = None
    endedAt: Any = None


class VapiWebhookEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    message: VapiMessage
    customer: Optional[dict[str, Any]] = None

    @property
    def call_id(self) -> Optional[str]:
        call_id = (self.message.call or {}).get("id")
        return call_id if isinstance(call_id, str) and call_id else None

    @property
    def customer_number(self) -> Optional[str]:
        """Caller's number from message.customer or the top-level customer object."""
        for customer in (self.message.customer, self.customer):
            number = (customer or {}).get("number")
            if isinstance(number, str) and number.strip():
                return number.strip()
        return None


@dataclass
class EndOfCallReport:
    """Fields of an end-of-call-report after lenient extraction."""

    vapi_call_id: str
    ended_at: datetime
    duration_seconds: Optional[float]
    disposition: str
    transcript: Optional[str] = None
    messages: list[Any] = field(default_factory=list)
    recording: Any = None
    ended_reason: Optional[str] = None

    @property
    def has_conversation(self) -> bool:
        return bool(self.transcript) or bool(self.messages)


def parse_vapi_event(payload: Any) -> ParseResult[VapiWebhookEvent]:
    return parse_model(VapiWebhookEvent, payload)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and math.isfinite(value):
        try:
            return datetime.fromtimestamp(value / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None


def extract_ended_at(message: VapiMessage, now: Optional[datetime] = None) -> datetime:
    """call.endedAt (epoch ms or ISO-8601), then message.endedAt, then *now*."""
    for candidate in ((message.call or {}).get("endedAt"), message.endedAt):
        parsed = _parse_timestamp(candidate)
        if parsed is not None:
            return parsed
    return now or datetime.now(UTC)


def extract_duration_seconds(message: VapiMessage) -> Optional[float]:
    value = message.durationSeconds
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if math.isfinite(value) else None


def extract_disposition(message: VapiMessage) -> str:
    value = (message.call or {}).get("disposition")
    return value if isinstance(value, str) and value else DEFAULT_DISPOSITION


def extract_artifact(message: VapiMessage) -> dict[str, Any]:
    return message.artifact if isinstance(message.artifact, dict) else {}


def extract_end_of_call_report(event: VapiWebhookEvent, now: Optional[datetime] = None) -> EndOfCallReport:
    """Build an EndOfCallReport; the caller has already checked call_id is present."""
    message = event.message
    artifact = extract_artifact(message)
    transcript = artifact.get("transcript")
    messages = artifact.get("messages")
    recording = artifact.get("recording")
    if recording is None and artifact.get("recordingUrl"):
        recording = {"url": artifact["recordingUrl"]}

    return EndOfCallReport(
        vapi_call_id=event.call_id or "",
        ended_at=extract_ended_at(message, now),
        duration_seconds=extract_duration_seconds(message),
        disposition=extract_disposition(message),
        transcript=transcript if isinstance(transcript, str) and transcript.strip() else None,
        messages=messages if isinstance(messages, list) else [],
        recording=recording,
        ended_reason=message.endedReason if isinstance(message.endedReason, str) else None,
    )
