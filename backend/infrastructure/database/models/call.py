"""
Voice call models: per-user call settings, call jobs and completed call sessions.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class CallJobStatus(str, Enum):
    """CallJob lifecycle: queued -> scheduled -> started -> completed | failed | canceled."""

    QUEUED = "queued"
    SCHEDULED = "scheduled"
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"

    @classmethod
    def terminal(cls) -> frozenset[str]:
        return frozenset({cls.COMPLETED.value, cls.FAILED.value, cls.CANCELED.value})


class CallCadence(str, Enum):
    DAILY = "daily"
    WEEKDAYS = "weekdays"
    WEEKENDS = "weekends"
    CUSTOM = "custom"


class CallSettings(Base, TimestampMixin):
    """Phone number and schedule a user registered for diary calls."""

    __tablename__ = "call_settings"

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
    phone_e164: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    timezone: Mapped[str] = mapped_column(String(64), default="UTC", nullable=False)
    time_of_day: Mapped[str] = mapped_column(String(5), default="09:00", nullable=False)
    cadence: Mapped[str] = mapped_column(
        String(20), default=CallCadence.DAILY.value, nullable=False
    )
    days_of_week: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<CallSettings(user_id={self.user_id}, phone={self.phone_e164})>"


class CallJob(Base, TimestampMixin):
    """A scheduled or inbound call, correlated with VAPI through vapi_call_id."""

    __tablename__ = "call_jobs"

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
    call_settings_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("call_settings.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    scheduled_for: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), default=CallJobStatus.QUEUED.value, nullable=False, index=True
    )
    vapi_call_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in CallJobStatus.terminal()

    def __repr__(self) -> str:
        return f"<CallJob(id={self.id}, vapi_call_id={self.vapi_call_id}, status={self.status})>"


class CallSession(Base, TimestampMixin):
    """Outcome of a finished call: transcript, recording and the diary it produced."""

    __tablename__ = "call_sessions"

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
    call_job_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("call_jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    vapi_call_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_sec: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    disposition: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    # transcript, messages, recording, endedReason, diaryId, diaryError
    meta: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)

    @property
    def diary_id(self) -> Optional[str]:
        return (self.meta or {}).get("diaryId")

    def __repr__(self) -> str:
        return f"<CallSession(id={self.id}, vapi_call_id={self.vapi_call_id})>"
