"""
Diary, generated music and music video models.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class GenerationStatus(str, Enum):
    """Status shared by music and video generation outputs."""

    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"

    @classmethod
    def terminal(cls) -> tuple[str, str]:
        return (cls.READY.value, cls.FAILED.value)


class Diary(Base, TimestampMixin):
    """Diary entry written by the user or generated from a call transcript."""

    __tablename__ = "diaries"

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
    title: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    primary_music_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)

    __table_args__ = (
        Index("ix_diaries_user_date", "user_id", "date"),
    )

    def __repr__(self) -> str:
        return f"<Diary(id={self.id}, user_id={self.user_id})>"


class Music(Base, TimestampMixin):
    """One generated track; Suno returns two tracks per task, told apart by music_index."""

    __tablename__ = "music"

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
    diary_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("diaries.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    task_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    music_index: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    audio_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    title: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    lyric: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # {"alignedWords": [{word, startS, endS, palign}], "waveformData": [...], "hootCer": float}
    lyric_with_time: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    duration: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    audio_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    primary_video_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=GenerationStatus.PENDING.value, nullable=False, index=True
    )
    meta: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("task_id", "music_index", name="uq_music_task_index"),
    )

    def __repr__(self) -> str:
        return f"<Music(id={self.id}, task_id={self.task_id}, index={self.music_index}, status={self.status})>"


class MusicVideo(Base, TimestampMixin):
    """Video rendered for a track by Kie, correlated through kie_task_id."""

    __tablename__ = "music_videos"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    music_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("music.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    kie_task_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    script_prompt: Mapped[str] = mapped_column(Text, nullable=False, default="")
    video_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    duration: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=GenerationStatus.PENDING.value, nullable=False, index=True
    )
    credits_charged: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    meta: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<MusicVideo(id={self.id}, kie_task_id={self.kie_task_id}, status={self.status})>"
