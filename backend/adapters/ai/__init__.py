# AI Adapters
# Anthropic integration for diary entries and song drafts

from .diary_writer import (
    DiaryGenerationError,
    DiaryWriter,
    SongDraft,
    diary_writer,
)

__all__ = [
    "DiaryWriter",
    "DiaryGenerationError",
    "SongDraft",
    "diary_writer",
]
