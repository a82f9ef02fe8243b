# Music Adapters
# Suno song generation and lyric timing

from .suno_adapter import LyricAlignment, SunoAdapter, SunoError, suno_adapter

__all__ = [
    "SunoAdapter",
    "SunoError",
    "LyricAlignment",
    "suno_adapter",
]
