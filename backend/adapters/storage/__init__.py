"""Storage adapters for generated media."""

from .media_storage import (
    LocalMediaStorage,
    MediaStorage,
    MediaStorageError,
    download_video,
    get_media_storage,
    media_storage,
)

__all__ = [
    "MediaStorage",
    "LocalMediaStorage",
    "MediaStorageError",
    "get_media_storage",
    "download_video",
    "media_storage",
]
