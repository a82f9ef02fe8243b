"""
Media storage for generated videos.

Videos finished by the video provider are downloaded from the provider's
temporary URL and persisted under ``STORAGE_LOCAL_PATH``.
"""

import os
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional

import aiofiles
import aiohttp

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)


class MediaStorageError(Exception):
    """Raised when a media file cannot be downloaded or stored."""


class MediaStorage(ABC):
    """Abstract base class for media storage backends."""

    @abstractmethod
    async def save_video(self, video_data: bytes, filename: str) -> str:
        """
        Save video bytes to storage.

        Args:
            video_data: Raw video bytes
            filename: Desired filename (will be sanitized)

        Returns:
            Storage path of the saved video
        """
        pass


class LocalMediaStorage(MediaStorage):
    """
    Local filesystem storage.

    Structure: <base>/videos/YYYY/MM/<filename>
    """

    def __init__(self, base_path: Optional[str] = None):
        self.base_path = Path(base_path or settings.storage_local_path)

    def _get_date_path(self) -> Path:
        now = datetime.now()
        return Path("videos") / str(now.year) / f"{now.month:02d}"

    def _sanitize_filename(self, filename: str) -> str:
        """Strip path components and unsafe characters; default to .mp4."""
        filename = os.path.basename(filename)

        unsafe_chars = ['/', '\\', '..', '\0', '\n', '\r', '\t', ':']
        for char in unsafe_chars:
            filename = filename.replace(char, '_')

        if '.' not in filename:
            filename = f"{filename}.mp4"
        return filename

    async def save_video(self, video_data: bytes, filename: str) -> str:
        date_path = self._get_date_path()
        full_dir = self.base_path / date_path
        full_dir.mkdir(parents=True, exist_ok=True)

        safe_filename = self._sanitize_filename(filename)
        file_path = full_dir / safe_filename

        try:
            async with aiofiles.open(file_path, 'wb') as f:
                await f.write(video_data)
        except OSError as e:
            logger.error(f"Failed to save video to local storage: {e}")
            raise MediaStorageError(f"Failed to store video: {e}") from e

        relative_path = date_path / safe_filename
        logger.info(f"Saved video to local storage: {relative_path} ({len(video_data)} bytes)")
        return str(relative_path)


async def download_video(url: str, timeout: Optional[int] = None) -> bytes:
    """
    Download a generated video from the provider's URL.

    Raises:
        MediaStorageError: On network errors or a non-200 response
    """
    total = timeout or settings.video_download_timeout
    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(url, timeout=aiohttp.ClientTimeout(total=total)) as response:
                if response.status != 200:
                    raise MediaStorageError(
                        f"Failed to download video: {response.status} {response.reason}"
                    )
                video_data = await response.read()
    except aiohttp.ClientError as e:
        logger.error(f"Network error downloading video from {url}: {e}")
        raise MediaStorageError(f"Network error: {e}") from e
    except TimeoutError as e:
        raise MediaStorageError(f"Video download timed out after {total}s") from e

    logger.info(f"Downloaded video from {url} ({len(video_data)} bytes)")
    return video_data


def get_media_storage() -> MediaStorage:
    """Return the storage backend selected by ``settings.storage_type``."""
    storage_type = settings.storage_type.lower()
    if storage_type == "local":
        return LocalMediaStorage()
    raise ValueError(f"Unknown storage type: {storage_type}. Must be 'local'")


media_storage = get_media_storage()
