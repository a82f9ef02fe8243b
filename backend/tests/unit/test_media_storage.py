"""
Unit tests for local video storage.
"""

from datetime import datetime

import pytest

from adapters.storage.media_storage import LocalMediaStorage, get_media_storage


@pytest.fixture
def storage(tmp_path):
    return LocalMediaStorage(base_path=str(tmp_path))


class TestSanitizeFilename:

    def test_strips_directories(self, storage):
        assert storage._sanitize_filename("../../etc/passwd") == "passwd.mp4"

    def test_replaces_unsafe_characters(self, storage):
        assert storage._sanitize_filename("kie:task\t1.mp4") == "kie_task_1.mp4"

    def test_keeps_extension(self, storage):
        assert storage._sanitize_filename("kie-1.webm") == "kie-1.webm"


async def test_save_video_writes_dated_path(storage, tmp_path):
    path = await storage.save_video(b"\x00\x01video", "kie-1")

    now = datetime.now()
    assert path == f"videos/{now.year}/{now.month:02d}/kie-1.mp4"
    assert (tmp_path / path).read_bytes() == b"\x00\x01video"


def test_unknown_storage_type(monkeypatch):
    from infrastructure.config.settings import settings

    monkeypatch.setattr(settings, "storage_type", "s3")
    with pytest.raises(ValueError):
        get_media_storage()
