import asyncio
import re
from unittest.mock import Mock

import pytest

from src.domain.errors import StorageError
from src.infrastructure.config import Settings
from src.infrastructure.storage.thumbnail_storage import (
    CACHE_CONTROL,
    GcsBackend,
    LocalBackend,
    ThumbnailStorage,
    build_filename,
    content_type_for,
)


def test_build_filename_patterns():
    assert build_filename("thumbnail", "jpeg", size=(640, 360), now_ms=1700000000123) == (
        "thumbnail_1700000000123_640x360.jpeg"
    )
    assert build_filename("smart_thumbnail", "jpg", now_ms=5) == "smart_thumbnail_5.jpg"
    assert re.fullmatch(r"thumbnail_\d{13}\.png", build_filename("thumbnail", ".png"))


def test_content_type_for():
    assert content_type_for("a.jpg") == "image/jpeg"
    assert content_type_for("a.jpeg") == "image/jpeg"
    assert content_type_for("a.png") == "image/png"
    assert content_type_for("a.webp") == "image/webp"


def test_local_backend_writes_file(tmp_path):
    storage = ThumbnailStorage(LocalBackend(tmp_path))
    url = asyncio.run(storage.store(b"abc", "thumbnail_1_640x360.jpeg", "thumbnails"))
    assert url == "/uploads/thumbnails/thumbnail_1_640x360.jpeg"
    assert (tmp_path / "thumbnails" / "thumbnail_1_640x360.jpeg").read_bytes() == b"abc"
    # directory creation is idempotent
    asyncio.run(storage.store(b"def", "thumbnail_2_640x360.jpeg", "thumbnails"))


def test_gcs_backend_sets_cache_and_public():
    client = Mock()
    blob = client.bucket.return_value.blob.return_value
    storage = ThumbnailStorage(GcsBackend("my-bucket", client))

    url = asyncio.run(storage.store(b"img", "smart_thumbnail_1.jpg", "ai-thumbnails"))

    assert url == "https://storage.googleapis.com/my-bucket/ai-thumbnails/smart_thumbnail_1.jpg"
    client.bucket.assert_called_once_with("my-bucket")
    client.bucket.return_value.blob.assert_called_once_with("ai-thumbnails/smart_thumbnail_1.jpg")
    assert blob.cache_control == CACHE_CONTROL
    assert blob.upload_from_string.call_args.kwargs["content_type"] == "image/jpeg"
    blob.make_public.assert_called_once()


def test_backend_failure_surfaces_as_storage_error():
    client = Mock()
    client.bucket.return_value.blob.return_value.upload_from_string.side_effect = RuntimeError("403 forbidden")
    storage = ThumbnailStorage(GcsBackend("b", client))
    with pytest.raises(StorageError, match="403"):
        asyncio.run(storage.store(b"img", "x.jpg", "thumbnails"))


def test_empty_payload_rejected(tmp_path):
    with pytest.raises(StorageError):
        asyncio.run(ThumbnailStorage(LocalBackend(tmp_path)).store(b"", "x.jpg"))


def test_backend_selected_by_bucket_presence(tmp_path):
    local = ThumbnailStorage.from_settings(Settings(uploads_dir=tmp_path))
    assert isinstance(local.backend, LocalBackend)
    assert Settings(gcs_bucket_name="bucket").uses_object_storage
    assert not Settings().uses_object_storage
