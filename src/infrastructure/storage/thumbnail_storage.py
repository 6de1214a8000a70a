from __future__ import annotations

import asyncio
import logging
import mimetypes
import time
from pathlib import Path
from typing import Protocol

from google.cloud import storage as gcs

from src.domain.errors import StorageError
from src.infrastructure.config import Settings

logger = logging.getLogger(__name__)

THUMBNAILS_PREFIX = "thumbnails"
AI_THUMBNAILS_PREFIX = "ai-thumbnails"
CACHE_CONTROL = "public, max-age=31536000"
UPLOAD_TIMEOUT_SECONDS = 60.0


def build_filename(kind: str, ext: str, size: tuple[int, int] | None = None, now_ms: int | None = None) -> str:
    """``<kind>_<unixMillis>[_<w>x<h>].<ext>``; the timestamp keeps names unique."""
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    dims = f"_{size[0]}x{size[1]}" if size else ""
    return f"{kind}_{stamp}{dims}.{ext.lstrip('.')}"


def content_type_for(filename: str) -> str:
    ext = filename.rsplit(".", 1)[-1].lower()
    if ext in ("jpg", "jpeg"):
        return "image/jpeg"
    return mimetypes.types_map.get(f".{ext}", f"image/{ext}")


class StorageBackend(Protocol):
    async def save(self, data: bytes, filename: str, prefix: str) -> str: ...


class GcsBackend:
    """Google Cloud Storage: long-lived cache header, public-read, deterministic URL."""

    def __init__(self, bucket_name: str, client: gcs.Client, public_host: str = "storage.googleapis.com") -> None:
        self.bucket_name = bucket_name
        self.client = client
        self.public_host = public_host

    @classmethod
    def from_settings(cls, settings: Settings) -> GcsBackend:
        if settings.gcp_credentials_path:
            client = gcs.Client.from_service_account_json(
                settings.gcp_credentials_path, project=settings.gcp_project_id
            )
        else:
            client = gcs.Client(project=settings.gcp_project_id)
        return cls(settings.gcs_bucket_name or "", client, settings.storage_public_host)

    def _upload(self, data: bytes, object_name: str, content_type: str) -> None:
        blob = self.client.bucket(self.bucket_name).blob(object_name)
        blob.cache_control = CACHE_CONTROL
        blob.upload_from_string(data, content_type=content_type, timeout=UPLOAD_TIMEOUT_SECONDS)
        blob.make_public(timeout=UPLOAD_TIMEOUT_SECONDS)

    async def save(self, data: bytes, filename: str, prefix: str) -> str:
        object_name = f"{prefix}/{filename}"
        await asyncio.to_thread(self._upload, data, object_name, content_type_for(filename))
        return f"https://{self.public_host}/{self.bucket_name}/{object_name}"


class LocalBackend:
    """Filesystem backend for development; files are served under ``/uploads``."""

    def __init__(self, root: Path, url_base: str = "/uploads") -> None:
        self.root = Path(root)
        self.url_base = url_base.rstrip("/")

    def _write(self, data: bytes, filename: str, prefix: str) -> None:
        target_dir = self.root / prefix
        target_dir.mkdir(parents=True, exist_ok=True)
        (target_dir / filename).write_bytes(data)

    async def save(self, data: bytes, filename: str, prefix: str) -> str:
        await asyncio.to_thread(self._write, data, filename, prefix)
        return f"{self.url_base}/{prefix}/{filename}"


class ThumbnailStorage:
    """Storage sink. The backend is fixed at construction; there is no runtime fallback."""

    def __init__(self, backend: StorageBackend) -> None:
        self.backend = backend

    @classmethod
    def from_settings(cls, settings: Settings) -> ThumbnailStorage:
        if settings.uses_object_storage:
            return cls(GcsBackend.from_settings(settings))
        return cls(LocalBackend(settings.uploads_dir))

    async def store(self, data: bytes, filename: str, prefix: str = THUMBNAILS_PREFIX) -> str:
        if not data:
            raise StorageError("Refusing to store an empty image")
        try:
            url = await self.backend.save(data, filename, prefix)
        except StorageError:
            raise
        except Exception as exc:
            logger.error("Storage upload of %s/%s failed: %s", prefix, filename, exc)
            raise StorageError(f"Storage upload failed: {exc}") from exc
        logger.info("Stored %s/%s (%d bytes)", prefix, filename, len(data))
        return url
