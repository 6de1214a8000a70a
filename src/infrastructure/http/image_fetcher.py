from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import httpx

from src.domain.errors import FetchError

logger = logging.getLogger(__name__)

FETCH_TIMEOUT_SECONDS = 10.0
MAX_IMAGE_BYTES = 10 * 1024 * 1024
USER_AGENT = "ThumbKit-Thumbnail-Service/1.0"


@dataclass(frozen=True)
class FetchedImage:
    content: bytes
    content_type: str


class ImageFetcher:
    """Downloads source images under a hard timeout and a size cap.

    Callers must have validated the URL first. Every check here runs before
    the bytes are handed on, so an oversized or non-image payload never
    reaches a transform.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = FETCH_TIMEOUT_SECONDS,
        max_bytes: int = MAX_IMAGE_BYTES,
    ) -> None:
        self._client = client
        self.timeout = timeout
        self.max_bytes = max_bytes

    async def fetch(self, url: str) -> FetchedImage:
        try:
            return await asyncio.wait_for(self._download(url), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise FetchError(f"Timed out fetching image after {self.timeout:.0f}s") from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"Failed to fetch image: {exc}") from exc

    async def _download(self, url: str) -> FetchedImage:
        if self._client is not None:
            return await self._stream(self._client, url)
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=False) as client:
            return await self._stream(client, url)

    async def _stream(self, client: httpx.AsyncClient, url: str) -> FetchedImage:
        async with client.stream("GET", url, headers={"User-Agent": USER_AGENT}) as response:
            if not response.is_success:
                raise FetchError(f"Failed to fetch image: HTTP {response.status_code} {response.reason_phrase}")

            content_type = response.headers.get("content-type", "")
            if not content_type.lower().startswith("image/"):
                raise FetchError("Invalid content type: must be an image")

            declared = response.headers.get("content-length")
            if declared and declared.isdigit() and int(declared) > self.max_bytes:
                raise FetchError("Image too large: maximum size is 10MB")

            buf = bytearray()
            async for chunk in response.aiter_bytes():
                buf.extend(chunk)
                # the header is untrusted, so the real body is capped too
                if len(buf) > self.max_bytes:
                    raise FetchError("Image too large: maximum size is 10MB")

        logger.debug("Fetched %d bytes (%s) from %s", len(buf), content_type, url)
        return FetchedImage(content=bytes(buf), content_type=content_type.split(";")[0].strip())
