import asyncio

import httpx
import pytest

from src.domain.errors import FetchError
from src.infrastructure.http.image_fetcher import MAX_IMAGE_BYTES, USER_AGENT, ImageFetcher


def _fetcher(handler, **kwargs) -> ImageFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ImageFetcher(client=client, **kwargs)


def test_fetch_returns_bytes_and_sends_user_agent(make_image_bytes):
    payload = make_image_bytes()
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["ua"] = request.headers.get("user-agent")
        return httpx.Response(200, headers={"content-type": "image/jpeg; charset=binary"}, content=payload)

    result = asyncio.run(_fetcher(handler).fetch("https://storage.googleapis.com/x/photo.jpg"))
    assert result.content == payload
    assert result.content_type == "image/jpeg"
    assert seen["ua"] == USER_AGENT


@pytest.mark.parametrize("content_type", ["text/html", "application/octet-stream", None])
def test_non_image_content_type_rejected(content_type):
    headers = {"content-type": content_type} if content_type else {}

    def handler(request):
        return httpx.Response(200, headers=headers, content=b"<html></html>")

    with pytest.raises(FetchError, match="content type"):
        asyncio.run(_fetcher(handler).fetch("https://storage.googleapis.com/x"))


def test_declared_oversize_rejected():
    def handler(request):
        return httpx.Response(
            200,
            headers={"content-type": "image/jpeg", "content-length": str(MAX_IMAGE_BYTES + 1)},
            content=b"x",
        )

    with pytest.raises(FetchError, match="too large"):
        asyncio.run(_fetcher(handler).fetch("https://storage.googleapis.com/x"))


def test_actual_body_oversize_rejected_without_header():
    async def body():
        for _ in range(5):
            yield b"x" * 50

    def handler(request):
        return httpx.Response(200, headers={"content-type": "image/png"}, content=body())

    with pytest.raises(FetchError, match="too large"):
        asyncio.run(_fetcher(handler, max_bytes=100).fetch("https://storage.googleapis.com/x"))


def test_non_2xx_status_rejected():
    def handler(request):
        return httpx.Response(404, headers={"content-type": "image/png"}, content=b"")

    with pytest.raises(FetchError, match="404"):
        asyncio.run(_fetcher(handler).fetch("https://storage.googleapis.com/x"))


def test_timeout_aborts():
    async def handler(request):
        await asyncio.sleep(1)
        return httpx.Response(200, headers={"content-type": "image/png"}, content=b"x")

    with pytest.raises(FetchError, match="Timed out"):
        asyncio.run(_fetcher(handler, timeout=0.05).fetch("https://storage.googleapis.com/x"))


def test_transport_error_wrapped():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(FetchError):
        asyncio.run(_fetcher(handler).fetch("https://storage.googleapis.com/x"))
