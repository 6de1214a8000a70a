import asyncio
import io
import re
from unittest.mock import AsyncMock, Mock

import pytest
from PIL import Image

from src.application.use_cases.generate_smart_thumbnail import GenerateSmartThumbnailUseCase
from src.application.use_cases.generate_thumbnail import GenerateThumbnailUseCase
from src.application.use_cases.pipeline_state import PipelineRun, PipelineStage
from src.application.use_cases.thumbnail_pipeline import ThumbnailPipeline, parse_method
from src.domain.entities.content import PUBLISHED
from src.domain.entities.derivative import GeneratedBy, GenerationMethod, SourceImageRequest
from src.domain.errors import ContentNotFoundError, FetchError, TransformError, ValidationError
from src.domain.services.thumbnail_transformer import ThumbnailTransformer
from src.domain.services.url_validator import UrlValidator
from src.infrastructure.config import DEFAULT_TRUSTED_DOMAINS
from src.infrastructure.database.repositories.content_repository import ContentRepository
from src.infrastructure.http.image_fetcher import FetchedImage

SOURCE_URL = "https://storage.googleapis.com/x/photo.jpg"


@pytest.fixture()
def contents():
    repo = ContentRepository(None)
    repo.create("Headline", status=PUBLISHED, image_url=SOURCE_URL, content_id="abc")
    return repo


@pytest.fixture()
def fetcher(make_image_bytes):
    fake = Mock()
    fake.fetch = AsyncMock(return_value=FetchedImage(make_image_bytes(1200, 900), "image/jpeg"))
    return fake


@pytest.fixture()
def storage():
    fake = Mock()

    async def _store(data, filename, prefix="thumbnails"):
        return f"https://storage.googleapis.com/bucket/{prefix}/{filename}"

    fake.store = AsyncMock(side_effect=_store)
    return fake


@pytest.fixture()
def crop(fetcher, storage, contents):
    return GenerateThumbnailUseCase(
        validator=UrlValidator(DEFAULT_TRUSTED_DOMAINS),
        fetcher=fetcher,
        transformer=ThumbnailTransformer(),
        storage=storage,
        contents=contents,
    )


@pytest.fixture()
def smart(fetcher, storage, contents):
    use_case = GenerateSmartThumbnailUseCase(fetcher=fetcher, storage=storage, contents=contents, model_client=None)
    use_case.execute = AsyncMock()
    return use_case


@pytest.fixture()
def pipeline(crop, smart):
    return ThumbnailPipeline(crop=crop, smart=smart)


def test_crop_end_to_end(pipeline, storage, contents):
    derivative = asyncio.run(pipeline.run(SourceImageRequest(url=SOURCE_URL, content_id="abc"), "crop"))

    storage.store.assert_awaited_once()
    data, filename, prefix = storage.store.await_args.args
    assert re.fullmatch(r"thumbnail_\d+_640x360\.jpeg", filename)
    assert prefix == "thumbnails"
    assert Image.open(io.BytesIO(data)).size == (640, 360)

    assert derivative.generated_by is GeneratedBy.CROP
    assert (derivative.width, derivative.height) == (640, 360)
    assert derivative.model is None
    assert contents.get("abc").thumbnail_url == derivative.stored_url
    assert contents.get("abc").is_ai_generated_thumbnail is False


def test_crop_records_exactly_once(crop, fetcher):
    crop.contents = Mock()
    derivative = asyncio.run(crop.execute("abc", SOURCE_URL))
    crop.contents.update_thumbnail.assert_called_once_with("abc", derivative.stored_url)


def test_unknown_method_rejected_before_any_io(pipeline, fetcher, storage):
    with pytest.raises(ValidationError, match="Invalid method: resize"):
        asyncio.run(pipeline.run(SourceImageRequest(url=SOURCE_URL, content_id="abc"), "resize"))
    fetcher.fetch.assert_not_awaited()
    storage.store.assert_not_awaited()


def test_parse_method():
    assert parse_method("ai-smart") is GenerationMethod.AI_SMART
    assert parse_method(GenerationMethod.CROP) is GenerationMethod.CROP


def test_crop_requires_content_id(pipeline, fetcher):
    with pytest.raises(ValidationError, match="contentId"):
        asyncio.run(pipeline.run(SourceImageRequest(url=SOURCE_URL), "crop"))
    fetcher.fetch.assert_not_awaited()


def test_crop_unknown_content(pipeline, fetcher):
    with pytest.raises(ContentNotFoundError):
        asyncio.run(pipeline.run(SourceImageRequest(url=SOURCE_URL, content_id="nope"), "crop"))
    fetcher.fetch.assert_not_awaited()


@pytest.mark.parametrize("method", ["crop", "ai-smart"])
def test_untrusted_url_never_fetched(pipeline, fetcher, smart, method):
    request = SourceImageRequest(url="http://169.254.169.254/latest/meta-data", content_id="abc")
    with pytest.raises(ValidationError, match="untrusted"):
        asyncio.run(pipeline.run(request, method))
    fetcher.fetch.assert_not_awaited()
    smart.execute.assert_not_awaited()


def test_fetch_failure_skips_transform_and_store(crop, fetcher, storage):
    fetcher.fetch.side_effect = FetchError("Failed to fetch image: HTTP 404 Not Found")
    crop.transformer = Mock()
    run = PipelineRun(label="test")

    with pytest.raises(FetchError):
        asyncio.run(crop.execute("abc", SOURCE_URL, run))
    crop.transformer.transform.assert_not_called()
    storage.store.assert_not_awaited()
    assert run.stage is PipelineStage.ERRORED
    assert PipelineStage.FETCHING in run.history


def test_record_failure_is_logged_not_raised(crop, caplog):
    crop.contents = Mock()
    crop.contents.update_thumbnail.side_effect = RuntimeError("db down")

    derivative = asyncio.run(crop.execute("abc", SOURCE_URL))
    assert derivative.stored_url.startswith("https://storage.googleapis.com/bucket/thumbnails/")
    assert "failed to update content abc" in caplog.text


def test_relative_url_resolved_against_base(crop, fetcher):
    crop.base_url = "http://localhost:5000"
    asyncio.run(crop.render("/uploads/photo.jpg"))
    fetcher.fetch.assert_awaited_once_with("http://localhost:5000/uploads/photo.jpg")


def test_ai_smart_hands_normalized_url_to_generator(pipeline, smart):
    pipeline.crop.base_url = "http://localhost:5000"
    asyncio.run(pipeline.run(SourceImageRequest(url="/uploads/photo.jpg"), "ai-smart"))
    forwarded = smart.execute.await_args.args[0]
    assert forwarded.url == "http://localhost:5000/uploads/photo.jpg"
    assert forwarded.content_id is None


def test_responsive_falls_back_per_size(pipeline, storage, contents):
    async def _store(data, filename, prefix="thumbnails"):
        if "_1280x720" in filename:
            raise RuntimeError("bucket full")
        return f"https://storage.googleapis.com/bucket/{prefix}/{filename}"

    storage.store.side_effect = _store

    thumbnails = asyncio.run(pipeline.run_responsive(SOURCE_URL, "abc"))

    assert set(thumbnails) == {"small", "medium", "large"}
    assert thumbnails["large"] == SOURCE_URL
    assert "_320x180" in thumbnails["small"]
    assert "_640x360" in thumbnails["medium"]
    assert contents.get("abc").thumbnail_url == thumbnails["medium"]


def test_responsive_without_content_does_not_record(pipeline, crop):
    crop.contents = Mock()
    thumbnails = asyncio.run(pipeline.run_responsive(SOURCE_URL))
    assert len(thumbnails) == 3
    crop.contents.update_thumbnail.assert_not_called()


def test_responsive_unknown_content(pipeline):
    with pytest.raises(ContentNotFoundError):
        asyncio.run(pipeline.run_responsive(SOURCE_URL, "nope"))


@pytest.mark.parametrize("content_id", ["abc", None])
def test_responsive_rejects_untrusted_url_before_any_size(pipeline, fetcher, storage, contents, content_id):
    with pytest.raises(ValidationError, match="untrusted"):
        asyncio.run(pipeline.run_responsive("http://169.254.169.254/latest/meta-data", content_id))
    fetcher.fetch.assert_not_awaited()
    storage.store.assert_not_awaited()
    assert contents.get("abc").thumbnail_url is None


def test_responsive_transform_failure_falls_back_to_source(pipeline, crop, contents):
    real = ThumbnailTransformer()

    def _transform(data, width, height, quality, fmt):
        if width == 1280:
            raise TransformError("Unable to decode source image")
        return real.transform(data, width, height, quality, fmt)

    crop.transformer = Mock()
    crop.transformer.transform.side_effect = _transform

    thumbnails = asyncio.run(pipeline.run_responsive(SOURCE_URL, "abc"))

    assert thumbnails["large"] == SOURCE_URL
    assert thumbnails["small"].endswith("_320x180.jpeg")
    assert contents.get("abc").thumbnail_url == thumbnails["medium"]
