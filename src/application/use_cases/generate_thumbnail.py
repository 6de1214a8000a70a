from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from src.application.use_cases.pipeline_state import PipelineRun, PipelineStage
from src.domain.entities.derivative import DerivativeImage, GeneratedBy
from src.domain.errors import ValidationError
from src.domain.services.thumbnail_transformer import (
    DEFAULT_FORMAT,
    DEFAULT_HEIGHT,
    DEFAULT_QUALITY,
    DEFAULT_WIDTH,
    RESPONSIVE_SIZES,
    ThumbnailTransformer,
)
from src.domain.services.url_validator import UrlValidator, normalize_image_url
from src.infrastructure.database.repositories.content_repository import ContentRepository
from src.infrastructure.http.image_fetcher import ImageFetcher
from src.infrastructure.storage.thumbnail_storage import THUMBNAILS_PREFIX, ThumbnailStorage, build_filename

logger = logging.getLogger(__name__)


@dataclass
class GenerateThumbnailUseCase:
    """Deterministic crop: validate, fetch, cover-fit, store, record."""

    validator: UrlValidator
    fetcher: ImageFetcher
    transformer: ThumbnailTransformer
    storage: ThumbnailStorage
    contents: ContentRepository
    base_url: str = "http://localhost:5000"

    async def render(
        self,
        image_url: str,
        width: int = DEFAULT_WIDTH,
        height: int = DEFAULT_HEIGHT,
        quality: int = DEFAULT_QUALITY,
        fmt: str = DEFAULT_FORMAT,
        run: PipelineRun | None = None,
    ) -> DerivativeImage:
        """Produce and store one cropped derivative. Touches no content record."""
        run = run or PipelineRun(label=f"crop {width}x{height}")

        run.advance(PipelineStage.VALIDATING)
        url = normalize_image_url(image_url, self.base_url)
        self.validator.ensure_valid(url)

        run.advance(PipelineStage.FETCHING)
        fetched = await self.fetcher.fetch(url)

        run.advance(PipelineStage.TRANSFORMING)
        data = await asyncio.to_thread(self.transformer.transform, fetched.content, width, height, quality, fmt)

        run.advance(PipelineStage.STORING)
        filename = build_filename("thumbnail", fmt, size=(width, height))
        stored_url = await self.storage.store(data, filename, THUMBNAILS_PREFIX)

        return DerivativeImage(
            stored_url=stored_url,
            width=width,
            height=height,
            format=fmt,
            generated_by=GeneratedBy.CROP,
        )

    async def record(self, content_id: str, thumbnail_url: str, run: PipelineRun | None = None) -> None:
        """Write the thumbnail URL to the record.

        The stored file stays authoritative if this fails: the error is logged
        and the update can simply be repeated.
        """
        if run is not None:
            run.advance(PipelineStage.RECORDING)
        try:
            updated = await asyncio.to_thread(self.contents.update_thumbnail, content_id, thumbnail_url)
        except Exception:
            logger.exception("Stored %s but failed to update content %s", thumbnail_url, content_id)
            return
        if not updated:
            logger.warning("Content %s not found while recording thumbnail %s", content_id, thumbnail_url)
        else:
            logger.info("Content %s thumbnail updated", content_id)

    async def execute(self, content_id: str, image_url: str, run: PipelineRun | None = None) -> DerivativeImage:
        run = run or PipelineRun(label=f"crop {content_id}")
        try:
            derivative = await self.render(image_url, run=run)
        except Exception as exc:
            run.fail(exc)
            raise
        await self.record(content_id, derivative.stored_url, run)
        run.advance(PipelineStage.DONE)
        return derivative

    async def execute_responsive(self, image_url: str, content_id: str | None = None) -> dict[str, str]:
        """Render small/medium/large independently.

        The source URL is validated once up front and a rejected URL fails the
        whole call. After that, a size that fails to fetch, transform or store
        falls back to the source URL, so every key is always present. The
        medium URL becomes the record's thumbnail.
        """
        url = normalize_image_url(image_url, self.base_url)
        self.validator.ensure_valid(url)

        async def _one(size: str, dims: tuple[int, int]) -> str:
            try:
                derivative = await self.render(url, *dims, run=PipelineRun(label=f"responsive {size}"))
            except ValidationError:
                raise
            except Exception as exc:
                logger.error("Failed to generate %s thumbnail: %s", size, exc)
                return url
            return derivative.stored_url

        names = list(RESPONSIVE_SIZES)
        urls = await asyncio.gather(*(_one(name, RESPONSIVE_SIZES[name]) for name in names))
        thumbnails = dict(zip(names, urls))

        if content_id:
            await self.record(content_id, thumbnails["medium"])
        return thumbnails
