from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from src.application.use_cases.pipeline_state import PipelineRun, PipelineStage
from src.domain.entities.derivative import DerivativeImage, GeneratedBy, ImageSize, SourceImageRequest
from src.domain.errors import ContentNotFoundError, GenerationError
from src.domain.services.prompt_builder import FALLBACK_DESCRIPTION, build_prompt
from src.domain.services.response_extraction import extract_image
from src.infrastructure.ai.gemini_client import GeminiImageClient
from src.infrastructure.database.repositories.content_repository import ContentRepository
from src.infrastructure.http.image_fetcher import ImageFetcher
from src.infrastructure.retry import DESCRIBE_RETRY, GENERATE_RETRY, RetryPolicy, with_retry
from src.infrastructure.storage.thumbnail_storage import AI_THUMBNAILS_PREFIX, ThumbnailStorage, build_filename

logger = logging.getLogger(__name__)

# Rough per-image pricing by output tier, not a billing figure.
ESTIMATED_COST_BY_SIZE: dict[ImageSize, float] = {
    ImageSize.SIZE_2K: 0.134,
    ImageSize.SIZE_4K: 0.24,
}

RESPONSE_DUMP_LIMIT = 3000


@dataclass
class GenerateSmartThumbnailUseCase:
    """Redraw a thumbnail with the image model.

    describe -> compose prompt -> generate -> extract -> store. Describing is
    best effort and falls back to a generic description; everything after it
    is fatal on failure. The source URL must already be validated.
    """

    fetcher: ImageFetcher
    storage: ThumbnailStorage
    contents: ContentRepository
    model_client: GeminiImageClient | None
    describe_retry: RetryPolicy = DESCRIBE_RETRY
    generate_retry: RetryPolicy = GENERATE_RETRY

    def _require_client(self) -> GeminiImageClient:
        if self.model_client is None:
            raise GenerationError("GEMINI_API_KEY not configured")
        return self.model_client

    @staticmethod
    def _measure(data: bytes) -> tuple[int, int]:
        # header read only; the bytes are stored as returned by the model
        try:
            with Image.open(BytesIO(data)) as img:
                return img.size
        except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
            raise GenerationError(f"Generated image could not be decoded: {exc}") from exc

    async def describe(self, image_url: str) -> str:
        client = self._require_client()
        try:
            fetched = await self.fetcher.fetch(image_url)
            description = await with_retry(
                lambda: client.describe_image(fetched.content, fetched.content_type),
                self.describe_retry,
                label="Image description",
            )
        except Exception as exc:
            logger.warning("Image analysis failed, using generic description: %s", exc)
            return FALLBACK_DESCRIPTION
        if not description:
            return FALLBACK_DESCRIPTION
        logger.info("Image description: %s...", description[:100])
        return description

    async def generate(self, request: SourceImageRequest, run: PipelineRun | None = None) -> DerivativeImage:
        run = run or PipelineRun(label="smart thumbnail")
        client = self._require_client()
        started = time.monotonic()
        logger.info("Starting smart thumbnail for: %s", request.title or "untitled")

        run.advance(PipelineStage.FETCHING)
        description = await self.describe(request.url)
        prompt = build_prompt(description, request.style, request.title, request.excerpt)
        logger.debug("Generated prompt: %s...", prompt[:150])

        run.advance(PipelineStage.GENERATING)
        try:
            response = await with_retry(
                lambda: client.generate_image(prompt, request.aspect_ratio.value, request.image_size.value),
                self.generate_retry,
                label="Smart thumbnail generation",
            )
        except Exception as exc:
            raise GenerationError(f"Image generation failed: {exc}") from exc

        extracted = extract_image(response)
        if extracted is None:
            dump = json.dumps(response, indent=2, default=str)[:RESPONSE_DUMP_LIMIT]
            logger.error("No image data found after all extraction methods. Response: %s", dump)
            raise GenerationError("Failed to generate thumbnail - no image data in response")
        logger.info("Found image via %s (%s)", extracted.method, extracted.mime_type)
        width, height = self._measure(extracted.data)

        run.advance(PipelineStage.STORING)
        filename = build_filename("smart_thumbnail", "jpg")
        stored_url = await self.storage.store(extracted.data, filename, AI_THUMBNAILS_PREFIX)

        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info("Smart thumbnail generated in %dms: %s", elapsed_ms, stored_url)
        return DerivativeImage(
            stored_url=stored_url,
            width=width,
            height=height,
            format="jpeg",
            generated_by=GeneratedBy.GENERATIVE,
            model=client.image_model,
            prompt_used=prompt,
            generation_time_ms=elapsed_ms,
            estimated_cost=ESTIMATED_COST_BY_SIZE[request.image_size],
        )

    async def resolve_context(self, request: SourceImageRequest) -> SourceImageRequest:
        """Fill a missing title/excerpt from the record. Empty strings are kept as given."""
        if request.title is not None or not request.content_id:
            return request
        record = await asyncio.to_thread(self.contents.get, request.content_id)
        if record is None:
            raise ContentNotFoundError("Article not found")
        excerpt = request.excerpt if request.excerpt is not None else record.excerpt
        return SourceImageRequest(
            url=request.url,
            content_id=request.content_id,
            title=record.title,
            excerpt=excerpt,
            style=request.style,
            aspect_ratio=request.aspect_ratio,
            image_size=request.image_size,
        )

    async def execute(self, request: SourceImageRequest, run: PipelineRun | None = None) -> DerivativeImage:
        run = run or PipelineRun(label=f"smart {request.content_id or 'preview'}")
        try:
            resolved = await self.resolve_context(request)
            derivative = await self.generate(resolved, run)
        except Exception as exc:
            run.fail(exc)
            raise

        if request.content_id:
            run.advance(PipelineStage.RECORDING)
            try:
                updated = await asyncio.to_thread(
                    self.contents.update_thumbnail,
                    request.content_id,
                    derivative.stored_url,
                    ai_model=derivative.model,
                    ai_prompt=derivative.prompt_used,
                )
            except Exception:
                logger.exception("Stored %s but failed to update content %s", derivative.stored_url, request.content_id)
            else:
                if updated:
                    logger.info("Content %s updated with smart thumbnail", request.content_id)
                else:
                    logger.warning(
                        "Content %s not found while recording smart thumbnail %s",
                        request.content_id,
                        derivative.stored_url,
                    )
        else:
            logger.info("Generated preview thumbnail for unsaved content (no record update)")
        run.advance(PipelineStage.DONE)
        return derivative
