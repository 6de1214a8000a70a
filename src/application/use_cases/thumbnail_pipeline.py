from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace

from src.application.use_cases.generate_smart_thumbnail import GenerateSmartThumbnailUseCase
from src.application.use_cases.generate_thumbnail import GenerateThumbnailUseCase
from src.application.use_cases.pipeline_state import PipelineRun, PipelineStage
from src.domain.entities.derivative import DerivativeImage, GenerationMethod, SourceImageRequest
from src.domain.errors import ContentNotFoundError, ValidationError
from src.domain.services.url_validator import normalize_image_url

logger = logging.getLogger(__name__)


def parse_method(method: str | GenerationMethod) -> GenerationMethod:
    try:
        return GenerationMethod(method)
    except ValueError as exc:
        raise ValidationError(f"Invalid method: {method}") from exc


@dataclass
class ThumbnailPipeline:
    """Entry point for one thumbnail request.

    ``received -> validating -> fetching -> (transforming | generating) ->
    storing -> recording -> done``; any step may end in ``errored``. A failed
    record update after storing is logged and does not undo the stored file.
    """

    crop: GenerateThumbnailUseCase
    smart: GenerateSmartThumbnailUseCase

    async def run(self, request: SourceImageRequest, method: str | GenerationMethod) -> DerivativeImage:
        selected = parse_method(method)
        run = PipelineRun(label=f"{selected.value} {request.content_id or 'preview'}")

        if selected is GenerationMethod.CROP:
            if not request.content_id:
                raise ValidationError("contentId is required for crop thumbnails")
            record = await asyncio.to_thread(self.crop.contents.get, request.content_id)
            if record is None:
                raise ContentNotFoundError("Article not found")
            return await self.crop.execute(request.content_id, request.url, run)

        run.advance(PipelineStage.VALIDATING)
        try:
            url = normalize_image_url(request.url, self.crop.base_url)
            self.crop.validator.ensure_valid(url)
        except ValidationError as exc:
            run.fail(exc)
            raise
        return await self.smart.execute(replace(request, url=url), run)

    async def run_responsive(self, image_url: str, content_id: str | None = None) -> dict[str, str]:
        if content_id:
            record = await asyncio.to_thread(self.crop.contents.get, content_id)
            if record is None:
                raise ContentNotFoundError("Article not found")
        return await self.crop.execute_responsive(image_url, content_id)
