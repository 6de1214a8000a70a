from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status

from src.application.dtos.thumbnail_dto import (
    BatchGenerateRequest,
    BatchGenerateResponse,
    ErrorResponse,
    GenerateThumbnailRequest,
    GenerateThumbnailResponse,
    ResponsiveThumbnailRequest,
    ResponsiveThumbnailResponse,
    ResponsiveThumbnails,
)
from src.application.use_cases.backfill_thumbnails import BackfillThumbnailsUseCase
from src.application.use_cases.thumbnail_pipeline import ThumbnailPipeline
from src.domain.entities.derivative import AspectRatio, ImageSize, SourceImageRequest, ThumbnailStyle
from src.domain.errors import ContentNotFoundError, ValidationError
from src.infrastructure.api.dependencies import (
    get_backfill_use_case,
    get_current_user,
    get_pipeline,
    require_elevated_user,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/thumbnails",
    tags=["Thumbnails"],
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request - Invalid URL, method, style or missing fields"},
        401: {"description": "Unauthorized - Invalid or missing authentication token"},
        500: {"model": ErrorResponse, "description": "Pipeline or infrastructure failure"},
    },
)


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, ContentNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, ValidationError):
        code = status.HTTP_400_BAD_REQUEST
    else:
        logger.error("Thumbnail request failed: %s", exc)
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=str(exc) or exc.__class__.__name__)


@router.post(
    "/generate",
    response_model=GenerateThumbnailResponse,
    summary="Generate Thumbnail",
    description="""
    Generate a 16:9 thumbnail for a content record.

    **Methods:**
    - `crop` - deterministic 640x360 cover crop of the source image (`contentId` required)
    - `ai-smart` - redraw with the image model; without `contentId` this is a preview
      and no record is updated

    **Styles** (`ai-smart` only): professional, vibrant, minimal, news, modern

    **Authentication required**: Yes (Bearer token)
    """,
    response_description="URL of the stored thumbnail",
)
async def generate_thumbnail(
    body: GenerateThumbnailRequest,
    user=Depends(get_current_user),
    pipeline: ThumbnailPipeline = Depends(get_pipeline),
):
    """Run the thumbnail pipeline for one request."""
    request = SourceImageRequest(
        url=body.image_url,
        content_id=body.content_id,
        title=body.title,
        excerpt=body.excerpt,
        style=body.style or ThumbnailStyle.NEWS,
        aspect_ratio=body.aspect_ratio or AspectRatio.WIDE,
        image_size=body.image_size or ImageSize.SIZE_2K,
    )
    try:
        derivative = await pipeline.run(request, body.method)
    except Exception as exc:
        raise _http_error(exc) from exc
    return GenerateThumbnailResponse(thumbnail_url=derivative.stored_url, method=body.method)


@router.post(
    "/generate-responsive",
    response_model=ResponsiveThumbnailResponse,
    summary="Generate Responsive Thumbnails",
    description="""
    Generate small (320x180), medium (640x360) and large (1280x720) crops.

    A size that fails is answered with the original image URL instead, so all
    three keys are always present. With `contentId`, the medium size becomes
    the record's thumbnail.

    **Authentication required**: Yes (Bearer token)
    """,
)
async def generate_responsive(
    body: ResponsiveThumbnailRequest,
    user=Depends(get_current_user),
    pipeline: ThumbnailPipeline = Depends(get_pipeline),
):
    try:
        thumbnails = await pipeline.run_responsive(body.image_url, body.content_id)
    except Exception as exc:
        raise _http_error(exc) from exc
    return ResponsiveThumbnailResponse(thumbnails=ResponsiveThumbnails(**thumbnails))


@router.post(
    "/batch-generate",
    response_model=BatchGenerateResponse,
    summary="Backfill Missing Thumbnails",
    description="""
    Start one batch of thumbnail catch-up for published articles that have an
    image but no thumbnail. Returns immediately; progress and the remaining
    backlog size are reported in the service logs only.

    **Authentication required**: Yes (Bearer token, admin or system_admin role)
    """,
    responses={403: {"description": "Forbidden - Elevated role required"}},
)
async def batch_generate(
    background_tasks: BackgroundTasks,
    body: BatchGenerateRequest | None = None,
    user=Depends(require_elevated_user),
    backfill: BackfillThumbnailsUseCase = Depends(get_backfill_use_case),
):
    limit = body.limit if body else 10
    background_tasks.add_task(backfill.run_safely, limit)
    logger.info("User %s scheduled thumbnail backfill (limit=%d)", user.id, limit)
    return BatchGenerateResponse(message=f"Thumbnail generation started for up to {limit} articles")
