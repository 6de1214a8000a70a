from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from src.domain.entities.derivative import AspectRatio, ImageSize, ThumbnailStyle


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class GenerateThumbnailRequest(_CamelModel):
    """Request model for single thumbnail generation."""

    image_url: str = Field(
        ...,
        alias="imageUrl",
        min_length=1,
        description="Source image URL (absolute, or root-relative to this site)",
        examples=["https://storage.googleapis.com/bucket/photo.jpg"],
    )
    method: str = Field(..., description="Generation method: 'crop' or 'ai-smart'", examples=["crop"])
    content_id: str | None = Field(
        None,
        alias="contentId",
        description="Owning content record. Required for 'crop', optional for an 'ai-smart' preview",
    )
    style: ThumbnailStyle | None = Field(None, description="Visual style for 'ai-smart'")
    title: str | None = Field(None, description="Prompt context; read from the record when omitted")
    excerpt: str | None = Field(None, description="Prompt context; read from the record when omitted")
    aspect_ratio: AspectRatio | None = Field(None, alias="aspectRatio")
    image_size: ImageSize | None = Field(None, alias="imageSize")


class GenerateThumbnailResponse(_CamelModel):
    success: bool = True
    thumbnail_url: str = Field(..., alias="thumbnailUrl")
    method: str


class ResponsiveThumbnailRequest(_CamelModel):
    image_url: str = Field(..., alias="imageUrl", min_length=1)
    content_id: str | None = Field(None, alias="contentId")


class ResponsiveThumbnails(BaseModel):
    small: str = Field(..., description="320x180 thumbnail URL, or the source URL if it failed")
    medium: str = Field(..., description="640x360 thumbnail URL, or the source URL if it failed")
    large: str = Field(..., description="1280x720 thumbnail URL, or the source URL if it failed")


class ResponsiveThumbnailResponse(BaseModel):
    success: bool = True
    thumbnails: ResponsiveThumbnails


class BatchGenerateRequest(BaseModel):
    limit: int = Field(10, ge=1, le=100, description="Maximum number of backlog records to process")


class BatchGenerateResponse(BaseModel):
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    error: str
