from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ThumbnailStyle(str, Enum):
    PROFESSIONAL = "professional"
    VIBRANT = "vibrant"
    MINIMAL = "minimal"
    NEWS = "news"
    MODERN = "modern"


class AspectRatio(str, Enum):
    WIDE = "16:9"
    STANDARD = "4:3"
    SQUARE = "1:1"


class ImageSize(str, Enum):
    SIZE_2K = "2K"
    SIZE_4K = "4K"


class GenerationMethod(str, Enum):
    CROP = "crop"
    AI_SMART = "ai-smart"


class GeneratedBy(str, Enum):
    CROP = "crop"
    GENERATIVE = "generative"


@dataclass(frozen=True)
class SourceImageRequest:
    """Per-call input. Never persisted."""

    url: str
    content_id: str | None = None
    title: str | None = None
    excerpt: str | None = None
    style: ThumbnailStyle = ThumbnailStyle.NEWS
    aspect_ratio: AspectRatio = AspectRatio.WIDE
    image_size: ImageSize = ImageSize.SIZE_2K


@dataclass(frozen=True)
class DerivativeImage:
    """A stored derivative. Only the stored URL crosses the pipeline boundary.

    Generative-only fields (model, prompt_used, generation_time_ms,
    estimated_cost) are set if and only if ``generated_by`` is ``GENERATIVE``.
    """

    stored_url: str
    width: int
    height: int
    format: str
    generated_by: GeneratedBy
    model: str | None = None
    prompt_used: str | None = None
    generation_time_ms: int | None = None
    estimated_cost: float | None = None

    def __post_init__(self) -> None:
        generative_fields = (self.model, self.prompt_used, self.generation_time_ms, self.estimated_cost)
        if self.generated_by is GeneratedBy.GENERATIVE:
            if any(field is None for field in generative_fields):
                raise ValueError("Generative derivatives must carry all generation metadata")
        elif any(field is not None for field in generative_fields):
            raise ValueError("Cropped derivatives cannot carry generative metadata")
