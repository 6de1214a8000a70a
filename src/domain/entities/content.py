from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

PUBLISHED = "published"


@dataclass(frozen=True)
class ContentRecord:
    id: str
    title: str
    status: str = "draft"
    excerpt: str | None = None
    image_url: str | None = None  # source image, required for backlog membership
    thumbnail_url: str | None = None
    is_ai_generated_thumbnail: bool = False
    ai_thumbnail_model: str | None = None
    ai_thumbnail_prompt: str | None = None
    created_at: datetime | None = None

    @property
    def needs_thumbnail(self) -> bool:
        """Backlog membership: published, has a source image, lacks a thumbnail."""
        return self.status == PUBLISHED and self.image_url is not None and self.thumbnail_url is None
