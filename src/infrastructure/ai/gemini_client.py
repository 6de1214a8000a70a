from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from google import genai
from google.genai import types

from src.domain.services.prompt_builder import DESCRIBE_INSTRUCTION
from src.infrastructure.config import Settings

logger = logging.getLogger(__name__)


class GeminiImageClient:
    """Thin handle over the Gemini SDK, built once at startup and injected.

    ``generate_image`` returns the raw response as a plain camelCase mapping;
    picking the image out of it is the caller's job.
    """

    def __init__(
        self,
        client: genai.Client,
        describe_model: str = "gemini-3-pro",
        image_model: str = "gemini-3-pro-image-preview",
    ) -> None:
        self._client = client
        self.describe_model = describe_model
        self.image_model = image_model

    @classmethod
    def from_settings(cls, settings: Settings) -> GeminiImageClient | None:
        if not settings.gemini_api_key:
            logger.error("GEMINI_API_KEY not configured; smart thumbnails are disabled")
            return None
        return cls(
            genai.Client(api_key=settings.gemini_api_key),
            describe_model=settings.describe_model,
            image_model=settings.image_model,
        )

    async def describe_image(self, image: bytes, mime_type: str = "image/jpeg") -> str:
        response = await self._client.aio.models.generate_content(
            model=self.describe_model,
            contents=[
                types.Content(
                    role="user",
                    parts=[
                        types.Part.from_bytes(data=image, mime_type=mime_type),
                        types.Part.from_text(text=DESCRIBE_INSTRUCTION),
                    ],
                )
            ],
        )
        return (response.text or "").strip()

    async def generate_image(self, prompt: str, aspect_ratio: str, image_size: str) -> Mapping[str, Any]:
        response = await self._client.aio.models.generate_content(
            model=self.image_model,
            contents=[types.Content(role="user", parts=[types.Part.from_text(text=prompt)])],
            config=types.GenerateContentConfig(
                response_modalities=["IMAGE"],
                image_config=types.ImageConfig(aspect_ratio=aspect_ratio, image_size=image_size),
            ),
        )
        return response.model_dump(by_alias=True, exclude_none=True)
