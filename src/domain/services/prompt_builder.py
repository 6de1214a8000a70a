from __future__ import annotations

from src.domain.entities.derivative import ThumbnailStyle

FALLBACK_DESCRIPTION = "professional news image with clear composition and strong visual impact"

DESCRIBE_INSTRUCTION = """Analyze this image and provide a detailed description focusing on:
1. Main subject and composition
2. Key visual elements and colors
3. Mood and atmosphere
4. Important details that should be preserved

Provide only the description, no other text."""

STYLE_PROMPTS: dict[ThumbnailStyle, str] = {
    ThumbnailStyle.PROFESSIONAL: "professional news photography style, clean composition, high-quality photojournalism",
    ThumbnailStyle.VIBRANT: "vibrant colors, dynamic composition, eye-catching visual impact, energetic mood",
    ThumbnailStyle.MINIMAL: "minimal design, clean lines, focused subject, modern aesthetic",
    ThumbnailStyle.NEWS: "professional news style, clear focal point, informative composition, journalistic quality",
    ThumbnailStyle.MODERN: "modern editorial style, contemporary design, sophisticated composition",
}

EXCERPT_CONTEXT_LIMIT = 200


def build_prompt(
    description: str,
    style: ThumbnailStyle = ThumbnailStyle.NEWS,
    title: str | None = None,
    excerpt: str | None = None,
) -> str:
    """Compose the image-generation prompt from a visual description and article context."""
    context_lines = []
    if title:
        context_lines.append(f"Article title: {title}")
    if excerpt:
        context_lines.append(f"Context: {excerpt[:EXCERPT_CONTEXT_LIMIT]}")
    context = "\n".join(context_lines)

    return f"""Create a professional 16:9 news thumbnail based on this description:

{description}

{context}

Style: {STYLE_PROMPTS[style]}

Requirements:
- 16:9 aspect ratio optimized for news cards
- Clear focal point and strong composition
- High visual impact suitable for thumbnails
- Professional news photography quality
- Preserve the essence and key elements of the original
- Suitable for Arabic news platform (RTL context)
- No text or watermarks in the image

Create a compelling thumbnail that captures attention while maintaining journalistic integrity."""
