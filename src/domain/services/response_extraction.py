"""Pull image bytes out of an image-generation response.

The model does not always answer in the same shape, so extraction runs an
ordered list of parsers and keeps the first one that yields bytes. The order
is part of the contract; do not reshuffle it.
"""
from __future__ import annotations

import base64
import binascii
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

DEFAULT_MIME_TYPE = "image/jpeg"
DATA_URI_PATTERN = re.compile(r"data:image/[^;]+;base64,([A-Za-z0-9+/=]+)")
IMAGE_FIELD_NAMES = ("image", "imageData", "generatedImage")


@dataclass(frozen=True)
class ExtractedImage:
    data: bytes
    mime_type: str
    method: str


def _field(obj: Any, *names: str) -> Any:
    if not isinstance(obj, Mapping):
        return None
    for name in names:
        value = obj.get(name)
        if value is not None:
            return value
    return None


def _decode(payload: Any) -> bytes | None:
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload) or None
    if not isinstance(payload, str) or not payload:
        return None
    try:
        decoded = base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError):
        return None
    return decoded or None


def _first_candidate_content(response: Mapping[str, Any]) -> Mapping[str, Any] | None:
    candidates = _field(response, "candidates")
    if not isinstance(candidates, Sequence) or isinstance(candidates, str) or not candidates:
        return None
    content = _field(candidates[0], "content")
    return content if isinstance(content, Mapping) else None


def _parts(container: Any) -> list[Mapping[str, Any]]:
    parts = _field(container, "parts")
    if not isinstance(parts, Sequence) or isinstance(parts, str):
        return []
    return [p for p in parts if isinstance(p, Mapping)]


def _from_inline_parts(parts: list[Mapping[str, Any]], method: str) -> ExtractedImage | None:
    for part in parts:
        inline = _field(part, "inlineData", "inline_data")
        data = _decode(_field(inline, "data"))
        if data:
            return ExtractedImage(data, _field(inline, "mimeType", "mime_type") or DEFAULT_MIME_TYPE, method)
    return None


def _from_image_field(value: Any, method: str) -> ExtractedImage | None:
    if isinstance(value, str):
        data = _decode(value)
        return ExtractedImage(data, DEFAULT_MIME_TYPE, method) if data else None
    data = _decode(_field(value, "data"))
    if data:
        return ExtractedImage(data, _field(value, "mimeType", "mime_type") or DEFAULT_MIME_TYPE, method)
    return None


# (a) candidates[0].content.parts[n].inlineData
def candidate_inline_data(response: Mapping[str, Any]) -> ExtractedImage | None:
    return _from_inline_parts(_parts(_first_candidate_content(response)), "candidate_inline_data")


# (b) top-level parts[n].inlineData
def top_level_inline_data(response: Mapping[str, Any]) -> ExtractedImage | None:
    return _from_inline_parts(_parts(response), "top_level_inline_data")


# (c) bare response.data
def bare_data(response: Mapping[str, Any]) -> ExtractedImage | None:
    data = _decode(_field(response, "data"))
    return ExtractedImage(data, DEFAULT_MIME_TYPE, "bare_data") if data else None


# (d) data:image/...;base64 URI embedded in a text part
def text_data_uri(response: Mapping[str, Any]) -> ExtractedImage | None:
    for part in _parts(_first_candidate_content(response)):
        text = _field(part, "text")
        if not isinstance(text, str) or "base64" not in text:
            continue
        match = DATA_URI_PATTERN.search(text)
        if match:
            data = _decode(match.group(1))
            if data:
                return ExtractedImage(data, DEFAULT_MIME_TYPE, "text_data_uri")
    return None


# (e) candidates[0].content.image
def candidate_content_image(response: Mapping[str, Any]) -> ExtractedImage | None:
    content = _first_candidate_content(response)
    return _from_image_field(_field(content, "image"), "candidate_content_image")


# (f) any part carrying image / imageData / generatedImage
def part_image_fields(response: Mapping[str, Any]) -> ExtractedImage | None:
    for part in _parts(_first_candidate_content(response)):
        value = _field(part, *IMAGE_FIELD_NAMES)
        if value is None:
            continue
        found = _from_image_field(value, "part_image_fields")
        if found:
            return found
    return None


EXTRACTORS: tuple[Callable[[Mapping[str, Any]], ExtractedImage | None], ...] = (
    candidate_inline_data,
    top_level_inline_data,
    bare_data,
    text_data_uri,
    candidate_content_image,
    part_image_fields,
)


def extract_image(response: Mapping[str, Any]) -> ExtractedImage | None:
    for extractor in EXTRACTORS:
        found = extractor(response)
        if found is not None:
            return found
    return None
