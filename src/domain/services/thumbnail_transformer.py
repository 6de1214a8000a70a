from __future__ import annotations

from io import BytesIO

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from src.domain.errors import TransformError

DEFAULT_WIDTH = 640
DEFAULT_HEIGHT = 360
DEFAULT_QUALITY = 85
DEFAULT_FORMAT = "jpeg"

RESPONSIVE_SIZES: dict[str, tuple[int, int]] = {
    "small": (320, 180),
    "medium": (640, 360),
    "large": (1280, 720),
}

_PIL_FORMATS = {"jpeg": "JPEG", "png": "PNG", "webp": "WEBP"}


class ThumbnailTransformer:
    """Cover-fit resize on uint8 arrays of shape (H, W, C).

    The source is cropped around its center to the target aspect ratio and
    then scaled, so the output is always exactly ``width x height``. Nothing
    is padded and nothing is stretched.
    """

    @staticmethod
    def decode(data: bytes) -> np.ndarray:
        try:
            img = Image.open(BytesIO(data))
            img = ImageOps.exif_transpose(img)
            img = img.convert("RGBA" if img.mode in ("RGBA", "LA", "P") else "RGB")
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
            raise TransformError(f"Unable to decode source image: {exc}") from exc
        return np.asarray(img)

    # Largest centered window with aspect ratio width:height
    @staticmethod
    def cover_box(src_w: int, src_h: int, width: int, height: int) -> tuple[int, int, int, int]:
        if src_w * height > width * src_h:
            crop_w = max(1, round(src_h * width / height))
            x0 = (src_w - crop_w) // 2
            return x0, 0, x0 + crop_w, src_h
        crop_h = max(1, round(src_w * height / width))
        y0 = (src_h - crop_h) // 2
        return 0, y0, src_w, y0 + crop_h

    @staticmethod
    def cover_crop(matrix: np.ndarray, width: int, height: int) -> np.ndarray:
        src_h, src_w = matrix.shape[:2]
        x0, y0, x1, y1 = ThumbnailTransformer.cover_box(src_w, src_h, width, height)
        return np.ascontiguousarray(matrix[y0:y1, x0:x1])

    @staticmethod
    def encode(matrix: np.ndarray, fmt: str, quality: int) -> bytes:
        pil_format = _PIL_FORMATS.get(fmt.lower())
        if pil_format is None:
            raise TransformError(f"Unsupported output format: {fmt}")
        img = Image.fromarray(matrix)
        if pil_format == "JPEG" and img.mode != "RGB":
            img = img.convert("RGB")
        buf = BytesIO()
        save_kwargs = {"quality": quality} if pil_format in ("JPEG", "WEBP") else {"optimize": True}
        img.save(buf, format=pil_format, **save_kwargs)
        return buf.getvalue()

    def transform(
        self,
        data: bytes,
        width: int = DEFAULT_WIDTH,
        height: int = DEFAULT_HEIGHT,
        quality: int = DEFAULT_QUALITY,
        fmt: str = DEFAULT_FORMAT,
    ) -> bytes:
        if width <= 0 or height <= 0:
            raise TransformError(f"Invalid target geometry {width}x{height}")
        matrix = self.decode(data)
        cropped = self.cover_crop(matrix, width, height)
        resized = Image.fromarray(cropped).resize((width, height), Image.Resampling.LANCZOS)
        return self.encode(np.asarray(resized), fmt, quality)
