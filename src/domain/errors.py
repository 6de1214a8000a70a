from __future__ import annotations


class ThumbnailError(Exception):
    """Base class for every failure raised by the thumbnail pipeline."""


class ValidationError(ThumbnailError):
    """Bad or untrusted source URL, or a malformed request. Never retried."""


class ContentNotFoundError(ValidationError):
    """The referenced content record does not exist."""


class FetchError(ThumbnailError):
    """Source image download failed (timeout, status, content type, size)."""


class TransformError(ThumbnailError):
    """Source bytes could not be decoded or re-encoded."""


class GenerationError(ThumbnailError):
    """The generative model produced no usable image."""


class StorageError(ThumbnailError):
    """The derivative could not be persisted; no artifact exists."""
