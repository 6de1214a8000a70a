from __future__ import annotations

import logging
from collections.abc import Iterable
from urllib.parse import urlparse

from src.domain.errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")


def normalize_image_url(url: str, base_url: str) -> str:
    """Make a source URL absolute.

    Absolute http(s) URLs pass through, root-relative paths are resolved
    against ``base_url``. ``gs://`` URLs must be converted to public URLs
    upstream and are rejected.
    """
    if url.startswith(("http://", "https://")):
        return url
    if url.startswith("/"):
        return f"{base_url.rstrip('/')}{url}"
    if url.startswith("gs://"):
        raise ValidationError("gs:// URLs must be converted to public URLs before thumbnail generation")
    return url


class UrlValidator:
    """Allow-list check run before any outbound fetch.

    This is the only SSRF guard in the pipeline; nothing downstream
    re-validates.
    """

    def __init__(self, trusted_domains: Iterable[str]) -> None:
        self.trusted_domains = tuple(d.lower() for d in trusted_domains)

    def is_trusted_host(self, hostname: str) -> bool:
        hostname = hostname.lower()
        return any(hostname == domain or hostname.endswith(f".{domain}") for domain in self.trusted_domains)

    def validate(self, url: str) -> bool:
        try:
            parsed = urlparse(url)
        except ValueError:
            return False
        if parsed.scheme not in ALLOWED_SCHEMES:
            return False
        hostname = parsed.hostname
        if not hostname:
            return False
        if not self.is_trusted_host(hostname):
            logger.warning("Untrusted image host: %s", hostname)
            return False
        return True

    def ensure_valid(self, url: str) -> None:
        if not self.validate(url):
            raise ValidationError("Invalid or untrusted image URL")
