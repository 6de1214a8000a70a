from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_TRUSTED_DOMAINS: tuple[str, ...] = (
    "storage.googleapis.com",
    "localhost",
    "127.0.0.1",
    "0.0.0.0",
    "replit.dev",
    "repl.co",
    "sabq.life",
    "sabq.news",
)


class Settings(BaseSettings):
    """Process-wide configuration, resolved once at startup and injected.

    ``gcs_bucket_name`` being set is the only switch between the object
    storage and local filesystem backends.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
        frozen=True,
    )

    # Storage
    gcs_bucket_name: str | None = None
    gcp_project_id: str | None = None
    gcp_credentials_path: str | None = Field(default=None, validation_alias="GOOGLE_APPLICATION_CREDENTIALS")
    storage_public_host: str = "storage.googleapis.com"
    uploads_dir: Path = Field(default_factory=lambda: Path.cwd() / "uploads")

    # URL allow-list and public base URL
    extra_trusted_domains: Annotated[tuple[str, ...], NoDecode] = Field(
        default=(),
        validation_alias="TRUSTED_DOMAINS",
        description="Comma-separated hosts added to the built-in allow-list",
    )
    domain: str | None = None
    dev_domain: str | None = Field(default=None, validation_alias="REPLIT_DEV_DOMAIN")
    frontend_url: str | None = None
    environment: str = Field(default="development", validation_alias="ENV")

    # Generative model
    gemini_api_key: str | None = None
    describe_model: str = Field(default="gemini-3-pro", validation_alias="GEMINI_DESCRIBE_MODEL")
    image_model: str = Field(default="gemini-3-pro-image-preview", validation_alias="GEMINI_IMAGE_MODEL")

    batch_concurrency: int = Field(default=3, ge=1, validation_alias="THUMBNAIL_BATCH_CONCURRENCY")
    log_level: str = "INFO"

    @field_validator("extra_trusted_domains", mode="before")
    @classmethod
    def _split_domains(cls, value):
        if value is None:
            return ()
        if isinstance(value, str):
            value = value.split(",")
        return tuple(item.strip().lower() for item in value if item and item.strip())

    @field_validator("gcs_bucket_name", "gemini_api_key", "domain", "frontend_url", mode="before")
    @classmethod
    def _blank_is_unset(cls, value):
        return value or None

    @property
    def uses_object_storage(self) -> bool:
        return bool(self.gcs_bucket_name)

    @property
    def trusted_domains(self) -> tuple[str, ...]:
        domains = list(DEFAULT_TRUSTED_DOMAINS)
        for extra in (self.domain, self.dev_domain, *self.extra_trusted_domains):
            if extra and extra.lower() not in domains:
                domains.append(extra.lower())
        return tuple(domains)

    @property
    def public_base_url(self) -> str:
        """Base used to absolutize root-relative image paths."""
        if self.frontend_url:
            return self.frontend_url.rstrip("/")
        if self.dev_domain:
            return f"https://{self.dev_domain}"
        if self.environment == "production" and self.domain:
            return f"https://{self.domain}"
        return "http://localhost:5000"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
