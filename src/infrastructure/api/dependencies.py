from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.application.use_cases.backfill_thumbnails import BackfillThumbnailsUseCase
from src.application.use_cases.generate_smart_thumbnail import GenerateSmartThumbnailUseCase
from src.application.use_cases.generate_thumbnail import GenerateThumbnailUseCase
from src.application.use_cases.thumbnail_pipeline import ThumbnailPipeline
from src.domain.services.thumbnail_transformer import ThumbnailTransformer
from src.domain.services.url_validator import UrlValidator
from src.infrastructure.ai.gemini_client import GeminiImageClient
from src.infrastructure.config import Settings
from src.infrastructure.database.repositories.content_repository import ContentRepository
from src.infrastructure.database.supabase_client import (
    SupabaseAuthAdapter,
    UserInfo,
    get_supabase_client,
)
from src.infrastructure.http.image_fetcher import ImageFetcher
from src.infrastructure.storage.thumbnail_storage import ThumbnailStorage

_bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_adapter() -> SupabaseAuthAdapter:
    return SupabaseAuthAdapter()


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(_bearer_scheme)] = None,
    auth: Annotated[SupabaseAuthAdapter, Depends(get_auth_adapter)] = None,
) -> UserInfo:
    if not credentials or not credentials.scheme or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    token = credentials.credentials
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    try:
        return auth.validate_token(token)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))


def require_elevated_user(user: Annotated[UserInfo, Depends(get_current_user)]) -> UserInfo:
    if not user.is_elevated:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
    return user


# Startup-scoped objects live on app.state; see create_app().
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> ThumbnailStorage:
    return request.app.state.storage


def get_model_client(request: Request) -> GeminiImageClient | None:
    return request.app.state.model_client


def get_fetcher() -> ImageFetcher:
    return ImageFetcher()


def get_content_repo() -> ContentRepository:
    return ContentRepository(get_supabase_client())


def get_crop_use_case(
    settings: Annotated[Settings, Depends(get_settings)],
    storage: Annotated[ThumbnailStorage, Depends(get_storage)],
    fetcher: Annotated[ImageFetcher, Depends(get_fetcher)],
    contents: Annotated[ContentRepository, Depends(get_content_repo)],
) -> GenerateThumbnailUseCase:
    return GenerateThumbnailUseCase(
        validator=UrlValidator(settings.trusted_domains),
        fetcher=fetcher,
        transformer=ThumbnailTransformer(),
        storage=storage,
        contents=contents,
        base_url=settings.public_base_url,
    )


def get_smart_use_case(
    storage: Annotated[ThumbnailStorage, Depends(get_storage)],
    fetcher: Annotated[ImageFetcher, Depends(get_fetcher)],
    contents: Annotated[ContentRepository, Depends(get_content_repo)],
    model_client: Annotated[GeminiImageClient | None, Depends(get_model_client)],
) -> GenerateSmartThumbnailUseCase:
    return GenerateSmartThumbnailUseCase(
        fetcher=fetcher,
        storage=storage,
        contents=contents,
        model_client=model_client,
    )


def get_pipeline(
    crop: Annotated[GenerateThumbnailUseCase, Depends(get_crop_use_case)],
    smart: Annotated[GenerateSmartThumbnailUseCase, Depends(get_smart_use_case)],
) -> ThumbnailPipeline:
    return ThumbnailPipeline(crop=crop, smart=smart)


def get_backfill_use_case(
    settings: Annotated[Settings, Depends(get_settings)],
    crop: Annotated[GenerateThumbnailUseCase, Depends(get_crop_use_case)],
    contents: Annotated[ContentRepository, Depends(get_content_repo)],
) -> BackfillThumbnailsUseCase:
    return BackfillThumbnailsUseCase(thumbnails=crop, contents=contents, concurrency=settings.batch_concurrency)
