from __future__ import annotations

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from src.infrastructure.ai.gemini_client import GeminiImageClient
from src.infrastructure.api.middlewares import add_default_middlewares, add_exception_handlers
from src.infrastructure.api.routes.thumbnail_routes import router as thumbnail_router
from src.infrastructure.config import Settings, configure_logging
from src.infrastructure.storage.thumbnail_storage import ThumbnailStorage


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="ThumbKit Backend",
        version="0.1.0",
        description="""
        ## ThumbKit Backend API

        Thumbnail generation for news content: deterministic 16:9 cover crops,
        responsive size sets, and AI-redrawn "smart" thumbnails.

        ### Features
        - **Crop**: 640x360 cover-fit crop of an allow-listed source image
        - **Responsive**: 320x180, 640x360 and 1280x720 variants in one call
        - **AI Smart**: describe, prompt and redraw the source with an image model
        - **Backfill**: catch up published articles that still lack a thumbnail

        ### Authentication
        All thumbnail endpoints require a Bearer token in the Authorization header:
        ```
        Authorization: Bearer your-jwt-token
        ```

        ### Error Responses
        Errors are returned as `{"error": "<message>"}`:
        - **400 Bad Request**: Invalid or untrusted URL, invalid method or style, missing fields
        - **401 Unauthorized**: Missing or invalid authentication token
        - **403 Forbidden**: Elevated role required
        - **404 Not Found**: Referenced content record does not exist
        - **500 Internal Server Error**: Fetch, transform, generation or storage failure
        """,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )
    # built once per process and shared by every request
    app.state.settings = settings
    app.state.storage = ThumbnailStorage.from_settings(settings)
    app.state.model_client = GeminiImageClient.from_settings(settings)

    add_default_middlewares(app)
    add_exception_handlers(app)

    @app.get(
        "/",
        summary="API Root",
        description="Get basic information about the ThumbKit API",
        response_description="API information including status and version",
    )
    def root():
        """Get API root information."""
        return {"status": "ok", "service": "thumbkit-backend", "version": app.version}

    @app.get(
        "/health",
        summary="Health Check",
        description="Check if the API service is running and healthy",
        response_description="Health status of the API service",
    )
    def health():
        """Check API health status."""
        return {
            "status": "healthy",
            "storage": "gcs" if settings.uses_object_storage else "local",
            "smart_thumbnails": app.state.model_client is not None,
        }

    app.include_router(thumbnail_router)

    if not settings.uses_object_storage:
        settings.uploads_dir.mkdir(parents=True, exist_ok=True)
        app.mount("/uploads", StaticFiles(directory=settings.uploads_dir), name="uploads")
    return app


app = create_app()
