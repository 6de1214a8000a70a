import io
import os
import sys
import tempfile
from pathlib import Path

import numpy as np
import pytest
from fastapi.testclient import TestClient
from PIL import Image

# Ensure project root is on sys.path so 'src' is importable during tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("SUPABASE_DISABLED", "1")
os.environ.setdefault("UPLOADS_DIR", tempfile.mkdtemp(prefix="thumbkit-uploads-"))
os.environ.pop("GCS_BUCKET_NAME", None)
os.environ.pop("GEMINI_API_KEY", None)


@pytest.fixture(scope="session")
def client() -> TestClient:
    # lazy import after env configured
    from src.main import create_app

    app = create_app()
    return TestClient(app)


@pytest.fixture()
def auth_header() -> dict[str, str]:
    # any token is accepted in disabled mode
    return {"Authorization": "Bearer test-token"}


@pytest.fixture(autouse=True)
def clear_content_store():
    from src.infrastructure.database.repositories import content_repository

    content_repository._MEM_CONTENT.clear()
    yield
    content_repository._MEM_CONTENT.clear()


@pytest.fixture()
def make_image_bytes():
    """Factory for solid-color encoded images of a given size."""

    def _make(w: int = 64, h: int = 64, fmt: str = "JPEG", color=(200, 40, 40)) -> bytes:
        arr = np.zeros((h, w, 3), dtype=np.uint8)
        arr[:, :] = color
        buf = io.BytesIO()
        Image.fromarray(arr, mode="RGB").save(buf, format=fmt)
        return buf.getvalue()

    return _make
