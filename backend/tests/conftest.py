"""
Pytest Configuration and Test Fixtures for the portfolio media backend

This module provides:
- Test Settings pointing at a local MinIO-style endpoint
- An in-memory stand-in for the boto3 S3 client (no live S3 needed)
- Storage and upload services wired to that stand-in
- Image payloads generated with Pillow
- FastAPI TestClient with the upload service dependency overridden
"""

from io import BytesIO
from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest

from fastapi.testclient import TestClient
from PIL import Image
from pillow_heif import register_heif_opener

from portfolio_media.api.v1.media import get_upload_service
from portfolio_media.config import Settings
from portfolio_media.core.storage import StorageClient
from portfolio_media.main import app
from portfolio_media.models.media import MediaFile
from portfolio_media.services.storage_service import StorageService
from portfolio_media.services.upload_service import UploadService


TEST_PUBLIC_BASE_URL = "http://localhost:9000/test-bucket"

register_heif_opener()


# ==============================================================================
# Pytest Configuration
# ==============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """
    Configure pytest with custom markers for test categorization.

    Markers defined:
    - unit: For unit tests (isolated, no external dependencies)
    - slow: For slow-running tests that may be skipped in quick test runs
    """
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "slow: mark test as slow-running")


# ==============================================================================
# Fake S3 Client
# ==============================================================================


class FakeS3Client:
    """
    In-memory replacement for the boto3 S3 client.

    ``upload_fileobj`` reads the payload and reports it to ``Callback`` in
    ``chunk_size`` pieces, the way boto3's managed transfer does. Setting
    ``upload_error`` or ``delete_error`` makes the next calls raise it.
    """

    def __init__(self, chunk_size: int = 1024) -> None:
        self.chunk_size = chunk_size
        self.objects: dict[tuple[str, str], dict[str, Any]] = {}
        self.upload_calls: list[dict[str, Any]] = []
        self.delete_calls: list[str] = []
        self.upload_error: Exception | None = None
        self.delete_error: Exception | None = None

    def upload_fileobj(self, Fileobj, Bucket, Key, ExtraArgs=None, Callback=None, Config=None):
        self.upload_calls.append(
            {"bucket": Bucket, "key": Key, "extra_args": ExtraArgs, "config": Config}
        )
        if self.upload_error is not None:
            raise self.upload_error

        data = Fileobj.read()
        if Callback is not None:
            for start in range(0, len(data), self.chunk_size):
                Callback(len(data[start:start + self.chunk_size]))

        self.objects[(Bucket, Key)] = {
            "Body": data,
            "ContentType": (ExtraArgs or {}).get("ContentType"),
        }

    def delete_object(self, Bucket, Key):
        self.delete_calls.append(Key)
        if self.delete_error is not None:
            raise self.delete_error
        self.objects.pop((Bucket, Key), None)
        return {"ResponseMetadata": {"HTTPStatusCode": 204}}


# ==============================================================================
# Settings and Services
# ==============================================================================


@pytest.fixture
def mock_settings() -> Settings:
    """Settings for an isolated test environment (local MinIO-style endpoint)."""
    return Settings(
        app_env="testing",
        app_name="portfolio-media-test",
        debug=True,
        s3_endpoint_url="http://localhost:9000",
        s3_access_key_id="test-access-key",
        s3_secret_access_key="test-secret-key",
        s3_bucket_name="test-bucket",
        s3_region="us-east-1",
        public_base_url=None,
    )


@pytest.fixture
def fake_s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def storage_client(mock_settings: Settings, fake_s3: FakeS3Client) -> StorageClient:
    return StorageClient(settings=mock_settings, s3_client=fake_s3)


@pytest.fixture
def storage_service(storage_client: StorageClient) -> StorageService:
    return StorageService(client=storage_client)


@pytest.fixture
def upload_service(storage_service: StorageService, mock_settings: Settings) -> UploadService:
    return UploadService(storage_service=storage_service, settings=mock_settings)


@pytest.fixture
def mock_storage_service() -> Mock:
    """A StorageService mock for tests asserting the store is never touched."""
    mock = Mock(spec=StorageService)
    mock.upload = AsyncMock()
    mock.delete_by_url = AsyncMock()
    return mock


# ==============================================================================
# Media Payloads
# ==============================================================================


def make_image_bytes(image_format: str = "PNG", size: tuple[int, int] = (32, 24)) -> bytes:
    """Render a small solid-colour image in ``image_format``."""
    buffer = BytesIO()
    Image.new("RGB", size, color=(200, 40, 40)).save(buffer, format=image_format)
    return buffer.getvalue()


def make_animated_gif_bytes(frames: int = 3) -> bytes:
    """Render a multi-frame GIF (stands in for a HEIC burst sequence)."""
    images = [Image.new("RGB", (16, 16), color=(i * 60, 0, 0)) for i in range(frames)]
    buffer = BytesIO()
    images[0].save(buffer, format="GIF", save_all=True, append_images=images[1:])
    return buffer.getvalue()


@pytest.fixture
def png_file() -> MediaFile:
    return MediaFile(name="chart.png", content_type="image/png", data=make_image_bytes("PNG"))


@pytest.fixture
def jpeg_file() -> MediaFile:
    return MediaFile(name="photo.jpg", content_type="image/jpeg", data=make_image_bytes("JPEG"))


@pytest.fixture
def heic_file() -> MediaFile:
    """A real HEIF-encoded photo as an iPhone would send it."""
    return MediaFile(name="IMG_0001.HEIC", content_type="image/heic", data=make_image_bytes("HEIF"))


@pytest.fixture
def mp4_file() -> MediaFile:
    return MediaFile(
        name="interview.mp4", content_type="video/mp4", data=b"\x00\x00\x00\x18ftypmp42" * 64
    )


# ==============================================================================
# API Client
# ==============================================================================


@pytest.fixture
def test_client(upload_service: UploadService):
    """TestClient whose endpoints use the fake-backed upload service."""
    app.dependency_overrides[get_upload_service] = lambda: upload_service
    yield TestClient(app)
    app.dependency_overrides.clear()
