"""
Tests for the upload facade (portfolio_media.services.upload_service).

Test Organization:
- TestUploadPipeline: convert → validate → path → upload ordering and results
- TestUploadRejections: failures abort before the store is touched
- TestConvenienceWrappers: upload_file / upload_image / upload_video
- TestConcurrentUploads: independent uploads running together
- TestDeletes: single and bulk delete by URL
- TestStorageNotConfigured: guard before any work
"""

import asyncio
import re

from unittest.mock import AsyncMock, Mock

import pytest

from botocore.exceptions import ClientError

from conftest import TEST_PUBLIC_BASE_URL, FakeS3Client
from portfolio_media.config import Settings
from portfolio_media.models.media import (
    BYTES_PER_MB,
    MediaCategory,
    MediaFile,
    StorageObject,
    UploadRequest,
)
from portfolio_media.services.errors import (
    ConversionError,
    SizeExceededError,
    StorageNotConfiguredError,
    UnsupportedFormatError,
    UploadError,
)
from portfolio_media.services.image_converter import ImageConverter
from portfolio_media.services.upload_service import UploadService


# =============================================================================
# UPLOAD PIPELINE
# =============================================================================


class TestUploadPipeline:
    @pytest.mark.asyncio
    async def test_heic_image_is_converted_and_stored_as_jpeg(
        self, upload_service: UploadService, heic_file: MediaFile, fake_s3: FakeS3Client
    ):
        conversion_progress: list[int] = []

        result = await upload_service.upload(
            UploadRequest(file=heic_file, category=MediaCategory.IMAGE),
            on_conversion_progress=conversion_progress.append,
        )

        assert re.fullmatch(r"images/\d{13}_[0-9a-z]{11}\.jpg", result.path), result.path
        assert result.url == f"{TEST_PUBLIC_BASE_URL}/{result.path}"
        assert result.file_name == "IMG_0001.jpg"
        assert result.original_name == "IMG_0001.HEIC"
        assert result.content_type == "image/jpeg"
        assert result.converted is True
        assert conversion_progress == [10, 100]

        stored = fake_s3.objects[("test-bucket", result.path)]
        assert stored["ContentType"] == "image/jpeg"
        assert stored["Body"][:3] == b"\xff\xd8\xff"
        assert result.size == len(stored["Body"])

    @pytest.mark.asyncio
    async def test_heic_detected_by_type_is_stored_with_jpg_key(
        self, upload_service: UploadService, heic_file: MediaFile, fake_s3: FakeS3Client
    ):
        mislabeled = MediaFile(name="IMG_0001.png", content_type="image/heic", data=heic_file.data)

        result = await upload_service.upload(UploadRequest(file=mislabeled))

        assert result.file_name == "IMG_0001.jpg"
        assert result.path.endswith(".jpg")
        assert fake_s3.objects[("test-bucket", result.path)]["ContentType"] == "image/jpeg"

    @pytest.mark.asyncio
    async def test_jpeg_is_stored_unchanged(
        self, upload_service: UploadService, jpeg_file: MediaFile, fake_s3: FakeS3Client
    ):
        result = await upload_service.upload(UploadRequest(file=jpeg_file))

        assert result.converted is False
        assert result.file_name == "photo.jpg"
        assert fake_s3.objects[("test-bucket", result.path)]["Body"] == jpeg_file.data

    @pytest.mark.asyncio
    async def test_custom_folder(self, upload_service: UploadService, png_file: MediaFile):
        result = await upload_service.upload(UploadRequest(file=png_file, folder="posts/42"))

        assert result.path.startswith("posts/42/")
        assert result.path.endswith(".png")

    @pytest.mark.asyncio
    async def test_video_goes_to_videos_folder(
        self, upload_service: UploadService, mp4_file: MediaFile
    ):
        result = await upload_service.upload(
            UploadRequest(file=mp4_file, category=MediaCategory.VIDEO)
        )

        assert result.path.startswith("videos/")
        assert result.category == MediaCategory.VIDEO

    @pytest.mark.asyncio
    async def test_progress_is_forwarded(
        self, upload_service: UploadService, png_file: MediaFile, fake_s3: FakeS3Client
    ):
        fake_s3.chunk_size = max(1, png_file.size // 2 + 1)
        progress: list[int] = []

        await upload_service.upload(UploadRequest(file=png_file), on_progress=progress.append)

        assert progress[-1] == 100
        assert progress == sorted(progress)
        assert all(0 <= value <= 100 for value in progress)

    @pytest.mark.asyncio
    async def test_heic_named_video_is_not_converted(
        self, mock_storage_service: Mock, mock_settings: Settings
    ):
        converter = Mock(spec=ImageConverter)
        converter.convert = AsyncMock()
        service = UploadService(
            storage_service=mock_storage_service, converter=converter, settings=mock_settings
        )
        file = MediaFile(name="clip.heic", content_type="image/heic", data=b"x")

        with pytest.raises(UnsupportedFormatError):
            await service.upload(UploadRequest(file=file, category=MediaCategory.VIDEO))

        converter.convert.assert_not_called()


# =============================================================================
# REJECTIONS
# =============================================================================


class TestUploadRejections:
    @pytest.mark.asyncio
    async def test_oversized_video_is_rejected_without_storage_call(
        self, mock_storage_service: Mock, mock_settings: Settings
    ):
        service = UploadService(storage_service=mock_storage_service, settings=mock_settings)
        video = MediaFile(name="raw.mp4", content_type="video/mp4", data=b"\0" * (80 * BYTES_PER_MB))

        with pytest.raises(SizeExceededError) as exc_info:
            await service.upload(UploadRequest(file=video, category=MediaCategory.VIDEO))

        assert "50MB" in exc_info.value.message
        mock_storage_service.upload.assert_not_called()

    @pytest.mark.asyncio
    async def test_bmp_is_rejected_with_format_message(
        self, mock_storage_service: Mock, mock_settings: Settings
    ):
        service = UploadService(storage_service=mock_storage_service, settings=mock_settings)
        bmp = MediaFile(name="scan.bmp", content_type="image/bmp", data=b"BM" + b"\0" * 128)

        with pytest.raises(UnsupportedFormatError) as exc_info:
            await service.upload(UploadRequest(file=bmp))

        assert exc_info.value.message.startswith(
            "The BMP format is not supported for web display."
        )
        mock_storage_service.upload.assert_not_called()

    @pytest.mark.asyncio
    async def test_conversion_failure_aborts_before_validation_and_upload(
        self, mock_storage_service: Mock, mock_settings: Settings
    ):
        service = UploadService(storage_service=mock_storage_service, settings=mock_settings)
        broken = MediaFile(name="IMG_9.HEIC", content_type="image/heic", data=b"garbage")

        with pytest.raises(ConversionError):
            await service.upload(UploadRequest(file=broken))

        mock_storage_service.upload.assert_not_called()

    @pytest.mark.asyncio
    async def test_converted_file_is_validated(
        self, mock_storage_service: Mock, mock_settings: Settings, heic_file: MediaFile
    ):
        oversized_jpeg = MediaFile(
            name="IMG_0001.jpg", content_type="image/jpeg", data=b"\0" * (11 * BYTES_PER_MB)
        )
        converter = Mock(spec=ImageConverter)
        converter.convert = AsyncMock(return_value=oversized_jpeg)
        service = UploadService(
            storage_service=mock_storage_service, converter=converter, settings=mock_settings
        )

        with pytest.raises(SizeExceededError, match="10MB"):
            await service.upload(UploadRequest(file=heic_file))

        converter.convert.assert_awaited_once()
        mock_storage_service.upload.assert_not_called()

    @pytest.mark.asyncio
    async def test_upload_failure_is_forwarded_unchanged(
        self, upload_service: UploadService, jpeg_file: MediaFile, fake_s3: FakeS3Client
    ):
        fake_s3.upload_error = ClientError(
            {"Error": {"Code": "SlowDown", "Message": "Please reduce your request rate."}},
            "PutObject",
        )

        with pytest.raises(UploadError, match="File upload failed: Please reduce your request rate."):
            await upload_service.upload(UploadRequest(file=jpeg_file))

        assert len(fake_s3.upload_calls) == 1


# =============================================================================
# CONVENIENCE WRAPPERS
# =============================================================================


class TestConvenienceWrappers:
    @pytest.mark.asyncio
    async def test_upload_image_returns_url_in_images(
        self, upload_service: UploadService, png_file: MediaFile
    ):
        url = await upload_service.upload_image(png_file)

        assert url.startswith(f"{TEST_PUBLIC_BASE_URL}/images/")

    @pytest.mark.asyncio
    async def test_upload_video_returns_url_in_videos(
        self, upload_service: UploadService, mp4_file: MediaFile
    ):
        url = await upload_service.upload_video(mp4_file)

        assert url.startswith(f"{TEST_PUBLIC_BASE_URL}/videos/")

    @pytest.mark.asyncio
    async def test_upload_file_defaults_to_image_category(
        self, upload_service: UploadService, jpeg_file: MediaFile
    ):
        url = await upload_service.upload_file(jpeg_file)

        assert f"{TEST_PUBLIC_BASE_URL}/images/" in url

    @pytest.mark.asyncio
    async def test_upload_file_with_folder(self, upload_service: UploadService, jpeg_file: MediaFile):
        url = await upload_service.upload_file(jpeg_file, folder="covers")

        assert url.startswith(f"{TEST_PUBLIC_BASE_URL}/covers/")

    @pytest.mark.asyncio
    async def test_missing_file_is_rejected(self, upload_service: UploadService):
        with pytest.raises(UnsupportedFormatError, match="No file provided"):
            await upload_service.upload_image(None)


# =============================================================================
# CONCURRENCY
# =============================================================================


class TestConcurrentUploads:
    @pytest.mark.asyncio
    async def test_concurrent_uploads_are_independent(
        self, upload_service: UploadService, png_file: MediaFile, heic_file: MediaFile, fake_s3: FakeS3Client
    ):
        files = [png_file, heic_file] * 10

        results = await asyncio.gather(
            *(upload_service.upload(UploadRequest(file=file)) for file in files)
        )

        paths = [result.path for result in results]
        assert len(set(paths)) == len(files)
        assert len(fake_s3.objects) == len(files)
        assert sum(result.converted for result in results) == 10

    @pytest.mark.asyncio
    async def test_one_failure_does_not_affect_others(
        self, mock_settings: Settings, png_file: MediaFile
    ):
        storage = Mock()
        storage.upload = AsyncMock(
            side_effect=[
                StorageObject(path="images/1.png", url=f"{TEST_PUBLIC_BASE_URL}/images/1.png"),
                UploadError("File upload failed: boom"),
                StorageObject(path="images/3.png", url=f"{TEST_PUBLIC_BASE_URL}/images/3.png"),
            ]
        )
        service = UploadService(storage_service=storage, settings=mock_settings)

        outcomes = await asyncio.gather(
            *(service.upload(UploadRequest(file=png_file)) for _ in range(3)),
            return_exceptions=True,
        )

        assert sum(isinstance(outcome, UploadError) for outcome in outcomes) == 1
        assert sum(not isinstance(outcome, Exception) for outcome in outcomes) == 2


# =============================================================================
# DELETES
# =============================================================================


class TestDeletes:
    @pytest.mark.asyncio
    async def test_delete_file(
        self, upload_service: UploadService, png_file: MediaFile, fake_s3: FakeS3Client
    ):
        url = await upload_service.upload_image(png_file)

        await upload_service.delete_file(url)

        assert fake_s3.objects == {}

    @pytest.mark.asyncio
    async def test_bulk_delete_collects_failures(
        self, upload_service: UploadService, png_file: MediaFile, fake_s3: FakeS3Client
    ):
        first = await upload_service.upload_image(png_file)
        second = await upload_service.upload_image(png_file)
        foreign = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"

        result = await upload_service.delete_files([first, foreign, second, first])

        assert result.deleted == [first, second]
        assert result.failed == {foreign: "Invalid storage URL"}
        assert result.deleted_count == 2
        assert result.failed_count == 1
        assert fake_s3.objects == {}

    @pytest.mark.asyncio
    async def test_bulk_delete_keeps_going_after_transport_errors(
        self, upload_service: UploadService, fake_s3: FakeS3Client
    ):
        fake_s3.delete_error = ClientError(
            {"Error": {"Code": "InternalError", "Message": "Try again"}}, "DeleteObject"
        )
        urls = [f"{TEST_PUBLIC_BASE_URL}/images/{i}.jpg" for i in range(3)]

        result = await upload_service.delete_files(urls)

        assert result.deleted == []
        assert set(result.failed) == set(urls)
        assert all(message == "Failed to delete file: Try again" for message in result.failed.values())
        assert len(fake_s3.delete_calls) == 3

    @pytest.mark.asyncio
    async def test_bulk_delete_of_nothing(self, upload_service: UploadService):
        result = await upload_service.delete_files([])

        assert result.deleted_count == 0
        assert result.failed_count == 0


# =============================================================================
# STORAGE NOT CONFIGURED
# =============================================================================


class TestStorageNotConfigured:
    @pytest.fixture
    def unconfigured_service(self, mock_storage_service: Mock) -> UploadService:
        settings = Settings(s3_access_key_id=None, s3_secret_access_key=None)
        return UploadService(storage_service=mock_storage_service, settings=settings)

    @pytest.mark.asyncio
    async def test_upload_is_refused(self, unconfigured_service: UploadService, png_file: MediaFile):
        with pytest.raises(StorageNotConfiguredError):
            await unconfigured_service.upload(UploadRequest(file=png_file))

        unconfigured_service.storage.upload.assert_not_called()

    @pytest.mark.asyncio
    async def test_deletes_are_refused(self, unconfigured_service: UploadService):
        with pytest.raises(StorageNotConfiguredError):
            await unconfigured_service.delete_file(f"{TEST_PUBLIC_BASE_URL}/images/a.jpg")
        with pytest.raises(StorageNotConfiguredError):
            await unconfigured_service.delete_files([f"{TEST_PUBLIC_BASE_URL}/images/a.jpg"])

        unconfigured_service.storage.delete_by_url.assert_not_called()
