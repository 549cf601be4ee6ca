"""
Portfolio Media Upload Service Module

This module provides the single entry point the admin CMS uses to store media.
One upload runs through a fixed pipeline:

1. HEIC/HEIF images are converted to JPEG (ImageConverter)
2. The (converted) file is validated against its category policy
3. A unique object key is generated under the destination folder
4. The payload is transferred to the object store with progress reporting

Each step either hands its result to the next or raises a typed
``MediaServiceError``; the facade forwards errors unchanged and never retries.
Deletion by public URL (single and bulk) lives here too so callers only ever
talk to one service.
"""

import asyncio
import logging
import uuid

from collections.abc import Callable, Iterable

from portfolio_media.config import Settings, get_settings
from portfolio_media.models.media import (
    BulkDeleteResult,
    MediaCategory,
    MediaFile,
    MediaPolicy,
    UploadRequest,
    UploadResult,
)
from portfolio_media.services.errors import MediaServiceError, StorageNotConfiguredError
from portfolio_media.services.image_converter import ImageConverter
from portfolio_media.services.storage_service import StorageService
from portfolio_media.utils.file_validator import (
    generate_storage_path,
    is_heic_file,
    validate_media,
)
from portfolio_media.utils.logger import add_log_context


# Configure module logger
logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

STORAGE_NOT_CONFIGURED_MESSAGE = (
    "Media storage is not configured. Please check the S3 bucket and credential settings."
)


class UploadService:
    """
    Facade over conversion, validation, path generation and storage.

    Holds no per-upload state, so one instance serves any number of
    concurrent uploads.

    Attributes:
        settings: Application settings (used for the storage configuration guard)
        policy: Fixed upload policy per media category
        storage: Async storage service
        converter: HEIC/HEIF to JPEG converter

    Example:
        ```python
        service = UploadService()
        url = await service.upload_image(MediaFile(name="IMG_0001.HEIC", data=raw))
        ```
    """

    def __init__(
        self,
        storage_service: StorageService | None = None,
        converter: ImageConverter | None = None,
        policy: MediaPolicy | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.policy = policy or MediaPolicy()
        self.converter = converter or ImageConverter(self.policy)
        self._storage = storage_service

    @property
    def storage(self) -> StorageService:
        """Storage service, created on first use so an unconfigured app can still start."""
        if self._storage is None:
            self._storage = StorageService()
        return self._storage

    def ensure_storage_configured(self) -> None:
        """
        Refuse to work without a bucket and credentials.

        Raises:
            StorageNotConfiguredError: If the S3 settings are incomplete
        """
        if not self.settings.is_storage_configured:
            logger.error("Storage operation requested but S3 storage is not configured")
            raise StorageNotConfiguredError(STORAGE_NOT_CONFIGURED_MESSAGE)

    # =========================================================================
    # Uploads
    # =========================================================================

    async def upload(
        self,
        request: UploadRequest,
        on_progress: ProgressCallback | None = None,
        on_conversion_progress: ProgressCallback | None = None,
    ) -> UploadResult:
        """
        Run one upload through the pipeline.

        Args:
            request: The file, its category and an optional destination folder
            on_progress: Optional callback receiving transfer percentages (0-100)
            on_conversion_progress: Optional callback receiving conversion
                percentages (``10`` then ``100``) when a HEIC image is converted

        Returns:
            UploadResult: Where the file was stored and what was stored

        Raises:
            StorageNotConfiguredError: If storage settings are incomplete
            ConversionError: If a HEIC/HEIF image cannot be converted
            SizeExceededError: If the file exceeds the category ceiling
            UnsupportedFormatError: If the format is not allowed
            UploadError: If the transfer fails
        """
        self.ensure_storage_configured()

        original = request.file
        ctx_logger = add_log_context(
            logger, upload_id=uuid.uuid4().hex, category=request.category.value
        )
        ctx_logger.info(
            "Upload started for '%s' (%d bytes, %s)",
            original.name,
            original.size,
            original.content_type or "no declared type",
        )

        file = original
        converted = False
        if request.category == MediaCategory.IMAGE and is_heic_file(file):
            ctx_logger.info("HEIC/HEIF image detected, converting to JPEG")
            file = await self.converter.convert(file, on_progress=on_conversion_progress)
            converted = True

        try:
            validate_media(file, request.category, self.policy)
        except MediaServiceError as e:
            ctx_logger.warning("Upload rejected: %s", e.code)
            raise

        folder = request.folder or self.policy.folder_for(request.category)
        path = generate_storage_path(file.name, folder)

        try:
            stored = await self.storage.upload(path, file.data, file.content_type, on_progress)
        except MediaServiceError as e:
            ctx_logger.error("Upload failed: %s", e.message)
            raise

        ctx_logger.info("Upload finished: %s", stored.url)
        return UploadResult(
            path=stored.path,
            url=stored.url,
            file_name=file.name,
            original_name=original.name,
            content_type=file.content_type,
            size=file.size,
            category=request.category,
            converted=converted,
        )

    async def upload_file(
        self,
        file: MediaFile | None,
        category: MediaCategory = MediaCategory.IMAGE,
        folder: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """
        Upload a file and return only its public URL.

        A missing file is rejected with ``UnsupportedFormatError("No file provided")``.
        """
        if file is None:
            validate_media(None, category, self.policy)

        request = UploadRequest(file=file, category=category, folder=folder)
        result = await self.upload(request, on_progress=on_progress)
        return result.url

    async def upload_image(
        self,
        file: MediaFile | None,
        folder: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """Upload an image (default folder ``images``) and return its URL."""
        return await self.upload_file(
            file, MediaCategory.IMAGE, folder or self.policy.image_folder, on_progress
        )

    async def upload_video(
        self,
        file: MediaFile | None,
        folder: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """Upload a video (default folder ``videos``) and return its URL."""
        return await self.upload_file(
            file, MediaCategory.VIDEO, folder or self.policy.video_folder, on_progress
        )

    # =========================================================================
    # Deletes
    # =========================================================================

    async def delete_file(self, url: str) -> None:
        """
        Delete a stored object by its public URL.

        Raises:
            StorageNotConfiguredError: If storage settings are incomplete
            InvalidReferenceError: If the URL is not one of our object URLs
            StorageOperationError: If the delete request fails
        """
        self.ensure_storage_configured()
        await self.storage.delete_by_url(url)

    async def delete_files(self, urls: Iterable[str]) -> BulkDeleteResult:
        """
        Delete several objects concurrently.

        Every URL is attempted; a failing URL is recorded in ``failed`` with
        its user-facing message instead of aborting the others. Duplicate
        URLs are deleted once.

        Raises:
            StorageNotConfiguredError: If storage settings are incomplete
        """
        self.ensure_storage_configured()

        unique_urls = list(dict.fromkeys(urls))
        outcomes = await asyncio.gather(*(self._delete_one(url) for url in unique_urls))

        result = BulkDeleteResult()
        for url, error in zip(unique_urls, outcomes):
            if error is None:
                result.deleted.append(url)
            else:
                result.failed[url] = error

        logger.info(
            "Bulk delete finished: %d deleted, %d failed",
            result.deleted_count,
            result.failed_count,
        )
        return result

    async def _delete_one(self, url: str) -> str | None:
        """Delete one URL and return the error message, or None on success."""
        try:
            await self.storage.delete_by_url(url)
        except MediaServiceError as e:
            return e.message
        return None
