"""
Models Package for the portfolio media service.

Pydantic value objects flowing through the upload pipeline.

Example Usage:
    ```python
    from portfolio_media.models import MediaCategory, MediaFile, UploadRequest

    request = UploadRequest(
        file=MediaFile(name="IMG_0001.HEIC", content_type="image/heic", data=raw),
        category=MediaCategory.IMAGE,
    )
    ```
"""

from portfolio_media.models.media import (
    ALLOWED_IMAGE_TYPES,
    ALLOWED_VIDEO_TYPES,
    MAX_IMAGE_SIZE_BYTES,
    MAX_VIDEO_SIZE_BYTES,
    BulkDeleteResult,
    MediaCategory,
    MediaFile,
    MediaPolicy,
    MediaUrls,
    StorageObject,
    UploadRequest,
    UploadResult,
    ValidationResult,
)


__all__ = [
    "ALLOWED_IMAGE_TYPES",
    "ALLOWED_VIDEO_TYPES",
    "MAX_IMAGE_SIZE_BYTES",
    "MAX_VIDEO_SIZE_BYTES",
    "BulkDeleteResult",
    "MediaCategory",
    "MediaFile",
    "MediaPolicy",
    "MediaUrls",
    "StorageObject",
    "UploadRequest",
    "UploadResult",
    "ValidationResult",
]
