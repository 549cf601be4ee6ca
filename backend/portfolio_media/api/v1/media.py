"""
FastAPI Media Router for the portfolio media service

Endpoints used by the admin CMS post editor and post list:
- POST /image - Upload an image (HEIC/HEIF is converted to JPEG first)
- POST /video - Upload a video
- DELETE / - Delete one stored file by its public URL
- POST /bulk-delete - Delete every media URL of a post, reporting per-URL outcomes

Services raise typed ``MediaServiceError`` subclasses; ``media_error_handler``
turns them into JSON responses carrying the user-facing message, which the
CMS shows as-is.
"""

import logging

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from portfolio_media.models.media import MediaCategory, MediaFile, MediaUrls, UploadRequest
from portfolio_media.services.errors import (
    ConversionError,
    InvalidReferenceError,
    MediaServiceError,
    SizeExceededError,
    StorageNotConfiguredError,
    StorageOperationError,
    UnsupportedFormatError,
    UploadError,
)
from portfolio_media.services.upload_service import UploadService
from portfolio_media.utils.file_validator import (
    format_size_limit,
    is_heic_file,
    resolve_content_type,
)


# Configure module logger
logger = logging.getLogger(__name__)

router = APIRouter()

# HTTP status per error type; subclasses not listed fall back to 500
ERROR_STATUS_CODES: dict[type[MediaServiceError], int] = {
    ConversionError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    SizeExceededError: status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    UnsupportedFormatError: status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    UploadError: status.HTTP_502_BAD_GATEWAY,
    StorageOperationError: status.HTTP_502_BAD_GATEWAY,
    InvalidReferenceError: status.HTTP_400_BAD_REQUEST,
    StorageNotConfiguredError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


# ============================================================================
# Request/Response Pydantic Models
# ============================================================================


class MediaUploadResponse(BaseModel):
    """Response for a successful upload."""

    url: str = Field(..., description="Public URL of the stored file")
    path: str = Field(..., description="Object key inside the media bucket")
    file_name: str = Field(..., description="Stored file name (.jpg after HEIC conversion)")
    original_name: str = Field(..., description="File name sent by the client")
    content_type: str = Field(..., description="MIME type the file was stored with")
    size: int = Field(..., description="Stored size in bytes")
    category: MediaCategory
    converted: bool = Field(..., description="True when a HEIC/HEIF image was converted")
    message: str


class DeleteMediaRequest(BaseModel):
    url: str = Field(..., min_length=1, description="Public URL returned by an upload")


class DeleteMediaResponse(BaseModel):
    deleted: bool
    url: str
    message: str


class BulkDeleteRequest(BaseModel):
    """
    Bulk delete request.

    ``media_urls`` accepts a post's stored value directly: a JSON array, a
    JSON-encoded array string or a single URL.
    """

    media_urls: MediaUrls


class BulkDeleteResponse(BaseModel):
    deleted: list[str]
    failed: dict[str, str]
    deleted_count: int
    failed_count: int
    message: str


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str = Field(..., description="Stable error code")
    message: str = Field(..., description="User-facing error message")
    status_code: int


ERROR_RESPONSES = {
    413: {"model": ErrorResponse, "description": "File too large"},
    415: {"model": ErrorResponse, "description": "Unsupported file format"},
    422: {"model": ErrorResponse, "description": "HEIC conversion failed"},
    502: {"model": ErrorResponse, "description": "Object store rejected the transfer"},
    503: {"model": ErrorResponse, "description": "Storage not configured"},
}


# ============================================================================
# Error Handling
# ============================================================================


async def media_error_handler(request: Request, exc: MediaServiceError) -> JSONResponse:
    """Render a MediaServiceError as ``{"error", "message", "status_code"}``."""
    status_code = next(
        (code for error_cls, code in ERROR_STATUS_CODES.items() if isinstance(exc, error_cls)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    log = logger.error if status_code >= 500 else logger.warning
    log(f"{request.method} {request.url.path} failed with {exc.code}: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "message": exc.message, "status_code": status_code},
    )


# ============================================================================
# Dependencies
# ============================================================================


def get_upload_service() -> UploadService:
    """Dependency injection for UploadService."""
    return UploadService()


async def _to_media_file(file: UploadFile) -> MediaFile:
    data = await file.read()
    return MediaFile(
        name=file.filename or "upload",
        content_type=resolve_content_type(data, file.content_type),
        data=data,
    )


def _reject_oversized(
    file: UploadFile, category: MediaCategory, upload_service: UploadService
) -> None:
    """
    Refuse a body whose multipart size already exceeds the category ceiling.

    HEIC/HEIF images are left to the pipeline since the ceiling applies to
    the converted JPEG.
    """
    max_size = upload_service.policy.max_size_for(category)
    if file.size is None or file.size <= max_size:
        return
    declared = MediaFile(name=file.filename or "upload", content_type=file.content_type)
    if category == MediaCategory.IMAGE and is_heic_file(declared):
        return
    logger.warning(f"Rejecting {category.value} upload of {file.size} bytes before reading it")
    raise SizeExceededError(
        f"File size exceeds maximum allowed size of {format_size_limit(max_size)}"
    )


async def _handle_upload(
    file: UploadFile,
    category: MediaCategory,
    folder: str | None,
    upload_service: UploadService,
) -> MediaUploadResponse:
    upload_service.ensure_storage_configured()
    _reject_oversized(file, category, upload_service)

    media_file = await _to_media_file(file)
    logger.info(
        f"{category.value.title()} upload request: {media_file.name} ({media_file.size} bytes)"
    )

    result = await upload_service.upload(
        UploadRequest(file=media_file, category=category, folder=folder or None)
    )

    message = f"{category.value.title()} uploaded successfully"
    if result.converted:
        message = f"{message} (converted from HEIC to JPEG)"

    return MediaUploadResponse(**result.model_dump(), message=message)


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "/image",
    response_model=MediaUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload image",
    description="Upload a JPEG, PNG, GIF or WebP image up to 10MB. HEIC/HEIF is converted to JPEG.",
    responses=ERROR_RESPONSES,
)
async def upload_image(
    file: UploadFile = File(..., description="Image file to upload"),
    folder: str | None = Form(default=None, description="Destination folder (default: images)"),
    upload_service: UploadService = Depends(get_upload_service),
) -> MediaUploadResponse:
    return await _handle_upload(file, MediaCategory.IMAGE, folder, upload_service)


@router.post(
    "/video",
    response_model=MediaUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload video",
    description="Upload an MP4, WebM, QuickTime or Ogg video up to 50MB.",
    responses=ERROR_RESPONSES,
)
async def upload_video(
    file: UploadFile = File(..., description="Video file to upload"),
    folder: str | None = Form(default=None, description="Destination folder (default: videos)"),
    upload_service: UploadService = Depends(get_upload_service),
) -> MediaUploadResponse:
    return await _handle_upload(file, MediaCategory.VIDEO, folder, upload_service)


@router.delete(
    "/",
    response_model=DeleteMediaResponse,
    summary="Delete media",
    responses={
        400: {"model": ErrorResponse, "description": "Not a media storage URL"},
        502: {"model": ErrorResponse, "description": "Delete failed"},
        503: {"model": ErrorResponse, "description": "Storage not configured"},
    },
)
async def delete_media(
    body: DeleteMediaRequest,
    upload_service: UploadService = Depends(get_upload_service),
) -> DeleteMediaResponse:
    """Delete one stored file by the public URL an upload returned."""
    await upload_service.delete_file(body.url)
    return DeleteMediaResponse(deleted=True, url=body.url, message="File deleted successfully")


@router.post(
    "/bulk-delete",
    response_model=BulkDeleteResponse,
    summary="Delete several media files",
    responses={503: {"model": ErrorResponse, "description": "Storage not configured"}},
)
async def bulk_delete_media(
    body: BulkDeleteRequest,
    upload_service: UploadService = Depends(get_upload_service),
) -> BulkDeleteResponse:
    """
    Delete all given URLs concurrently.

    Always answers 200 once storage is configured; per-URL failures are
    listed in ``failed`` with their messages.
    """
    result = await upload_service.delete_files(body.media_urls)

    total = result.deleted_count + result.failed_count
    if result.failed_count:
        message = f"Deleted {result.deleted_count} of {total} files, {result.failed_count} failed"
    else:
        message = f"Deleted {result.deleted_count} file(s)"

    return BulkDeleteResponse(
        deleted=result.deleted,
        failed=result.failed,
        deleted_count=result.deleted_count,
        failed_count=result.failed_count,
        message=message,
    )
