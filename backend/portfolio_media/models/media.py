"""
Media Pydantic models for the portfolio media service.

This module defines the value objects that flow through the upload pipeline:
the in-memory file handed to the service, the upload request, the fixed upload
policy, the validation verdict and the stored object reference. It also holds
``MediaUrls``, the decoded form of a post's ``media_urls`` field.
"""

import json

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, RootModel, field_validator, model_validator


# =============================================================================
# CONSTANTS
# =============================================================================

BYTES_PER_MB: int = 1024 * 1024

# Fixed upload policy defaults
MAX_IMAGE_SIZE_BYTES: int = 10 * BYTES_PER_MB
MAX_VIDEO_SIZE_BYTES: int = 50 * BYTES_PER_MB

ALLOWED_IMAGE_TYPES: list[str] = [
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
]

ALLOWED_VIDEO_TYPES: list[str] = [
    "video/mp4",
    "video/webm",
    "video/quicktime",
    "video/ogg",
]

JPEG_QUALITY: int = 90

# Hosts whose links are embeds rather than stored images
VIDEO_EMBED_HOSTS: tuple[str, ...] = ("youtube.com", "youtu.be")


# =============================================================================
# ENUMS
# =============================================================================


class MediaCategory(str, Enum):
    """
    Classification of an upload.

    Each category carries an independent size ceiling, MIME allow-list and
    default storage folder (see ``MediaPolicy``).
    """

    IMAGE = "image"
    VIDEO = "video"


# =============================================================================
# MODELS
# =============================================================================


class MediaFile(BaseModel):
    """
    An in-memory file as received from the admin CMS.

    Mirrors the browser file handle: a name, a declared MIME type (possibly
    empty or wrong) and the binary payload. Instances are immutable so the
    converter can never alter the original it was given.

    Attributes:
        name: Client-side filename including extension
        content_type: Declared MIME type, lowercased
        data: Raw file bytes
    """

    name: str = Field(..., description="Client-side filename including extension")
    content_type: str = Field(default="", description="Declared MIME type (may be empty)")
    data: bytes = Field(default=b"", repr=False, description="Raw file bytes")

    model_config = ConfigDict(frozen=True)

    @field_validator("content_type", mode="before")
    @classmethod
    def normalize_content_type(cls, v: str | None) -> str:
        """Lowercase and strip the declared type; ``None`` becomes empty."""
        return (v or "").strip().lower()

    @property
    def size(self) -> int:
        """Payload size in bytes."""
        return len(self.data)

    @property
    def extension(self) -> str:
        """Lowercased text after the last dot of the name, or "" when there is no dot."""
        if "." not in self.name:
            return ""
        return self.name.rsplit(".", 1)[-1].lower()


class UploadRequest(BaseModel):
    """
    One user-initiated upload.

    ``folder`` overrides the category's default destination folder.
    """

    file: MediaFile
    category: MediaCategory = MediaCategory.IMAGE
    folder: str | None = None


class MediaPolicy(BaseModel):
    """
    Fixed upload policy per media category.

    The defaults are the production values; they are deliberately not read from
    the environment. Tests construct their own instance when they need
    different ceilings.
    """

    max_image_size_bytes: int = Field(default=MAX_IMAGE_SIZE_BYTES, gt=0)
    max_video_size_bytes: int = Field(default=MAX_VIDEO_SIZE_BYTES, gt=0)
    allowed_image_types: list[str] = Field(default_factory=lambda: list(ALLOWED_IMAGE_TYPES))
    allowed_video_types: list[str] = Field(default_factory=lambda: list(ALLOWED_VIDEO_TYPES))
    jpeg_quality: int = Field(default=JPEG_QUALITY, ge=1, le=95)
    image_folder: str = "images"
    video_folder: str = "videos"
    default_folder: str = "uploads"

    model_config = ConfigDict(frozen=True)

    def max_size_for(self, category: MediaCategory) -> int:
        """Return the byte ceiling for ``category``."""
        if category == MediaCategory.VIDEO:
            return self.max_video_size_bytes
        return self.max_image_size_bytes

    def allowed_types_for(self, category: MediaCategory) -> list[str]:
        """Return the MIME allow-list for ``category``."""
        if category == MediaCategory.VIDEO:
            return self.allowed_video_types
        return self.allowed_image_types

    def folder_for(self, category: MediaCategory | None) -> str:
        """Return the default destination folder for ``category``."""
        if category == MediaCategory.IMAGE:
            return self.image_folder
        if category == MediaCategory.VIDEO:
            return self.video_folder
        return self.default_folder


class ValidationResult(BaseModel):
    """
    Verdict of the validator.

    ``error_code`` matches the ``code`` of the exception ``validate_media``
    raises for a failing result, so callers can choose between inspecting the
    result and catching the error.
    """

    is_valid: bool
    reason: str | None = None
    error_code: str | None = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(is_valid=True)

    @classmethod
    def fail(cls, error_code: str, reason: str) -> "ValidationResult":
        return cls(is_valid=False, reason=reason, error_code=error_code)


class StorageObject(BaseModel):
    """A stored object: its key inside the bucket and its public URL."""

    path: str
    url: str


class UploadResult(BaseModel):
    """
    Outcome of a successful upload, handed to the presentation layer.

    Attributes:
        path: Object key the file was stored under
        url: Public download URL
        file_name: Name of the stored file (``.jpg`` after a HEIC conversion)
        original_name: Name the client sent
        content_type: MIME type the object was stored with
        size: Stored payload size in bytes
        category: Media category of the upload
        converted: True when a HEIC/HEIF source was converted to JPEG
    """

    path: str
    url: str
    file_name: str
    original_name: str
    content_type: str
    size: int
    category: MediaCategory
    converted: bool = False


class BulkDeleteResult(BaseModel):
    """Per-URL outcome of a bulk delete. ``failed`` maps URL to the error message."""

    deleted: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)

    @property
    def deleted_count(self) -> int:
        return len(self.deleted)

    @property
    def failed_count(self) -> int:
        return len(self.failed)


class MediaUrls(RootModel[list[str]]):
    """
    Decoded ``media_urls`` of a post.

    Posts stored in the spreadsheet carry their media as either a JSON array,
    a JSON-encoded string of an array, or one plain URL string. This model
    resolves all three once, at ingestion, into a list of non-blank URLs so
    nothing downstream re-interprets the raw value.

    Example:
        >>> MediaUrls.model_validate('["https://a/1.jpg", " "]').root
        ['https://a/1.jpg']
        >>> MediaUrls.model_validate("https://a/1.jpg").root
        ['https://a/1.jpg']
    """

    root: list[str]

    @model_validator(mode="before")
    @classmethod
    def decode(cls, value: object) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            text = value.strip()
            if not text:
                return []
            if text.startswith("["):
                try:
                    value = json.loads(text)
                except json.JSONDecodeError as e:
                    raise ValueError(f"media_urls is not a valid JSON array: {e.msg}") from e
            else:
                value = [text]
        if not isinstance(value, list):
            raise ValueError("media_urls must be a list of URLs or a single URL string")
        urls: list[str] = []
        for item in value:
            if not isinstance(item, str):
                raise ValueError("media_urls entries must be strings")
            if item.strip():
                urls.append(item.strip())
        return urls

    def __iter__(self):
        return iter(self.root)

    def __len__(self) -> int:
        return len(self.root)

    def preview_image_url(self) -> str | None:
        """First URL that is not a video embed link, used for social previews."""
        for url in self.root:
            if not any(host in url for host in VIDEO_EMBED_HOSTS):
                return url
        return None
