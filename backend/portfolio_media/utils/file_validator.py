"""
File Validation Utilities Module for the portfolio media service

This module implements the pure, synchronous checks of the upload pipeline:
- HEIC/HEIF detection by extension and declared MIME type
- Per-category size ceilings (images and videos are configured independently)
- Extension blocklist for raster formats browsers cannot display
- Declared MIME type allow-lists per category
- User-facing format error messages with manual conversion guidance
- Collision-resistant storage key generation
- Content-type sniffing with libmagic for files sent without a usable type

Nothing here performs I/O. The validator always runs on the file that will be
stored, i.e. after any HEIC/HEIF conversion.
"""

import logging
import secrets
import string
import time

import magic

from portfolio_media.models.media import (
    BYTES_PER_MB,
    MediaCategory,
    MediaFile,
    MediaPolicy,
    ValidationResult,
)
from portfolio_media.services.errors import (
    MediaServiceError,
    SizeExceededError,
    UnsupportedFormatError,
)


logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS - HEIC/HEIF Detection
# =============================================================================

HEIC_EXTENSIONS: tuple[str, ...] = (".heic", ".heif", ".hif")

HEIC_MIME_TYPES: frozenset[str] = frozenset(
    {
        "image/heic",
        "image/heif",
        "image/heic-sequence",
        "image/heif-sequence",
    }
)


# =============================================================================
# CONSTANTS - Unsupported Image Formats
# =============================================================================

# Rejected by extension even when the declared MIME type would pass; browsers
# report these types inconsistently.
BLOCKED_IMAGE_EXTENSIONS: frozenset[str] = frozenset(
    {"tiff", "tif", "bmp", "raw", "cr2", "nef", "orf", "arw"}
)

# Extensions that get the "not supported for web display" message
UNSUPPORTED_DISPLAY_EXTENSIONS: frozenset[str] = frozenset(
    {"heic", "heif", "hif", "tiff", "tif", "bmp", "raw", "cr2", "nef"}
)

HEIC_CONVERSION_GUIDE: str = (
    "HEIC images are not supported. Please convert to JPEG or PNG format.\n\n"
    "On Mac:\n"
    "1. Open the image in Preview\n"
    "2. Go to File → Export\n"
    "3. Choose Format: JPEG or PNG\n"
    "4. Save and upload the converted file\n\n"
    "Alternatively, take photos in JPEG format: Settings → Camera → Formats → Most Compatible"
)

GENERIC_IMAGE_FORMAT_ERROR: str = (
    "Unsupported image format. Please use JPEG, PNG, GIF, or WebP format."
)


# =============================================================================
# CONSTANTS - Storage Paths
# =============================================================================

BASE36_ALPHABET: str = string.digits + string.ascii_lowercase

STORAGE_TOKEN_LENGTH: int = 11

# Declared types that carry no information and trigger content sniffing
UNINFORMATIVE_CONTENT_TYPES: frozenset[str] = frozenset({"", "application/octet-stream"})


# =============================================================================
# FORMAT DETECTION
# =============================================================================


def is_heic_file(file: MediaFile | None) -> bool:
    """
    Detect whether a file is a HEIC/HEIF image.

    Matches on the lowercased filename ending in ``.heic``, ``.heif`` or
    ``.hif``, or on the declared MIME type being one of the HEIC/HEIF types
    (including the ``-sequence`` variants). Pure and total: an absent file is
    simply not HEIC.

    Args:
        file: The file to inspect, or None

    Returns:
        True if the file should go through HEIC → JPEG conversion.

    Example:
        >>> is_heic_file(MediaFile(name="IMG_0001.HEIC"))
        True
        >>> is_heic_file(MediaFile(name="photo.jpg", content_type="image/jpeg"))
        False
    """
    if file is None:
        return False

    file_name = file.name.lower()
    has_heic_extension = file_name.endswith(HEIC_EXTENSIONS)
    has_heic_mime_type = file.content_type.lower() in HEIC_MIME_TYPES

    return has_heic_extension or has_heic_mime_type


# =============================================================================
# ERROR MESSAGES
# =============================================================================


def image_format_error_message(file: MediaFile) -> str:
    """
    Build the user-facing message for an image in a format the site cannot show.

    HEIC/HEIF files get step-by-step manual conversion instructions, known
    unsupported raster formats name their format, anything else gets the
    generic list of supported formats.
    """
    if is_heic_file(file):
        return HEIC_CONVERSION_GUIDE

    extension = file.extension
    if extension in UNSUPPORTED_DISPLAY_EXTENSIONS:
        return (
            f"The {extension.upper()} format is not supported for web display.\n\n"
            "Please convert to JPEG, PNG, GIF, or WebP format before uploading."
        )

    return GENERIC_IMAGE_FORMAT_ERROR


def format_size_limit(size_bytes: int) -> str:
    """Render a byte ceiling the way error messages show it, e.g. ``50MB``."""
    return f"{round(size_bytes / BYTES_PER_MB)}MB"


# =============================================================================
# VALIDATION
# =============================================================================


def check_media(
    file: MediaFile | None,
    category: MediaCategory,
    policy: MediaPolicy | None = None,
) -> ValidationResult:
    """
    Validate a file against the policy of its category without raising.

    Checks run in order and the first failure wins:
    1. A file must be present.
    2. Size must not exceed the category ceiling.
    3. Images must not have a blocked raster extension (tiff, bmp, raw...).
    4. The declared MIME type must be in the category allow-list.

    Args:
        file: The file to validate (the converted file when conversion applied)
        category: Media category whose policy applies
        policy: Upload policy; the fixed defaults when omitted

    Returns:
        ValidationResult: ``is_valid`` with a human-readable ``reason`` and the
        ``error_code`` of the matching exception on failure.
    """
    policy = policy or MediaPolicy()

    if file is None:
        return ValidationResult.fail(UnsupportedFormatError.code, "No file provided")

    max_size = policy.max_size_for(category)
    if file.size > max_size:
        return ValidationResult.fail(
            SizeExceededError.code,
            f"File size exceeds maximum allowed size of {format_size_limit(max_size)}",
        )

    if category == MediaCategory.IMAGE and file.extension in BLOCKED_IMAGE_EXTENSIONS:
        return ValidationResult.fail(UnsupportedFormatError.code, image_format_error_message(file))

    allowed_types = policy.allowed_types_for(category)
    if file.content_type not in allowed_types:
        if category == MediaCategory.IMAGE:
            reason = image_format_error_message(file)
        else:
            reason = f"File type not allowed. Allowed types: {', '.join(allowed_types)}"
        return ValidationResult.fail(UnsupportedFormatError.code, reason)

    return ValidationResult.ok()


_ERRORS_BY_CODE: dict[str, type[MediaServiceError]] = {
    SizeExceededError.code: SizeExceededError,
    UnsupportedFormatError.code: UnsupportedFormatError,
}


def validate_media(
    file: MediaFile | None,
    category: MediaCategory,
    policy: MediaPolicy | None = None,
) -> None:
    """
    Validate a file and raise the typed error on failure.

    Raises:
        SizeExceededError: If the file is larger than the category ceiling.
        UnsupportedFormatError: If the file is missing, has a blocked
            extension, or declares a MIME type outside the allow-list.
    """
    result = check_media(file, category, policy)
    if result.is_valid:
        return

    logger.warning(
        "Validation failed for '%s' (%s): %s",
        file.name if file else None,
        category.value,
        result.error_code,
    )
    error_cls = _ERRORS_BY_CODE.get(result.error_code or "", UnsupportedFormatError)
    raise error_cls(result.reason or "File validation failed")


# =============================================================================
# STORAGE PATHS
# =============================================================================


def generate_random_token(length: int = STORAGE_TOKEN_LENGTH) -> str:
    """Return ``length`` cryptographically random base-36 characters."""
    if length <= 0:
        raise ValueError("Length must be a positive integer")
    return "".join(secrets.choice(BASE36_ALPHABET) for _ in range(length))


def generate_storage_path(
    filename: str,
    folder: str = "uploads",
    timestamp_ms: int | None = None,
) -> str:
    """
    Generate a unique object key of the form ``{folder}/{timestamp}_{token}.{ext}``.

    The timestamp is milliseconds since the epoch and the token a short
    random base-36 string; together they make collisions between concurrent
    uploads negligible without any lookup against the store. The extension
    comes from ``filename`` (so a converted HEIC yields ``.jpg``) and is
    omitted when the name has none.

    Args:
        filename: Name of the file being stored
        folder: Destination folder; trailing slashes are ignored
        timestamp_ms: Override of the current time, for tests

    Returns:
        str: The object key, e.g. ``images/1700000000000_k3j9x0a2b1c.jpg``
    """
    if timestamp_ms is None:
        timestamp_ms = time.time_ns() // 1_000_000

    stem = f"{timestamp_ms}_{generate_random_token()}"
    if "." in filename:
        stem = f"{stem}.{filename.rsplit('.', 1)[-1]}"

    folder = folder.strip().rstrip("/")
    if not folder:
        return stem
    return f"{folder}/{stem}"


# =============================================================================
# CONTENT TYPE SNIFFING
# =============================================================================


def resolve_content_type(data: bytes, declared: str | None) -> str:
    """
    Return the declared MIME type, or sniff one with libmagic when it is useless.

    Browsers send an empty type for unknown extensions and some clients send
    ``application/octet-stream`` for everything; in those cases the first
    bytes of the payload decide.
    """
    declared_type = (declared or "").strip().lower()
    if declared_type not in UNINFORMATIVE_CONTENT_TYPES or not data:
        return declared_type

    detected = magic.from_buffer(data[:2048], mime=True)
    logger.debug("Sniffed content type '%s' for undeclared upload", detected)
    return (detected or declared_type).lower()
