"""
Error taxonomy for the media upload pipeline.

Every message is written for direct display to an end user (the admin editing
a post), so it already carries actionable guidance. The ``code`` attribute is
a stable identifier the API layer puts into error responses.
"""


class MediaServiceError(Exception):
    """Base exception for media pipeline errors."""

    code = "media_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConversionError(MediaServiceError):
    """Raised when a HEIC/HEIF image cannot be decoded or re-encoded as JPEG."""

    code = "conversion_failed"


class SizeExceededError(MediaServiceError):
    """Raised when a file is larger than its category's ceiling."""

    code = "size_exceeded"


class UnsupportedFormatError(MediaServiceError):
    """Raised when a file's extension or MIME type is not allowed for its category."""

    code = "unsupported_format"


class UploadError(MediaServiceError):
    """Raised when the transfer to the object store fails."""

    code = "upload_failed"


class InvalidReferenceError(MediaServiceError):
    """Raised when a URL does not parse as a reference to a stored object."""

    code = "invalid_reference"


class StorageOperationError(MediaServiceError):
    """Raised when a non-upload storage operation (delete) fails in transport."""

    code = "storage_operation_failed"


class StorageNotConfiguredError(MediaServiceError):
    """Raised when the object store has no bucket or credentials configured."""

    code = "storage_not_configured"
