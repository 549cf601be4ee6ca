"""
Utilities Package for the portfolio media backend.

Modules:
--------
file_validator:
    HEIC/HEIF detection, per-category validation, user-facing format error
    messages, storage path generation and libmagic content-type sniffing.

logger:
    JSON and text formatters, setup_logging for the application and Uvicorn,
    add_log_context for tagging related log lines.
"""

from portfolio_media.utils.file_validator import (
    check_media,
    generate_storage_path,
    image_format_error_message,
    is_heic_file,
    resolve_content_type,
    validate_media,
)
from portfolio_media.utils.logger import add_log_context, setup_logging


__all__ = [
    "add_log_context",
    "check_media",
    "generate_storage_path",
    "image_format_error_message",
    "is_heic_file",
    "resolve_content_type",
    "setup_logging",
    "validate_media",
]
