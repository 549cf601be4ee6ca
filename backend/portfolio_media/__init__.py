"""
Portfolio Media Backend Package

Media upload service for a journalist's portfolio CMS: HEIC/HEIF photos are
converted to JPEG, images and videos are validated per category and stored
in an S3-compatible bucket, and stored files can be deleted by public URL.

Package Structure:
- api/: REST API endpoints organized by version (v1)
- core/: Object storage client
- models/: Pydantic value objects of the upload pipeline
- services/: Conversion, storage and the upload facade
- utils/: Validation, path generation and logging helpers
"""

__version__ = "1.0.0"
