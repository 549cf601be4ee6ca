"""
Services module for the portfolio media backend.

- errors: typed error taxonomy shared by every stage of the pipeline
- image_converter: HEIC/HEIF to JPEG conversion with Pillow and pillow-heif
- storage_service: async S3 upload with progress and delete by public URL
- upload_service: facade running convert, validate, path and upload in order

All services are async and designed for dependency injection through
FastAPI's dependency system.
"""
