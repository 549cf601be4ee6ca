"""
Core infrastructure for the portfolio media backend.

- storage: S3-compatible client for MinIO/AWS S3 and the public URL layout
  of stored objects
"""
