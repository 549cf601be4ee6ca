"""
S3-Compatible Storage Client for the portfolio media service

This module owns the boto3 client and the mapping between object keys and the
public URLs the portfolio site embeds. It supports MinIO (development) and
AWS S3 (production) through a configurable endpoint URL.

Key Features:
- boto3 client built from Settings (path-style addressing for MinIO)
- Managed transfer configuration (multipart above a threshold, no worker threads)
- Public URL construction: ``{public_base_url}/{percent-encoded key}``
- Reverse parsing of public URLs back into object keys for deletion
- Singleton access for resource efficiency

botocore retries are disabled. An upload either succeeds or fails once and
the caller decides whether to try again.
"""

import logging

from urllib.parse import quote, unquote, urlsplit

import boto3

from boto3.s3.transfer import TransferConfig
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from portfolio_media.config import Settings, get_settings


logger = logging.getLogger(__name__)

# Singleton container for storage client instance
_singleton_container: dict[str, "StorageClient"] = {}


class StorageClient:
    """
    Thin holder of the boto3 S3 client and the bucket's public URL layout.

    Attributes:
        settings: Application settings containing S3 configuration
        s3_client: Initialized boto3 S3 client (or a stand-in with the same API)
        bucket_name: Target bucket for all operations
        public_base_url: Base URL of publicly readable objects, no trailing slash
        transfer_config: Managed transfer settings used by uploads

    Example usage:
        ```python
        from portfolio_media.core.storage import get_storage_client

        storage = get_storage_client()
        url = storage.build_public_url("images/1700000000000_abc.jpg")
        assert storage.parse_public_url(url) == "images/1700000000000_abc.jpg"
        ```
    """

    def __init__(self, settings: Settings | None = None, s3_client=None) -> None:
        """
        Initialize the storage client.

        Args:
            settings: Optional Settings instance; the cached global settings
                when None.
            s3_client: Optional pre-built client. When None a boto3 S3 client
                is created from the settings.

        Raises:
            ClientError, BotoCoreError: If the boto3 client cannot be created.
        """
        self.settings = settings or get_settings()
        self.bucket_name = self.settings.s3_bucket_name
        self.public_base_url = self.settings.resolved_public_base_url

        self.transfer_config = TransferConfig(
            multipart_threshold=self.settings.multipart_threshold_bytes,
            multipart_chunksize=self.settings.multipart_chunk_size_bytes,
            use_threads=False,
        )

        if s3_client is not None:
            self.s3_client = s3_client
            return

        client_config = Config(
            signature_version="s3v4",
            s3={"addressing_style": "path"},
            retries={"max_attempts": 1, "mode": "standard"},
        )

        try:
            self.s3_client = boto3.client(
                "s3",
                endpoint_url=self.settings.s3_endpoint_url,
                aws_access_key_id=self.settings.s3_access_key_id,
                aws_secret_access_key=self.settings.s3_secret_access_key,
                region_name=self.settings.s3_region,
                config=client_config,
            )
        except (ClientError, BotoCoreError):
            logger.exception(
                "Failed to initialize S3 storage client",
                extra={"endpoint": self.settings.s3_endpoint_url},
            )
            raise

        logger.info(
            "S3 storage client initialized successfully",
            extra={
                "bucket": self.bucket_name,
                "region": self.settings.s3_region,
                "endpoint": self.settings.s3_endpoint_url or "AWS S3 (default)",
            },
        )

    def build_public_url(self, key: str) -> str:
        """
        Return the public download URL of an object.

        The key is percent-encoded except for its ``/`` separators, so names
        with spaces or unicode survive the round trip through
        ``parse_public_url``.
        """
        return f"{self.public_base_url}/{quote(key, safe='/')}"

    def parse_public_url(self, url: str) -> str | None:
        """
        Recover the object key from a public URL.

        The URL must share scheme, host and path prefix with the configured
        public base URL. Query strings and fragments are ignored.

        Returns:
            The decoded object key, or None when the URL does not point into
            this bucket.
        """
        if not url:
            return None

        base = urlsplit(self.public_base_url)
        target = urlsplit(url.strip())

        if (target.scheme.lower(), target.netloc.lower()) != (
            base.scheme.lower(),
            base.netloc.lower(),
        ):
            return None

        prefix = base.path.rstrip("/") + "/"
        if not target.path.startswith(prefix):
            return None

        key = unquote(target.path[len(prefix):])
        return key or None


def get_storage_client() -> StorageClient:
    """
    Get or create the singleton StorageClient instance.

    Returns:
        StorageClient: The shared storage client
    """
    if "instance" not in _singleton_container:
        _singleton_container["instance"] = StorageClient()
    return _singleton_container["instance"]


def reset_storage_client() -> None:
    """Drop the singleton so the next call rebuilds it from fresh settings."""
    _singleton_container.clear()
