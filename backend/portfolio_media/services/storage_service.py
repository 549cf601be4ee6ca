"""
S3-compatible storage service for the portfolio media service.

This module wraps the blocking boto3 calls behind coroutines and implements
the two storage operations of the upload pipeline:
- Chunked upload with progress reporting (multipart above the threshold)
- Delete by public URL

Key Features:
- Async-wrapped operations for non-blocking I/O (``asyncio.to_thread``)
- Progress callbacks marshalled back onto the event loop
- Typed failures: ``UploadError`` for transfers, ``InvalidReferenceError``
  for foreign URLs, ``StorageOperationError`` for failed deletes
"""

import asyncio
import io
import logging

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from portfolio_media.core.storage import StorageClient, get_storage_client
from portfolio_media.models.media import StorageObject
from portfolio_media.services.errors import (
    InvalidReferenceError,
    StorageOperationError,
    UploadError,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[int], None]


def async_wrap(func: Callable[..., T]) -> Callable[..., "asyncio.Future[T]"]:
    """
    Decorator to wrap synchronous boto3 operations for async execution.

    Uses asyncio.to_thread to run blocking boto3 operations in a separate
    thread, preventing event loop blocking during S3 operations.
    """

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        return await asyncio.to_thread(func, *args, **kwargs)

    return wrapper


def _error_message(error: Exception) -> str:
    """Extract the transport's own message from a boto3/botocore error."""
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Message") or str(error)
    return str(error)


class TransferProgress:
    """
    boto3 transfer callback that converts byte counts to integer percentages.

    boto3 invokes the callback from the thread doing the transfer with the
    number of bytes sent since the previous call. Each event is forwarded to
    ``on_progress`` on the event loop thread.
    """

    def __init__(
        self,
        total_bytes: int,
        on_progress: ProgressCallback,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self.total_bytes = total_bytes
        self.on_progress = on_progress
        self.loop = loop
        self.bytes_transferred = 0

    def __call__(self, bytes_amount: int) -> None:
        self.bytes_transferred += bytes_amount
        percent = round(self.bytes_transferred / self.total_bytes * 100)
        self.loop.call_soon_threadsafe(self.on_progress, min(percent, 100))


class StorageService:
    """
    Async storage operations on the media bucket.

    Attributes:
        client: The StorageClient holding the boto3 client and URL layout

    Example:
        >>> service = StorageService()
        >>> stored = await service.upload("images/1_abc.jpg", data, "image/jpeg")
        >>> await service.delete_by_url(stored.url)
    """

    def __init__(self, client: StorageClient | None = None) -> None:
        self.client = client or get_storage_client()

    @property
    def bucket_name(self) -> str:
        return self.client.bucket_name

    async def upload(
        self,
        path: str,
        data: bytes,
        content_type: str,
        on_progress: ProgressCallback | None = None,
    ) -> StorageObject:
        """
        Upload ``data`` under ``path`` and return its public URL.

        Payloads above the multipart threshold are sent in chunks by boto3's
        managed transfer. ``on_progress`` receives an integer percentage on
        every transfer event; an empty payload reports a single ``100``.
        There are no retries: a failed transfer raises immediately.

        Args:
            path: Object key to store the payload under
            data: Payload bytes
            content_type: MIME type stored with the object
            on_progress: Optional callback receiving 0-100

        Returns:
            StorageObject: The stored object's key and public URL

        Raises:
            UploadError: If the transfer fails
        """
        logger.info(f"Uploading {len(data)} bytes to object_key={path}, bucket={self.bucket_name}")

        callback = None
        if on_progress and data:
            callback = TransferProgress(len(data), on_progress, asyncio.get_running_loop())

        @async_wrap
        def _upload_fileobj() -> None:
            self.client.s3_client.upload_fileobj(
                io.BytesIO(data),
                self.bucket_name,
                path,
                ExtraArgs={"ContentType": content_type},
                Callback=callback,
                Config=self.client.transfer_config,
            )

        try:
            await _upload_fileobj()
        except (ClientError, BotoCoreError, S3UploadFailedError) as e:
            error_msg = f"File upload failed: {_error_message(e)}"
            logger.error(f"Upload of {path} failed: {error_msg}")
            raise UploadError(error_msg) from e

        if on_progress and not data:
            on_progress(100)

        stored = StorageObject(path=path, url=self.client.build_public_url(path))
        logger.info(f"Successfully uploaded {path}")
        return stored

    async def delete_by_url(self, url: str) -> str:
        """
        Delete the object a public URL points to.

        Args:
            url: Public URL previously returned by ``upload``

        Returns:
            str: The object key that was deleted

        Raises:
            InvalidReferenceError: If the URL does not point into this bucket
            StorageOperationError: If the delete request fails
        """
        path = self.client.parse_public_url(url)
        if path is None:
            logger.warning(f"Refusing to delete foreign URL: {url}")
            raise InvalidReferenceError("Invalid storage URL")

        logger.info(f"Deleting file at object_key={path}, bucket={self.bucket_name}")

        @async_wrap
        def _delete() -> dict[str, Any]:
            return self.client.s3_client.delete_object(Bucket=self.bucket_name, Key=path)

        try:
            await _delete()
        except (ClientError, BotoCoreError) as e:
            error_msg = f"Failed to delete file: {_error_message(e)}"
            logger.error(error_msg)
            raise StorageOperationError(error_msg) from e

        logger.info(f"Successfully deleted {path}")
        return path
