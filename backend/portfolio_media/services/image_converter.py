"""
HEIC/HEIF to JPEG conversion for the portfolio media service.

iPhones store photos as HEIC by default and browsers cannot display them, so
image uploads in that format are decoded with Pillow (through the pillow-heif
opener) and re-encoded as JPEG before validation and upload. Only the first
frame of a multi-image sequence is kept.

Decoding is CPU-bound and blocking, so it runs in a worker thread via
``asyncio.to_thread`` and never stalls the event loop.
"""

import asyncio
import io
import logging
import re

from collections.abc import Callable

from PIL import Image, UnidentifiedImageError
from pillow_heif import register_heif_opener

from portfolio_media.models.media import MediaFile, MediaPolicy
from portfolio_media.services.errors import ConversionError
from portfolio_media.utils.file_validator import is_heic_file


logger = logging.getLogger(__name__)

register_heif_opener()

HEIC_SUFFIX_PATTERN = re.compile(r"\.(heic|heif|hif)$", re.IGNORECASE)

JPEG_CONTENT_TYPE = "image/jpeg"

MANUAL_CONVERSION_HINT = (
    "Please convert the image to JPEG or PNG format manually. "
    "On Mac: Open in Preview → File → Export → Format: JPEG"
)

ProgressCallback = Callable[[int], None]


def jpeg_file_name(name: str) -> str:
    """
    Name of the JPEG produced from ``name``.

    A ``.heic``/``.heif``/``.hif`` suffix (any case) becomes ``.jpg``. Files
    detected by MIME type alone get their last extension replaced, or ``.jpg``
    appended when the name has none.
    """
    if HEIC_SUFFIX_PATTERN.search(name):
        return HEIC_SUFFIX_PATTERN.sub(".jpg", name)
    stem, dot, _ = name.rpartition(".")
    if dot and stem:
        return f"{stem}.jpg"
    return f"{name}.jpg"


class ImageConverter:
    """
    Converter from HEIC/HEIF images to JPEG.

    Stateless apart from the policy it was built with; one instance can be
    shared by any number of concurrent uploads.

    Example:
        ```python
        converter = ImageConverter()
        jpeg = await converter.convert(heic_file)
        assert jpeg.content_type == "image/jpeg"
        ```
    """

    def __init__(self, policy: MediaPolicy | None = None):
        self.policy = policy or MediaPolicy()
        self.logger = logger

    async def convert_if_needed(
        self,
        file: MediaFile,
        on_progress: ProgressCallback | None = None,
    ) -> MediaFile:
        """Convert ``file`` when it is HEIC/HEIF, otherwise return it unchanged."""
        if not is_heic_file(file):
            return file
        return await self.convert(file, on_progress=on_progress)

    async def convert(
        self,
        file: MediaFile,
        on_progress: ProgressCallback | None = None,
    ) -> MediaFile:
        """
        Convert a HEIC/HEIF image to a JPEG ``MediaFile``.

        The returned file has the same base name with a ``.jpg`` extension and
        the ``image/jpeg`` content type. The input is never modified.

        Args:
            file: HEIC/HEIF image
            on_progress: Optional callback receiving ``10`` when decoding starts
                and ``100`` when the JPEG is ready

        Returns:
            MediaFile: The converted JPEG

        Raises:
            ConversionError: If the image cannot be decoded or encoded. The
                message includes the underlying error and the manual remedy.
        """
        self.logger.info("Converting HEIC image '%s' (%d bytes) to JPEG", file.name, file.size)
        if on_progress:
            on_progress(10)

        try:
            jpeg_bytes = await asyncio.to_thread(self._encode_jpeg, file.data)
        except ConversionError:
            raise
        except (
            UnidentifiedImageError,
            Image.DecompressionBombError,
            OSError,
            ValueError,
            RuntimeError,
        ) as e:
            self.logger.error("HEIC conversion failed for '%s': %s", file.name, e)
            raise ConversionError(
                f"Unable to convert HEIC image automatically: {e}. {MANUAL_CONVERSION_HINT}"
            ) from e

        if on_progress:
            on_progress(100)

        converted = MediaFile(
            name=jpeg_file_name(file.name),
            content_type=JPEG_CONTENT_TYPE,
            data=jpeg_bytes,
        )
        self.logger.info(
            "Converted '%s' to '%s' (%d -> %d bytes)",
            file.name,
            converted.name,
            file.size,
            converted.size,
        )
        return converted

    def _encode_jpeg(self, data: bytes) -> bytes:
        """Decode the first frame of ``data`` and encode it as JPEG. Runs in a worker thread."""
        if not data:
            raise ConversionError(
                "Unable to convert HEIC image automatically: file is empty. "
                f"{MANUAL_CONVERSION_HINT}"
            )

        with Image.open(io.BytesIO(data)) as image:
            frame_count = getattr(image, "n_frames", 1)
            if frame_count > 1:
                self.logger.warning(
                    "HEIC sequence has %d frames; only the first frame is kept", frame_count
                )
            image.seek(0)
            rgb_image = image.convert("RGB")

        output = io.BytesIO()
        rgb_image.save(output, format="JPEG", quality=self.policy.jpeg_quality)
        jpeg_bytes = output.getvalue()

        if not jpeg_bytes:
            raise ConversionError(
                "Unable to convert HEIC image automatically: encoder produced no output. "
                f"{MANUAL_CONVERSION_HINT}"
            )
        return jpeg_bytes
