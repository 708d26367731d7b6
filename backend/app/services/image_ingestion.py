"""Image ingestion for AutoBlog runs.

Validates the upload count, normalizes each photo with Pillow (EXIF
orientation, RGB, fit inside a square box without upscaling, progressive
JPEG) and stores it in object storage under a collision-resistant name.

Any failure aborts the whole batch: undecodable data is a validation error,
a storage failure is a persistence error.
"""

import asyncio
import base64
import time
from collections.abc import Sequence
from dataclasses import dataclass
from io import BytesIO
from uuid import uuid4

from PIL import Image, ImageOps, UnidentifiedImageError

from app.core.config import get_settings
from app.core.logging import autoblog_logger, get_logger
from app.integrations.s3 import S3Client, S3Error
from app.services.errors import AutoBlogValidationError, PersistenceError

logger = get_logger(__name__)

OUTPUT_CONTENT_TYPE = "image/jpeg"


@dataclass(frozen=True)
class RawUpload:
    """An image exactly as received from the caller."""

    filename: str
    content_type: str | None
    data: bytes


@dataclass(frozen=True)
class UploadedImage:
    """A processed image stored in object storage."""

    data: bytes
    filename: str
    content_type: str
    public_url: str
    size: int

    @property
    def data_url(self) -> str:
        """Base64 data: URL of the processed bytes, for vision requests."""
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.content_type};base64,{encoded}"


def validate_image_count(count: int, max_images: int) -> None:
    """Reject empty batches and batches above the configured maximum."""
    if count < 1:
        raise AutoBlogValidationError("images", count, "At least one image is required")
    if count > max_images:
        raise AutoBlogValidationError(
            "images", count, f"At most {max_images} images are allowed"
        )


def build_filename(index: int, now_ms: int | None = None) -> str:
    """Name for the index-th image of a batch: autoblog-{ms}-{uuid8}-{n}.jpg."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"autoblog-{now_ms}-{uuid4().hex[:8]}-{index + 1}.jpg"


def process_image(data: bytes, max_dimension: int, quality: int) -> bytes:
    """Normalize one photo to a progressive JPEG inside max_dimension².

    Raises:
        ValueError: If the data is not a decodable image.
    """
    try:
        with Image.open(BytesIO(data)) as opened:
            image = ImageOps.exif_transpose(opened)
            if image.mode != "RGB":
                image = image.convert("RGB")
            # thumbnail() only ever shrinks and keeps the aspect ratio
            image.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)

            buffer = BytesIO()
            image.save(buffer, format="JPEG", quality=quality, optimize=True, progressive=True)
            return buffer.getvalue()
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Cannot decode image: {e}") from e


class ImageIngestor:
    """Processes and stores the photos of one run."""

    def __init__(
        self,
        storage: S3Client,
        bucket: str | None = None,
        max_images: int | None = None,
        max_dimension: int | None = None,
        quality: int | None = None,
    ) -> None:
        settings = get_settings()
        self._storage = storage
        self._bucket = bucket or settings.autoblog_image_bucket
        self._max_images = max_images or settings.autoblog_max_images
        self._max_dimension = max_dimension or settings.autoblog_image_max_dimension
        self._quality = quality or settings.autoblog_jpeg_quality

    @property
    def max_images(self) -> int:
        return self._max_images

    async def ingest(self, uploads: Sequence[RawUpload]) -> list[UploadedImage]:
        """Process and store every upload, in order.

        Args:
            uploads: Raw uploads from the caller.

        Returns:
            One UploadedImage per upload, in upload order.

        Raises:
            AutoBlogValidationError: Bad count or undecodable image.
            PersistenceError: Storage failure.
        """
        validate_image_count(len(uploads), self._max_images)

        start_time = time.monotonic()
        autoblog_logger.stage_start("ingest", image_count=len(uploads))

        now_ms = int(time.time() * 1000)
        loop = asyncio.get_running_loop()
        images: list[UploadedImage] = []

        for index, upload in enumerate(uploads):
            try:
                processed = await loop.run_in_executor(
                    None, process_image, upload.data, self._max_dimension, self._quality
                )
            except ValueError as e:
                logger.warning(
                    "Image could not be decoded",
                    extra={"original_filename": upload.filename, "index": index, "error": str(e)},
                )
                raise AutoBlogValidationError(
                    "images", upload.filename, f"Image {index + 1} is not a valid image"
                ) from e

            filename = build_filename(index, now_ms)
            try:
                public_url = await self._storage.store(
                    self._bucket, filename, processed, OUTPUT_CONTENT_TYPE
                )
            except S3Error as e:
                logger.error(
                    "Image upload failed",
                    extra={"image_filename": filename, "error": str(e), "error_type": type(e).__name__},
                )
                raise PersistenceError(f"Failed to store image {index + 1}: {e}") from e

            images.append(
                UploadedImage(
                    data=processed,
                    filename=filename,
                    content_type=OUTPUT_CONTENT_TYPE,
                    public_url=public_url,
                    size=len(processed),
                )
            )
            logger.debug(
                "Image ingested",
                extra={
                    "image_filename": filename,
                    "original_size": len(upload.data),
                    "processed_size": len(processed),
                },
            )

        autoblog_logger.stage_complete(
            "ingest", (time.monotonic() - start_time) * 1000, image_count=len(images)
        )
        return images
