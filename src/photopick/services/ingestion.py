"""Image ingestion pipeline: decode, downscale, re-encode and size-check."""

import asyncio
import base64
import io
import logging
import mimetypes
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

from photopick.domain.errors import (
    ImageDecodeError,
    PayloadTooLargeError,
    UnsupportedTypeError,
)
from photopick.domain.ingestion import EncodedPayload, ImageUpload

DEFAULT_MAX_EDGE = 800
DEFAULT_QUALITY = 0.6
DEFAULT_MAX_PAYLOAD_BYTES = 1_000_000
_OUTPUT_MIME_TYPE = "image/jpeg"

_logger = logging.getLogger(__name__)


@dataclass
class ImageIngestor:
    """Turns raw image files into size-bounded JPEG data URLs."""

    max_edge: int = DEFAULT_MAX_EDGE
    quality: float = DEFAULT_QUALITY
    max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES

    def ingest(self, upload: ImageUpload) -> EncodedPayload:
        """Run the pipeline for one file.

        Raises UnsupportedTypeError before touching the bytes when the
        declared type is not an image, ImageDecodeError for corrupt data and
        PayloadTooLargeError when the encoded result is over the ceiling.
        """
        media_type = declared_media_type(upload)
        if media_type is None or not media_type.startswith("image/"):
            raise UnsupportedTypeError(upload.filename, media_type)

        image = _decode(upload)
        width, height = target_size(image.width, image.height, self.max_edge)
        if (width, height) != image.size:
            image = image.resize((width, height), Image.Resampling.LANCZOS)

        buffer = io.BytesIO()
        image.save(
            buffer,
            format="JPEG",
            quality=pillow_quality(self.quality),
            optimize=True,
        )
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        payload = EncodedPayload(
            data_url=f"data:{_OUTPUT_MIME_TYPE};base64,{encoded}",
            width=width,
            height=height,
        )
        if payload.size_bytes > self.max_payload_bytes:
            raise PayloadTooLargeError(
                upload.filename, payload.size_bytes, self.max_payload_bytes
            )
        _logger.info(
            "Ingested %s: %sx%s, %s bytes",
            upload.filename,
            width,
            height,
            payload.size_bytes,
        )
        return payload

    async def ingest_async(self, upload: ImageUpload) -> EncodedPayload:
        """Run the pipeline in a worker thread so the event loop stays free."""
        return await asyncio.to_thread(self.ingest, upload)


def declared_media_type(upload: ImageUpload) -> str | None:
    """Return the declared media type, guessing from the filename if absent."""
    if upload.content_type:
        return upload.content_type.split(";", 1)[0].strip().lower()
    guessed, _ = mimetypes.guess_type(upload.filename)
    return guessed


def target_size(width: int, height: int, max_edge: int) -> tuple[int, int]:
    """Clamp the longer edge to max_edge, keeping aspect ratio; never upscale."""
    if width > height:
        if width > max_edge:
            return max_edge, max(1, int(height * max_edge / width))
    elif height > max_edge:
        return max(1, int(width * max_edge / height)), max_edge
    return width, height


def pillow_quality(quality: float) -> int:
    """Map a 0-1 quality factor onto Pillow's JPEG scale."""
    if not 0.0 <= quality <= 1.0:
        raise ValueError(f"quality must be between 0 and 1, got {quality}")
    return max(1, min(95, round(quality * 100)))


def _decode(upload: ImageUpload) -> Image.Image:
    """Decode and orient an image, returning an RGB or greyscale copy."""
    try:
        with Image.open(io.BytesIO(upload.data)) as source:
            source.load()
            image = ImageOps.exif_transpose(source)
            if image.mode not in ("RGB", "L"):
                image = image.convert("RGB")
            elif image is source:
                image = source.copy()
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        SyntaxError,
        ValueError,
    ) as exc:
        raise ImageDecodeError(upload.filename, str(exc)) from exc
    return image
