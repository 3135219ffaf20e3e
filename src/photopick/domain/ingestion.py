"""Models for image ingestion."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ImageUpload:
    """Raw file handed to the ingestion pipeline."""

    filename: str
    content_type: str | None
    data: bytes


@dataclass(frozen=True)
class EncodedPayload:
    """Downscaled, re-encoded image ready to be stored inline."""

    data_url: str
    width: int
    height: int

    @property
    def size_bytes(self) -> int:
        return len(self.data_url.encode("ascii"))
