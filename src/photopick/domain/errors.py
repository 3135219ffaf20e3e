"""Error taxonomy for ingestion, storage and synchronization."""


class PhotoPickError(Exception):
    """Base class for all PhotoPick errors."""


class UnsupportedTypeError(PhotoPickError):
    """The declared media type is not an image type."""

    def __init__(self, filename: str, content_type: str | None) -> None:
        super().__init__(f"{filename}: unsupported media type {content_type!r}")
        self.filename = filename
        self.content_type = content_type


class ImageDecodeError(PhotoPickError):
    """The file claims to be an image but could not be decoded."""

    def __init__(self, filename: str, reason: str) -> None:
        super().__init__(f"{filename}: cannot decode image ({reason})")
        self.filename = filename


class PayloadTooLargeError(PhotoPickError):
    """The encoded payload exceeds the storage ceiling."""

    def __init__(self, filename: str, size_bytes: int, limit_bytes: int) -> None:
        super().__init__(
            f"{filename}: encoded payload is {size_bytes} bytes, "
            f"limit is {limit_bytes}"
        )
        self.filename = filename
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes


class RecordNotFoundError(PhotoPickError):
    """The record no longer exists, usually removed by another client."""

    def __init__(self, photo_id: str) -> None:
        super().__init__(f"photo {photo_id} not found")
        self.photo_id = photo_id


class TransportError(PhotoPickError):
    """The backing store or its change feed failed."""


class PartialBatchFailure(PhotoPickError):
    """Some deletes in a batch failed while others may have succeeded."""

    def __init__(
        self,
        failed_ids: list[str],
        deleted_ids: list[str],
        errors: dict[str, Exception] | None = None,
    ) -> None:
        super().__init__(
            f"{len(failed_ids)} of {len(failed_ids) + len(deleted_ids)} "
            "deletes failed"
        )
        self.failed_ids = failed_ids
        self.deleted_ids = deleted_ids
        self.errors = errors or {}

    @property
    def partially_applied(self) -> bool:
        return bool(self.deleted_ids)


class IdentityUnavailableError(PhotoPickError):
    """No client identity has been established yet."""
