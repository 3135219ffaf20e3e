"""Upload flow: ingest files and persist them as new photo records."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from photopick.domain.errors import PhotoPickError
from photopick.domain.ingestion import ImageUpload
from photopick.domain.photos import NewPhoto
from photopick.services.identity import ClientIdentity
from photopick.services.ingestion import ImageIngestor
from photopick.services.store import PhotoStore

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadOutcome:
    """Result of uploading a single file."""

    filename: str
    photo_id: str | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class UploadReport:
    """Per-file results of a multi-file upload."""

    outcomes: list[UploadOutcome]

    @property
    def uploaded(self) -> list[UploadOutcome]:
        return [outcome for outcome in self.outcomes if outcome.ok]

    @property
    def failed(self) -> list[UploadOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]


@dataclass
class UploadService:
    """Runs the ingestion pipeline and creates records for the results."""

    ingestor: ImageIngestor
    store: PhotoStore
    identity: ClientIdentity

    async def upload(self, upload: ImageUpload) -> str:
        """Ingest one file and create its record; nothing is stored on error."""
        owner_id = self.identity.require()
        payload = await self.ingestor.ingest_async(upload)
        return await self.store.create(
            NewPhoto(
                filename=upload.filename,
                image_data_url=payload.data_url,
                owner_id=owner_id,
            )
        )

    async def upload_many(self, uploads: Sequence[ImageUpload]) -> UploadReport:
        """Upload files concurrently; each file succeeds or fails on its own."""
        self.identity.require()
        results = await asyncio.gather(
            *(self.upload(upload) for upload in uploads), return_exceptions=True
        )
        outcomes: list[UploadOutcome] = []
        for upload, result in zip(uploads, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                if isinstance(result, PhotoPickError | ValueError):
                    _logger.warning("Upload of %s failed: %s", upload.filename, result)
                else:
                    _logger.error(
                        "Upload of %s failed unexpectedly",
                        upload.filename,
                        exc_info=result,
                    )
                outcomes.append(UploadOutcome(filename=upload.filename, error=result))
            else:
                outcomes.append(UploadOutcome(filename=upload.filename, photo_id=result))
        return UploadReport(outcomes=outcomes)
