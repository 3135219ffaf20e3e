"""Response models for the HTTP API."""

from datetime import datetime

from pydantic import BaseModel

from photopick.domain.photos import FeedView, PhotoRecord
from photopick.services.uploads import UploadReport


class PhotoOut(BaseModel):
    """Photo as shown to clients."""

    id: str
    filename: str
    image_data_url: str
    selected: bool
    created_at: datetime | None
    owner_id: str

    @classmethod
    def from_record(cls, record: PhotoRecord) -> "PhotoOut":
        return cls(
            id=record.id,
            filename=record.filename,
            image_data_url=record.image_data_url,
            selected=record.selected,
            created_at=record.created_at,
            owner_id=record.owner_id,
        )


class FeedOut(BaseModel):
    """Current synchronized view."""

    feed_state: str | None
    selected_count: int
    photos: list[PhotoOut]

    @classmethod
    def from_view(cls, view: FeedView, feed_state: str | None) -> "FeedOut":
        return cls(
            feed_state=feed_state,
            selected_count=view.selected_count,
            photos=[PhotoOut.from_record(record) for record in view.records],
        )


class UploadResultOut(BaseModel):
    filename: str
    photo_id: str | None = None
    error: str | None = None


class UploadReportOut(BaseModel):
    """Per-file upload results."""

    uploaded: int
    failed: int
    results: list[UploadResultOut]

    @classmethod
    def from_report(cls, report: UploadReport) -> "UploadReportOut":
        return cls(
            uploaded=len(report.uploaded),
            failed=len(report.failed),
            results=[
                UploadResultOut(
                    filename=outcome.filename,
                    photo_id=outcome.photo_id,
                    error=str(outcome.error) if outcome.error else None,
                )
                for outcome in report.outcomes
            ],
        )


class ToggleOut(BaseModel):
    id: str
    selected: bool | None


class SelectionOut(BaseModel):
    """Selected filenames in feed order."""

    selected_count: int
    any_selected: bool
    filenames: list[str]


class ClearOut(BaseModel):
    """Outcome of clearing the collection."""

    deleted_ids: list[str]
    failed_ids: list[str]
    partially_applied: bool
