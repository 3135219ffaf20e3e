"""Domain models for shared photo records."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class PhotoRecord:
    """Represents a photo stored in the shared collection."""

    id: str
    filename: str
    image_data_url: str
    selected: bool
    created_at: datetime | None
    owner_id: str


@dataclass(frozen=True)
class NewPhoto:
    """Fields supplied by the client when creating a photo record."""

    filename: str
    image_data_url: str
    owner_id: str
    selected: bool = False

    def __post_init__(self) -> None:
        if not self.filename:
            raise ValueError("filename must not be empty")


@dataclass(frozen=True)
class FeedView:
    """Ordered snapshot of the collection with its selection count."""

    records: tuple[PhotoRecord, ...] = ()
    selected_count: int = 0

    def get(self, photo_id: str) -> PhotoRecord | None:
        """Return the record with the given id, if present."""
        for record in self.records:
            if record.id == photo_id:
                return record
        return None


@dataclass(frozen=True)
class ExportList:
    """Ordered filenames of selected photos for the export boundary."""

    names: list[str] = field(default_factory=list)

    @property
    def any_selected(self) -> bool:
        return bool(self.names)

    def as_text(self) -> str:
        """Join names one per line, as pasted into a message."""
        return "\n".join(self.names)
