"""Selection derived from the latest feed view."""

import logging
from dataclasses import dataclass, field

from photopick.domain.errors import RecordNotFoundError
from photopick.domain.photos import ExportList, FeedView, PhotoRecord
from photopick.services.store import PhotoStore

_logger = logging.getLogger(__name__)


@dataclass
class SelectionAggregator:
    """Computes selected photos from the most recent snapshot.

    The only state kept is the last view received from the feed. Toggling
    flips the value seen in that view with no version check, so two viewers
    toggling the same photo at once can cancel each other out.
    """

    store: PhotoStore
    view: FeedView = field(default_factory=FeedView)

    def apply(self, view: FeedView) -> None:
        """Replace the cached view with a newer snapshot."""
        self.view = view

    @property
    def selected_count(self) -> int:
        return self.view.selected_count

    def selected_subset(self) -> list[PhotoRecord]:
        """Selected records in feed order."""
        return [record for record in self.view.records if record.selected]

    def export_name_list(self) -> list[str]:
        """Filenames of selected records in feed order."""
        return [record.filename for record in self.selected_subset()]

    def export(self) -> ExportList:
        return ExportList(names=self.export_name_list())

    async def toggle(self, photo_id: str) -> bool | None:
        """Flip the selection flag of a photo.

        Returns the value written, or None when the photo is gone.
        """
        record = self.view.get(photo_id)
        if record is None:
            _logger.info("Toggle ignored, photo %s not in current view", photo_id)
            return None
        new_value = not record.selected
        try:
            await self.store.update_field(photo_id, "selected", new_value)
        except RecordNotFoundError:
            _logger.info("Toggle ignored, photo %s was deleted", photo_id)
            return None
        return new_value
