"""Typed client over the shared photo collection."""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Protocol

from photopick.domain.errors import (
    PartialBatchFailure,
    PhotoPickError,
    RecordNotFoundError,
    TransportError,
)
from photopick.domain.photos import NewPhoto

MUTABLE_FIELDS = frozenset({"selected"})

RawRow = dict[str, object]
SnapshotCallback = Callable[[list[RawRow]], None]
ErrorCallback = Callable[[Exception], None]

_logger = logging.getLogger(__name__)


class ChangeListener(Protocol):
    """Handle for a live change notification channel."""

    async def close(self) -> None:
        """Stop receiving change notifications."""


class PhotoRepository(Protocol):
    """Persistence interface for the namespaced photo collection."""

    async def insert_photo(self, fields: dict[str, object]) -> str:
        """Insert a full record and return the store-assigned id."""

    async def update_photo(self, photo_id: str, fields: dict[str, object]) -> None:
        """Update the given fields; raise RecordNotFoundError if missing."""

    async def delete_photo(self, photo_id: str) -> None:
        """Delete a record; deleting a missing record is not an error."""

    async def list_photos(self) -> list[RawRow]:
        """Return every record currently in the collection."""

    async def listen(
        self, on_change: Callable[[], None], on_error: ErrorCallback
    ) -> ChangeListener:
        """Call on_change whenever the collection changes."""


@dataclass
class SnapshotSubscription:
    """Live subscription that turns change notifications into full snapshots.

    Refreshes are serialized and coalesced: at most one read of the
    collection is in flight, and changes arriving during a read trigger
    exactly one more read afterwards. Snapshots are therefore delivered in
    the order they were read.
    """

    repository: PhotoRepository
    on_snapshot: SnapshotCallback
    on_error: ErrorCallback
    _listener: ChangeListener | None = field(default=None, init=False, repr=False)
    _refresh_task: asyncio.Task[None] | None = field(
        default=None, init=False, repr=False
    )
    _teardown_task: asyncio.Task[None] | None = field(
        default=None, init=False, repr=False
    )
    _dirty: bool = field(default=False, init=False)
    _refreshing: bool = field(default=False, init=False)
    _closed: bool = field(default=False, init=False)

    @property
    def closed(self) -> bool:
        return self._closed

    async def open(self) -> None:
        """Start listening and deliver the initial snapshot."""
        self._listener = await self.repository.listen(
            self.request_refresh, self._fail
        )
        if self._closed:
            await self._listener.close()
            return
        self._dirty = True
        self._refreshing = True
        await self._drain()

    def request_refresh(self) -> None:
        """Schedule a re-read of the collection."""
        if self._closed:
            return
        self._dirty = True
        if self._refreshing:
            return
        self._refreshing = True
        self._refresh_task = asyncio.get_running_loop().create_task(self._drain())

    async def close(self) -> None:
        """Stop the subscription; no callback fires after this returns."""
        if self._closed:
            return
        self._closed = True
        task = self._refresh_task
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        if self._listener is not None:
            await self._listener.close()

    async def _drain(self) -> None:
        try:
            while self._dirty and not self._closed:
                self._dirty = False
                try:
                    rows = await self.repository.list_photos()
                except Exception as exc:  # noqa: BLE001
                    self._fail(exc)
                    return
                if self._closed:
                    return
                try:
                    self.on_snapshot(rows)
                except Exception:
                    _logger.exception("Snapshot consumer failed")
        finally:
            self._refreshing = False

    def _fail(self, exc: Exception) -> None:
        if self._closed:
            return
        self._closed = True
        error = exc if isinstance(exc, PhotoPickError) else TransportError(str(exc))
        if self._listener is not None:
            self._teardown_task = asyncio.get_running_loop().create_task(
                self._listener.close()
            )
            self._teardown_task.add_done_callback(_log_teardown_failure)
        self.on_error(error)


def _log_teardown_failure(task: asyncio.Task[None]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        _logger.error("Failed to close change listener", exc_info=exc)


@dataclass
class PhotoStore:
    """Application-facing operations on the photo collection."""

    repository: PhotoRepository
    delete_concurrency: int = 8

    async def create(self, photo: NewPhoto) -> str:
        """Insert a new record with its complete field set."""
        photo_id = await self.repository.insert_photo(
            {
                "filename": photo.filename,
                "image_data_url": photo.image_data_url,
                "selected": photo.selected,
                "owner_id": photo.owner_id,
            }
        )
        _logger.info("Created photo %s (%s)", photo_id, photo.filename)
        return photo_id

    async def update_field(self, photo_id: str, name: str, value: object) -> None:
        """Update exactly one mutable field of a record."""
        if name not in MUTABLE_FIELDS:
            raise ValueError(f"field {name!r} cannot be updated")
        await self.repository.update_photo(photo_id, {name: value})

    async def delete(self, photo_id: str) -> None:
        """Delete a record; already-deleted records are ignored."""
        try:
            await self.repository.delete_photo(photo_id)
        except RecordNotFoundError:
            _logger.info("Photo %s was already deleted", photo_id)

    async def delete_all(self, photo_ids: Iterable[str]) -> None:
        """Delete many records, reporting every failure after all settle."""
        ids = list(dict.fromkeys(photo_ids))
        semaphore = asyncio.Semaphore(self.delete_concurrency)

        async def _delete_one(photo_id: str) -> Exception | None:
            async with semaphore:
                try:
                    await self.delete(photo_id)
                except PhotoPickError as exc:
                    return exc
                except Exception as exc:  # noqa: BLE001
                    _logger.error(
                        "Delete of %s failed unexpectedly", photo_id, exc_info=exc
                    )
                    return exc
            return None

        results = await asyncio.gather(*(_delete_one(photo_id) for photo_id in ids))
        errors = {
            photo_id: error
            for photo_id, error in zip(ids, results, strict=True)
            if error is not None
        }
        if errors:
            deleted = [photo_id for photo_id in ids if photo_id not in errors]
            _logger.warning(
                "Bulk delete partially failed: %s deleted, %s failed",
                len(deleted),
                len(errors),
            )
            raise PartialBatchFailure(
                failed_ids=list(errors), deleted_ids=deleted, errors=errors
            )
        _logger.info("Deleted %s photos", len(ids))

    async def subscribe(
        self, on_snapshot: SnapshotCallback, on_error: ErrorCallback
    ) -> SnapshotSubscription:
        """Open an independent live subscription to full snapshots."""
        subscription = SnapshotSubscription(
            repository=self.repository,
            on_snapshot=on_snapshot,
            on_error=on_error,
        )
        await subscription.open()
        return subscription
