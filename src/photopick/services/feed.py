"""Live synchronization feed over the shared photo collection."""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from photopick.domain.errors import PhotoPickError
from photopick.domain.photos import FeedView, PhotoRecord
from photopick.services.store import PhotoStore, RawRow, SnapshotSubscription

_logger = logging.getLogger(__name__)


class FeedState(str, Enum):
    """Lifecycle of a single feed subscription."""

    CONNECTING = "CONNECTING"
    STREAMING = "STREAMING"
    ERROR = "ERROR"
    CLOSED = "CLOSED"


@dataclass
class SyncFeed:
    """Republishes each store snapshot as an ordered view with a count.

    Every delivered view is a complete replacement of the previous one.
    Errors end the feed; reconnecting means starting a new feed.
    """

    store: PhotoStore
    on_view: Callable[[FeedView], None]
    on_error: Callable[[Exception], None] | None = None
    state: FeedState = field(default=FeedState.CONNECTING, init=False)
    latest_view: FeedView | None = field(default=None, init=False)
    _subscription: SnapshotSubscription | None = field(
        default=None, init=False, repr=False
    )
    _started: bool = field(default=False, init=False, repr=False)

    async def start(self) -> None:
        """Subscribe and deliver the first view before returning."""
        if self._started:
            raise RuntimeError("feed already started")
        self._started = True
        try:
            subscription = await self.store.subscribe(
                self._handle_snapshot, self._handle_error
            )
        except PhotoPickError as exc:
            self._handle_error(exc)
            return
        if self.state is FeedState.CLOSED:
            await subscription.close()
            return
        self._subscription = subscription

    async def close(self) -> None:
        """Tear the feed down; safe to call more than once."""
        if self.state is FeedState.CLOSED:
            return
        self.state = FeedState.CLOSED
        if self._subscription is not None:
            await self._subscription.close()

    def _handle_snapshot(self, rows: list[RawRow]) -> None:
        if self.state in {FeedState.ERROR, FeedState.CLOSED}:
            return
        view = build_view(rows)
        self.state = FeedState.STREAMING
        self.latest_view = view
        self.on_view(view)

    def _handle_error(self, exc: Exception) -> None:
        if self.state in {FeedState.ERROR, FeedState.CLOSED}:
            return
        self.state = FeedState.ERROR
        _logger.warning("Photo feed failed: %s", exc)
        if self.on_error is not None:
            self.on_error(exc)


def build_view(rows: Iterable[RawRow]) -> FeedView:
    """Normalize, order and count one snapshot."""
    records = sort_photos(
        record for record in (normalize_photo(row) for row in rows) if record
    )
    return FeedView(
        records=tuple(records),
        selected_count=sum(1 for record in records if record.selected),
    )


def sort_photos(records: Iterable[PhotoRecord]) -> list[PhotoRecord]:
    """Newest first; records without a server timestamp yet sort last."""
    return sorted(records, key=_sort_key, reverse=True)


def normalize_photo(row: RawRow) -> PhotoRecord | None:
    """Convert a raw store row into a PhotoRecord, or None if unusable."""
    photo_id = row.get("id")
    if not photo_id:
        _logger.warning("Skipping photo row without id: %s", sorted(row))
        return None
    return PhotoRecord(
        id=str(photo_id),
        filename=str(row.get("filename") or ""),
        image_data_url=str(row.get("image_data_url") or ""),
        selected=bool(row.get("selected", False)),
        created_at=_parse_timestamp(row.get("created_at")),
        owner_id=str(row.get("owner_id") or ""),
    )


def _sort_key(record: PhotoRecord) -> float:
    if record.created_at is None:
        return 0.0
    return record.created_at.timestamp()


def _parse_timestamp(raw: object) -> datetime | None:
    if isinstance(raw, datetime):
        value = raw
    elif isinstance(raw, str) and raw:
        try:
            value = datetime.fromisoformat(raw)
        except ValueError:
            _logger.warning("Unparseable created_at value: %r", raw)
            return None
    else:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value
