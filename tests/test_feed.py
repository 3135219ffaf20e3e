"""Tests for the live synchronization feed."""

import asyncio
from datetime import UTC, datetime

import pytest

from photopick.domain.errors import TransportError
from photopick.domain.ingestion import ImageUpload
from photopick.domain.photos import FeedView
from photopick.services.feed import (
    FeedState,
    SyncFeed,
    build_view,
    normalize_photo,
)
from photopick.services.identity import ClientIdentity
from photopick.services.ingestion import ImageIngestor
from photopick.services.store import PhotoStore
from photopick.services.uploads import UploadService
from tests.conftest import (
    InMemoryPhotoRepository,
    decoded_size,
    make_image_bytes,
    settle,
)


def test_build_view_orders_newest_first_with_pending_last() -> None:
    repository = InMemoryPhotoRepository()
    repository.seed("pending", "pending.jpg", created_at=None)
    repository.seed("old", "old.jpg", created_at=1)
    repository.seed("new", "new.jpg", created_at=3, selected=True)
    repository.seed("mid", "mid.jpg", created_at=2)

    view = build_view(repository.rows.values())

    assert [record.id for record in view.records] == ["new", "mid", "old", "pending"]
    assert view.selected_count == 1


def test_build_view_keeps_arrival_order_for_equal_timestamps() -> None:
    repository = InMemoryPhotoRepository()
    repository.seed("first", "first.jpg", created_at=None)
    repository.seed("second", "second.jpg", created_at=None)

    view = build_view(repository.rows.values())

    assert [record.id for record in view.records] == ["first", "second"]


def test_normalize_photo_handles_partial_rows() -> None:
    assert normalize_photo({"filename": "orphan.jpg"}) is None

    record = normalize_photo(
        {"id": 7, "filename": "a.jpg", "created_at": "2024-05-01T12:00:00"}
    )
    assert record is not None
    assert record.id == "7"
    assert record.selected is False
    assert record.created_at == datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

    zulu = normalize_photo({"id": "z", "created_at": "2024-05-01T12:00:00Z"})
    assert zulu is not None
    assert zulu.created_at == datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

    broken = normalize_photo({"id": "b", "created_at": "yesterday"})
    assert broken is not None
    assert broken.created_at is None


def test_feed_streams_views_and_counts(
    photo_store: PhotoStore, photo_repository: InMemoryPhotoRepository
) -> None:
    photo_repository.seed("a", "a.jpg", created_at=1, selected=True)
    photo_repository.seed("b", "b.jpg", created_at=2)
    views: list[FeedView] = []

    async def scenario() -> SyncFeed:
        feed = SyncFeed(photo_store, views.append)
        await feed.start()
        assert feed.state is FeedState.STREAMING
        await photo_store.update_field("b", "selected", True)
        await settle()
        await feed.close()
        return feed

    feed = asyncio.run(scenario())

    assert [view.selected_count for view in views] == [1, 2]
    for view in views:
        assert view.selected_count == sum(1 for r in view.records if r.selected)
    assert feed.latest_view is views[-1]
    assert feed.state is FeedState.CLOSED


def test_feed_reports_error_once_and_stops(
    photo_store: PhotoStore, photo_repository: InMemoryPhotoRepository
) -> None:
    views: list[FeedView] = []
    errors: list[Exception] = []

    async def scenario() -> SyncFeed:
        feed = SyncFeed(photo_store, views.append, errors.append)
        await feed.start()
        photo_repository.fail(TransportError("channel dropped"))
        photo_repository.fail(TransportError("channel dropped again"))
        photo_repository.seed("late", "late.jpg")
        photo_repository.notify()
        await settle()
        return feed

    feed = asyncio.run(scenario())

    assert feed.state is FeedState.ERROR
    assert len(errors) == 1
    assert len(views) == 1


def test_feed_initial_failure_enters_error_state(
    photo_store: PhotoStore, photo_repository: InMemoryPhotoRepository
) -> None:
    photo_repository.list_error = TransportError("permission denied")
    errors: list[Exception] = []

    async def scenario() -> SyncFeed:
        feed = SyncFeed(photo_store, lambda view: None, errors.append)
        await feed.start()
        return feed

    feed = asyncio.run(scenario())

    assert feed.state is FeedState.ERROR
    assert feed.latest_view is None
    assert [str(error) for error in errors] == ["permission denied"]


def test_feed_close_is_idempotent_and_silences_callbacks(
    photo_store: PhotoStore, photo_repository: InMemoryPhotoRepository
) -> None:
    views: list[FeedView] = []

    async def scenario() -> None:
        feed = SyncFeed(photo_store, views.append)
        await feed.start()
        await feed.close()
        await feed.close()
        photo_repository.seed("a", "a.jpg")
        photo_repository.notify()
        await settle()

    asyncio.run(scenario())

    assert len(views) == 1
    assert photo_repository.listeners == []


def test_feed_cannot_start_twice(photo_store: PhotoStore) -> None:
    async def scenario() -> None:
        feed = SyncFeed(photo_store, lambda view: None)
        await feed.start()
        try:
            with pytest.raises(RuntimeError):
                await feed.start()
        finally:
            await feed.close()

    asyncio.run(scenario())


def test_independent_feeds_do_not_share_state(
    photo_store: PhotoStore, photo_repository: InMemoryPhotoRepository
) -> None:
    first_views: list[FeedView] = []
    second_views: list[FeedView] = []

    async def scenario() -> None:
        first = SyncFeed(photo_store, first_views.append)
        second = SyncFeed(photo_store, second_views.append)
        await first.start()
        await second.start()
        await first.close()
        photo_repository.seed("a", "a.jpg")
        photo_repository.notify()
        await settle()
        assert second.state is FeedState.STREAMING
        await second.close()

    asyncio.run(scenario())

    assert [len(view.records) for view in first_views] == [0]
    assert [len(view.records) for view in second_views] == [0, 1]


def test_uploaded_photos_appear_in_feed(
    photo_store: PhotoStore, photo_repository: InMemoryPhotoRepository
) -> None:
    identity = ClientIdentity("uploader-1")
    uploads = UploadService(ImageIngestor(), photo_store, identity)
    views: list[FeedView] = []

    async def scenario() -> None:
        feed = SyncFeed(photo_store, views.append)
        await feed.start()
        await uploads.upload_many(
            [
                ImageUpload("wide.png", "image/png", make_image_bytes(2000, 1000)),
                ImageUpload("small.png", "image/png", make_image_bytes(400, 300)),
            ]
        )
        await settle()
        await feed.close()

    asyncio.run(scenario())

    latest = views[-1]
    assert sorted(record.filename for record in latest.records) == [
        "small.png",
        "wide.png",
    ]
    sizes = {
        record.filename: decoded_size(record.image_data_url)
        for record in latest.records
    }
    assert sizes == {"wide.png": (800, 400), "small.png": (400, 300)}
    assert all(record.owner_id == "uploader-1" for record in latest.records)
    assert latest.selected_count == 0
