"""Shared test fixtures."""

import asyncio
import base64
import io
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from PIL import Image

from photopick.config import Settings
from photopick.containers import AppContainer
from photopick.domain.errors import RecordNotFoundError, TransportError
from photopick.services.identity import ClientIdentity, IdentityBootstrap
from photopick.services.ingestion import ImageIngestor
from photopick.services.selection import SelectionAggregator
from photopick.services.store import PhotoRepository, PhotoStore
from photopick.services.uploads import UploadService

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
FAKE_SUPABASE_KEY = (
    "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9."
    "eyJyb2xlIjoiYW5vbiJ9."
    "c2lnbmF0dXJlLXBsYWNlaG9sZGVy"
)


@dataclass(eq=False)
class InMemoryChangeListener:
    """Change listener registered on the in-memory repository."""

    repository: "InMemoryPhotoRepository"
    on_change: Callable[[], None]
    on_error: Callable[[Exception], None]
    closed: bool = False

    async def close(self) -> None:
        self.closed = True
        if self in self.repository.listeners:
            self.repository.listeners.remove(self)


@dataclass(eq=False)
class InMemoryPhotoRepository(PhotoRepository):
    """In-memory photo collection that notifies listeners on every write."""

    rows: dict[str, dict[str, object]] = field(default_factory=dict)
    listeners: list[InMemoryChangeListener] = field(default_factory=list)
    failing_deletes: set[str] = field(default_factory=set)
    acknowledge_writes: bool = True
    list_error: Exception | None = None
    list_calls: int = 0
    _clock: int = 0

    def seed(
        self,
        photo_id: str,
        filename: str,
        *,
        selected: bool = False,
        created_at: int | None = 1,
        owner_id: str = "uploader-1",
    ) -> None:
        """Add a row without notifying listeners."""
        self.rows[photo_id] = {
            "id": photo_id,
            "filename": filename,
            "image_data_url": "data:image/jpeg;base64,AAAA",
            "selected": selected,
            "owner_id": owner_id,
            "created_at": (
                (BASE_TIME + timedelta(seconds=created_at)).isoformat()
                if created_at is not None
                else None
            ),
        }

    async def insert_photo(self, fields: dict[str, object]) -> str:
        photo_id = str(uuid4())
        self._clock += 1
        created_at = (
            (BASE_TIME + timedelta(hours=1, seconds=self._clock)).isoformat()
            if self.acknowledge_writes
            else None
        )
        self.rows[photo_id] = {**fields, "id": photo_id, "created_at": created_at}
        self.notify()
        return photo_id

    async def update_photo(self, photo_id: str, fields: dict[str, object]) -> None:
        row = self.rows.get(photo_id)
        if row is None:
            raise RecordNotFoundError(photo_id)
        row.update(fields)
        self.notify()

    async def delete_photo(self, photo_id: str) -> None:
        if photo_id in self.failing_deletes:
            raise TransportError(f"delete of {photo_id} rejected")
        if self.rows.pop(photo_id, None) is not None:
            self.notify()

    async def list_photos(self) -> list[dict[str, object]]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return [dict(row) for row in self.rows.values()]

    async def listen(
        self, on_change: Callable[[], None], on_error: Callable[[Exception], None]
    ) -> InMemoryChangeListener:
        listener = InMemoryChangeListener(self, on_change, on_error)
        self.listeners.append(listener)
        return listener

    def notify(self) -> None:
        for listener in list(self.listeners):
            listener.on_change()

    def fail(self, exc: Exception) -> None:
        for listener in list(self.listeners):
            listener.on_error(exc)


@dataclass
class FakeIdentityBootstrap(IdentityBootstrap):
    """Identity bootstrap that signs in instantly, or fails on demand."""

    identity: ClientIdentity
    user_id: str = "viewer-1"
    error: Exception | None = None
    tokens: list[str | None] = field(default_factory=list)

    async def sign_in(self, access_token: str | None = None) -> str:
        self.tokens.append(access_token)
        if self.error is not None:
            raise self.error
        self.identity.set(self.user_id)
        return self.user_id


async def settle() -> None:
    """Let scheduled snapshot refreshes run."""
    for _ in range(5):
        await asyncio.sleep(0)


def make_image_bytes(
    width: int, height: int, fmt: str = "PNG", mode: str = "RGB"
) -> bytes:
    color = (200, 80, 40, 255)[: len(mode)] if mode != "L" else 128
    buffer = io.BytesIO()
    Image.new(mode, (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


def make_noise_bytes(width: int, height: int) -> bytes:
    """PNG of random pixels, which compresses badly as JPEG."""
    buffer = io.BytesIO()
    image = Image.frombytes("RGB", (width, height), os.urandom(width * height * 3))
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def decoded_size(data_url: str) -> tuple[int, int]:
    header, encoded = data_url.split(",", 1)
    assert header == "data:image/jpeg;base64"
    with Image.open(io.BytesIO(base64.b64decode(encoded))) as image:
        return image.size


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_key=FAKE_SUPABASE_KEY,
        app_id="test-app",
    )


@pytest.fixture
def photo_repository() -> InMemoryPhotoRepository:
    return InMemoryPhotoRepository()


@pytest.fixture
def photo_store(photo_repository: InMemoryPhotoRepository) -> PhotoStore:
    return PhotoStore(photo_repository, delete_concurrency=4)


@pytest.fixture
def container(
    settings: Settings,
    photo_repository: InMemoryPhotoRepository,
    photo_store: PhotoStore,
) -> AppContainer:
    identity = ClientIdentity()
    ingestor = ImageIngestor(
        max_edge=settings.max_edge,
        quality=settings.jpeg_quality,
        max_payload_bytes=settings.max_payload_bytes,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        identity=identity,
        identity_bootstrap=FakeIdentityBootstrap(identity),
        photo_store=photo_store,
        ingestor=ingestor,
        upload_service=UploadService(ingestor, photo_store, identity),
        selection=SelectionAggregator(photo_store),
        close_resources=close_resources,
    )
