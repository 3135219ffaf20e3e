"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import acreate_client

from photopick.adapters.supabase_identity import SupabaseIdentityBootstrap
from photopick.adapters.supabase_photo_repository import SupabasePhotoRepository
from photopick.config import Settings
from photopick.services.feed import SyncFeed
from photopick.services.identity import ClientIdentity, IdentityBootstrap
from photopick.services.ingestion import ImageIngestor
from photopick.services.selection import SelectionAggregator
from photopick.services.store import PhotoStore
from photopick.services.uploads import UploadService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    identity: ClientIdentity
    identity_bootstrap: IdentityBootstrap
    photo_store: PhotoStore
    ingestor: ImageIngestor
    upload_service: UploadService
    selection: SelectionAggregator
    close_resources: Callable[[], Awaitable[None]]

    def new_feed(
        self, on_error: Callable[[Exception], None] | None = None
    ) -> SyncFeed:
        """Create a feed that keeps the selection aggregator current."""
        return SyncFeed(
            store=self.photo_store,
            on_view=self.selection.apply,
            on_error=on_error,
        )


async def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = await acreate_client(
        resolved_settings.supabase_url, resolved_settings.supabase_key
    )
    identity = ClientIdentity()
    photo_repository = SupabasePhotoRepository(
        client=supabase_client,
        app_id=resolved_settings.app_id,
        table=resolved_settings.photos_table,
    )
    photo_store = PhotoStore(
        repository=photo_repository,
        delete_concurrency=resolved_settings.delete_concurrency,
    )
    ingestor = ImageIngestor(
        max_edge=resolved_settings.max_edge,
        quality=resolved_settings.jpeg_quality,
        max_payload_bytes=resolved_settings.max_payload_bytes,
    )

    async def close_resources() -> None:
        await supabase_client.remove_all_channels()

    return AppContainer(
        settings=resolved_settings,
        identity=identity,
        identity_bootstrap=SupabaseIdentityBootstrap(supabase_client, identity),
        photo_store=photo_store,
        ingestor=ingestor,
        upload_service=UploadService(ingestor, photo_store, identity),
        selection=SelectionAggregator(photo_store),
        close_resources=close_resources,
    )
