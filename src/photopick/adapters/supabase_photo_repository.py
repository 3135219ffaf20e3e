"""Supabase-backed photo collection with realtime change notifications."""

from collections.abc import Callable
from dataclasses import dataclass
from uuid import uuid4

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient

from photopick.domain.errors import RecordNotFoundError, TransportError
from photopick.services.store import ErrorCallback, PhotoRepository, RawRow

_FAILED_CHANNEL_STATES = frozenset({"CHANNEL_ERROR", "TIMED_OUT", "CLOSED"})


@dataclass
class SupabaseChangeListener:
    """Realtime channel handle returned by SupabasePhotoRepository.listen."""

    client: AsyncClient
    channel: object
    closed: bool = False

    async def close(self) -> None:
        """Remove the realtime channel."""
        if self.closed:
            return
        self.closed = True
        await self.client.remove_channel(self.channel)


@dataclass
class SupabasePhotoRepository(PhotoRepository):
    """Supabase implementation of the photo collection.

    Rows live in one table and are scoped to an application id column, so
    several deployments can share a project without seeing each other.
    """

    client: AsyncClient
    app_id: str
    table: str = "photos"
    schema: str = "public"

    async def insert_photo(self, fields: dict[str, object]) -> str:
        """Insert a photo row and return its id."""
        response = await _execute(
            self.client.table(self.table).insert({**fields, "app_id": self.app_id})
        )
        if not response.data:
            raise TransportError("Failed to create photo record")
        return str(response.data[0]["id"])

    async def update_photo(self, photo_id: str, fields: dict[str, object]) -> None:
        """Update fields of a photo row."""
        response = await _execute(
            self.client.table(self.table)
            .update(fields)
            .eq("app_id", self.app_id)
            .eq("id", photo_id)
        )
        if not response.data:
            raise RecordNotFoundError(photo_id)

    async def delete_photo(self, photo_id: str) -> None:
        """Delete a photo row."""
        await _execute(
            self.client.table(self.table)
            .delete()
            .eq("app_id", self.app_id)
            .eq("id", photo_id)
        )

    async def list_photos(self) -> list[RawRow]:
        """Return all photo rows for the application."""
        response = await _execute(
            self.client.table(self.table).select("*").eq("app_id", self.app_id)
        )
        return list(response.data or [])

    async def listen(
        self, on_change: Callable[[], None], on_error: ErrorCallback
    ) -> SupabaseChangeListener:
        """Subscribe to every change on the photos table.

        Realtime cannot filter DELETE events by column, so the channel
        listens to the whole table and readers re-query their own rows.
        """
        channel = self.client.channel(f"photopick:{self.app_id}:{uuid4().hex}")
        listener = SupabaseChangeListener(client=self.client, channel=channel)

        def _handle_change(_payload: dict[str, object]) -> None:
            if not listener.closed:
                on_change()

        def _handle_status(status: object, error: Exception | None = None) -> None:
            if listener.closed:
                return
            state = getattr(status, "value", status)
            if state in _FAILED_CHANNEL_STATES:
                on_error(TransportError(f"realtime channel {state}: {error}"))

        try:
            await channel.on_postgres_changes(
                "*",
                callback=_handle_change,
                table=self.table,
                schema=self.schema,
            ).subscribe(_handle_status)
        except Exception as exc:
            raise TransportError(f"Failed to subscribe to photos: {exc}") from exc
        return listener


async def _execute(query):  # type: ignore[no-untyped-def]
    """Run a PostgREST query, translating client failures."""
    try:
        return await query.execute()
    except (APIError, httpx.HTTPError) as exc:
        raise TransportError(str(exc)) from exc
