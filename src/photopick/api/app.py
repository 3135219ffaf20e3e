"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from photopick.api.photos import feed_state
from photopick.api.photos import router as photos_router
from photopick.api.selection import router as selection_router
from photopick.app_logging import configure_logging
from photopick.containers import AppContainer, build_container
from photopick.domain.errors import (
    IdentityUnavailableError,
    ImageDecodeError,
    PartialBatchFailure,
    PayloadTooLargeError,
    PhotoPickError,
    RecordNotFoundError,
    TransportError,
    UnsupportedTypeError,
)
from photopick.services.feed import FeedState

_ERROR_STATUS: list[tuple[type[PhotoPickError], int]] = [
    (UnsupportedTypeError, 415),
    (ImageDecodeError, 422),
    (PayloadTooLargeError, 413),
    (RecordNotFoundError, 404),
    (PartialBatchFailure, 207),
    (IdentityUnavailableError, 503),
    (TransportError, 502),
]


def create_app(container: AppContainer | None = None) -> FastAPI:
    """Create a FastAPI app; the container is built at startup if omitted."""
    configure_logging()
    logger = logging.getLogger(__name__)

    async def open_feed(app: FastAPI) -> None:
        state_container: AppContainer = app.state.container
        if state_container.identity.current is None:
            logger.warning("No client identity, photo feed not started")
            return
        previous = app.state.feed
        if previous is not None:
            await previous.close()

        def _on_feed_error(exc: Exception) -> None:
            logger.error("Photo feed stopped: %s", exc)

        feed = state_container.new_feed(on_error=_on_feed_error)
        app.state.feed = feed
        await feed.start()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if app.state.container is None:
            app.state.container = await build_container()
        state_container: AppContainer = app.state.container
        try:
            await state_container.identity_bootstrap.sign_in(
                state_container.settings.initial_auth_token
            )
        except PhotoPickError:
            logger.exception("Failed to establish client identity")
        await open_feed(app)
        yield
        if app.state.feed is not None:
            await app.state.feed.close()
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container
    app.state.feed = None

    app.include_router(photos_router)
    app.include_router(selection_router)

    @app.exception_handler(PhotoPickError)
    async def handle_photopick_error(
        request: Request, exc: PhotoPickError
    ) -> JSONResponse:
        return JSONResponse({"detail": str(exc)}, status_code=_status_for(exc))

    @app.get("/health")
    async def health(request: Request) -> dict[str, str | None]:
        """Simple health check endpoint."""
        return {"status": "ok", "feed": feed_state(request)}

    @app.post("/feed/reconnect")
    async def reconnect_feed(request: Request) -> dict[str, str | None]:
        """Open a new feed if the current one has failed or was never opened."""
        state_container: AppContainer = request.app.state.container
        state_container.identity.require()
        feed = request.app.state.feed
        if feed is None or feed.state in {FeedState.ERROR, FeedState.CLOSED}:
            await open_feed(request.app)
        return {"feed": feed_state(request)}

    return app


def _status_for(exc: PhotoPickError) -> int:
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500
