"""Photo collection endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import (
    APIRouter,
    Depends,
    File,
    Header,
    HTTPException,
    Request,
    Response,
    UploadFile,
    status,
)
from fastapi.responses import JSONResponse

from photopick.api.schemas import ClearOut, FeedOut, ToggleOut, UploadReportOut
from photopick.config import parse_token
from photopick.domain.errors import PartialBatchFailure
from photopick.domain.ingestion import ImageUpload

if TYPE_CHECKING:
    from photopick.containers import AppContainer

router = APIRouter(prefix="/photos", tags=["photos"])


def _get_uploader_token(request: Request) -> str | None:
    container: AppContainer = request.app.state.container
    return parse_token(container.settings.uploader_token)


async def require_uploader(
    x_uploader_token: str | None = Header(default=None),
    uploader_token: str | None = Depends(_get_uploader_token),
) -> None:
    """Ensure uploader-only actions carry the uploader token, if one is set."""
    if uploader_token is None:
        return
    if x_uploader_token != uploader_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


def feed_state(request: Request) -> str | None:
    """Return the state of the server-side feed, if one was opened."""
    feed = getattr(request.app.state, "feed", None)
    return feed.state.value if feed is not None else None


@router.get("")
async def list_photos(request: Request) -> FeedOut:
    """Return the current ordered view of the collection."""
    container: AppContainer = request.app.state.container
    return FeedOut.from_view(container.selection.view, feed_state(request))


@router.post("", dependencies=[Depends(require_uploader)])
async def upload_photos(
    request: Request, response: Response, files: list[UploadFile] = File(...)
) -> UploadReportOut:
    """Upload several images; each file is reported separately."""
    container: AppContainer = request.app.state.container
    uploads = []
    for upload_file in files:
        uploads.append(
            ImageUpload(
                filename=upload_file.filename or "",
                content_type=upload_file.content_type,
                data=await upload_file.read(),
            )
        )
        await upload_file.close()
    report = await container.upload_service.upload_many(uploads)
    response.status_code = (
        status.HTTP_201_CREATED if not report.failed else status.HTTP_207_MULTI_STATUS
    )
    return UploadReportOut.from_report(report)


@router.post("/{photo_id}/toggle")
async def toggle_photo(photo_id: str, request: Request) -> ToggleOut:
    """Flip the selection flag of a photo."""
    container: AppContainer = request.app.state.container
    selected = await container.selection.toggle(photo_id)
    return ToggleOut(id=photo_id, selected=selected)


@router.delete(
    "/{photo_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_uploader)],
)
async def delete_photo(photo_id: str, request: Request) -> Response:
    """Delete one photo."""
    container: AppContainer = request.app.state.container
    await container.photo_store.delete(photo_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("", dependencies=[Depends(require_uploader)])
async def clear_photos(request: Request) -> ClearOut:
    """Delete every photo in the current view."""
    container: AppContainer = request.app.state.container
    photo_ids = [record.id for record in container.selection.view.records]
    try:
        await container.photo_store.delete_all(photo_ids)
    except PartialBatchFailure as exc:
        body = ClearOut(
            deleted_ids=exc.deleted_ids,
            failed_ids=exc.failed_ids,
            partially_applied=exc.partially_applied,
        )
        return JSONResponse(
            body.model_dump(),
            status_code=(
                status.HTTP_207_MULTI_STATUS
                if exc.partially_applied
                else status.HTTP_502_BAD_GATEWAY
            ),
        )
    return ClearOut(deleted_ids=photo_ids, failed_ids=[], partially_applied=False)
