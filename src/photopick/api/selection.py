"""Selection endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import PlainTextResponse

from photopick.api.schemas import SelectionOut

if TYPE_CHECKING:
    from photopick.containers import AppContainer

router = APIRouter(prefix="/selection", tags=["selection"])


@router.get("")
async def selection_summary(request: Request) -> SelectionOut:
    """Return the selected filenames and their count."""
    container: AppContainer = request.app.state.container
    export = container.selection.export()
    return SelectionOut(
        selected_count=container.selection.selected_count,
        any_selected=export.any_selected,
        filenames=export.names,
    )


@router.get("/export", response_model=None)
async def export_selection(request: Request) -> Response:
    """Return selected filenames one per line, or 204 if none are selected."""
    container: AppContainer = request.app.state.container
    export = container.selection.export()
    if not export.any_selected:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return PlainTextResponse(export.as_text())
