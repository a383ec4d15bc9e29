from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(prefix="/api", tags=["visibility"])

NO_CACHE = {"Cache-Control": "no-store"}


@router.get("/visibility")
def visibility(request: Request, view: Literal["full", "tag"] = "full") -> JSONResponse:
    """
    Current projection, one entry per panel.
    view=tag answers with the flat {panelId: colour} map.
    """
    snap = request.app.state.container.projection.snapshot()
    if view == "tag":
        body = {pid: entry.tag for pid, entry in snap.items()}
    else:
        body = {pid: entry.model_dump() for pid, entry in snap.items()}
    return JSONResponse(content=body, headers=NO_CACHE)
