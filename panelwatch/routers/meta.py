from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

router = APIRouter(tags=["meta"])

LIVENESS_TEXT = "panelwatch backend is running"


@router.get("/", response_class=PlainTextResponse)
def root() -> str:
    return LIVENESS_TEXT


@router.get("/health")
def health(request: Request) -> Dict[str, Any]:
    c = request.app.state.container
    return {
        "ok": True,
        "service": "panelwatch",
        "subscribers": len(c.registry),
        "panels": len(c.projection),
        "broadcast": {
            "sent": c.broadcaster.total_sent,
            "dropped": c.broadcaster.total_dropped,
        },
        "poller": c.poller.status(),
    }
