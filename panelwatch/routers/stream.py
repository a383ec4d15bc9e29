from __future__ import annotations

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.responses import PlainTextResponse

from panelwatch.realtime.channel import WebSocketChannel

router = APIRouter(tags=["stream"])

log = structlog.get_logger(__name__)

STREAM_PATH = "/ws"


@router.get(STREAM_PATH, response_class=PlainTextResponse)
def stream_requires_upgrade() -> PlainTextResponse:
    return PlainTextResponse("websocket upgrade required", status_code=400)


@router.websocket(STREAM_PATH)
async def stream(websocket: WebSocket) -> None:
    """
    Push channel. Inbound frames are read and dropped; reading only
    serves to notice the peer going away.
    """
    registry = websocket.app.state.container.registry
    await websocket.accept()
    handle = registry.register(WebSocketChannel(websocket))
    try:
        while True:
            msg = await websocket.receive()
            if msg.get("type") == "websocket.disconnect":
                break
    except WebSocketDisconnect:
        pass
    except RuntimeError as e:
        # receive() after the socket was closed by a failed broadcast
        log.debug("subscriber_receive_stopped", handle=handle, error=str(e))
    finally:
        await registry.unregister(handle)
