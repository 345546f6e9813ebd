"""Observer WebSocket route.

- WS  /ws                  - Observer connection (snapshot on connect, then pushes)
- GET /api/websocket/info  - Connected observer count

Protocol:
- On connect the observer receives one channels_update snapshot
- {"type": "ping"} is answered with {"type": "pong"}
- {"type": "request_update"} is answered with a fresh snapshot
- Text that is not JSON is logged and ignored
"""

import json

import structlog
from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect

from channel_scheduler.constants import WEBSOCKET_PATH
from channel_scheduler.services.broadcast import BroadcastCoordinator

log = structlog.get_logger()
router = APIRouter(tags=["websocket"])


@router.websocket(WEBSOCKET_PATH)
async def observer_socket(websocket: WebSocket) -> None:
    """Subscribe a dashboard to channel snapshots until it disconnects."""
    broadcaster: BroadcastCoordinator = websocket.app.state.broadcaster

    await websocket.accept()
    try:
        await broadcaster.add_observer(websocket)
        while True:
            text = await websocket.receive_text()
            try:
                data = json.loads(text)
            except json.JSONDecodeError:
                log.warning("observer_message_not_json", body=text[:200])
                continue
            await broadcaster.handle_client_message(websocket, data)
    except WebSocketDisconnect:
        log.info("observer_socket_closed")
    finally:
        broadcaster.remove_observer(websocket)


@router.get("/api/websocket/info")
async def websocket_info(request: Request) -> dict:
    """Observer count and the WebSocket path."""
    broadcaster: BroadcastCoordinator = request.app.state.broadcaster
    return {
        "connected_clients": broadcaster.observer_count,
        "websocket_path": WEBSOCKET_PATH,
    }
