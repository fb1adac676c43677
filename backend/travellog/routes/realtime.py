"""
Travel Log API — Realtime Stats WebSocket
===========================================

    WS /ws   greets the client with "hello", then receives a JSON message
             {"users", "trips", "places"} after every create, update or delete

Messages sent by clients are read and ignored; reading is how a closed
connection gets noticed.
"""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from travellog.services.stats_service import stats_broadcaster

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


@router.websocket("/ws")
async def stats_socket(websocket: WebSocket) -> None:
    await websocket.accept()
    stats_broadcaster.connect(websocket)

    client = websocket.client.host if websocket.client else "unknown"
    logger.info("WebSocket client has connected from %s", client)

    try:
        await websocket.send_text("hello")
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.debug("WebSocket client %s has disconnected (code %s)", client, message.get("code"))
                break
    except WebSocketDisconnect as e:
        logger.debug("WebSocket client %s has disconnected (code %s)", client, e.code)
    finally:
        stats_broadcaster.disconnect(websocket)
