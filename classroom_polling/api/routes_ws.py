import json
import logging
from typing import Optional
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from classroom_polling.core.exceptions import AuthenticationError
from classroom_polling.core.security import bearer_token, resolve_identity
from classroom_polling.realtime import events
from classroom_polling.realtime.connection import Connection
from classroom_polling.realtime.coordinator import RoomCoordinator

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws")
async def room_socket(websocket: WebSocket, token: Optional[str] = Query(default=None)):
    """
    Persistent channel for the room events. The token comes from the `token`
    query parameter or an `Authorization: Bearer` header and is verified before
    the socket is accepted.
    """
    app = websocket.app
    token = token or bearer_token(websocket.headers.get("authorization"))
    try:
        async with app.state.session_factory() as db:
            identity = await resolve_identity(db, token, secret=app.state.settings.JWT_SECRET)
    except AuthenticationError as e:
        logger.info(f"rejected socket connection: {e}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    connection = Connection(websocket, identity)
    coordinator: RoomCoordinator = app.state.coordinator
    logger.info(f"User connected: {connection}")
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except ValueError:
                await connection.emit(events.ERROR, {"success": False, "error": "Malformed frame"})
                continue
            if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
                await connection.emit(events.ERROR, {
                    "success": False,
                    "error": "Frames must look like {\"event\": <name>, \"data\": {...}}",
                })
                continue
            await coordinator.dispatch(connection, frame["event"], frame.get("data"))
    except WebSocketDisconnect:
        logger.info(f"User disconnected: {connection}")
    finally:
        coordinator.disconnect(connection)
