import asyncio
import uuid
from fastapi import WebSocket
from classroom_polling.core.security import Identity


class Connection:
    """
    One live WebSocket plus the identity resolved for it at handshake time.
    Frames are `{"event": name, "data": payload}` in both directions.
    """

    def __init__(self, websocket: WebSocket, identity: Identity):
        self.id = uuid.uuid4().hex
        self.websocket = websocket
        self.identity = identity
        # broadcasts from other connections' handlers can overlap with our own replies
        self._send_lock = asyncio.Lock()

    async def emit(self, event: str, payload: dict) -> None:
        async with self._send_lock:
            await self.websocket.send_json({"event": event, "data": payload})

    def __repr__(self):
        return f"Connection(id={self.id!r}, user={self.identity.id!r})"
