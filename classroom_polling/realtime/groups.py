import asyncio
import logging
from typing import Dict, FrozenSet, List, Optional, Set

logger = logging.getLogger(__name__)


class BroadcastGroups:
    """
    Room id -> set of live connections. Mutated by join/leave handlers (and
    dropped wholesale when a socket closes or the room is deleted), read by
    every room-scoped emit. Keyed by room id, never by
    room room_id.
    """

    def __init__(self):
        self._groups: Dict[str, Set] = {}

    def join(self, room_id: str, connection) -> None:
        self._groups.setdefault(room_id, set()).add(connection)

    def leave(self, room_id: str, connection) -> None:
        members = self._groups.get(room_id)
        if members is None:
            return
        members.discard(connection)
        if not members:
            del self._groups[room_id]

    def discard(self, connection) -> List[str]:
        """Remove a connection from every group; returns the room ids it was in."""
        left = [room_id for room_id, members in self._groups.items() if connection in members]
        for room_id in left:
            self.leave(room_id, connection)
        return left

    def close(self, room_id: str) -> FrozenSet:
        """Forget a group entirely; returns the connections it held."""
        return frozenset(self._groups.pop(room_id, ()))

    def members(self, room_id: str) -> FrozenSet:
        return frozenset(self._groups.get(room_id, ()))

    def rooms_of(self, connection) -> List[str]:
        return [room_id for room_id, members in self._groups.items() if connection in members]

    async def emit_to_group(self, room_id: str, event: str, payload: dict,
                            exclude: Optional[object] = None) -> int:
        targets = [member for member in self.members(room_id) if member is not exclude]
        if not targets:
            return 0
        results = await asyncio.gather(
            *(member.emit(event, payload) for member in targets),
            return_exceptions=True
        )
        delivered = 0
        for member, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning(f"dropping {member} from room {room_id}: {result}")
                self.leave(room_id, member)
            else:
                delivered += 1
        return delivered

    async def emit_to_others(self, room_id: str, sender, event: str, payload: dict) -> int:
        return await self.emit_to_group(room_id, event, payload, exclude=sender)
