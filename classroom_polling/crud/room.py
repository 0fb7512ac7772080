import random
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from classroom_polling.core.exceptions import RoomCodeTakenError
from classroom_polling.models import as_utc, utcnow
from classroom_polling.models.poll import Poll
from classroom_polling.models.room import Room
from classroom_polling.models.room_participant import RoomParticipant
from classroom_polling.schemas.room import RoomUpdate

ROOM_CODE_DIGITS = 6
MAX_CODE_ATTEMPTS = 20
RECENT_ACTIVITY_DAYS = 7


def normalize_room_code(room_code: Any) -> Optional[str]:
    """Clients send codes as numbers or strings; they are stored as strings."""
    if room_code is None or isinstance(room_code, bool):
        return None
    code = str(room_code).strip()
    return code or None


class CRUDRoom:
    async def create_room(self, db: AsyncSession, title: str, teacher_id: str,
                          room_code: str, description: Optional[str] = None) -> Room:
        room = Room(
            room_code=room_code,
            title=title,
            description=description,
            teacher_id=teacher_id,
        )
        db.add(room)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise RoomCodeTakenError()
        return await self.get_room(db, room.id)

    async def get_room(self, db: AsyncSession, room_id: str) -> Optional[Room]:
        """Room with its teacher loaded."""
        result = await db.execute(
            select(Room)
            .options(selectinload(Room.teacher))
            .where(Room.id == room_id)
        )
        return result.scalar_one_or_none()

    async def get_by_code(self, db: AsyncSession, room_code: str) -> Optional[Room]:
        result = await db.execute(
            select(Room)
            .options(selectinload(Room.teacher))
            .where(Room.room_code == room_code)
        )
        return result.scalar_one_or_none()

    async def get_room_state(self, db: AsyncSession, room_id: str) -> Optional[Room]:
        """Room with teacher and the current participant list."""
        result = await db.execute(
            select(Room)
            .options(
                selectinload(Room.teacher),
                selectinload(Room.participants).selectinload(RoomParticipant.user),
            )
            .where(Room.id == room_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_room_details(self, db: AsyncSession, room_id: str) -> Optional[Room]:
        result = await db.execute(
            select(Room)
            .options(
                selectinload(Room.teacher),
                selectinload(Room.participants).selectinload(RoomParticipant.user),
                selectinload(Room.polls),
            )
            .where(Room.id == room_id)
        )
        return result.scalar_one_or_none()

    async def get_owned_room(self, db: AsyncSession, room_id: str, teacher_id: str) -> Optional[Room]:
        result = await db.execute(
            select(Room)
            .options(selectinload(Room.teacher))
            .where(Room.id == room_id)
            .where(Room.teacher_id == teacher_id)
        )
        return result.scalar_one_or_none()

    async def list_teacher_rooms(self, db: AsyncSession, teacher_id: str) -> List[Room]:
        result = await db.execute(
            select(Room)
            .options(
                selectinload(Room.teacher),
                selectinload(Room.participants),
                selectinload(Room.polls),
            )
            .where(Room.teacher_id == teacher_id)
            .order_by(Room.created_at.desc())
        )
        return list(result.scalars().all())

    async def generate_room_code(self, db: AsyncSession) -> str:
        """Pick a 6-digit code not used by any existing room."""
        for _ in range(MAX_CODE_ATTEMPTS):
            code = str(random.randint(10 ** (ROOM_CODE_DIGITS - 1), 10 ** ROOM_CODE_DIGITS - 1))
            if await self.get_by_code(db, code) is None:
                return code
        raise RoomCodeTakenError("Could not allocate a free room code")

    async def update_room(self, db: AsyncSession, room: Room, data: RoomUpdate) -> Room:
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(room, field, value)
        await db.commit()
        return await self.get_room(db, room.id)

    async def delete_room(self, db: AsyncSession, room: Room) -> None:
        # polls, responses and participants go with it (ON DELETE CASCADE)
        await db.delete(room)
        await db.commit()

    async def get_teacher_analytics(self, db: AsyncSession, teacher_id: str,
                                    now: Optional[datetime] = None) -> Dict:
        """Totals, last-week activity and per-room statistics over a teacher's rooms."""
        result = await db.execute(
            select(Room)
            .options(
                selectinload(Room.participants),
                selectinload(Room.polls).selectinload(Poll.responses),
            )
            .where(Room.teacher_id == teacher_id)
            .order_by(Room.created_at.desc())
        )
        rooms = list(result.scalars().all())
        polls = [poll for room in rooms for poll in room.polls]
        since = (now or utcnow()) - timedelta(days=RECENT_ACTIVITY_DAYS)

        room_stats = [
            {
                "room_id": room.id,
                "room_code": room.room_code,
                "title": room.title,
                "is_active": room.is_active,
                "total_polls": len(room.polls),
                "total_participants": len(room.participants),
                "active_polls": sum(1 for poll in room.polls if poll.is_active),
                "total_responses": sum(len(poll.responses) for poll in room.polls),
                "created_at": room.created_at,
            }
            for room in rooms
        ]
        return {
            "overview": {
                "total_rooms": len(rooms),
                "total_polls": len(polls),
                "total_participants": sum(stats["total_participants"] for stats in room_stats),
                "total_responses": sum(stats["total_responses"] for stats in room_stats),
                "active_rooms": sum(1 for room in rooms if room.is_active),
                "active_polls": sum(1 for poll in polls if poll.is_active),
            },
            "recent_activity": {
                "rooms_created_last_7_days": sum(1 for room in rooms if as_utc(room.created_at) >= since),
                "polls_created_last_7_days": sum(1 for poll in polls if as_utc(poll.created_at) >= since),
            },
            "room_stats": room_stats,
        }


crud_room = CRUDRoom()
