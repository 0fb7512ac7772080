from typing import List, Optional
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from classroom_polling.core.exceptions import ParticipantAlreadyExistsException
from classroom_polling.models.poll import Poll
from classroom_polling.models.room import Room
from classroom_polling.models.room_participant import RoomParticipant


class CRUDParticipant:
    async def get_participant(self, db: AsyncSession, room_id: str, user_id: str) -> Optional[RoomParticipant]:
        result = await db.execute(
            select(RoomParticipant)
            .where(RoomParticipant.room_id == room_id)
            .where(RoomParticipant.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def add_participant(self, db: AsyncSession, room_id: str, user_id: str) -> RoomParticipant:
        participant = RoomParticipant(room_id=room_id, user_id=user_id)
        db.add(participant)
        try:
            await db.commit()
        except IntegrityError:
            # a concurrent join won the insert; (room_id, user_id) is unique
            await db.rollback()
            raise ParticipantAlreadyExistsException(
                f"User {user_id} already joined room {room_id}")
        return participant

    async def remove_participant(self, db: AsyncSession, room_id: str, user_id: str) -> int:
        result = await db.execute(
            delete(RoomParticipant)
            .where(RoomParticipant.room_id == room_id)
            .where(RoomParticipant.user_id == user_id)
        )
        await db.commit()
        return result.rowcount

    async def list_user_participations(self, db: AsyncSession, user_id: str) -> List[RoomParticipant]:
        """Rooms a user is in, newest join first, with teacher and polls (and their responses) loaded."""
        result = await db.execute(
            select(RoomParticipant)
            .options(
                selectinload(RoomParticipant.room).selectinload(Room.teacher),
                selectinload(RoomParticipant.room).selectinload(Room.polls).selectinload(Poll.responses),
            )
            .where(RoomParticipant.user_id == user_id)
            .order_by(RoomParticipant.joined_at.desc())
        )
        return list(result.scalars().all())


crud_participant = CRUDParticipant()
