from typing import Dict, List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from classroom_polling.models import as_utc
from classroom_polling.models.poll import Poll
from classroom_polling.models.poll_response import PollResponse
from classroom_polling.models.room import Room
from classroom_polling.schemas.poll import PollUpdate


class CRUDPoll:
    async def create_poll(self, db: AsyncSession, room_id: str, question: str,
                          options: List[str], correct_option: str) -> Poll:
        poll = Poll(
            room_id=room_id,
            question=question,
            options=list(options),
            correct_option=correct_option,
        )
        db.add(poll)
        await db.commit()
        return poll

    async def get_poll_in_room(self, db: AsyncSession, poll_id: str, room_id: str) -> Optional[Poll]:
        result = await db.execute(
            select(Poll)
            .where(Poll.id == poll_id)
            .where(Poll.room_id == room_id)
        )
        return result.scalar_one_or_none()

    async def get_owned_poll(self, db: AsyncSession, poll_id: str, teacher_id: str) -> Optional[Poll]:
        """Poll whose room belongs to `teacher_id`."""
        result = await db.execute(
            select(Poll)
            .join(Room, Room.id == Poll.room_id)
            .where(Poll.id == poll_id)
            .where(Room.teacher_id == teacher_id)
        )
        return result.scalar_one_or_none()

    async def list_room_polls(self, db: AsyncSession, room_id: str) -> List[Poll]:
        result = await db.execute(
            select(Poll)
            .where(Poll.room_id == room_id)
            .order_by(Poll.created_at.desc())
        )
        return list(result.scalars().all())

    async def update_poll(self, db: AsyncSession, poll: Poll, data: PollUpdate) -> Poll:
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(poll, field, value)
        await db.commit()
        return poll

    async def delete_poll(self, db: AsyncSession, poll: Poll) -> None:
        await db.delete(poll)
        await db.commit()

    async def _get_with_responses(self, db: AsyncSession, poll_id: str) -> Optional[Poll]:
        result = await db.execute(
            select(Poll)
            .options(
                selectinload(Poll.room).selectinload(Room.teacher),
                selectinload(Poll.responses).selectinload(PollResponse.user),
            )
            .where(Poll.id == poll_id)
        )
        return result.scalar_one_or_none()

    async def get_poll_results(self, db: AsyncSession, poll_id: str) -> Optional[Dict]:
        """Poll and its room plus responses grouped by option, in option order."""
        poll = await self._get_with_responses(db, poll_id)
        if poll is None:
            return None

        responses = sorted(poll.responses, key=lambda r: as_utc(r.created_at))
        grouped = {option: [] for option in poll.options}
        for response in responses:
            # options may have been edited after answers came in
            grouped.setdefault(response.option, []).append(response)

        return {
            "poll": poll,
            "room": poll.room,
            "total_responses": len(responses),
            "results": grouped,
        }

    async def get_poll_responses(self, db: AsyncSession, poll_id: str) -> Optional[Dict]:
        poll = await self._get_with_responses(db, poll_id)
        if poll is None:
            return None

        responses = sorted(poll.responses, key=lambda r: as_utc(r.created_at))
        return {
            "poll": poll,
            "room": poll.room,
            "responses": [
                {
                    "id": response.id,
                    "user": response.user,
                    "option": response.option,
                    "is_correct": response.option == poll.correct_option,
                    "created_at": response.created_at,
                }
                for response in responses
            ],
            "total_responses": len(responses),
        }


crud_poll = CRUDPoll()
