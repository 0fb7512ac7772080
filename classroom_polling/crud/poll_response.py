from typing import Dict, List, Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from classroom_polling.core.exceptions import ResponseAlreadyExistsException
from classroom_polling.crud.participant import crud_participant
from classroom_polling.models import as_utc
from classroom_polling.models.poll import Poll
from classroom_polling.models.poll_response import PollResponse
from classroom_polling.models.room import Room


class CRUDPollResponse:
    async def get_response(self, db: AsyncSession, poll_id: str, user_id: str) -> Optional[PollResponse]:
        result = await db.execute(
            select(PollResponse)
            .where(PollResponse.poll_id == poll_id)
            .where(PollResponse.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def create_response(self, db: AsyncSession, poll_id: str, user_id: str, option: str) -> PollResponse:
        response = PollResponse(poll_id=poll_id, user_id=user_id, option=option)
        db.add(response)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ResponseAlreadyExistsException(
                f"Response already exists for poll {poll_id} and user {user_id}")
        return response

    async def list_responses(self, db: AsyncSession, poll_id: str) -> List[PollResponse]:
        result = await db.execute(
            select(PollResponse)
            .where(PollResponse.poll_id == poll_id)
            .order_by(PollResponse.created_at.asc())
        )
        return list(result.scalars().all())

    async def list_user_responses(self, db: AsyncSession, user_id: str) -> List[PollResponse]:
        result = await db.execute(
            select(PollResponse)
            .options(selectinload(PollResponse.poll).selectinload(Poll.room).selectinload(Room.teacher))
            .where(PollResponse.user_id == user_id)
            .order_by(PollResponse.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_user_attendance(self, db: AsyncSession, user_id: str) -> Dict:
        """Polls a user answered, rooms they joined (answered or not) and their accuracy."""
        responses = await self.list_user_responses(db, user_id)
        participations = await crud_participant.list_user_participations(db, user_id)
        answered = {response.poll_id: response for response in responses}

        attended = [
            {
                "poll_id": response.poll.id,
                "question": response.poll.question,
                "options": response.poll.options,
                "correct_option": response.poll.correct_option,
                "is_active": response.poll.is_active,
                "user_response": response.option,
                "is_correct": response.option == response.poll.correct_option,
                "responded_at": response.created_at,
                "poll_created_at": response.poll.created_at,
                "room": response.poll.room,
            }
            for response in responses
        ]

        rooms = []
        for participation in participations:
            room = participation.room
            polls = sorted(room.polls, key=lambda poll: as_utc(poll.created_at), reverse=True)
            rooms.append({
                "room_id": room.id,
                "room_title": room.title,
                "room_code": room.room_code,
                "teacher": room.teacher,
                "joined_at": participation.joined_at,
                "total_polls": len(polls),
                "polls_responded": sum(1 for poll in polls if poll.id in answered),
                "polls": [
                    {
                        "id": poll.id,
                        "question": poll.question,
                        "options": poll.options,
                        "correct_option": poll.correct_option,
                        "is_active": poll.is_active,
                        "created_at": poll.created_at,
                        "total_responses": len(poll.responses),
                        "user_responded": poll.id in answered,
                        "user_response": answered[poll.id].option if poll.id in answered else None,
                    }
                    for poll in polls
                ],
            })

        correct = sum(1 for poll in attended if poll["is_correct"])
        return {
            "attended_polls": {"total": len(attended), "polls": attended},
            "room_participation": {"total_rooms": len(rooms), "rooms": rooms},
            "statistics": {
                "total_polls_responded": len(attended),
                "correct_answers": correct,
                # whole percent, halves round up
                "accuracy_rate": int(correct * 100 / len(attended) + 0.5) if attended else 0,
                "total_rooms_joined": len(rooms),
            },
        }


crud_poll_response = CRUDPollResponse()
