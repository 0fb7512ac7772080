import logging
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from classroom_polling.api.deps import require_teacher
from classroom_polling.core.exceptions import NotFoundError, PollingError, StoreError, ValidationError
from classroom_polling.core.security import Identity
from classroom_polling.crud.poll import crud_poll
from classroom_polling.crud.room import crud_room
from classroom_polling.db.core import get_db_session
from classroom_polling.schemas.analytics import TeacherAnalytics
from classroom_polling.schemas.poll import PollCreate, PollOut, PollUpdate, validate_options
from classroom_polling.schemas.room import RoomCreate, RoomOut, RoomSummary, RoomUpdate

router = APIRouter(prefix="/teacher")
logger = logging.getLogger(__name__)


@router.post("/rooms", status_code=201)
async def create_room(data: RoomCreate,
                      teacher: Identity = Depends(require_teacher),
                      db: AsyncSession = Depends(get_db_session)):
    """Create a room with a freshly generated 6-digit join code."""
    try:
        if not data.title:
            raise ValidationError("Room title is required")
        room_code = await crud_room.generate_room_code(db)
        room = await crud_room.create_room(
            db, title=data.title, teacher_id=teacher.id,
            room_code=room_code, description=data.description or None)
        logger.info(f"Room created: {room.room_code} by teacher: {teacher.id}")
        return {"success": True, "room": RoomOut.model_validate(room).to_wire()}
    except PollingError:
        raise
    except Exception as e:
        logger.error(f"Failed to create room: {e}", exc_info=True)
        raise StoreError("Failed to create room")


@router.get("/rooms")
async def get_teacher_rooms(teacher: Identity = Depends(require_teacher),
                            db: AsyncSession = Depends(get_db_session)):
    try:
        rooms = await crud_room.list_teacher_rooms(db, teacher.id)
        summaries = [
            RoomSummary(
                **RoomOut.model_validate(room).model_dump(),
                created_at=room.created_at,
                total_participants=len(room.participants),
                total_polls=len(room.polls),
                active_polls=sum(1 for poll in room.polls if poll.is_active),
            ).to_wire()
            for room in rooms
        ]
        return {"success": True, "rooms": summaries, "totalRooms": len(summaries)}
    except Exception as e:
        logger.error(f"Failed to fetch teacher rooms: {e}", exc_info=True)
        raise StoreError("Failed to fetch teacher rooms")


@router.put("/rooms/{room_id}")
async def update_room(room_id: str, data: RoomUpdate,
                      teacher: Identity = Depends(require_teacher),
                      db: AsyncSession = Depends(get_db_session)):
    """Rename, describe, deactivate or reactivate a room."""
    try:
        room = await crud_room.get_owned_room(db, room_id, teacher.id)
        if room is None:
            raise NotFoundError("Room not found or you do not have permission to update it")
        if "title" in data.model_fields_set and not data.title:
            raise ValidationError("Room title is required")
        if "is_active" in data.model_fields_set and data.is_active is None:
            raise ValidationError("isActive must be true or false")
        room = await crud_room.update_room(db, room, data)
        return {"success": True, "room": RoomOut.model_validate(room).to_wire()}
    except PollingError:
        raise
    except Exception as e:
        logger.error(f"Failed to update room: {e}", exc_info=True)
        raise StoreError("Failed to update room")


@router.delete("/rooms/{room_id}")
async def delete_room(room_id: str, request: Request,
                      teacher: Identity = Depends(require_teacher),
                      db: AsyncSession = Depends(get_db_session)):
    try:
        room = await crud_room.get_owned_room(db, room_id, teacher.id)
        if room is None:
            raise NotFoundError("Room not found or you do not have permission to delete it")
        await crud_room.delete_room(db, room)
        request.app.state.coordinator.close_room(room_id)
        logger.info(f"Room deleted: {room.room_code} by teacher: {teacher.id}")
        return {"success": True, "message": "Room deleted successfully"}
    except PollingError:
        raise
    except Exception as e:
        logger.error(f"Failed to delete room: {e}", exc_info=True)
        raise StoreError("Failed to delete room")


@router.post("/polls", status_code=201)
async def create_poll(data: PollCreate,
                      teacher: Identity = Depends(require_teacher),
                      db: AsyncSession = Depends(get_db_session)):
    try:
        if not data.question or data.options is None or not data.correct_option or not data.room_id:
            raise ValidationError("Question, options, correctOption, and roomId are required")
        validate_options(data.options, data.correct_option)
        room = await crud_room.get_owned_room(db, data.room_id, teacher.id)
        if room is None:
            raise NotFoundError("Room not found or you do not have permission to create polls in it")
        poll = await crud_poll.create_poll(
            db, room_id=room.id, question=data.question,
            options=data.options, correct_option=data.correct_option)
        return {"success": True, "poll": PollOut.model_validate(poll).to_wire()}
    except PollingError:
        raise
    except Exception as e:
        logger.error(f"Failed to create poll: {e}", exc_info=True)
        raise StoreError("Failed to create poll")


@router.put("/polls/{poll_id}")
async def update_poll(poll_id: str, data: PollUpdate,
                      teacher: Identity = Depends(require_teacher),
                      db: AsyncSession = Depends(get_db_session)):
    try:
        poll = await crud_poll.get_owned_poll(db, poll_id, teacher.id)
        if poll is None:
            raise NotFoundError("Poll not found or you do not have permission to update it")
        changed = data.model_fields_set
        if "question" in changed and not data.question:
            raise ValidationError("Question must not be empty")
        if "is_active" in changed and data.is_active is None:
            raise ValidationError("isActive must be true or false")
        if "options" in changed or "correct_option" in changed:
            # the correct option has to stay a member of whichever option set results
            options = data.options if "options" in changed else poll.options
            correct_option = data.correct_option if "correct_option" in changed else poll.correct_option
            validate_options(options, correct_option)
        poll = await crud_poll.update_poll(db, poll, data)
        return {"success": True, "poll": PollOut.model_validate(poll).to_wire()}
    except PollingError:
        raise
    except Exception as e:
        logger.error(f"Failed to update poll: {e}", exc_info=True)
        raise StoreError("Failed to update poll")


@router.delete("/polls/{poll_id}")
async def delete_poll(poll_id: str,
                      teacher: Identity = Depends(require_teacher),
                      db: AsyncSession = Depends(get_db_session)):
    try:
        poll = await crud_poll.get_owned_poll(db, poll_id, teacher.id)
        if poll is None:
            raise NotFoundError("Poll not found or you do not have permission to delete it")
        await crud_poll.delete_poll(db, poll)
        return {"success": True, "message": "Poll deleted successfully"}
    except PollingError:
        raise
    except Exception as e:
        logger.error(f"Failed to delete poll: {e}", exc_info=True)
        raise StoreError("Failed to delete poll")


@router.get("/analytics")
async def get_teacher_analytics(teacher: Identity = Depends(require_teacher),
                                db: AsyncSession = Depends(get_db_session)):
    try:
        analytics = await crud_room.get_teacher_analytics(db, teacher.id)
        return {"success": True, "analytics": TeacherAnalytics.model_validate(analytics).to_wire()}
    except Exception as e:
        logger.error(f"Failed to fetch teacher analytics: {e}", exc_info=True)
        raise StoreError("Failed to fetch teacher analytics")
