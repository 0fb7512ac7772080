import logging
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from classroom_polling.api.deps import get_current_user
from classroom_polling.core.exceptions import PollingError, RoomNotFoundError, StoreError
from classroom_polling.core.security import Identity
from classroom_polling.crud.poll import crud_poll
from classroom_polling.crud.room import crud_room
from classroom_polling.db.core import get_db_session
from classroom_polling.schemas.poll import PollOut
from classroom_polling.schemas.room import RoomState

router = APIRouter(prefix="/rooms")
logger = logging.getLogger(__name__)


@router.get("/{room_id}")
async def get_room(room_id: str,
                   identity: Identity = Depends(get_current_user),
                   db: AsyncSession = Depends(get_db_session)):
    """Room details with teacher, participants and polls."""
    try:
        room = await crud_room.get_room_details(db, room_id)
        if room is None:
            raise RoomNotFoundError()
        polls = sorted(room.polls, key=lambda p: p.created_at, reverse=True)
        return {
            "success": True,
            "room": RoomState.model_validate(room).to_wire(),
            "polls": [PollOut.model_validate(p).to_wire() for p in polls],
        }
    except PollingError:
        raise
    except Exception as e:
        logger.error(f"Failed to fetch room details: {e}", exc_info=True)
        raise StoreError("Failed to fetch room details")


@router.get("/{room_id}/polls")
async def get_room_polls(room_id: str,
                         identity: Identity = Depends(get_current_user),
                         db: AsyncSession = Depends(get_db_session)):
    try:
        room = await crud_room.get_room(db, room_id)
        if room is None:
            raise RoomNotFoundError()
        polls = await crud_poll.list_room_polls(db, room_id)
        return {
            "success": True,
            "roomCode": room.room_code,
            "polls": [PollOut.model_validate(p).to_wire() for p in polls],
        }
    except PollingError:
        raise
    except Exception as e:
        logger.error(f"Failed to fetch room polls: {e}", exc_info=True)
        raise StoreError("Failed to fetch room polls")
