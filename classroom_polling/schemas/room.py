from datetime import datetime
from typing import List, Optional
from classroom_polling.schemas import CamelModel
from classroom_polling.schemas.user import UserPublic


class RoomCreate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None


class RoomUpdate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class RoomOut(CamelModel):
    id: str
    room_code: str
    title: str
    description: Optional[str] = None
    is_active: bool
    teacher: UserPublic


class ParticipantOut(CamelModel):
    id: str
    user_id: str
    joined_at: datetime
    user: UserPublic


class RoomState(RoomOut):
    participants: List[ParticipantOut]


class RoomSummary(RoomOut):
    created_at: datetime
    total_participants: int
    total_polls: int
    active_polls: int


class RoomRef(CamelModel):
    id: str
    title: str
    room_code: str


class RoomBrief(RoomRef):
    teacher: UserPublic
