from typing import Any, Optional
from pydantic import ConfigDict
from classroom_polling.schemas import CamelModel


class EventPayload(CamelModel):
    """
    Inbound event bodies. Every field is optional so that missing fields are
    reported by the handler with its own message instead of a schema error.
    """
    model_config = ConfigDict(extra="ignore")


class CreateRoomPayload(EventPayload):
    title: Optional[str] = None
    teacher_id: Optional[str] = None
    room_code: Optional[Any] = None


class JoinRoomPayload(EventPayload):
    room_code: Optional[Any] = None
    user_id: Optional[str] = None


class PostQuestionPayload(EventPayload):
    question: Optional[str] = None
    options: Optional[Any] = None
    correct_option: Optional[str] = None
    room_id: Optional[str] = None
    room_code: Optional[Any] = None


class SubmitResponsePayload(EventPayload):
    room_code: Optional[Any] = None
    poll_id: Optional[str] = None
    user_id: Optional[str] = None
    option: Optional[str] = None


class EndPollPayload(EventPayload):
    room_code: Optional[Any] = None
    poll_id: Optional[str] = None
    teacher_id: Optional[str] = None


class LeaveRoomPayload(EventPayload):
    room_code: Optional[Any] = None
    user_id: Optional[str] = None
