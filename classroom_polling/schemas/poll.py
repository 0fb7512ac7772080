from datetime import datetime
from typing import Any, Dict, List, Optional
from classroom_polling.core.exceptions import ValidationError
from classroom_polling.schemas import CamelModel
from classroom_polling.schemas.room import RoomBrief, RoomRef
from classroom_polling.schemas.user import UserPublic

MIN_OPTIONS = 2


def validate_options(options: Any, correct_option: Any) -> None:
    """Options must be a list with at least two entries and contain the correct option."""
    if not isinstance(options, list) or len(options) < MIN_OPTIONS:
        raise ValidationError(
            f"Options must be an array with at least {MIN_OPTIONS} items")
    if not all(isinstance(option, str) and option for option in options):
        raise ValidationError("Options must be non-empty strings")
    if correct_option not in options:
        raise ValidationError(
            "Correct option must be one of the provided options")


class PollCreate(CamelModel):
    question: Optional[str] = None
    options: Optional[Any] = None
    correct_option: Optional[str] = None
    room_id: Optional[str] = None


class PollUpdate(CamelModel):
    question: Optional[str] = None
    options: Optional[Any] = None
    correct_option: Optional[str] = None
    is_active: Optional[bool] = None


class QuestionOut(CamelModel):
    id: str
    question: str
    options: List[str]
    correct_option: str


class PollOut(QuestionOut):
    room_id: str
    is_active: bool
    created_at: datetime


class ResponseOut(CamelModel):
    id: str
    poll_id: str
    user_id: str
    option: str


class TalliedResponse(CamelModel):
    id: str
    user_id: str
    option: str


class PollTally(CamelModel):
    poll: PollOut
    correct_responses: List[TalliedResponse]
    incorrect_responses: List[TalliedResponse]


class ResponseDetail(CamelModel):
    id: str
    user: UserPublic
    created_at: datetime


class PollResults(CamelModel):
    poll: PollOut
    room: RoomBrief
    total_responses: int
    results: Dict[str, List[ResponseDetail]]


class ResponseEntry(CamelModel):
    id: str
    user: UserPublic
    option: str
    is_correct: bool
    created_at: datetime


class PollResponses(CamelModel):
    poll: PollOut
    room: RoomRef
    responses: List[ResponseEntry]
    total_responses: int
