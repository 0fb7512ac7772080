from datetime import datetime
from typing import List, Optional
from pydantic import Field
from classroom_polling.schemas import CamelModel
from classroom_polling.schemas.room import RoomBrief
from classroom_polling.schemas.user import UserPublic


class AnalyticsOverview(CamelModel):
    total_rooms: int
    total_polls: int
    total_participants: int
    total_responses: int
    active_rooms: int
    active_polls: int


class RecentActivity(CamelModel):
    rooms_created_last_7_days: int = Field(alias="roomsCreatedLast7Days")
    polls_created_last_7_days: int = Field(alias="pollsCreatedLast7Days")


class RoomStats(CamelModel):
    room_id: str
    room_code: str
    title: str
    is_active: bool
    total_polls: int
    total_participants: int
    active_polls: int
    total_responses: int
    created_at: datetime


class TeacherAnalytics(CamelModel):
    overview: AnalyticsOverview
    recent_activity: RecentActivity
    room_stats: List[RoomStats]


class AttendedPoll(CamelModel):
    poll_id: str
    question: str
    options: List[str]
    correct_option: str
    is_active: bool
    user_response: str
    is_correct: bool
    responded_at: datetime
    poll_created_at: datetime
    room: RoomBrief


class ParticipationPoll(CamelModel):
    id: str
    question: str
    options: List[str]
    correct_option: str
    is_active: bool
    created_at: datetime
    total_responses: int
    user_responded: bool
    user_response: Optional[str] = None


class RoomParticipation(CamelModel):
    room_id: str
    room_title: str
    room_code: str
    teacher: UserPublic
    joined_at: datetime
    total_polls: int
    polls_responded: int
    polls: List[ParticipationPoll]


class AttendedPolls(CamelModel):
    total: int
    polls: List[AttendedPoll]


class ParticipationSummary(CamelModel):
    total_rooms: int
    rooms: List[RoomParticipation]


class AttendanceStatistics(CamelModel):
    total_polls_responded: int
    correct_answers: int
    accuracy_rate: int
    total_rooms_joined: int


class AttendanceReport(CamelModel):
    """What a user answered, where they joined, and how often they were right."""
    attended_polls: AttendedPolls
    room_participation: ParticipationSummary
    statistics: AttendanceStatistics
