from datetime import datetime, timezone
from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; they were stored as UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )


from .user import User, UserRole  # noqa: E402
from .room import Room  # noqa: E402
from .room_participant import RoomParticipant  # noqa: E402
from .poll import Poll  # noqa: E402
from .poll_response import PollResponse  # noqa: E402

__all__ = ["TimestampMixin", "User", "UserRole", "Room",
           "RoomParticipant", "Poll", "PollResponse"]
