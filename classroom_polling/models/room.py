import uuid
from typing import List, Optional
from sqlalchemy import Boolean, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from classroom_polling.db.base import Base
from classroom_polling.models import TimestampMixin


class Room(Base, TimestampMixin):
    """
      orm mapping for a teacher owned session, joined by students through `room_code`
    """
    __tablename__ = "rooms"
    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    room_code: Mapped[str] = mapped_column(
        String(16), unique=True, index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    teacher_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    teacher: Mapped["User"] = relationship()
    participants: Mapped[List["RoomParticipant"]] = relationship(
        back_populates="room", cascade="all, delete-orphan", passive_deletes=True)
    polls: Mapped[List["Poll"]] = relationship(
        back_populates="room", cascade="all, delete-orphan", passive_deletes=True)
