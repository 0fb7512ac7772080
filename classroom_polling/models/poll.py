import uuid
from typing import List
from sqlalchemy import JSON, Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from classroom_polling.db.base import Base
from classroom_polling.models import TimestampMixin


class Poll(Base, TimestampMixin):
    """
      a single multiple choice question scoped to a room
    """
    __tablename__ = "polls"
    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    room_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    question: Mapped[str] = mapped_column(String(500), nullable=False)
    options: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    correct_option: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    room: Mapped["Room"] = relationship(back_populates="polls")
    responses: Mapped[List["PollResponse"]] = relationship(
        back_populates="poll", cascade="all, delete-orphan", passive_deletes=True)
