import uuid
from enum import Enum
from sqlalchemy import String, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column
from classroom_polling.db.base import Base
from classroom_polling.models import TimestampMixin


class UserRole(str, Enum):
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"


class User(Base, TimestampMixin):
    """
    Referenced by rooms, participants and responses, never owned by them.
    Credentials live with the identity provider, not here.
    """
    __tablename__ = "users"
    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    role: Mapped[UserRole] = mapped_column(
        SAEnum(UserRole), nullable=False, default=UserRole.STUDENT)
