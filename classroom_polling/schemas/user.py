from classroom_polling.models.user import UserRole
from classroom_polling.schemas import CamelModel


class UserPublic(CamelModel):
    id: str
    username: str
    role: UserRole
