from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from classroom_polling.models.user import User, UserRole


class CRUDUser:
    async def get_user(self, db: AsyncSession, user_id: str) -> Optional[User]:
        return await db.get(User, user_id)

    async def get_by_username(self, db: AsyncSession, username: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def create_user(self, db: AsyncSession, username: str, role: UserRole) -> User:
        user = User(username=username, role=role)
        db.add(user)
        await db.commit()
        return user


crud_user = CRUDUser()
