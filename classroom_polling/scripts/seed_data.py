"""
Seed a demo teacher and student so the socket API can be tried locally.

Run with: python -m classroom_polling.scripts.seed_data
"""
import asyncio
import logging
from typing import Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from classroom_polling.core.config import settings
from classroom_polling.core.security import create_access_token
from classroom_polling.crud.user import crud_user
from classroom_polling.db.core import build_engine, build_session_factory, init_db
from classroom_polling.models.user import UserRole

logger = logging.getLogger(__name__)

SAMPLE_USERS = [
    {"username": "demo-teacher", "role": UserRole.TEACHER},
    {"username": "demo-student", "role": UserRole.STUDENT},
]


async def seed_data(session_factory: async_sessionmaker[AsyncSession],
                    secret: Optional[str] = None) -> Dict[str, str]:
    """Create the sample users if missing and return a bearer token per username."""
    tokens = {}
    async with session_factory() as session:
        for user_data in SAMPLE_USERS:
            user = await crud_user.get_by_username(session, user_data["username"])
            if user is None:
                user = await crud_user.create_user(session, user_data["username"], user_data["role"])
                logger.info(f"Created {user.role.value.lower()}: {user.username} ({user.id})")
            tokens[user.username] = create_access_token(user.id, secret=secret)

    for username, token in tokens.items():
        logger.info(f"Bearer token for {username}: {token}")
    return tokens


async def main():
    logging.basicConfig(level=settings.LOG_LEVEL)
    engine = build_engine(settings.DATABASE_URL, echo=settings.DB_ECHO)
    try:
        await init_db(engine)
        tokens = await seed_data(build_session_factory(engine))
        for username, token in tokens.items():
            print(f"{username}: {token}")
    except Exception as e:
        logger.error(f"Error seeding data: {e}", exc_info=True)
        raise
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
