import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from classroom_polling.core.config import settings
from classroom_polling.core.exceptions import AuthenticationError
from classroom_polling.crud.user import crud_user
from classroom_polling.models.user import UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """Verified identity attached to a request or a socket before any room logic runs."""
    id: str
    username: str
    role: UserRole

    @property
    def is_teacher(self) -> bool:
        return self.role == UserRole.TEACHER


def create_access_token(user_id: str, expires_in: timedelta = timedelta(hours=12),
                        secret: Optional[str] = None) -> str:
    """Sign a token the same way the identity service does; used by seeding and tests."""
    now = datetime.now(timezone.utc)
    claims = {"id": user_id, "iat": now, "exp": now + expires_in}
    return jwt.encode(claims, secret or settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str, secret: Optional[str] = None) -> str:
    """Return the user id carried by a valid token."""
    try:
        claims = jwt.decode(token, secret or settings.JWT_SECRET,
                            algorithms=[settings.JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        logger.info(f"rejected token: {e}")
        raise AuthenticationError("unauthorized or invalid token")
    user_id = claims.get("id")
    if not user_id:
        raise AuthenticationError("unauthorized or invalid token")
    return user_id


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


async def resolve_identity(db: AsyncSession, token: Optional[str], secret: Optional[str] = None) -> Identity:
    if not token:
        raise AuthenticationError("unauthorized")
    user_id = decode_access_token(token, secret=secret)
    user = await crud_user.get_user(db, user_id)
    if user is None:
        raise AuthenticationError("user not found")
    return Identity(id=user.id, username=user.username, role=user.role)
