from typing import Optional
from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from classroom_polling.core.exceptions import TeacherRoleRequiredError
from classroom_polling.core.security import Identity, bearer_token, resolve_identity
from classroom_polling.db.core import get_db_session


async def get_current_user(request: Request,
                           authorization: Optional[str] = Header(default=None, alias="Authorization"),
                           db: AsyncSession = Depends(get_db_session)) -> Identity:
    return await resolve_identity(db, bearer_token(authorization),
                                  secret=request.app.state.settings.JWT_SECRET)


async def require_teacher(identity: Identity = Depends(get_current_user)) -> Identity:
    if not identity.is_teacher:
        raise TeacherRoleRequiredError()
    return identity
