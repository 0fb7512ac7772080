import logging
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from classroom_polling.api.deps import get_current_user, require_teacher
from classroom_polling.core.exceptions import NotFoundError, PollingError, PollNotFoundError, StoreError
from classroom_polling.core.security import Identity
from classroom_polling.crud.poll import crud_poll
from classroom_polling.crud.poll_response import crud_poll_response
from classroom_polling.db.core import get_db_session
from classroom_polling.schemas.analytics import AttendanceReport
from classroom_polling.schemas.poll import PollResponses, PollResults
from classroom_polling.schemas.user import UserPublic

router = APIRouter(prefix="/polls")
logger = logging.getLogger(__name__)


@router.get("/user/attended")
async def get_user_attended_polls(identity: Identity = Depends(get_current_user),
                                  db: AsyncSession = Depends(get_db_session)):
    """Polls the caller answered, rooms they joined and their accuracy."""
    try:
        report = await crud_poll_response.get_user_attendance(db, identity.id)
        return {
            "success": True,
            "user": UserPublic(id=identity.id, username=identity.username, role=identity.role).to_wire(),
            **AttendanceReport.model_validate(report).to_wire(),
        }
    except Exception as e:
        logger.error(f"Failed to fetch user attended polls: {e}", exc_info=True)
        raise StoreError("Failed to fetch user attended polls")


@router.get("/{poll_id}/results")
async def get_poll_results(poll_id: str,
                           identity: Identity = Depends(get_current_user),
                           db: AsyncSession = Depends(get_db_session)):
    """Get poll results with responses grouped by option."""
    try:
        results = await crud_poll.get_poll_results(db, poll_id)
        if results is None:
            raise PollNotFoundError()
        return {"success": True, **PollResults.model_validate(results).to_wire()}
    except PollingError:
        raise
    except Exception as e:
        logger.error(f"Failed to fetch poll results: {e}", exc_info=True)
        raise StoreError("Failed to fetch poll results")


@router.get("/{poll_id}/responses")
async def get_poll_responses(poll_id: str,
                             teacher: Identity = Depends(require_teacher),
                             db: AsyncSession = Depends(get_db_session)):
    """Every individual response, marked correct or not. Owning teacher only."""
    try:
        if await crud_poll.get_owned_poll(db, poll_id, teacher.id) is None:
            raise NotFoundError("Poll not found or you do not have permission to view its responses")
        responses = await crud_poll.get_poll_responses(db, poll_id)
        if responses is None:
            raise PollNotFoundError()
        return {"success": True, **PollResponses.model_validate(responses).to_wire()}
    except PollingError:
        raise
    except Exception as e:
        logger.error(f"Failed to fetch poll responses: {e}", exc_info=True)
        raise StoreError("Failed to fetch poll responses")
