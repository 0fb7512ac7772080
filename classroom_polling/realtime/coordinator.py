import logging
from typing import Any, Iterable, List, Optional, Tuple

from pydantic import ValidationError as PayloadValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from classroom_polling.core.exceptions import (
    AlreadySubmittedError,
    IdentityMismatchError,
    NoResponsesError,
    NotRoomTeacherError,
    ParticipantAlreadyExistsException,
    PollInactiveError,
    PollingError,
    PollNotFoundError,
    ResponseAlreadyExistsException,
    RoomCodeMismatchError,
    RoomInactiveError,
    RoomNotFoundError,
    TeacherRoleRequiredError,
    UserNotFoundError,
    ValidationError,
)
from classroom_polling.crud.participant import crud_participant
from classroom_polling.crud.poll import crud_poll
from classroom_polling.crud.poll_response import crud_poll_response
from classroom_polling.crud.room import crud_room, normalize_room_code
from classroom_polling.crud.user import crud_user
from classroom_polling.models.poll_response import PollResponse
from classroom_polling.models.room import Room
from classroom_polling.realtime import events
from classroom_polling.realtime.groups import BroadcastGroups
from classroom_polling.schemas.events import (
    CreateRoomPayload,
    EndPollPayload,
    EventPayload,
    JoinRoomPayload,
    LeaveRoomPayload,
    PostQuestionPayload,
    SubmitResponsePayload,
)
from classroom_polling.schemas.poll import PollOut, PollTally, QuestionOut, ResponseOut, TalliedResponse, validate_options
from classroom_polling.schemas.room import RoomOut, RoomState
from classroom_polling.schemas.user import UserPublic

logger = logging.getLogger(__name__)


def partition_responses(responses: Iterable[PollResponse], correct_option: str) -> Tuple[List[PollResponse], List[PollResponse]]:
    """Split responses into (correct, incorrect); every response lands in exactly one."""
    correct, incorrect = [], []
    for response in responses:
        (correct if response.option == correct_option else incorrect).append(response)
    return correct, incorrect


def _parse(model: type, data: Any) -> EventPayload:
    try:
        return model.model_validate(data if data is not None else {})
    except PayloadValidationError:
        raise ValidationError("Invalid payload")


def _ensure_room_open(room: Optional[Room], room_code: str, owner_id: Optional[str] = None) -> Room:
    """Existence, then active flag, then owner (when given), then the code the client holds."""
    if room is None:
        raise RoomNotFoundError()
    if not room.is_active:
        raise RoomInactiveError()
    if owner_id is not None and room.teacher_id != owner_id:
        raise NotRoomTeacherError()
    # clients may hold stale room state
    if room.room_code != room_code:
        raise RoomCodeMismatchError()
    return room


def _ensure_self(connection, claimed_id: str) -> None:
    """Ids in the payload must name the identity verified for the connection."""
    if claimed_id != connection.identity.id:
        raise IdentityMismatchError()


def _failure(error: str) -> dict:
    return {"success": False, "error": error}


class RoomCoordinator:
    """
    Owns the room and poll lifecycles for every connected client.

    Built once at startup with the broadcast groups and the session factory;
    every inbound event runs one handler which validates against the store,
    mutates it and fans out through the groups. Failures never escape a
    handler: they become `{success: false, error}` on the requesting connection.
    """

    def __init__(self, groups: BroadcastGroups, session_factory: async_sessionmaker[AsyncSession]):
        self.groups = groups
        self.session_factory = session_factory
        self._handlers = {
            events.CREATE_ROOM: self.create_room,
            events.JOIN_ROOM: self.join_room,
            events.POST_QUESTION: self.post_question,
            events.POLL_SUBMIT: self.submit_response,
            events.END_POLL: self.end_poll,
            events.LEAVE_ROOM: self.leave_room,
        }

    async def dispatch(self, connection, event: str, data: Any) -> None:
        handler = self._handlers.get(event)
        if handler is None:
            await connection.emit(events.ERROR, _failure(f"Unknown event: {event}"))
            return
        if event in events.TEACHER_ONLY_EVENTS and not connection.identity.is_teacher:
            logger.info(f"{connection} denied {event}: teacher role required")
            await connection.emit(events.ACCESS_DENIED, _failure(TeacherRoleRequiredError.message))
            return
        await handler(connection, data)

    def disconnect(self, connection) -> None:
        """Transport-level cleanup; participant records are left as they are."""
        rooms = self.groups.discard(connection)
        if rooms:
            logger.info(f"{connection} disconnected from rooms {rooms}")

    def close_room(self, room_id: str) -> None:
        """The room is gone from the store; its connections stop receiving its events."""
        dropped = self.groups.close(room_id)
        if dropped:
            logger.info(f"Closed broadcast group of room {room_id} with {len(dropped)} connections")

    async def create_room(self, connection, data: Any) -> None:
        try:
            payload = _parse(CreateRoomPayload, data)
            room_code = normalize_room_code(payload.room_code)
            if not payload.title or not payload.teacher_id or not room_code:
                raise ValidationError(
                    "Missing required fields: title, teacherId, or roomCode")
            _ensure_self(connection, payload.teacher_id)

            async with self.session_factory() as db:
                if await crud_user.get_user(db, payload.teacher_id) is None:
                    raise UserNotFoundError("Teacher not found")
                room = await crud_room.create_room(
                    db, title=payload.title, teacher_id=payload.teacher_id, room_code=room_code)

            self.groups.join(room.id, connection)
            await connection.emit(events.ROOM_CREATED, {
                "success": True,
                "room": RoomOut.model_validate(room).to_wire(),
            })
            logger.info(f"Room created: {room.room_code} by teacher: {room.teacher_id}")
        except PollingError as e:
            await connection.emit(events.ROOM_CREATED, _failure(e.message))
        except Exception as e:
            logger.error(f"Error creating room: {e}", exc_info=True)
            await connection.emit(events.ROOM_CREATED, _failure("Failed to create room"))

    async def join_room(self, connection, data: Any) -> None:
        try:
            payload = _parse(JoinRoomPayload, data)
            room_code = normalize_room_code(payload.room_code)
            if not room_code or not payload.user_id:
                raise ValidationError("Missing required fields: roomCode or userId")
            _ensure_self(connection, payload.user_id)

            async with self.session_factory() as db:
                room = await crud_room.get_by_code(db, room_code)
                if room is None:
                    raise RoomNotFoundError()
                if not room.is_active:
                    raise RoomInactiveError()
                user = await crud_user.get_user(db, payload.user_id)
                if user is None:
                    raise UserNotFoundError()
                # a rolled back insert expires every loaded instance
                room_id, user_id = room.id, user.id
                participant = UserPublic.model_validate(user).to_wire()

                existing = await crud_participant.get_participant(db, room_id, user_id)
                if existing is None:
                    try:
                        await crud_participant.add_participant(db, room_id, user_id)
                    except ParticipantAlreadyExistsException:
                        logger.info(f"User {user_id} joined room {room_code} concurrently, keeping existing record")

                state = await crud_room.get_room_state(db, room_id)

            self.groups.join(state.id, connection)
            await connection.emit(events.ROOM_JOINED, {
                "success": True,
                "room": RoomState.model_validate(state).to_wire(),
            })
            await self.groups.emit_to_others(state.id, connection, events.PARTICIPANT_JOINED, {
                "roomCode": state.room_code,
                "participant": participant,
            })
            logger.info(f"User {user_id} joined room: {state.room_code}")
        except PollingError as e:
            await connection.emit(events.ROOM_JOINED, _failure(e.message))
        except Exception as e:
            logger.error(f"Error joining room: {e}", exc_info=True)
            await connection.emit(events.ROOM_JOINED, _failure("Failed to join room"))

    async def post_question(self, connection, data: Any) -> None:
        try:
            payload = _parse(PostQuestionPayload, data)
            room_code = normalize_room_code(payload.room_code)
            if (not payload.question or payload.options is None or not payload.correct_option
                    or not payload.room_id or not room_code):
                raise ValidationError(
                    "Missing required fields: question, options, correctOption, roomId, or roomCode")
            validate_options(payload.options, payload.correct_option)

            async with self.session_factory() as db:
                room = _ensure_room_open(
                    await crud_room.get_room(db, payload.room_id), room_code, owner_id=connection.identity.id)
                poll = await crud_poll.create_poll(
                    db,
                    room_id=room.id,
                    question=payload.question,
                    options=payload.options,
                    correct_option=payload.correct_option,
                )

            message = {"success": True, "question": QuestionOut.model_validate(poll).to_wire()}
            await connection.emit(events.QUESTION_POSTED, message)
            await self.groups.emit_to_others(room.id, connection, events.QUESTION_POSTED, message)
            logger.info(f"Question posted in room {room.room_code}: {poll.question}")
        except PollingError as e:
            await connection.emit(events.QUESTION_POSTED, _failure(e.message))
        except Exception as e:
            logger.error(f"Error posting question: {e}", exc_info=True)
            await connection.emit(events.QUESTION_POSTED, _failure("Failed to post question"))

    async def submit_response(self, connection, data: Any) -> None:
        try:
            payload = _parse(SubmitResponsePayload, data)
            room_code = normalize_room_code(payload.room_code)
            if not room_code or not payload.poll_id or not payload.user_id or not payload.option:
                raise ValidationError(
                    "Missing required fields: roomCode, pollId, userId, or option")
            _ensure_self(connection, payload.user_id)

            async with self.session_factory() as db:
                room = _ensure_room_open(await crud_room.get_by_code(db, room_code), room_code)
                poll = await crud_poll.get_poll_in_room(db, payload.poll_id, room.id)
                if poll is None:
                    raise PollNotFoundError()
                if not poll.is_active:
                    raise PollInactiveError()
                if payload.option not in poll.options:
                    raise ValidationError("Option must be one of the poll's options")

                if await crud_poll_response.get_response(db, poll.id, payload.user_id) is not None:
                    raise AlreadySubmittedError()
                if await crud_user.get_user(db, payload.user_id) is None:
                    raise UserNotFoundError()
                try:
                    response = await crud_poll_response.create_response(
                        db, poll_id=poll.id, user_id=payload.user_id, option=payload.option)
                except ResponseAlreadyExistsException:
                    # lost the insert race to a concurrent submission
                    raise AlreadySubmittedError()

            # answers stay private while the poll is open: requester only
            await connection.emit(events.POLL_RESPONSE, {
                "success": True,
                "response": ResponseOut.model_validate(response).to_wire(),
            })
        except PollingError as e:
            await connection.emit(events.POLL_RESPONSE, _failure(e.message))
        except Exception as e:
            logger.error(f"Error submitting response: {e}", exc_info=True)
            await connection.emit(events.POLL_RESPONSE, _failure("Failed to submit response"))

    async def end_poll(self, connection, data: Any) -> None:
        try:
            payload = _parse(EndPollPayload, data)
            room_code = normalize_room_code(payload.room_code)
            if not room_code or not payload.poll_id or not payload.teacher_id:
                raise ValidationError(
                    "Missing required fields: roomCode, pollId, or teacherId")
            if payload.teacher_id != connection.identity.id:
                raise NotRoomTeacherError()

            async with self.session_factory() as db:
                room = _ensure_room_open(
                    await crud_room.get_by_code(db, room_code), room_code, owner_id=connection.identity.id)
                poll = await crud_poll.get_poll_in_room(db, payload.poll_id, room.id)
                if poll is None:
                    raise PollNotFoundError()
                if not poll.is_active:
                    raise PollInactiveError()
                responses = await crud_poll_response.list_responses(db, poll.id)

            if not responses:
                raise NoResponsesError()

            correct, incorrect = partition_responses(responses, poll.correct_option)
            tally = PollTally(
                poll=PollOut.model_validate(poll),
                correct_responses=[TalliedResponse.model_validate(r) for r in correct],
                incorrect_responses=[TalliedResponse.model_validate(r) for r in incorrect],
            )
            # results go back to the requesting teacher only
            await connection.emit(events.POLL_ENDED, {"success": True, **tally.to_wire()})
            logger.info(
                f"Poll {poll.id} ended in room {room.room_code}: "
                f"{len(correct)} correct, {len(incorrect)} incorrect")
        except PollingError as e:
            await connection.emit(events.POLL_ENDED, _failure(e.message))
        except Exception as e:
            logger.error(f"Error ending poll: {e}", exc_info=True)
            await connection.emit(events.POLL_ENDED, _failure("Failed to end poll"))

    async def leave_room(self, connection, data: Any) -> None:
        """Fire-and-forget: the leaving client never gets a reply, even on failure."""
        try:
            payload = _parse(LeaveRoomPayload, data)
            room_code = normalize_room_code(payload.room_code)
            if not room_code:
                return
            if payload.user_id and payload.user_id != connection.identity.id:
                logger.info(f"{connection} tried to leave room {room_code} as {payload.user_id}")
                return

            async with self.session_factory() as db:
                room = await crud_room.get_by_code(db, room_code)
                if room is None:
                    return
                if payload.user_id:
                    await crud_participant.remove_participant(db, room.id, payload.user_id)

            self.groups.leave(room.id, connection)
            await self.groups.emit_to_others(room.id, connection, events.PARTICIPANT_LEFT, {
                "roomCode": room.room_code,
                "userId": payload.user_id,
            })
            logger.info(f"User {payload.user_id} left room: {room.room_code}")
        except Exception as e:
            logger.error(f"Error leaving room: {e}", exc_info=True)
