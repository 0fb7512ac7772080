class PollingError(Exception):
    """
    Base class for every domain failure. Real-time handlers turn it into a
    `{success: false, error: message}` reply, HTTP routes into a JSON response
    with `status_code`.
    """
    message = "Something went wrong"
    status_code = 400

    def __init__(self, message: str = None, status_code: int = None):
        self.message = message or self.message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def __str__(self):
        return self.message


class ValidationError(PollingError):
    message = "Invalid request"
    status_code = 400


class NotFoundError(PollingError):
    message = "Not found"
    status_code = 404


class StateConflictError(PollingError):
    message = "Conflicting state"
    status_code = 409


class AuthorizationError(PollingError):
    message = "Access denied"
    status_code = 403


class AuthenticationError(PollingError):
    message = "Unauthorized"
    status_code = 401


class StoreError(PollingError):
    message = "Failed to reach the data store"
    status_code = 500


class RoomNotFoundError(NotFoundError):
    message = "Room not found"


class PollNotFoundError(NotFoundError):
    message = "Poll not found"


class UserNotFoundError(NotFoundError):
    message = "User not found"


class RoomInactiveError(StateConflictError):
    message = "Room is not active"


class RoomCodeMismatchError(StateConflictError):
    message = "Invalid room code"


class RoomCodeTakenError(StateConflictError):
    message = "Room code already in use"


class PollInactiveError(StateConflictError):
    message = "Poll is not active"


class AlreadySubmittedError(StateConflictError):
    message = "You have already submitted a response"


class NoResponsesError(StateConflictError):
    message = "no responses found"


class NotRoomTeacherError(AuthorizationError):
    message = "You are not the teacher of this room"


class TeacherRoleRequiredError(AuthorizationError):
    message = "Access denied. Teacher role required"


class IdentityMismatchError(AuthorizationError):
    message = "You can only act on behalf of your own account"


class ParticipantAlreadyExistsException(Exception):
    """Raised by the store when the (room, user) uniqueness constraint rejects an insert."""


class ResponseAlreadyExistsException(Exception):
    """Raised by the store when the (poll, user) uniqueness constraint rejects an insert."""
