# inbound
CREATE_ROOM = "create-room"
JOIN_ROOM = "join-room"
POST_QUESTION = "post-question"
POLL_SUBMIT = "poll-submit"
END_POLL = "end-poll"
LEAVE_ROOM = "leave-room"

# outbound
ROOM_CREATED = "room-created"
ROOM_JOINED = "room-joined"
PARTICIPANT_JOINED = "participant-joined"
QUESTION_POSTED = "question-posted"
POLL_RESPONSE = "poll-response"
POLL_ENDED = "poll-ended"
PARTICIPANT_LEFT = "participant-left"
ACCESS_DENIED = "access-denied"
ERROR = "error"

TEACHER_ONLY_EVENTS = frozenset({CREATE_ROOM, POST_QUESTION, END_POLL})
