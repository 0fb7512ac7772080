import asyncio
import pytest
from sqlalchemy import func, select
from classroom_polling.crud.poll import crud_poll
from classroom_polling.crud.poll_response import crud_poll_response
from classroom_polling.crud.room import crud_room
from classroom_polling.models import Poll, PollResponse, Room
from classroom_polling.realtime import events
from classroom_polling.realtime.coordinator import partition_responses

ROOM_CODE = "482913"


@pytest.fixture
async def poll(db_session_factory, room):
    async with db_session_factory() as session:
        return await crud_poll.create_poll(
            session, room_id=room.id, question="2+2?", options=["3", "4", "5"], correct_option="4")


@pytest.fixture
async def joined(coordinator, connect, users, room):
    """Teacher in the room group plus two joined students."""
    teacher = connect("teacher")
    coordinator.groups.join(room.id, teacher)
    students = {}
    for name in ("student", "student2"):
        conn = connect(name)
        await coordinator.join_room(conn, {"roomCode": ROOM_CODE, "userId": users[name].id})
        students[name] = conn
    return {"teacher": teacher, **students}


def question_payload(room, **overrides):
    payload = {
        "question": "2+2?",
        "options": ["3", "4", "5"],
        "correctOption": "4",
        "roomId": room.id,
        "roomCode": int(ROOM_CODE),
    }
    payload.update(overrides)
    return payload


async def count_rows(session_factory, model, *criteria):
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(model).where(*criteria))


async def test_post_question_broadcasts_to_everyone(coordinator, joined, room, db_session_factory):
    teacher = joined["teacher"]
    await coordinator.post_question(teacher, question_payload(room))

    message = teacher.last(events.QUESTION_POSTED)
    assert message["success"] is True
    assert message["question"]["question"] == "2+2?"
    assert message["question"]["options"] == ["3", "4", "5"]
    assert message["question"]["correctOption"] == "4"
    for name in ("student", "student2"):
        assert joined[name].received(events.QUESTION_POSTED) == [message]
    assert len(teacher.received(events.QUESTION_POSTED)) == 1
    assert await count_rows(db_session_factory, Poll, Poll.room_id == room.id) == 1


@pytest.mark.parametrize("options,correct_option", [
    (["a", "b"], "c"),
    (["3", "4", "5"], "6"),
    (["yes", "no", "maybe", "later"], "YES"),
])
async def test_post_question_rejects_foreign_correct_option(coordinator, joined, room, db_session_factory,
                                                           options, correct_option):
    teacher = joined["teacher"]
    await coordinator.post_question(
        teacher, question_payload(room, options=options, correctOption=correct_option))

    assert teacher.last(events.QUESTION_POSTED) == {
        "success": False, "error": "Correct option must be one of the provided options"}
    assert joined["student"].received(events.QUESTION_POSTED) == []
    assert await count_rows(db_session_factory, Poll) == 0


@pytest.mark.parametrize("options", [["only"], [], "4", {"a": 1}])
async def test_post_question_needs_two_options(coordinator, joined, room, options):
    teacher = joined["teacher"]
    await coordinator.post_question(teacher, question_payload(room, options=options))

    assert teacher.last(events.QUESTION_POSTED) == {
        "success": False, "error": "Options must be an array with at least 2 items"}


async def test_post_question_missing_fields(coordinator, joined, room):
    teacher = joined["teacher"]
    payload = question_payload(room)
    del payload["roomId"]
    await coordinator.post_question(teacher, payload)

    reply = teacher.last(events.QUESTION_POSTED)
    assert reply["success"] is False
    assert reply["error"].startswith("Missing required fields")


async def test_post_question_with_stale_room_code(coordinator, joined, room, db_session_factory):
    teacher = joined["teacher"]
    await coordinator.post_question(teacher, question_payload(room, roomCode="111111"))

    assert teacher.last(events.QUESTION_POSTED) == {"success": False, "error": "Invalid room code"}
    assert await count_rows(db_session_factory, Poll) == 0


async def test_post_question_in_unknown_or_inactive_room(coordinator, joined, room, db_session_factory):
    teacher = joined["teacher"]
    await coordinator.post_question(teacher, question_payload(room, roomId="missing"))
    assert teacher.last(events.QUESTION_POSTED) == {"success": False, "error": "Room not found"}

    async with db_session_factory() as session:
        stored = await session.get(Room, room.id)
        stored.is_active = False
        await session.commit()
    await coordinator.post_question(teacher, question_payload(room))
    assert teacher.last(events.QUESTION_POSTED) == {"success": False, "error": "Room is not active"}


async def test_post_question_by_another_teacher(coordinator, connect, room, db_session_factory):
    intruder = connect("other_teacher")
    await coordinator.post_question(intruder, question_payload(room))

    assert intruder.last(events.QUESTION_POSTED) == {
        "success": False, "error": "You are not the teacher of this room"}
    assert await count_rows(db_session_factory, Poll) == 0


async def test_submit_response_replies_to_requester_only(coordinator, joined, users, poll):
    student = joined["student"]
    await coordinator.submit_response(student, {
        "roomCode": ROOM_CODE, "pollId": poll.id, "userId": users["student"].id, "option": "4"})

    reply = student.last(events.POLL_RESPONSE)
    assert reply["success"] is True
    assert reply["response"]["pollId"] == poll.id
    assert reply["response"]["userId"] == users["student"].id
    assert reply["response"]["option"] == "4"
    assert joined["teacher"].received(events.POLL_RESPONSE) == []
    assert joined["student2"].received(events.POLL_RESPONSE) == []


async def test_second_submission_is_rejected(coordinator, joined, users, poll, db_session_factory):
    student = joined["student"]
    payload = {"roomCode": ROOM_CODE, "pollId": poll.id, "userId": users["student"].id}

    await coordinator.submit_response(student, {**payload, "option": "4"})
    await coordinator.submit_response(student, {**payload, "option": "5"})

    second = student.last(events.POLL_RESPONSE)
    assert second["success"] is False
    assert "already submitted" in second["error"]
    async with db_session_factory() as session:
        stored = await crud_poll_response.list_responses(session, poll.id)
    assert [(r.user_id, r.option) for r in stored] == [(users["student"].id, "4")]


async def test_concurrent_submissions_same_user(coordinator, connect, users, room, poll, db_session_factory):
    """
    Test: one student fires the same answer from several sockets at once.
    Exactly one response is stored, the rest are told it was already submitted.
    """
    connections = [connect("student") for _ in range(4)]
    payload = {"roomCode": ROOM_CODE, "pollId": poll.id, "userId": users["student"].id, "option": "4"}

    await asyncio.gather(*(coordinator.submit_response(c, payload) for c in connections))

    results = [c.last(events.POLL_RESPONSE) for c in connections]
    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]
    assert len(successful) == 1, f"Results: {results}"
    assert all("already submitted" in r["error"] for r in failed), f"Results: {failed}"
    assert await count_rows(db_session_factory, PollResponse, PollResponse.poll_id == poll.id) == 1


async def test_submission_losing_insert_race(coordinator, connect, users, room, poll, monkeypatch):
    student = connect("student")
    payload = {"roomCode": ROOM_CODE, "pollId": poll.id, "userId": users["student"].id, "option": "4"}
    await coordinator.submit_response(student, payload)

    async def stale_lookup(db, poll_id, user_id):
        return None
    monkeypatch.setattr(crud_poll_response, "get_response", stale_lookup)

    await coordinator.submit_response(student, {**payload, "option": "3"})

    assert student.last(events.POLL_RESPONSE) == {
        "success": False, "error": "You have already submitted a response"}


async def test_submit_to_unknown_poll_or_option(coordinator, connect, users, room, poll):
    student = connect("student")
    base = {"roomCode": ROOM_CODE, "userId": users["student"].id}

    await coordinator.submit_response(student, {**base, "pollId": "missing", "option": "4"})
    assert student.last(events.POLL_RESPONSE) == {"success": False, "error": "Poll not found"}

    await coordinator.submit_response(student, {**base, "pollId": poll.id, "option": "42"})
    assert student.last(events.POLL_RESPONSE)["success"] is False

    await coordinator.submit_response(student, {**base, "roomCode": "000000", "pollId": poll.id, "option": "4"})
    assert student.last(events.POLL_RESPONSE) == {"success": False, "error": "Room not found"}


async def test_submit_to_deactivated_poll(coordinator, connect, users, room, poll, db_session_factory):
    async with db_session_factory() as session:
        stored = await session.get(Poll, poll.id)
        stored.is_active = False
        await session.commit()

    student = connect("student")
    await coordinator.submit_response(student, {
        "roomCode": ROOM_CODE, "pollId": poll.id, "userId": users["student"].id, "option": "4"})

    assert student.last(events.POLL_RESPONSE) == {"success": False, "error": "Poll is not active"}


async def test_end_poll_without_responses(coordinator, joined, users, poll):
    teacher = joined["teacher"]
    await coordinator.end_poll(teacher, {"roomCode": ROOM_CODE, "pollId": poll.id, "teacherId": users["teacher"].id})

    assert teacher.last(events.POLL_ENDED) == {"success": False, "error": "no responses found"}


async def test_end_poll_by_someone_else(coordinator, connect, users, room, poll):
    intruder = connect("other_teacher")
    await coordinator.end_poll(intruder, {
        "roomCode": ROOM_CODE, "pollId": poll.id, "teacherId": users["other_teacher"].id})

    assert intruder.last(events.POLL_ENDED) == {
        "success": False, "error": "You are not the teacher of this room"}


async def test_end_poll_with_borrowed_teacher_id(coordinator, connect, users, room, poll):
    intruder = connect("other_teacher")
    await coordinator.submit_response(connect("student"), {
        "roomCode": ROOM_CODE, "pollId": poll.id, "userId": users["student"].id, "option": "4"})

    await coordinator.end_poll(intruder, {
        "roomCode": ROOM_CODE, "pollId": poll.id, "teacherId": users["teacher"].id})

    assert intruder.received(events.POLL_ENDED) == [{
        "success": False, "error": "You are not the teacher of this room"}]


async def test_ownership_is_checked_before_room_code(coordinator, connect, users, room, db_session_factory):
    intruder = connect("other_teacher")
    await coordinator.post_question(intruder, question_payload(room, roomCode="111111"))

    assert intruder.last(events.QUESTION_POSTED) == {
        "success": False, "error": "You are not the teacher of this room"}
    assert await count_rows(db_session_factory, Poll) == 0


async def test_end_poll_with_stale_room_code(coordinator, joined, users, room, poll):
    teacher = joined["teacher"]

    await coordinator.end_poll(teacher, {"roomCode": "999999", "pollId": poll.id, "teacherId": users["teacher"].id})
    assert teacher.last(events.POLL_ENDED) == {"success": False, "error": "Room not found"}


async def test_end_poll_in_inactive_room(coordinator, joined, users, room, poll, db_session_factory):
    async with db_session_factory() as session:
        stored = await session.get(Room, room.id)
        stored.is_active = False
        await session.commit()
    teacher = joined["teacher"]

    await coordinator.end_poll(teacher, {"roomCode": ROOM_CODE, "pollId": poll.id, "teacherId": users["teacher"].id})

    assert teacher.last(events.POLL_ENDED) == {"success": False, "error": "Room is not active"}


async def test_end_poll_on_deactivated_poll(coordinator, joined, users, room, poll, db_session_factory):
    await coordinator.submit_response(joined["student"], {
        "roomCode": ROOM_CODE, "pollId": poll.id, "userId": users["student"].id, "option": "4"})
    async with db_session_factory() as session:
        stored = await session.get(Poll, poll.id)
        stored.is_active = False
        await session.commit()
    teacher = joined["teacher"]

    await coordinator.end_poll(teacher, {"roomCode": ROOM_CODE, "pollId": poll.id, "teacherId": users["teacher"].id})

    assert teacher.last(events.POLL_ENDED) == {"success": False, "error": "Poll is not active"}


async def test_end_poll_from_another_room(coordinator, joined, users, room, db_session_factory):
    async with db_session_factory() as session:
        geometry = await crud_room.create_room(
            session, title="Geometry", teacher_id=users["teacher"].id, room_code="111111")
        foreign = await crud_poll.create_poll(
            session, room_id=geometry.id, question="Angles in a triangle?", options=["90", "180"],
            correct_option="180")
        await crud_poll_response.create_response(session, foreign.id, users["student"].id, "180")
    teacher = joined["teacher"]

    await coordinator.end_poll(teacher, {"roomCode": ROOM_CODE, "pollId": foreign.id, "teacherId": users["teacher"].id})

    assert teacher.last(events.POLL_ENDED) == {"success": False, "error": "Poll not found"}


async def test_submit_on_behalf_of_another_student(coordinator, joined, users, poll, db_session_factory):
    student = joined["student"]
    await coordinator.submit_response(student, {
        "roomCode": ROOM_CODE, "pollId": poll.id, "userId": users["student2"].id, "option": "4"})

    assert student.last(events.POLL_RESPONSE) == {
        "success": False, "error": "You can only act on behalf of your own account"}
    assert await count_rows(db_session_factory, PollResponse) == 0


async def test_end_poll_partitions_responses(coordinator, joined, connect, users, room, poll):
    answers = {"student": "4", "student2": "3", "student3": "5"}
    for name, option in answers.items():
        await coordinator.submit_response(connect(name), {
            "roomCode": ROOM_CODE, "pollId": poll.id, "userId": users[name].id, "option": option})

    teacher = joined["teacher"]
    await coordinator.end_poll(teacher, {"roomCode": ROOM_CODE, "pollId": poll.id, "teacherId": users["teacher"].id})

    result = teacher.last(events.POLL_ENDED)
    assert result["success"] is True
    assert result["poll"]["id"] == poll.id
    assert result["poll"]["correctOption"] == "4"
    correct = {(r["userId"], r["option"]) for r in result["correctResponses"]}
    incorrect = {(r["userId"], r["option"]) for r in result["incorrectResponses"]}
    assert correct == {(users["student"].id, "4")}
    assert incorrect == {(users["student2"].id, "3"), (users["student3"].id, "5")}
    assert correct.isdisjoint(incorrect)
    # the tally is not broadcast
    assert joined["student"].received(events.POLL_ENDED) == []
    assert joined["student2"].received(events.POLL_ENDED) == []


def test_partition_is_disjoint_and_exhaustive():
    responses = [PollResponse(id=str(i), poll_id="p", user_id=f"u{i}", option=option)
                 for i, option in enumerate(["a", "b", "a", "c", "a"])]

    correct, incorrect = partition_responses(responses, "a")

    assert [r.option for r in correct] == ["a", "a", "a"]
    assert all(r.option != "a" for r in incorrect)
    assert len(correct) + len(incorrect) == len(responses)
    assert not set(map(id, correct)) & set(map(id, incorrect))


async def test_classroom_scenario(coordinator, groups, connect, users):
    """Room 482913: create, join, post, answer, duplicate answer, end."""
    teacher = connect("teacher")
    student = connect("student")

    await coordinator.create_room(teacher, {
        "title": "Arithmetic", "teacherId": users["teacher"].id, "roomCode": 482913})
    room = teacher.last(events.ROOM_CREATED)["room"]

    await coordinator.join_room(student, {"roomCode": 482913, "userId": users["student"].id})
    assert student.last(events.ROOM_JOINED)["success"] is True
    assert teacher.last(events.PARTICIPANT_JOINED)["participant"]["id"] == users["student"].id

    await coordinator.post_question(teacher, {
        "question": "2+2?", "options": ["3", "4", "5"], "correctOption": "4",
        "roomId": room["id"], "roomCode": 482913})
    question = student.last(events.QUESTION_POSTED)["question"]

    answer = {"roomCode": 482913, "pollId": question["id"], "userId": users["student"].id}
    await coordinator.submit_response(student, {**answer, "option": "4"})
    assert student.last(events.POLL_RESPONSE)["success"] is True
    await coordinator.submit_response(student, {**answer, "option": "5"})
    assert "already submitted" in student.last(events.POLL_RESPONSE)["error"]

    await coordinator.end_poll(teacher, {
        "roomCode": 482913, "pollId": question["id"], "teacherId": users["teacher"].id})
    result = teacher.last(events.POLL_ENDED)
    assert result["success"] is True
    assert [(r["userId"], r["option"]) for r in result["correctResponses"]] == [(users["student"].id, "4")]
    assert result["incorrectResponses"] == []
