"""
Coordinator flows driven through raw inbound frames, as the websocket
endpoint would deliver them.
"""
from __future__ import annotations

import pytest


async def join(harness, connection_id, quiz_id, address, name):
    await harness.send(
        connection_id,
        type="join_quiz",
        quizId=quiz_id,
        userAddress=address,
        userName=name,
    )


@pytest.mark.asyncio
async def test_full_quiz_session(harness_factory):
    harness = harness_factory()
    runtime = harness.runtime
    alice_conn, alice_ws = harness.connect()
    bob_conn, bob_ws = harness.connect()

    await join(harness, alice_conn, "r1", "0xA", "Alice")
    await join(harness, bob_conn, "r1", "0xB", "Bob")

    assert alice_ws.types() == ["participant_joined", "quiz_status", "participant_joined"]
    bob_joined = alice_ws.last("participant_joined")
    assert bob_joined["participant"] == {"address": "0xB", "name": "Bob", "score": 0}
    assert bob_joined["totalParticipants"] == 2

    assert bob_ws.types() == ["participant_joined", "quiz_status"]
    snapshot = bob_ws.last("quiz_status")
    assert snapshot["status"] == "created"
    assert snapshot["started"] is False and snapshot["ended"] is False
    assert snapshot["currentQuestion"] == 0
    assert [p["address"] for p in snapshot["participants"]] == ["0xA", "0xB"]

    await harness.send(alice_conn, type="start_quiz", quizId="r1", creatorAddress="0xA")
    started = bob_ws.last("quiz_started")
    assert started["quizId"] == "r1"
    assert started["totalQuestions"] == 5
    assert isinstance(started["startedAt"], int)

    await harness.send(
        bob_conn,
        type="submit_answer",
        quizId="r1",
        userAddress="0xB",
        questionIndex=0,
        answer="x",
        isCorrect=True,
    )
    for websocket in (alice_ws, bob_ws):
        updated = websocket.last("score_updated")
        assert updated["participant"] == {"address": "0xB", "name": "Bob", "score": 1}

    await harness.send(alice_conn, type="end_quiz", quizId="r1", creatorAddress="0xA")
    assert runtime.registry.get("r1").status == "ended"
    ended = alice_ws.last("quiz_ended")
    assert {p["address"]: p["score"] for p in ended["participants"]} == {"0xA": 0, "0xB": 1}

    await harness.send(alice_conn, type="distribute_rewards", quizId="r1", creatorAddress="0xA")
    rewards = bob_ws.last("rewards_distributed")
    assert rewards["winner"] == {"address": "0xB", "name": "Bob", "score": 1}
    assert rewards["distributedBy"] == "0xA"

    await harness.close()


@pytest.mark.asyncio
async def test_disconnect_marks_only_that_participant(harness_factory):
    harness = harness_factory()
    runtime = harness.runtime
    alice_conn, _ = harness.connect()
    bob_conn, _ = harness.connect()
    await join(harness, alice_conn, "r1", "0xA", "Alice")
    await join(harness, bob_conn, "r1", "0xB", "Bob")

    await runtime.disconnect(bob_conn, reason="test")

    assert runtime.participants.get("r1", "0xB").connected is False
    assert runtime.participants.get("r1", "0xA").connected is True
    connected = {p["address"]: p["connected"] for p in runtime.registry.get("r1").participants}
    assert connected == {"0xA": True, "0xB": False}
    assert runtime.get_ws_stats()["stats"]["disconnects"] == 1
    await harness.close()


@pytest.mark.asyncio
async def test_rejoin_on_new_connection_keeps_score(harness_factory):
    harness = harness_factory()
    runtime = harness.runtime
    first_conn, _ = harness.connect()
    await join(harness, first_conn, "r1", "0xB", "Bob")
    await harness.send(
        first_conn,
        type="submit_answer",
        quizId="r1",
        userAddress="0xB",
        questionIndex=0,
        answer="x",
        isCorrect=True,
    )
    await runtime.disconnect(first_conn)

    second_conn, second_ws = harness.connect()
    await join(harness, second_conn, "r1", "0xB", "Bob")

    participant = runtime.participants.get("r1", "0xB")
    assert participant.connected is True
    assert participant.connection_id == second_conn
    assert participant.answers == ["x"]
    assert second_ws.last("participant_joined")["participant"]["score"] == 1
    assert second_ws.last("participant_joined")["totalParticipants"] == 1
    await harness.close()


@pytest.mark.asyncio
async def test_repeated_correct_answers_keep_scoring(harness_factory):
    harness = harness_factory()
    conn, ws = harness.connect()
    await join(harness, conn, "r1", "0xA", "Alice")

    for _ in range(3):
        await harness.send(
            conn,
            type="submit_answer",
            quizId="r1",
            userAddress="0xA",
            questionIndex=0,
            answer="same",
            isCorrect=True,
        )

    assert [event["participant"]["score"] for event in ws.all("score_updated")] == [1, 2, 3]
    await harness.close()


@pytest.mark.asyncio
async def test_rewards_on_empty_room_are_reported_to_requester(harness_factory):
    harness = harness_factory()
    runtime = harness.runtime
    await runtime.upsert_room("empty", {"title": "Nobody here"}, create=True)
    creator_conn, creator_ws = harness.connect()

    await harness.send(creator_conn, type="distribute_rewards", quizId="empty", creatorAddress="0xA")

    error = creator_ws.last("error")
    assert error["code"] == "EMPTY_ROOM"
    assert error["quizId"] == "empty"
    assert creator_ws.all("rewards_distributed") == []
    await harness.close()


@pytest.mark.asyncio
async def test_events_for_unknown_rooms_are_ignored(harness_factory):
    harness = harness_factory()
    runtime = harness.runtime
    conn, ws = harness.connect()

    await harness.send(conn, type="start_quiz", quizId="ghost", creatorAddress="0xA")
    await harness.send(conn, type="end_quiz", quizId="ghost")
    await harness.send(conn, type="distribute_rewards", quizId="ghost")
    await harness.send(
        conn,
        type="submit_answer",
        quizId="ghost",
        userAddress="0xA",
        questionIndex=0,
        answer="x",
        isCorrect=True,
    )

    assert ws.sent_messages == []
    assert runtime.registry.get("ghost") is None
    await harness.close()


@pytest.mark.asyncio
async def test_answer_from_non_participant_is_ignored(harness_factory):
    harness = harness_factory()
    conn, ws = harness.connect()
    await join(harness, conn, "r1", "0xA", "Alice")

    await harness.send(
        conn,
        type="submit_answer",
        quizId="r1",
        userAddress="0xStranger",
        questionIndex=0,
        answer="x",
        isCorrect=True,
    )

    assert ws.all("score_updated") == []
    await harness.close()


@pytest.mark.asyncio
async def test_malformed_frames_get_an_error_and_keep_the_connection(harness_factory):
    harness = harness_factory()
    runtime = harness.runtime
    conn, ws = harness.connect()

    await runtime.handle_raw(conn, "{not json")
    await harness.send(conn, type="dance")
    await harness.send(
        conn,
        type="submit_answer",
        quizId="r1",
        userAddress="0xA",
        questionIndex=-1,
    )
    await join(harness, conn, "r1", "0xA", "Alice")

    assert [error["code"] for error in ws.all("error")] == ["INVALID_EVENT"] * 3
    assert ws.last("quiz_status") is not None
    assert runtime.get_ws_stats()["stats"]["invalidMessages"] == 3
    await harness.close()


@pytest.mark.asyncio
async def test_ping_is_answered(harness_factory):
    harness = harness_factory()
    conn, ws = harness.connect()

    await harness.send(conn, type="ping")

    assert isinstance(ws.last("pong")["serverTime"], int)
    await harness.close()


@pytest.mark.asyncio
async def test_join_unknown_room_without_auto_create(harness_factory):
    harness = harness_factory(auto_create_rooms=False)
    conn, ws = harness.connect()

    await join(harness, conn, "ghost", "0xA", "Alice")

    assert ws.types() == ["error"]
    assert ws.last("error")["code"] == "ROOM_NOT_FOUND"
    assert harness.runtime.registry.get("ghost") is None
    await harness.close()


@pytest.mark.asyncio
async def test_enforced_creator_guards_lifecycle(harness_factory):
    harness = harness_factory(enforce_creator=True)
    runtime = harness.runtime
    await runtime.upsert_room("r1", {"creatorAddress": "0xOwner"}, create=True)
    owner_conn, owner_ws = harness.connect()
    other_conn, other_ws = harness.connect()
    await join(harness, owner_conn, "r1", "0xOwner", "Owner")
    await join(harness, other_conn, "r1", "0xOther", "Other")

    await harness.send(other_conn, type="start_quiz", quizId="r1", creatorAddress="0xOther")
    assert other_ws.last("error")["code"] == "NOT_ROOM_CREATOR"
    assert owner_ws.all("quiz_started") == []

    await harness.send(owner_conn, type="start_quiz", quizId="r1", creatorAddress="0xOwner")
    assert other_ws.last("quiz_started")["quizId"] == "r1"
    await harness.close()


@pytest.mark.asyncio
async def test_ended_quiz_cannot_be_restarted(harness_factory):
    harness = harness_factory()
    conn, ws = harness.connect()
    await join(harness, conn, "r1", "0xA", "Alice")
    await harness.send(conn, type="end_quiz", quizId="r1")

    await harness.send(conn, type="start_quiz", quizId="r1")

    assert ws.last("error")["code"] == "INVALID_TRANSITION"
    assert ws.all("quiz_started") == []
    await harness.close()


@pytest.mark.asyncio
async def test_total_questions_follow_room_metadata(harness_factory):
    harness = harness_factory()
    await harness.runtime.upsert_room("r1", {"questions": [{"q": 1}, {"q": 2}]}, create=True)
    conn, ws = harness.connect()
    await join(harness, conn, "r1", "0xA", "Alice")

    await harness.send(conn, type="start_quiz", quizId="r1")

    assert ws.last("quiz_started")["totalQuestions"] == 2
    await harness.close()


@pytest.mark.asyncio
async def test_handler_failure_does_not_escape(harness_factory, monkeypatch):
    harness = harness_factory()
    runtime = harness.runtime
    conn, ws = harness.connect()
    await join(harness, conn, "r1", "0xA", "Alice")

    def explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(runtime.participants, "record_answer", explode)
    await harness.send(
        conn,
        type="submit_answer",
        quizId="r1",
        userAddress="0xA",
        questionIndex=0,
        isCorrect=True,
    )
    await harness.send(conn, type="ping")

    assert runtime.get_ws_stats()["stats"]["handlerFailures"] == 1
    assert ws.last("pong") is not None
    assert runtime.registry.get("r1").lock.locked() is False
    await harness.close()


@pytest.mark.asyncio
async def test_shutdown_clears_state(harness_factory):
    harness = harness_factory()
    runtime = harness.runtime
    conn, _ = harness.connect()
    await join(harness, conn, "r1", "0xA", "Alice")

    await runtime.shutdown()

    assert runtime.active_rooms_count == 0
    assert runtime.total_participants_count == 0
    assert runtime.broadcaster.channels == {}


@pytest.mark.asyncio
async def test_every_inbound_frame_is_counted(harness_factory):
    harness = harness_factory()
    conn, _ = harness.connect()

    await harness.send(conn, type="ping")
    await harness.runtime.handle_raw(conn, "{not json")

    stats = harness.runtime.get_ws_stats()["stats"]
    assert stats["messagesReceived"] == 2
    assert stats["invalidMessages"] == 1
    assert stats["pingReceived"] == 1
    await harness.close()


@pytest.mark.asyncio
async def test_disconnect_record_names_the_bound_participant(harness_factory, caplog):
    harness = harness_factory()
    runtime = harness.runtime
    conn, _ = harness.connect()
    await join(harness, conn, "r1", "0xA", "Alice")

    with caplog.at_level("INFO", logger="quizlive.runtime"):
        await runtime.disconnect(conn, reason="test")

    lines = [r.getMessage() for r in caplog.records if r.getMessage().startswith("ws.disconnect ")]
    assert len(lines) == 1
    assert '"quizId":"r1"' in lines[0]
    assert '"address":"0xA"' in lines[0]
    assert '"connectedForMs":' in lines[0]
    assert runtime.connections.get(conn) is None
    await harness.close()
