from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .errors import EmptyRoom, InvalidTransition, NotRoomCreator, ParticipantNotFound, RoomNotFound
from .runtime_utils import now_ms, sanitize_address, sanitize_participant_name, sanitize_room_id
from .schemas.events import (
    DistributeRewards,
    EndQuiz,
    InboundEvent,
    JoinQuiz,
    ParticipantJoined,
    ParticipantSummary,
    Ping,
    Pong,
    QuizEnded,
    QuizStarted,
    QuizStatus,
    RewardsDistributed,
    ScoreUpdated,
    StartQuiz,
    SubmitAnswer,
)

if TYPE_CHECKING:
    from .runtime import QuizRuntime

logger = logging.getLogger(__name__)


async def handle_message(
    runtime: "QuizRuntime",
    connection_id: str,
    event: InboundEvent,
) -> None:
    if isinstance(event, Ping):
        runtime._increment_stat("pingReceived")
        runtime.send(connection_id, Pong(serverTime=now_ms()))
        return

    if isinstance(event, JoinQuiz):
        await join_quiz(runtime, connection_id, event)
        return

    if isinstance(event, StartQuiz):
        await start_quiz(runtime, connection_id, event)
        return

    if isinstance(event, EndQuiz):
        await end_quiz(runtime, connection_id, event)
        return

    if isinstance(event, SubmitAnswer):
        await submit_answer(runtime, connection_id, event)
        return

    if isinstance(event, DistributeRewards):
        await distribute_rewards(runtime, connection_id, event)
        return

    logger.warning("No handler for event %s", type(event).__name__)


async def join_quiz(runtime: "QuizRuntime", connection_id: str, event: JoinQuiz) -> None:
    room_id = sanitize_room_id(event.quizId)
    address = sanitize_address(event.userAddress)
    name = sanitize_participant_name(event.userName)

    room = await runtime.get_or_create_room(room_id)
    if room is None:
        runtime.report_error(connection_id, RoomNotFound(room_id), room_id)
        return

    runtime.connections.subscribe(connection_id, room_id)

    async with room.lock:
        participant = runtime.participants.join(room_id, address, name, connection_id)
        runtime.connections.bind_participant(connection_id, room_id, address)
        runtime.sync_room_participants(room)
        joined = ParticipantJoined(
            quizId=room_id,
            participant=ParticipantSummary(**participant.summary()),
            totalParticipants=len(room.participants),
        )
        status = QuizStatus(
            quizId=room_id,
            status=room.status,
            participants=list(room.participants),
            currentQuestion=room.current_question,
            started=room.started,
            ended=room.ended,
        )

    runtime.publish(room_id, joined)
    runtime.send(connection_id, status)
    runtime._log_ws_event(
        "join",
        quizId=room_id,
        address=address,
        name=name,
        connectionId=connection_id,
        totalParticipants=joined.totalParticipants,
    )


async def start_quiz(runtime: "QuizRuntime", connection_id: str, event: StartQuiz) -> None:
    room_id = sanitize_room_id(event.quizId)
    room = runtime.registry.get(room_id)
    if room is None:
        logger.info("start_quiz ignored, quiz %s not found", room_id)
        return

    async with room.lock:
        try:
            runtime.machine.start(room_id, event.creatorAddress)
        except (NotRoomCreator, InvalidTransition) as exc:
            runtime.report_error(connection_id, exc, room_id)
            return
        started = QuizStarted(
            quizId=room_id,
            startedAt=room.started_at or now_ms(),
            totalQuestions=runtime.room_total_questions(room),
        )

    runtime.publish(room_id, started)
    runtime._log_ws_event("quiz_started", quizId=room_id, by=event.creatorAddress)


async def end_quiz(runtime: "QuizRuntime", connection_id: str, event: EndQuiz) -> None:
    room_id = sanitize_room_id(event.quizId)
    room = runtime.registry.get(room_id)
    if room is None:
        logger.info("end_quiz ignored, quiz %s not found", room_id)
        return

    async with room.lock:
        try:
            runtime.machine.end(room_id, event.creatorAddress)
        except (NotRoomCreator, InvalidTransition) as exc:
            runtime.report_error(connection_id, exc, room_id)
            return
        runtime.sync_room_participants(room)
        ended = QuizEnded(
            quizId=room_id,
            endedAt=room.ended_at or now_ms(),
            participants=list(room.participants),
        )

    runtime.publish(room_id, ended)
    runtime._log_ws_event("quiz_ended", quizId=room_id, by=event.creatorAddress)


async def submit_answer(runtime: "QuizRuntime", connection_id: str, event: SubmitAnswer) -> None:
    room_id = sanitize_room_id(event.quizId)
    address = sanitize_address(event.userAddress)
    room = runtime.registry.get(room_id)
    if room is None:
        logger.info("submit_answer ignored, quiz %s not found", room_id)
        return

    async with room.lock:
        try:
            participant = runtime.participants.record_answer(
                room_id,
                address,
                event.questionIndex,
                event.answer,
                event.isCorrect,
            )
        except ParticipantNotFound:
            logger.info("submit_answer ignored, %s is not in quiz %s", address, room_id)
            return
        runtime.sync_room_participants(room)
        updated = ScoreUpdated(
            quizId=room_id,
            participant=ParticipantSummary(**participant.summary()),
        )

    runtime.publish(room_id, updated)
    runtime._log_ws_event(
        "answer",
        level=logging.DEBUG,
        quizId=room_id,
        address=address,
        questionIndex=event.questionIndex,
        isCorrect=event.isCorrect,
        score=updated.participant.score,
    )


async def distribute_rewards(
    runtime: "QuizRuntime",
    connection_id: str,
    event: DistributeRewards,
) -> None:
    room_id = sanitize_room_id(event.quizId)
    room = runtime.registry.get(room_id)
    if room is None:
        logger.info("distribute_rewards ignored, quiz %s not found", room_id)
        return

    async with room.lock:
        try:
            winner = runtime.machine.distribute_rewards(room_id, event.creatorAddress)
        except (EmptyRoom, NotRoomCreator) as exc:
            runtime.report_error(connection_id, exc, room_id)
            runtime._log_ws_event(
                "rewards_rejected",
                level=logging.WARNING,
                quizId=room_id,
                code=exc.code,
            )
            return
        distributed = RewardsDistributed(
            quizId=room_id,
            winner=ParticipantSummary(**winner.summary()),
            distributedBy=event.creatorAddress,
        )

    runtime.publish(room_id, distributed)
    runtime._log_ws_event(
        "rewards_distributed",
        quizId=room_id,
        winner=distributed.winner.address,
        by=event.creatorAddress,
    )
