from __future__ import annotations

from fastapi import APIRouter, HTTPException

from quizlive.errors import RoomIdCollision, RoomNotFound
from quizlive.runtime import runtime
from quizlive.runtime_utils import sanitize_room_id
from quizlive.schemas.quizzes import QuizUpsertRequest

router = APIRouter(tags=["quizzes"])


@router.get("/api/quizzes")
async def list_public_quizzes() -> list[dict[str, object]]:
    return [room.to_public() for room in runtime.registry.list_public()]


@router.get("/api/quiz/{quiz_id}")
async def get_quiz(quiz_id: str) -> dict[str, object]:
    room = runtime.registry.get(sanitize_room_id(quiz_id))
    if room is None:
        raise HTTPException(status_code=404, detail="Quiz not found")
    return room.to_public()


@router.post("/api/quiz")
async def create_quiz(payload: QuizUpsertRequest) -> dict[str, object]:
    try:
        room = await runtime.upsert_room(payload.id, payload.metadata_fields(), create=True)
    except RoomIdCollision as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    quiz = room.to_public()
    runtime.publish_all("quiz_created", quiz)
    runtime._log_ws_event("quiz_created", quizId=room.room_id, creator=room.creator_address)
    return quiz


@router.put("/api/quiz/{quiz_id}")
async def update_quiz(quiz_id: str, payload: QuizUpsertRequest) -> dict[str, object]:
    try:
        room = await runtime.upsert_room(sanitize_room_id(quiz_id), payload.metadata_fields())
    except RoomNotFound as exc:
        raise HTTPException(status_code=404, detail="Quiz not found") from exc
    return room.to_public()
