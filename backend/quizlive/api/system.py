from __future__ import annotations

from fastapi import APIRouter

from quizlive.runtime import runtime
from quizlive.runtime_utils import now_iso

router = APIRouter(tags=["system"])


async def _health_payload() -> dict[str, object]:
    relay = runtime.relay
    if not relay.is_configured:
        relay_status = "disabled"
    else:
        relay_status = "up" if await relay.ping() else "down"
    ws_stats = runtime.get_ws_stats()["stats"]
    return {
        "status": "OK",
        "timestamp": now_iso(),
        "activeQuizzes": runtime.active_rooms_count,
        "totalParticipants": runtime.total_participants_count,
        "relay": relay_status,
        "websocket": {
            "activeConnections": ws_stats.get("activeConnections", 0),
            "peakConnections": ws_stats.get("peakConnections", 0),
        },
    }


@router.get("/health")
async def health() -> dict[str, object]:
    return await _health_payload()


@router.get("/api/health")
async def api_health() -> dict[str, object]:
    return await _health_payload()


@router.get("/api/ws-stats")
async def websocket_stats() -> dict[str, object]:
    return runtime.get_ws_stats()
