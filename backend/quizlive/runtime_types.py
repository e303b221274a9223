from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Literal

RoomStatus = Literal["created", "started", "ended"]


@dataclass
class Participant:
    room_id: str
    address: str
    name: str
    score: int = 0
    answers: list[Any] = field(default_factory=list)
    connected: bool = True
    connection_id: str | None = None

    def summary(self) -> dict[str, Any]:
        return {"address": self.address, "name": self.name, "score": self.score}

    def to_public(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "name": self.name,
            "score": self.score,
            "answers": list(self.answers),
            "connected": self.connected,
        }


@dataclass
class Room:
    room_id: str
    status: RoomStatus = "created"
    current_question: int = 0
    started: bool = False
    ended: bool = False
    participants: list[dict[str, Any]] = field(default_factory=list)
    created_at: int = 0
    creator_address: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    started_at: int | None = None
    ended_at: int | None = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    def to_public(self) -> dict[str, Any]:
        payload: dict[str, Any] = dict(self.metadata)
        payload.update(
            {
                "id": self.room_id,
                "status": self.status,
                "currentQuestion": self.current_question,
                "started": self.started,
                "ended": self.ended,
                "participants": list(self.participants),
                "createdAt": self.created_at,
            }
        )
        if self.creator_address is not None:
            payload["creatorAddress"] = self.creator_address
        return payload


@dataclass
class ConnectionBinding:
    connection_id: str
    room_id: str | None = None
    address: str | None = None
    connected_at: int = 0
