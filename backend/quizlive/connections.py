from __future__ import annotations

import logging

from .broadcaster import EventBroadcaster, OutboundSocket
from .participant_table import ParticipantTable
from .room_registry import RoomRegistry
from .runtime_types import ConnectionBinding, Participant
from .runtime_utils import now_ms

logger = logging.getLogger(__name__)


class ConnectionTracker:
    """Maps live connections to room channels and participant identities."""

    def __init__(
        self,
        registry: RoomRegistry,
        participants: ParticipantTable,
        broadcaster: EventBroadcaster,
    ) -> None:
        self.registry = registry
        self.participants = participants
        self.broadcaster = broadcaster
        self.bindings: dict[str, ConnectionBinding] = {}

    def connect(self, connection_id: str, websocket: OutboundSocket) -> ConnectionBinding:
        self.broadcaster.register(connection_id, websocket)
        binding = ConnectionBinding(connection_id=connection_id, connected_at=now_ms())
        self.bindings[connection_id] = binding
        return binding

    def subscribe(self, connection_id: str, room_id: str) -> None:
        binding = self.bindings.get(connection_id)
        if binding is None:
            return
        binding.room_id = room_id
        self.broadcaster.subscribe(connection_id, room_id)

    def bind_participant(self, connection_id: str, room_id: str, address: str) -> None:
        binding = self.bindings.get(connection_id)
        if binding is None:
            return
        binding.room_id = room_id
        binding.address = address

    def get(self, connection_id: str) -> ConnectionBinding | None:
        return self.bindings.get(connection_id)

    async def disconnect(self, connection_id: str) -> list[Participant]:
        """Drop the connection and mark every participant it carried as unreachable."""
        self.bindings.pop(connection_id, None)
        await self.broadcaster.unregister(connection_id)

        affected: list[Participant] = []
        for room in list(self.registry.rooms.values()):
            async with room.lock:
                marked = self.participants.mark_disconnected(connection_id, room.room_id)
                if marked:
                    room.participants = self.participants.snapshot(room.room_id)
                affected.extend(marked)
        return affected

    def clear(self) -> None:
        self.bindings.clear()
