"""
Session state machine: the only place a room's lifecycle status changes.

    created -> started -> ended

Callers hold the room's lock for the whole call so each transition is a
single read-modify-write on the registry record.
"""
from __future__ import annotations

import logging

from .errors import InvalidTransition, NotRoomCreator
from .participant_table import ParticipantTable
from .room_registry import RoomRegistry
from .runtime_types import Participant, Room, RoomStatus
from .runtime_utils import now_ms

logger = logging.getLogger(__name__)

# Restarting a running quiz rewinds it to the first question; nothing leaves "ended".
ALLOWED_TRANSITIONS: dict[RoomStatus, frozenset[RoomStatus]] = {
    "created": frozenset({"started", "ended"}),
    "started": frozenset({"started", "ended"}),
    "ended": frozenset({"ended"}),
}


class SessionStateMachine:
    def __init__(
        self,
        registry: RoomRegistry,
        participants: ParticipantTable,
        *,
        enforce_creator: bool = False,
    ) -> None:
        self.registry = registry
        self.participants = participants
        self.enforce_creator = enforce_creator

    def can_transition(self, current: RoomStatus, target: RoomStatus) -> bool:
        return target in ALLOWED_TRANSITIONS.get(current, frozenset())

    def _check_requester(self, room: Room, requester_address: str | None) -> None:
        if not self.enforce_creator or room.creator_address is None:
            return
        if requester_address != room.creator_address:
            raise NotRoomCreator(room.room_id, requester_address)

    def _transition(self, room: Room, target: RoomStatus) -> None:
        if not self.can_transition(room.status, target):
            raise InvalidTransition(room.room_id, room.status, target)
        logger.debug("Room %s: %s -> %s", room.room_id, room.status, target)
        room.status = target

    def start(self, room_id: str, requester_address: str | None) -> Room:
        room = self.registry.require(room_id)
        self._check_requester(room, requester_address)
        self._transition(room, "started")
        room.started = True
        room.current_question = 0
        room.started_at = now_ms()
        return room

    def end(self, room_id: str, requester_address: str | None) -> Room:
        room = self.registry.require(room_id)
        self._check_requester(room, requester_address)
        self._transition(room, "ended")
        room.ended = True
        room.ended_at = now_ms()
        return room

    def distribute_rewards(self, room_id: str, requester_address: str | None) -> Participant:
        room = self.registry.require(room_id)
        self._check_requester(room, requester_address)
        return self.participants.top_scorer(room_id)
