from __future__ import annotations

import logging
from typing import Any

from .errors import EmptyRoom, ParticipantNotFound
from .runtime_types import Participant

logger = logging.getLogger(__name__)


class ParticipantTable:
    """Per-room participant state keyed by (room id, address), in first-join order."""

    def __init__(self) -> None:
        self._rooms: dict[str, dict[str, Participant]] = {}

    def join(
        self,
        room_id: str,
        address: str,
        name: str,
        connection_id: str | None = None,
    ) -> Participant:
        participants = self._rooms.setdefault(room_id, {})

        # A connection speaks for one participant per room at a time.
        if connection_id is not None:
            for other in participants.values():
                if other.address != address and other.connection_id == connection_id:
                    other.connected = False
                    other.connection_id = None

        existing = participants.get(address)
        if existing is not None:
            existing.name = name
            existing.connected = True
            existing.connection_id = connection_id
            return existing

        participant = Participant(
            room_id=room_id,
            address=address,
            name=name,
            connection_id=connection_id,
        )
        participants[address] = participant
        return participant

    def get(self, room_id: str, address: str) -> Participant | None:
        return self._rooms.get(room_id, {}).get(address)

    def record_answer(
        self,
        room_id: str,
        address: str,
        question_index: int,
        answer: Any,
        is_correct: bool,
    ) -> Participant:
        participant = self.get(room_id, address)
        if participant is None:
            raise ParticipantNotFound(room_id, address)

        if question_index >= len(participant.answers):
            participant.answers.extend([None] * (question_index + 1 - len(participant.answers)))
        participant.answers[question_index] = answer
        # Not idempotent: every correct submission scores, even for the same index.
        if is_correct:
            participant.score += 1
        return participant

    def mark_disconnected(self, connection_id: str, room_id: str | None = None) -> list[Participant]:
        if room_id is None:
            slices = list(self._rooms.values())
        else:
            slices = [self._rooms.get(room_id, {})]

        affected: list[Participant] = []
        for participants in slices:
            for participant in participants.values():
                if participant.connection_id == connection_id and participant.connected:
                    participant.connected = False
                    affected.append(participant)
        return affected

    def list(self, room_id: str) -> list[Participant]:
        return list(self._rooms.get(room_id, {}).values())

    def snapshot(self, room_id: str) -> list[dict[str, Any]]:
        return [participant.to_public() for participant in self.list(room_id)]

    def count(self, room_id: str) -> int:
        return len(self._rooms.get(room_id, {}))

    def total_count(self) -> int:
        return sum(len(participants) for participants in self._rooms.values())

    def top_scorer(self, room_id: str) -> Participant:
        participants = self.list(room_id)
        if not participants:
            raise EmptyRoom(room_id)
        # sorted() is stable, so equal scores keep first-join order.
        return sorted(participants, key=lambda participant: participant.score, reverse=True)[0]

    def clear(self) -> None:
        self._rooms.clear()
