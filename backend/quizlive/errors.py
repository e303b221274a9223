"""Domain errors raised by the room coordinator and its collaborators."""

from __future__ import annotations


class QuizLiveError(Exception):
    code = "INTERNAL_ERROR"


class RoomNotFound(QuizLiveError):
    code = "ROOM_NOT_FOUND"

    def __init__(self, room_id: str) -> None:
        self.room_id = room_id
        super().__init__(f"Quiz {room_id} not found")


class ParticipantNotFound(QuizLiveError):
    code = "PARTICIPANT_NOT_FOUND"

    def __init__(self, room_id: str, address: str) -> None:
        self.room_id = room_id
        self.address = address
        super().__init__(f"Participant {address} not found in quiz {room_id}")


class EmptyRoom(QuizLiveError):
    code = "EMPTY_ROOM"

    def __init__(self, room_id: str) -> None:
        self.room_id = room_id
        super().__init__(f"Quiz {room_id} has no participants")


class NotRoomCreator(QuizLiveError):
    code = "NOT_ROOM_CREATOR"

    def __init__(self, room_id: str, address: str | None) -> None:
        self.room_id = room_id
        self.address = address
        super().__init__(f"{address or 'anonymous'} is not the creator of quiz {room_id}")


class InvalidTransition(QuizLiveError):
    code = "INVALID_TRANSITION"

    def __init__(self, room_id: str, current: str, target: str) -> None:
        self.room_id = room_id
        self.current = current
        self.target = target
        super().__init__(f"Quiz {room_id} cannot move from {current} to {target}")


class RoomIdCollision(QuizLiveError):
    code = "ROOM_ID_COLLISION"


class InvalidEvent(QuizLiveError):
    code = "INVALID_EVENT"


class SponsorshipError(RuntimeError):
    pass


class SponsorshipUnavailable(SponsorshipError):
    pass
