from __future__ import annotations

from .config import settings

ROOM_ID_PREFIX = "quiz"
ROOM_ID_SUFFIX_CHARS = "0123456789abcdefghijklmnopqrstuvwxyz"
ROOM_ID_SUFFIX_LENGTH = 9
ROOM_ID_MAX_LENGTH = 128
ROOM_ID_ALLOCATION_ATTEMPTS = 24

ADDRESS_MAX_LENGTH = 128
NAME_MAX_LENGTH = 64
DEFAULT_PARTICIPANT_NAME = "Anonymous"

OUTBOUND_QUEUE_SIZE = settings.outbound_queue_size

# Metadata keys owned by the coordinator; external upserts cannot overwrite them.
RESERVED_ROOM_FIELDS = frozenset(
    {
        "id",
        "status",
        "currentQuestion",
        "started",
        "ended",
        "participants",
        "createdAt",
        "creatorAddress",
    }
)
