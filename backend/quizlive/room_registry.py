"""
Room registry: owns every live quiz room for the lifetime of the process.

Rooms are never deleted; they accumulate until shutdown clears the registry.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from .errors import RoomIdCollision, RoomNotFound
from .runtime_constants import RESERVED_ROOM_FIELDS, ROOM_ID_ALLOCATION_ATTEMPTS
from .runtime_types import Room
from .runtime_utils import generate_room_id, normalize_optional_str, now_ms, sanitize_room_id

logger = logging.getLogger(__name__)


class RoomRegistry:
    def __init__(self, id_factory: Callable[[], str] = generate_room_id) -> None:
        self.rooms: dict[str, Room] = {}
        self.lock = asyncio.Lock()
        self._id_factory = id_factory

    def __len__(self) -> int:
        return len(self.rooms)

    def get(self, room_id: str) -> Room | None:
        return self.rooms.get(room_id)

    def require(self, room_id: str) -> Room:
        room = self.rooms.get(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        return room

    def get_or_create(self, room_id: str) -> Room:
        existing = self.rooms.get(room_id)
        if existing is not None:
            return existing

        room = Room(room_id=room_id, created_at=now_ms())
        self.rooms[room_id] = room
        logger.info("Room %s created implicitly", room_id)
        return room

    def allocate_id(self) -> str:
        for _ in range(ROOM_ID_ALLOCATION_ATTEMPTS):
            room_id = self._id_factory()
            if room_id not in self.rooms:
                return room_id
            logger.warning("Room id collision detected, regenerating: %s", room_id)
        raise RoomIdCollision("Failed to allocate a unique room id")

    def upsert_metadata(
        self,
        room_id: str | None,
        fields: dict[str, Any],
        *,
        create: bool = False,
    ) -> Room:
        """
        Merge externally supplied fields into a room.

        With ``create=True`` a missing room is created (allocating an id when
        none is supplied) and ``creatorAddress`` is captured as the owner.
        Without it a missing room raises ``RoomNotFound``.
        """
        normalized_id = sanitize_room_id(room_id)
        room = self.rooms.get(normalized_id) if normalized_id else None

        if room is None:
            if not create:
                raise RoomNotFound(normalized_id or "-")
            if not normalized_id:
                normalized_id = self.allocate_id()
            room = Room(room_id=normalized_id, created_at=now_ms())
            self.rooms[normalized_id] = room
            logger.info("Room %s created", normalized_id)

        if room.creator_address is None:
            room.creator_address = normalize_optional_str(fields.get("creatorAddress"))

        for key, value in fields.items():
            if key in RESERVED_ROOM_FIELDS:
                continue
            room.metadata[key] = value

        return room

    def list_public(self) -> list[Room]:
        return [room for room in self.rooms.values() if room.metadata.get("isPublic") is True]

    def clear(self) -> None:
        self.rooms.clear()
