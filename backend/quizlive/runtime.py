from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from .broadcaster import EventBroadcaster
from .config import settings
from .connections import ConnectionTracker
from .errors import InvalidEvent, QuizLiveError
from .participant_table import ParticipantTable
from .redis_relay import RedisRelay
from .room_registry import RoomRegistry
from .runtime_message_handlers import handle_message as handle_room_message
from .runtime_types import Room
from .runtime_utils import log_ws_event, now_ms, random_id
from .schemas.events import Connected, ErrorEvent, InboundEvent, OutboundEvent, parse_inbound
from .session_machine import SessionStateMachine

logger = logging.getLogger(__name__)


class QuizRuntime:
    """
    Process-wide coordinator for live quiz rooms.

    Inbound connection events are dispatched to the session state machine,
    which mutates the registry and participant table under the room's lock.
    The resulting events are published only after that lock is released.
    """

    def __init__(
        self,
        *,
        auto_create_rooms: bool | None = None,
        enforce_creator: bool | None = None,
        default_total_questions: int | None = None,
        relay: RedisRelay | None = None,
    ) -> None:
        self.auto_create_rooms = (
            settings.auto_create_rooms if auto_create_rooms is None else auto_create_rooms
        )
        self.default_total_questions = (
            default_total_questions or settings.default_total_questions
        )
        self.registry = RoomRegistry()
        self.participants = ParticipantTable()
        self.machine = SessionStateMachine(
            self.registry,
            self.participants,
            enforce_creator=settings.enforce_creator if enforce_creator is None else enforce_creator,
        )
        self.broadcaster = EventBroadcaster(settings.outbound_queue_size)
        self.connections = ConnectionTracker(self.registry, self.participants, self.broadcaster)
        self.relay = relay if relay is not None else RedisRelay()
        self._ws_stats: dict[str, int] = {
            "connectSuccess": 0,
            "disconnects": 0,
            "messagesReceived": 0,
            "invalidMessages": 0,
            "handlerFailures": 0,
            "pingReceived": 0,
            "activeConnections": 0,
            "peakConnections": 0,
        }

    @property
    def active_rooms_count(self) -> int:
        return len(self.registry)

    @property
    def total_participants_count(self) -> int:
        return self.participants.total_count()

    def _increment_stat(self, key: str, amount: int = 1) -> None:
        self._ws_stats[key] = int(self._ws_stats.get(key, 0)) + amount

    def _on_connect(self) -> None:
        self._increment_stat("connectSuccess")
        active_connections = int(self._ws_stats.get("activeConnections", 0)) + 1
        self._ws_stats["activeConnections"] = active_connections
        if active_connections > int(self._ws_stats.get("peakConnections", 0)):
            self._ws_stats["peakConnections"] = active_connections

    def _on_disconnect(self) -> None:
        self._increment_stat("disconnects")
        active_connections = max(0, int(self._ws_stats.get("activeConnections", 0)) - 1)
        self._ws_stats["activeConnections"] = active_connections

    def _log_ws_event(self, event: str, level: int = logging.INFO, **fields: object) -> None:
        log_ws_event(logger, event, level, **fields)

    def get_ws_stats(self) -> dict[str, Any]:
        stats = dict(self._ws_stats)
        stats["sent"] = self.broadcaster.sent
        stats["sendFailures"] = self.broadcaster.send_failures
        stats["dropped"] = self.broadcaster.dropped
        room_summaries = [
            {
                "quizId": room.room_id,
                "status": room.status,
                "participants": self.participants.count(room.room_id),
                "connections": len(self.broadcaster.subscribers(room.room_id)),
            }
            for room in self.registry.rooms.values()
        ]
        room_summaries.sort(key=lambda item: int(item.get("connections", 0)), reverse=True)
        return {
            "generatedAt": now_ms(),
            "activeRooms": len(room_summaries),
            "stats": stats,
            "rooms": room_summaries[:50],
        }

    async def startup(self) -> None:
        if self.relay.is_configured:
            started = await self.relay.start(self.broadcaster.deliver_local)
            if started:
                self.broadcaster.relay_publisher = self.relay.publish

    async def shutdown(self) -> None:
        self.broadcaster.relay_publisher = None
        await self.relay.stop()
        await self.broadcaster.close_all()
        async with self.registry.lock:
            self.registry.clear()
        self.participants.clear()
        self.connections.clear()
        self._ws_stats["activeConnections"] = 0

    def room_total_questions(self, room: Room) -> int:
        total = room.metadata.get("totalQuestions")
        if isinstance(total, int) and not isinstance(total, bool) and total > 0:
            return total
        questions = room.metadata.get("questions")
        if isinstance(questions, list) and questions:
            return len(questions)
        return self.default_total_questions

    def sync_room_participants(self, room: Room) -> None:
        room.participants = self.participants.snapshot(room.room_id)

    async def get_or_create_room(self, room_id: str) -> Room | None:
        room = self.registry.get(room_id)
        if room is not None or not self.auto_create_rooms:
            return room
        async with self.registry.lock:
            return self.registry.get_or_create(room_id)

    async def upsert_room(
        self,
        room_id: str | None,
        fields: dict[str, Any],
        *,
        create: bool = False,
    ) -> Room:
        async with self.registry.lock:
            room = self.registry.upsert_metadata(room_id, fields, create=create)
        async with room.lock:
            self.sync_room_participants(room)
        return room

    def publish(self, room_id: str, event: OutboundEvent) -> None:
        event_name, payload = event.to_wire()
        self.broadcaster.broadcast_to_room(room_id, event_name, payload)

    def send(self, connection_id: str, event: OutboundEvent) -> None:
        event_name, payload = event.to_wire()
        self.broadcaster.send_to_connection(connection_id, event_name, payload)

    def publish_all(self, event_name: str, payload: dict[str, Any]) -> None:
        self.broadcaster.broadcast_all(event_name, payload)

    def send_error(
        self,
        connection_id: str,
        code: str,
        message: str,
        quiz_id: str | None = None,
    ) -> None:
        self.send(connection_id, ErrorEvent(code=code, message=message, quizId=quiz_id))

    def report_error(self, connection_id: str, exc: QuizLiveError, quiz_id: str | None = None) -> None:
        self.send_error(connection_id, exc.code, str(exc), quiz_id)

    async def handle_event(self, connection_id: str, event: InboundEvent) -> None:
        await handle_room_message(self, connection_id, event)

    async def handle_raw(self, connection_id: str, raw: str) -> None:
        self._increment_stat("messagesReceived")
        try:
            data = json.loads(raw)
            event = parse_inbound(data)
        except (json.JSONDecodeError, InvalidEvent) as exc:
            self._increment_stat("invalidMessages")
            message = str(exc) if isinstance(exc, InvalidEvent) else "Malformed JSON"
            self.send_error(connection_id, InvalidEvent.code, message)
            return

        try:
            await self.handle_event(connection_id, event)
        except Exception:
            self._increment_stat("handlerFailures")
            logger.exception(
                "Unhandled error for connection %s event %s",
                connection_id,
                getattr(event, "type", "-"),
            )

    async def handle_websocket(self, websocket: WebSocket) -> None:
        await websocket.accept()
        connection_id = random_id()
        self.connections.connect(connection_id, websocket)
        self._on_connect()
        self._log_ws_event("connect", connectionId=connection_id)
        self.send(connection_id, Connected(connectionId=connection_id))

        disconnect_code: int | None = None
        disconnect_reason = "unknown"
        try:
            while True:
                raw = await websocket.receive_text()
                await self.handle_raw(connection_id, raw)
        except WebSocketDisconnect as exc:
            disconnect_code = exc.code
            disconnect_reason = "websocket_disconnect"
        except Exception:
            disconnect_reason = "server_error"
            logger.exception("Unexpected websocket error for connection %s", connection_id)
        finally:
            await self.disconnect(connection_id, reason=disconnect_reason, close_code=disconnect_code)

    async def disconnect(
        self,
        connection_id: str,
        reason: str = "unknown",
        close_code: int | None = None,
    ) -> None:
        binding = self.connections.get(connection_id)
        affected = await self.connections.disconnect(connection_id)
        self._on_disconnect()
        for participant in affected:
            self._log_ws_event(
                "participant_offline",
                quizId=participant.room_id,
                address=participant.address,
                name=participant.name,
            )
        self._log_ws_event(
            "disconnect",
            connectionId=connection_id,
            quizId=binding.room_id if binding else None,
            address=binding.address if binding else None,
            connectedForMs=now_ms() - binding.connected_at if binding else None,
            reason=reason,
            closeCode=close_code,
        )


runtime = QuizRuntime()
