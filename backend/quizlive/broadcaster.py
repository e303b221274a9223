from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from .runtime_constants import OUTBOUND_QUEUE_SIZE
from .runtime_utils import log_ws_event

logger = logging.getLogger(__name__)


class OutboundSocket(Protocol):
    async def send_json(self, data: Any) -> None: ...


RelayPublisher = Callable[[str, dict[str, Any]], Awaitable[None]]


@dataclass
class OutboundChannel:
    connection_id: str
    websocket: OutboundSocket
    queue: asyncio.Queue[dict[str, Any]]
    writer: asyncio.Task[None] | None = None
    rooms: set[str] = field(default_factory=set)
    closed: bool = False


class EventBroadcaster:
    """
    Fire-and-forget delivery of events to live connections.

    Every connection owns a bounded queue drained by its own writer task, so
    publishing never awaits a socket and one stalled peer cannot delay the
    rest. Per-connection order equals publish order. Room broadcasts handed
    to the relay go through one shared queue and a single publisher task, so
    other workers see them in publish order as well.
    """

    def __init__(self, queue_size: int = OUTBOUND_QUEUE_SIZE) -> None:
        self.queue_size = queue_size
        self.channels: dict[str, OutboundChannel] = {}
        self.room_members: dict[str, dict[str, None]] = {}
        self.relay_publisher: RelayPublisher | None = None
        self.sent = 0
        self.send_failures = 0
        self.dropped = 0
        self._relay_queue: asyncio.Queue[tuple[str, dict[str, Any]]] | None = None
        self._relay_writer: asyncio.Task[None] | None = None

    @staticmethod
    def build_message(event_name: str, payload: dict[str, Any]) -> dict[str, Any]:
        return {**payload, "type": event_name}

    def register(self, connection_id: str, websocket: OutboundSocket) -> OutboundChannel:
        channel = OutboundChannel(
            connection_id=connection_id,
            websocket=websocket,
            queue=asyncio.Queue(maxsize=self.queue_size),
        )
        channel.writer = asyncio.create_task(
            self._drain(channel),
            name=f"outbound:{connection_id}",
        )
        self.channels[connection_id] = channel
        return channel

    async def unregister(self, connection_id: str) -> None:
        channel = self.channels.pop(connection_id, None)
        if channel is None:
            return
        channel.closed = True
        for room_id in channel.rooms:
            members = self.room_members.get(room_id)
            if members is not None:
                members.pop(connection_id, None)
                if not members:
                    self.room_members.pop(room_id, None)
        await self._stop_writer(channel)

    def subscribe(self, connection_id: str, room_id: str) -> None:
        channel = self.channels.get(connection_id)
        if channel is None:
            return
        channel.rooms.add(room_id)
        self.room_members.setdefault(room_id, {})[connection_id] = None

    def subscribers(self, room_id: str) -> list[str]:
        return list(self.room_members.get(room_id, {}))

    def broadcast_to_room(self, room_id: str, event_name: str, payload: dict[str, Any]) -> None:
        message = self.build_message(event_name, payload)
        self.deliver_local(room_id, message)
        if self.relay_publisher is not None:
            self._enqueue_relay(room_id, message)

    def deliver_local(self, room_id: str, message: dict[str, Any]) -> None:
        for connection_id in self.subscribers(room_id):
            self._enqueue(connection_id, message)

    def send_to_connection(self, connection_id: str, event_name: str, payload: dict[str, Any]) -> None:
        self._enqueue(connection_id, self.build_message(event_name, payload))

    def broadcast_all(self, event_name: str, payload: dict[str, Any]) -> None:
        message = self.build_message(event_name, payload)
        for connection_id in list(self.channels):
            self._enqueue(connection_id, message)

    async def close_all(self) -> None:
        for connection_id in list(self.channels):
            await self.unregister(connection_id)
        if self._relay_writer is not None:
            self._relay_writer.cancel()
            try:
                await self._relay_writer
            except asyncio.CancelledError:
                pass
            self._relay_writer = None
        self._relay_queue = None
        self.room_members.clear()

    def _enqueue(self, connection_id: str, message: dict[str, Any]) -> None:
        channel = self.channels.get(connection_id)
        if channel is None or channel.closed:
            return
        try:
            channel.queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Outbound queue full for connection %s, dropping %s",
                connection_id,
                message.get("type"),
            )

    async def _drain(self, channel: OutboundChannel) -> None:
        while True:
            message = await channel.queue.get()
            try:
                await channel.websocket.send_json(message)
            except Exception as exc:
                # Connection may already be closed; the transport reports the disconnect.
                self.send_failures += 1
                channel.closed = True
                log_ws_event(
                    logger,
                    "send_failed",
                    logging.DEBUG,
                    connectionId=channel.connection_id,
                    event=message.get("type"),
                    reason=repr(exc),
                )
                return
            self.sent += 1

    async def _stop_writer(self, channel: OutboundChannel) -> None:
        writer = channel.writer
        if writer is None or writer.done():
            return
        writer.cancel()
        try:
            await writer
        except asyncio.CancelledError:
            pass

    def _enqueue_relay(self, room_id: str, message: dict[str, Any]) -> None:
        if self._relay_queue is None:
            self._relay_queue = asyncio.Queue(maxsize=self.queue_size)
            self._relay_writer = asyncio.create_task(
                self._drain_relay(self._relay_queue),
                name="outbound:relay",
            )
        try:
            self._relay_queue.put_nowait((room_id, message))
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Relay queue full, dropping %s for room %s",
                message.get("type"),
                room_id,
            )

    async def _drain_relay(self, queue: asyncio.Queue[tuple[str, dict[str, Any]]]) -> None:
        while True:
            room_id, message = await queue.get()
            publisher = self.relay_publisher
            if publisher is None:
                continue
            try:
                await publisher(room_id, message)
            except Exception:
                logger.exception("Failed to relay %s for room %s", message.get("type"), room_id)
