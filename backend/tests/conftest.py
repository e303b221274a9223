from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from quizlive.redis_relay import RedisRelay
from quizlive.runtime import QuizRuntime
from quizlive.runtime_utils import random_id


class MockWebSocket:
    """Lightweight stand-in for fastapi.WebSocket on the outbound side."""

    def __init__(self) -> None:
        self.sent_messages: list[dict[str, Any]] = []

    async def send_json(self, data: dict[str, Any]) -> None:
        self.sent_messages.append(data)

    def types(self) -> list[str]:
        return [message.get("type") for message in self.sent_messages]

    def last(self, msg_type: str) -> dict[str, Any] | None:
        for message in reversed(self.sent_messages):
            if message.get("type") == msg_type:
                return message
        return None

    def all(self, msg_type: str) -> list[dict[str, Any]]:
        return [message for message in self.sent_messages if message.get("type") == msg_type]


async def settle(rounds: int = 10) -> None:
    """Give outbound writer tasks a chance to drain their queues."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class RuntimeHarness:
    def __init__(self, runtime: QuizRuntime) -> None:
        self.runtime = runtime

    def connect(self) -> tuple[str, MockWebSocket]:
        websocket = MockWebSocket()
        connection_id = random_id()
        self.runtime.connections.connect(connection_id, websocket)
        return connection_id, websocket

    async def send(self, connection_id: str, **data: Any) -> None:
        await self.runtime.handle_raw(connection_id, json.dumps(data))
        await settle()

    async def close(self) -> None:
        await self.runtime.shutdown()


def make_runtime(**overrides: Any) -> QuizRuntime:
    options: dict[str, Any] = {
        "auto_create_rooms": True,
        "enforce_creator": False,
        "default_total_questions": 5,
        "relay": RedisRelay(redis_url=""),
    }
    options.update(overrides)
    return QuizRuntime(**options)


@pytest.fixture
def mock_socket() -> type[MockWebSocket]:
    return MockWebSocket


@pytest.fixture
def drain():
    return settle


@pytest.fixture
def harness_factory():
    def factory(**overrides: Any) -> RuntimeHarness:
        return RuntimeHarness(make_runtime(**overrides))

    return factory
