from __future__ import annotations

import json
import logging
import re
import secrets
import time
import uuid
from datetime import datetime, timezone
from typing import Any

from .runtime_constants import (
    ADDRESS_MAX_LENGTH,
    DEFAULT_PARTICIPANT_NAME,
    NAME_MAX_LENGTH,
    ROOM_ID_MAX_LENGTH,
    ROOM_ID_PREFIX,
    ROOM_ID_SUFFIX_CHARS,
    ROOM_ID_SUFFIX_LENGTH,
)


def log_ws_event(
    target: logging.Logger,
    event: str,
    level: int = logging.INFO,
    **fields: object,
) -> None:
    """Emit one single-line `ws.<event> {json}` record."""
    target.log(
        level,
        "ws.%s %s",
        event,
        json.dumps(fields, ensure_ascii=False, separators=(",", ":"), default=str),
    )


def now_ms() -> int:
    return int(time.time() * 1000)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def random_id() -> str:
    return str(uuid.uuid4())


def random_suffix(length: int = ROOM_ID_SUFFIX_LENGTH) -> str:
    return "".join(secrets.choice(ROOM_ID_SUFFIX_CHARS) for _ in range(max(4, length)))


def generate_room_id() -> str:
    return f"{ROOM_ID_PREFIX}_{now_ms()}_{random_suffix()}"


def sanitize_room_id(raw: Any) -> str:
    return str(raw or "").strip()[:ROOM_ID_MAX_LENGTH]


def sanitize_address(raw: Any) -> str:
    return str(raw or "").strip()[:ADDRESS_MAX_LENGTH]


def sanitize_participant_name(raw: Any) -> str:
    value = str(raw or "").strip()
    if not value:
        return DEFAULT_PARTICIPANT_NAME
    cleaned = re.sub(r"\s+", " ", value)[:NAME_MAX_LENGTH].strip()
    return cleaned or DEFAULT_PARTICIPANT_NAME


def normalize_optional_str(value: Any) -> str | None:
    if value is None:
        return None
    normalized = str(value).strip()
    return normalized or None
