from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    def __init__(self) -> None:
        self.ws_port = int(os.getenv("WS_PORT", os.getenv("PORT", "3002")))
        self.log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"
        self.cors_origins = tuple(
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "*").split(",")
            if origin.strip()
        ) or ("*",)
        self.default_total_questions = max(
            1,
            int(os.getenv("DEFAULT_TOTAL_QUESTIONS", "5")),
        )
        self.auto_create_rooms = _env_flag("AUTO_CREATE_ROOMS", True)
        self.enforce_creator = _env_flag("ENFORCE_CREATOR", False)
        self.outbound_queue_size = max(
            8,
            int(os.getenv("OUTBOUND_QUEUE_SIZE", "256")),
        )
        self.redis_url = os.getenv("REDIS_URL", "").strip()
        self.redis_channel_prefix = os.getenv("REDIS_CHANNEL_PREFIX", "ql").strip() or "ql"
        self.sponsor_api_url = os.getenv(
            "SPONSOR_API_URL",
            "https://api.enoki.mystenlabs.com",
        ).strip().rstrip("/")
        self.enoki_private_key = os.getenv("ENOKI_PRIVATE_KEY", "").strip()
        self.sponsor_timeout_seconds = max(
            1,
            int(os.getenv("SPONSOR_TIMEOUT_SECONDS", "20")),
        )
        self.sponsor_default_network = (
            os.getenv("SPONSOR_DEFAULT_NETWORK", "testnet").strip() or "testnet"
        )


settings = Settings()
