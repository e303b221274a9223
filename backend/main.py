from __future__ import annotations

import logging

from quizlive.application import app
from quizlive.config import settings

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

__all__ = ["app"]
