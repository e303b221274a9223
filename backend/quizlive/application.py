from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from quizlive.api.router import api_router
from quizlive.config import settings
from quizlive.runtime import runtime

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(title="QuizLive Backend", version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    @app.on_event("startup")
    async def on_startup() -> None:
        await runtime.startup()
        logger.info("QuizLive coordinator ready on port %s", settings.ws_port)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await runtime.shutdown()

    return app


app = create_app()
