from __future__ import annotations

from fastapi import APIRouter

from quizlive.api.quizzes import router as quizzes_router
from quizlive.api.sponsor import router as sponsor_router
from quizlive.api.system import router as system_router
from quizlive.api.ws import router as ws_router

api_router = APIRouter()
api_router.include_router(system_router)
api_router.include_router(quizzes_router)
api_router.include_router(sponsor_router)
api_router.include_router(ws_router)
