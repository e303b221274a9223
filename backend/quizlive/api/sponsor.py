from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from quizlive.errors import SponsorshipError
from quizlive.schemas.quizzes import SignSponsoredTransactionRequest, SponsorTransactionRequest
from quizlive.sponsorship import sign_sponsored_transaction, sponsor_transaction

router = APIRouter(tags=["sponsorship"])
logger = logging.getLogger(__name__)


def _failure(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})


@router.post("/api/sponsor-transaction", response_model=None)
async def sponsor(payload: SponsorTransactionRequest) -> dict[str, object] | JSONResponse:
    try:
        result = await sponsor_transaction(
            payload.transactionBlockKindBytes,
            payload.zkloginJwt,
            payload.network,
        )
    except SponsorshipError as exc:
        logger.error("Sponsored transaction failed: %s", exc)
        return _failure(exc)
    return {"success": True, **result}


@router.post("/api/sign-sponsored-transaction/{digest}", response_model=None)
async def sign_sponsored(
    digest: str,
    payload: SignSponsoredTransactionRequest,
) -> dict[str, object] | JSONResponse:
    try:
        result = await sign_sponsored_transaction(digest, payload.signature)
    except SponsorshipError as exc:
        logger.error("Signing sponsored transaction %s failed: %s", digest, exc)
        return _failure(exc)
    return {"success": True, **result}
