"""Client for the external transaction sponsorship service.

The coordinator never signs or pays anything itself; these calls forward the
client's transaction bytes and signatures and hand back the upstream reply.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any
from urllib import error, request

from .config import settings
from .errors import SponsorshipError, SponsorshipUnavailable

logger = logging.getLogger(__name__)


def _post_json(url: str, body: dict[str, Any], headers: dict[str, str]) -> dict[str, Any]:
    raw_request = request.Request(
        url,
        data=json.dumps(body).encode("utf-8"),
        headers={"Content-Type": "application/json", **headers},
        method="POST",
    )
    try:
        with request.urlopen(raw_request, timeout=settings.sponsor_timeout_seconds) as response:
            payload = json.loads(response.read().decode("utf-8"))
    except error.HTTPError as exc:
        raise SponsorshipError(f"Sponsorship API error: {exc.code}") from exc
    except Exception as exc:
        raise SponsorshipError(str(exc)) from exc

    if not isinstance(payload, dict):
        raise SponsorshipError("Sponsorship API returned an unexpected payload")
    return payload


def _auth_headers() -> dict[str, str]:
    if not settings.enoki_private_key:
        raise SponsorshipUnavailable("ENOKI_PRIVATE_KEY is not configured")
    return {"Authorization": f"Bearer {settings.enoki_private_key}"}


async def sponsor_transaction(
    transaction_block_kind_bytes: str,
    zklogin_jwt: str | None,
    network: str | None,
) -> dict[str, Any]:
    headers = _auth_headers()
    if zklogin_jwt:
        headers["zklogin-jwt"] = zklogin_jwt
    body = {
        "network": network or settings.sponsor_default_network,
        "transactionBlockKindBytes": transaction_block_kind_bytes,
    }
    logger.info(
        "sponsor.request network=%s hasJwt=%s",
        body["network"],
        bool(zklogin_jwt),
    )
    result = await asyncio.to_thread(
        _post_json,
        f"{settings.sponsor_api_url}/transaction-blocks/sponsor",
        body,
        headers,
    )
    return {"transactionBytes": result.get("transactionBytes"), "digest": result.get("digest")}


async def sign_sponsored_transaction(digest: str, signature: str) -> dict[str, Any]:
    headers = _auth_headers()
    logger.info("sponsor.sign digest=%s", digest)
    result = await asyncio.to_thread(
        _post_json,
        f"{settings.sponsor_api_url}/transaction-blocks/sponsor/{digest}",
        {"signature": signature},
        headers,
    )
    return {"sponsoredTransaction": result.get("sponsoredTransaction")}
