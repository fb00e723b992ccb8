"""Helpers for interacting with the public Alcor Exchange API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from app.config.settings import get_settings

logger = logging.getLogger("token_bubbles.alcor")


class EndpointError(RuntimeError):
    """A feed could not be fetched or decoded; the refresh must be abandoned."""

    def __init__(self, endpoint: str, url: str, status: Optional[int] = None, reason: str = ""):
        detail = f"status {status}" if status is not None else (reason or "request failed")
        super().__init__(f"{endpoint} endpoint failed ({url}): {detail}")
        self.endpoint = endpoint
        self.url = url
        self.status = status
        self.reason = reason

    def to_dict(self) -> dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "url": self.url,
            "status": self.status,
            "message": str(self),
        }


@dataclass
class MarketFeeds:
    tokens: list[Any]
    pools: list[Any]


async def _get_json(client: httpx.AsyncClient, endpoint: str, url: str) -> list[Any]:
    try:
        response = await client.get(url)
    except httpx.HTTPError as exc:
        raise EndpointError(endpoint, url, reason=repr(exc)) from exc

    if not response.is_success:
        raise EndpointError(endpoint, url, status=response.status_code)

    try:
        payload = response.json()
    except ValueError as exc:
        raise EndpointError(endpoint, url, status=response.status_code, reason="invalid JSON") from exc

    if not isinstance(payload, list):
        raise EndpointError(
            endpoint,
            url,
            status=response.status_code,
            reason=f"expected a JSON array, got {type(payload).__name__}",
        )
    return payload


async def fetch_market_feeds(
    client: httpx.AsyncClient | None = None,
    tokens_url: str | None = None,
    pools_url: str | None = None,
) -> MarketFeeds:
    """
    Fetch the token list, then the pool list.
    Fails on the first endpoint that does not answer with a 2xx JSON array.
    """
    settings = get_settings()
    tokens_url = tokens_url or settings.TOKENS_URL
    pools_url = pools_url or settings.POOLS_URL

    if client is None:
        async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as owned:
            return await fetch_market_feeds(owned, tokens_url, pools_url)

    tokens = await _get_json(client, "tokens", tokens_url)
    pools = await _get_json(client, "pools", pools_url)

    logger.debug("fetched feeds | tokens=%d | pools=%d", len(tokens), len(pools))
    return MarketFeeds(tokens=tokens, pools=pools)
