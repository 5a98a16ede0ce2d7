"""
Async client for the Finnhub REST API.

Only the three endpoints the dashboard needs are wrapped:
- /quote: current price, previous close, volume
- /stock/profile2: company profile (display name)
- /stock/candle: daily candles as parallel arrays

The API key is sent as the ``token`` query parameter. A shared
httpx.AsyncClient is used so connections are pooled across the batch.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from ..config import settings
from ..logging_config import get_logger

logger = get_logger(__name__)


class RateLimitError(Exception):
    """Raised when Finnhub answers with HTTP 429."""


def to_epoch(ts: datetime) -> int:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return int(ts.timestamp())


class FinnhubClient:
    """Thin wrapper around the Finnhub endpoints used by the dashboard."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: Finnhub API key.
            base_url: API root. Defaults to config value.
            timeout: Per-request timeout in seconds. Defaults to config value.
            transport: Optional httpx transport (tests pass a MockTransport).
        """
        self._api_key = api_key
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.finnhub_base_url,
            timeout=timeout or settings.http_timeout_seconds,
            transport=transport,
        )

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    @property
    def has_api_key(self) -> bool:
        return bool((self._api_key or "").strip())

    async def _get(self, path: str, **params: Any) -> Dict[str, Any]:
        params["token"] = self._api_key
        response = await self._client.get(path, params=params)
        if response.status_code == 429:
            raise RateLimitError(f"Rate limit reached for {path} (429)")
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected payload from {path}: {type(data).__name__}")
        return data

    async def get_quote(self, symbol: str) -> Dict[str, Any]:
        """Get the current quote (keys: c, pc, v, ...)."""
        return await self._get("/quote", symbol=symbol)

    async def get_profile(self, symbol: str) -> Dict[str, Any]:
        """Get the company profile (key: name)."""
        return await self._get("/stock/profile2", symbol=symbol)

    async def get_candles(
        self,
        symbol: str,
        start: datetime,
        end: datetime,
        resolution: str = "D",
    ) -> Dict[str, Any]:
        """Get candles for a date range (keys: t, c, o, h, l, v, s)."""
        return await self._get(
            "/stock/candle",
            symbol=symbol,
            resolution=resolution,
            **{"from": to_epoch(start), "to": to_epoch(end)},
        )

    async def close(self) -> None:
        await self._client.aclose()


# Singleton instance
_finnhub_client: Optional[FinnhubClient] = None


def get_finnhub_client() -> FinnhubClient:
    """Get the singleton Finnhub client, keyed from settings."""
    global _finnhub_client
    if _finnhub_client is None:
        _finnhub_client = FinnhubClient(api_key=settings.finnhub_api_key)
        logger.info("Initialized shared Finnhub HTTP client")
    return _finnhub_client


async def close_finnhub_client() -> None:
    """Close the singleton client, if it was ever created."""
    global _finnhub_client
    if _finnhub_client is not None:
        await _finnhub_client.close()
        _finnhub_client = None
