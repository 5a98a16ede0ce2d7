"""
Shared fixtures: a fake Finnhub API behind httpx.MockTransport.
"""
import random
from typing import Dict, List, Optional

import httpx
import pytest
import pytest_asyncio

from quote_dashboard.config import Settings
from quote_dashboard.main import app
from quote_dashboard.services.cache import QuoteCache
from quote_dashboard.services.finnhub_client import FinnhubClient
from quote_dashboard.services.history import HistoryFetcher, get_history_fetcher
from quote_dashboard.services.quote_service import QuoteService, get_quote_service

SYMBOLS = ["AAPL", "MSFT", "TSLA"]


class FakeClock:
    """Manually advanced clock for cache tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFinnhub:
    """
    Scriptable stand-in for the Finnhub endpoints.

    quotes/profiles map symbol -> JSON body or int status code.
    candles is a list of responses served in order (last one repeats).
    """

    def __init__(self):
        self.quotes: Dict[str, object] = {}
        self.profiles: Dict[str, object] = {}
        self.candles: List[object] = []
        self.calls: List[str] = []

    def _respond(self, body) -> httpx.Response:
        if isinstance(body, int):
            return httpx.Response(body, json={"error": "nope"})
        return httpx.Response(200, json=body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        symbol = request.url.params.get("symbol")
        self.calls.append(f"{path}:{symbol}")
        if path.endswith("/quote"):
            return self._respond(self.quotes.get(symbol, 500))
        if path.endswith("/stock/profile2"):
            return self._respond(self.profiles.get(symbol, {}))
        if path.endswith("/stock/candle"):
            if not self.candles:
                return self._respond(500)
            body = self.candles.pop(0) if len(self.candles) > 1 else self.candles[0]
            return self._respond(body)
        return httpx.Response(404)

    def count(self, prefix: str) -> int:
        return sum(1 for call in self.calls if call.startswith(prefix))


async def no_sleep(delay: float) -> None:
    return None


def make_settings(api_key: Optional[str] = "test-key", **overrides) -> Settings:
    values = {"finnhub_api_key": api_key, "symbols": SYMBOLS}
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def fake_finnhub() -> FakeFinnhub:
    return FakeFinnhub()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def finnhub_client(fake_finnhub: FakeFinnhub) -> FinnhubClient:
    return FinnhubClient(
        api_key="test-key",
        base_url="https://finnhub.test/api/v1",
        transport=httpx.MockTransport(fake_finnhub.handler),
    )


@pytest.fixture
def quote_cache(clock: FakeClock) -> QuoteCache:
    return QuoteCache(ttl_seconds=300, clock=clock)


@pytest.fixture
def quote_service(finnhub_client, quote_cache) -> QuoteService:
    return QuoteService(client=finnhub_client, cache=quote_cache, config=make_settings())


@pytest.fixture
def history_fetcher(finnhub_client) -> HistoryFetcher:
    return HistoryFetcher(
        client=finnhub_client,
        config=make_settings(),
        rng=random.Random(42),
        sleep=no_sleep,
    )


@pytest_asyncio.fixture
async def client(quote_service, history_fetcher):
    app.dependency_overrides[get_quote_service] = lambda: quote_service
    app.dependency_overrides[get_history_fetcher] = lambda: history_fetcher
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def quote_body(price: float, previous_close: float, volume: int = 1000) -> dict:
    return {"c": price, "pc": previous_close, "v": volume, "h": price, "l": price, "o": price}
