"""
Tests for API endpoints.
"""
import pytest
from httpx import AsyncClient

from quote_dashboard.main import app, lifespan
from quote_dashboard.services.history import get_history_fetcher
from quote_dashboard.services.quote_service import QuoteService, get_quote_service

from conftest import make_settings, quote_body


@pytest.mark.asyncio
class TestHealthEndpoint:
    """Tests for health check endpoint."""

    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data

    async def test_symbols(self, client: AsyncClient):
        response = await client.get("/api/v1/symbols")

        assert response.json()["symbols"] == ["AAPL", "MSFT", "TSLA"]

    async def test_status(self, client: AsyncClient):
        response = await client.get("/api/v1/status")

        data = response.json()
        assert data["api_key_configured"] is True
        assert data["cache_ttl_seconds"] == 300
        assert data["cache_age_seconds"] is None
        assert data["rate_limit_calls_per_minute"] is None


@pytest.mark.asyncio
class TestQuotesEndpoint:
    """Tests for the quotes refresh endpoint."""

    async def test_live_quotes(self, client: AsyncClient, fake_finnhub):
        fake_finnhub.quotes["AAPL"] = quote_body(110, 100, volume=10)
        fake_finnhub.profiles["AAPL"] = {"name": "Apple Inc"}
        fake_finnhub.quotes["MSFT"] = quote_body(300, 300)

        response = await client.get("/api/v1/quotes")

        assert response.status_code == 200
        data = response.json()
        assert data["source"] == "live"
        assert data["total"] == 2
        apple = next(q for q in data["quotes"] if q["symbol"] == "AAPL")
        assert apple == {
            "symbol": "AAPL",
            "name": "Apple Inc",
            "price": 110.0,
            "change_percent": 10.0,
            "volume": 10,
        }
        assert [e["severity"] for e in data["events"]] == ["info"]

    async def test_search_filter(self, client: AsyncClient, fake_finnhub):
        fake_finnhub.quotes["AAPL"] = quote_body(110, 100)
        fake_finnhub.profiles["AAPL"] = {"name": "Apple Inc"}
        fake_finnhub.quotes["MSFT"] = quote_body(300, 300)

        response = await client.get("/api/v1/quotes", params={"search": "apple"})

        data = response.json()
        assert [q["symbol"] for q in data["quotes"]] == ["AAPL"]
        assert data["total"] == 2

    async def test_cached_fallback(self, client: AsyncClient, fake_finnhub):
        fake_finnhub.quotes["AAPL"] = quote_body(110, 100)
        await client.get("/api/v1/quotes")
        fake_finnhub.quotes.clear()

        response = await client.get("/api/v1/quotes")

        assert response.status_code == 200
        data = response.json()
        assert data["source"] == "cache"
        assert data["events"][0]["severity"] == "warning"
        assert data["events"][0]["title"] == "Using Cached Data"

    async def test_no_data_and_no_cache(self, client: AsyncClient):
        response = await client.get("/api/v1/quotes")

        assert response.status_code == 503
        assert response.json()["detail"]["retryable"] is True

    async def test_missing_api_key(self, client: AsyncClient, finnhub_client, quote_cache, fake_finnhub):
        service = QuoteService(
            client=finnhub_client, cache=quote_cache, config=make_settings(api_key=None)
        )
        app.dependency_overrides[get_quote_service] = lambda: service

        response = await client.get("/api/v1/quotes")

        assert response.status_code == 500
        assert response.json()["detail"]["title"] == "Configuration Error"
        assert fake_finnhub.calls == []

    async def test_clear_cache(self, client: AsyncClient, fake_finnhub):
        fake_finnhub.quotes["AAPL"] = quote_body(110, 100)
        await client.get("/api/v1/quotes")

        response = await client.delete("/api/v1/cache")

        assert response.json()["cleared"] == 1


@pytest.mark.asyncio
class TestHistoryEndpoint:
    """Tests for the history endpoint."""

    async def test_real_history(self, client: AsyncClient, fake_finnhub):
        fake_finnhub.candles = [{"s": "ok", "t": [1704153600, 1704240000], "c": [185.6, 184.25]}]

        response = await client.get("/api/v1/stock/aapl/history")

        assert response.status_code == 200
        data = response.json()
        assert data["symbol"] == "AAPL"
        assert data["is_synthetic"] is False
        assert [p["close"] for p in data["points"]] == [185.6, 184.25]
        assert data["points"][0]["label"] == "Jan 2"

    async def test_synthetic_with_explicit_price(self, client: AsyncClient, fake_finnhub):
        fake_finnhub.candles = [{"s": "no_data"}]

        response = await client.get("/api/v1/stock/MSFT/history", params={"price": 300})

        data = response.json()
        assert data["is_synthetic"] is True
        assert len(data["points"]) == 31
        assert len(data["events"]) == 1

    async def test_synthetic_uses_live_quote_price(self, client: AsyncClient, fake_finnhub):
        fake_finnhub.candles = [429]
        fake_finnhub.quotes["TSLA"] = quote_body(200, 190)

        response = await client.get("/api/v1/stock/TSLA/history")

        data = response.json()
        assert response.status_code == 200
        assert data["is_synthetic"] is True
        assert 190 <= data["points"][0]["close"] <= 210
        assert data["events"][0]["severity"] == "warning"

    async def test_no_reference_price(self, client: AsyncClient, fake_finnhub):
        fake_finnhub.candles = [500]

        response = await client.get("/api/v1/stock/TSLA/history")

        assert response.status_code == 503

    async def test_untracked_symbol(self, client: AsyncClient):
        response = await client.get("/api/v1/stock/XYZ/history")

        assert response.status_code == 404

    async def test_negative_price_rejected(self, client: AsyncClient, fake_finnhub):
        fake_finnhub.candles = [{"s": "no_data"}]

        response = await client.get("/api/v1/stock/MSFT/history", params={"price": -100})

        assert response.status_code == 422
        assert fake_finnhub.calls == []

    async def test_nan_price_rejected(self, client: AsyncClient, fake_finnhub):
        fake_finnhub.candles = [{"s": "no_data"}]

        response = await client.get("/api/v1/stock/MSFT/history", params={"price": "nan"})

        assert response.status_code == 422
        assert fake_finnhub.calls == []


@pytest.mark.asyncio
class TestLifespan:
    """Tests for startup/shutdown hooks."""

    async def test_shutdown_rebuilds_services_on_fresh_client(self):
        async with lifespan(app):
            first_quotes = get_quote_service()
            first_history = get_history_fetcher()

        assert first_history._client.is_closed

        async with lifespan(app):
            second_quotes = get_quote_service()
            second_history = get_history_fetcher()
            assert second_quotes is not first_quotes
            assert second_history is not first_history
            assert not second_history._client.is_closed
            assert not second_quotes._client.is_closed
