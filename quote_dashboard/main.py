"""
Quote Dashboard API

Main FastAPI application with versioned API endpoints.
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from .config import ConfigurationError, require_api_key, settings
from .logging_config import get_logger, setup_logging
from .schemas import HistoryResponse, QuotesResponse, StatusResponse
from .services import (
    DataUnavailableError,
    EventCollector,
    HistoryFetcher,
    HistoryUnavailableError,
    QuoteService,
    filter_quotes,
    get_history_fetcher,
    get_quote_service,
)
from .services.finnhub_client import close_finnhub_client
from .services.history import reset_history_fetcher
from .services.quote_service import reset_quote_service

# Setup logging
setup_logging()
logger = get_logger(__name__)


def configuration_error(e: ConfigurationError) -> HTTPException:
    return HTTPException(
        status_code=500,
        detail={"title": "Configuration Error", "message": str(e), "retryable": False},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    if not (settings.finnhub_api_key or "").strip():
        logger.error("FINNHUB_API_KEY is not set; quote endpoints will fail until it is configured")
    else:
        logger.info(f"Tracking {len(settings.symbols)} symbols: {', '.join(settings.symbols)}")

    yield

    await close_finnhub_client()
    # Services hold the closed client, rebuild them on next use
    reset_quote_service()
    reset_history_fetcher()
    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.app_name,
    description="API serving near-real-time quotes and 30-day price history",
    version=settings.app_version,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# API v1 Endpoints
# ============================================================================

@app.get("/api/v1/health")
async def health_check():
    return {"status": "healthy", "version": settings.app_version}


@app.get("/api/v1/symbols")
async def get_symbols(quote_service: QuoteService = Depends(get_quote_service)):
    """Get the fixed symbol universe."""
    return {"symbols": quote_service.symbols}


@app.get("/api/v1/status", response_model=StatusResponse)
async def get_status(quote_service: QuoteService = Depends(get_quote_service)):
    """Report configuration and cache state. Rate limits are informational."""
    return StatusResponse(
        api_key_configured=bool((quote_service.config.finnhub_api_key or "").strip()),
        symbols=quote_service.symbols,
        cache_ttl_seconds=quote_service.cache.ttl_seconds,
        cache_age_seconds=quote_service.cache.age_seconds,
        rate_limit_calls_per_minute=quote_service.config.rate_limit_calls_per_minute,
        rate_limit_calls_per_day=quote_service.config.rate_limit_calls_per_day,
    )


# ============ Quote Endpoints ============

@app.get("/api/v1/quotes", response_model=QuotesResponse)
async def get_quotes(
    search: Optional[str] = None,
    quote_service: QuoteService = Depends(get_quote_service)
):
    """
    Refresh quotes for every tracked symbol.

    Always attempts a live fetch; falls back to the cached batch (with a
    warning event) if the live fetch fails and the cache is fresh.

    Args:
        search: Optional case-insensitive filter on symbol or company name.
    """
    collector = EventCollector()
    try:
        records, source = await quote_service.fetch_quotes(sink=collector)
    except ConfigurationError as e:
        raise configuration_error(e)
    except DataUnavailableError as e:
        raise HTTPException(
            status_code=503,
            detail={
                "title": "API Error",
                "message": f"{e}. Please try again later.",
                "retryable": True,
            },
        )

    return QuotesResponse(
        quotes=filter_quotes(records, search),
        source=source,
        total=len(records),
        events=collector.events,
    )


# ============ History Endpoints ============

@app.get("/api/v1/stock/{symbol}/history", response_model=HistoryResponse)
async def get_stock_history(
    symbol: str,
    price: Optional[float] = Query(None, ge=0, allow_inf_nan=False),
    quote_service: QuoteService = Depends(get_quote_service),
    history_fetcher: HistoryFetcher = Depends(get_history_fetcher)
):
    """
    Get up to 30 daily closes for a tracked symbol.

    Falls back to a simulated series (is_synthetic=true) when the API is
    unavailable.

    Args:
        symbol: Ticker symbol from the tracked universe.
        price: Current price to start a simulated series from. Looked up
            from the cache or a live quote when omitted.
    """
    symbol = symbol.strip().upper()
    if symbol not in quote_service.symbols:
        raise HTTPException(status_code=404, detail=f"Symbol not tracked: {symbol}")

    try:
        require_api_key(quote_service.config)
    except ConfigurationError as e:
        raise configuration_error(e)

    collector = EventCollector()
    try:
        result = await history_fetcher.fetch_history(
            symbol,
            current_price=price,
            sink=collector,
            price_lookup=lambda: quote_service.lookup_price(symbol),
        )
    except HistoryUnavailableError as e:
        raise HTTPException(
            status_code=503,
            detail={"title": "API Error", "message": str(e), "retryable": True},
        )

    return HistoryResponse(
        symbol=symbol,
        points=result.points,
        is_synthetic=result.is_synthetic,
        events=collector.events,
    )


# ============ Cache Management ============

@app.delete("/api/v1/cache")
async def clear_quote_cache(quote_service: QuoteService = Depends(get_quote_service)):
    """Clear the cached quote batch."""
    cleared = quote_service.cache.clear()
    return {"message": "Cleared cached quotes", "cleared": cleared}
