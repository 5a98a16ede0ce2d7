"""
Orchestrated quote refresh.

Every refresh tries a live batch first. Only when that fails entirely does it
fall back to the cached batch, and only while the cache is fresh.
"""
from typing import List, Optional, Sequence, Tuple

from ..config import Settings, require_api_key, settings
from ..logging_config import get_logger
from ..schemas import QuoteRecord
from .cache import QuoteCache, get_quote_cache
from .finnhub_client import FinnhubClient, get_finnhub_client
from .notifier import EventSink, emit
from .quote_fetcher import BatchLoader, NoDataError, QuoteFetcher

logger = get_logger(__name__)


class DataUnavailableError(Exception):
    """Raised when neither a live batch nor a fresh cached batch is available."""


def filter_quotes(quotes: Sequence[QuoteRecord], search: Optional[str]) -> List[QuoteRecord]:
    """
    Case-insensitive substring match on symbol or display name.

    An empty or missing search term returns every quote.
    """
    term = (search or "").strip().lower()
    if not term:
        return list(quotes)
    return [
        quote for quote in quotes
        if term in quote.symbol.lower() or term in quote.name.lower()
    ]


class QuoteService:
    """Live-then-cache quote refresh for the fixed symbol universe."""

    def __init__(
        self,
        client: Optional[FinnhubClient] = None,
        cache: Optional[QuoteCache] = None,
        config: Optional[Settings] = None,
    ):
        """
        Initialize the quote service.

        Args:
            client: Finnhub client instance.
            cache: Quote cache instance.
            config: Settings providing the API key and symbol universe.
        """
        self._config = config or settings
        self._client = client or get_finnhub_client()
        self._cache = cache or get_quote_cache()
        self._loader = BatchLoader(QuoteFetcher(self._client), self._cache)

    @property
    def config(self) -> Settings:
        return self._config

    @property
    def cache(self) -> QuoteCache:
        return self._cache

    @property
    def symbols(self) -> List[str]:
        return list(self._config.symbols)

    async def fetch_quotes(
        self,
        sink: Optional[EventSink] = None,
    ) -> Tuple[List[QuoteRecord], str]:
        """
        Refresh quotes, falling back to the cache on total failure.

        Args:
            sink: Optional event sink for user-facing notifications.

        Returns:
            Tuple of (records, source) where source is "live" or "cache".

        Raises:
            ConfigurationError: If no API key is configured. Raised before
                any network activity.
            DataUnavailableError: If the live fetch failed and the cache is
                empty or stale.
        """
        require_api_key(self._config)

        try:
            records = await self._loader.load(self._config.symbols, sink=sink)
            return records, "live"
        except NoDataError as e:
            logger.error(f"Error fetching stock data: {e}")
        except Exception as e:
            logger.exception(f"Unexpected error fetching stock data: {e}")

        cached = self._cache.fetch_if_fresh()
        if cached:
            logger.info("Returning cached data due to API failure")
            emit(
                sink,
                "warning",
                "Using Cached Data",
                "API temporarily unavailable. Showing cached data from previous session.",
            )
            return cached, "cache"

        raise DataUnavailableError("Failed to fetch stock data from Finnhub API")

    async def lookup_price(self, symbol: str) -> Optional[float]:
        """
        Find a reference price for a symbol.

        Uses the fresh cache first, then a single live quote.
        """
        for quote in self._cache.fetch_if_fresh():
            if quote.symbol == symbol:
                return quote.price
        if not self._client.has_api_key:
            return None
        record = await QuoteFetcher(self._client).fetch_quote(symbol)
        return record.price if record else None


# Singleton instance
_quote_service: Optional[QuoteService] = None


def get_quote_service() -> QuoteService:
    """Get the singleton quote service instance."""
    global _quote_service
    if _quote_service is None:
        _quote_service = QuoteService()
    return _quote_service


def reset_quote_service() -> None:
    """Drop the singleton so the next request builds one on a fresh client."""
    global _quote_service
    _quote_service = None
