"""
Quote fetching for the fixed symbol universe.

QuoteFetcher turns one symbol into one QuoteRecord (quote + profile name).
BatchLoader fans it out over the whole universe on the event loop, keeps the
survivors and stores them in the cache.
"""
import asyncio
from typing import List, Optional, Sequence

from ..logging_config import get_logger
from ..schemas import QuoteRecord
from .cache import QuoteCache
from .calculations import StockCalculations
from .finnhub_client import FinnhubClient
from .notifier import EventSink, emit

logger = get_logger(__name__)


class NoDataError(Exception):
    """Raised when a batch refresh produced no quotes at all."""


class QuoteFetcher:
    """Fetches and normalizes a single symbol's quote."""

    def __init__(self, client: FinnhubClient):
        self._client = client

    async def fetch_quote(self, symbol: str) -> Optional[QuoteRecord]:
        """
        Fetch the current quote and display name for a symbol.

        Never raises: any failure on the quote request (transport, 429,
        bad payload) is logged and reported as None so the batch can
        continue with partial data.

        Args:
            symbol: Ticker symbol.

        Returns:
            QuoteRecord, or None if the quote could not be fetched.
        """
        calc = StockCalculations()
        try:
            quote = await self._client.get_quote(symbol)
            price = max(calc.safe_float(quote.get("c")), 0.0)
            previous_close = calc.safe_float(quote.get("pc"))
            volume = max(calc.safe_int(quote.get("v")), 0)
        except Exception as e:
            logger.warning(f"Failed to fetch {symbol} from Finnhub: {e}")
            return None

        name = await self._fetch_display_name(symbol)

        return QuoteRecord(
            symbol=symbol,
            name=name,
            price=price,
            change_percent=calc.calculate_change_percent(price, previous_close),
            volume=volume,
        )

    async def _fetch_display_name(self, symbol: str) -> str:
        """Resolve the company name, falling back to the symbol."""
        try:
            profile = await self._client.get_profile(symbol)
        except Exception as e:
            logger.debug(f"Profile lookup failed for {symbol}, using symbol as name: {e}")
            return symbol
        name = profile.get("name")
        if isinstance(name, str) and name.strip():
            return name.strip()
        return symbol


class BatchLoader:
    """Fetches the whole symbol universe concurrently and caches the result."""

    def __init__(self, fetcher: QuoteFetcher, cache: QuoteCache):
        self._fetcher = fetcher
        self._cache = cache

    async def load(
        self,
        symbols: Sequence[str],
        sink: Optional[EventSink] = None,
    ) -> List[QuoteRecord]:
        """
        Fetch every symbol and keep the successes.

        Args:
            symbols: Symbols to fetch. Duplicates are fetched once.
            sink: Optional event sink for the summary notification.

        Returns:
            Successful quote records (at least one).

        Raises:
            NoDataError: If no symbol could be fetched.
        """
        unique_symbols = list(dict.fromkeys(symbols))

        results = await asyncio.gather(
            *(self._fetcher.fetch_quote(symbol) for symbol in unique_symbols)
        )
        records = [record for record in results if record is not None]

        failed = len(unique_symbols) - len(records)
        if failed:
            logger.info(f"Dropped {failed}/{len(unique_symbols)} symbols from batch")

        if not records:
            raise NoDataError("No valid stock data received from API")

        self._cache.store(records)
        emit(
            sink,
            "info",
            "Data Updated",
            f"Successfully loaded {len(records)} stocks with real-time data from Finnhub.",
        )
        return records
