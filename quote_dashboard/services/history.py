"""
30-day price history for the chart.

Fetches daily candles from Finnhub through the retry policy. When the API
keeps failing, or returns a payload without the timestamp/close arrays,
a synthetic random-walk series is returned instead so the chart still has
something to draw. Synthetic series are flagged as such.
"""
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

import pytz

from ..config import Settings, settings
from ..logging_config import get_logger
from ..schemas import HistoryPoint
from .finnhub_client import FinnhubClient, get_finnhub_client
from .notifier import EventSink, emit
from .retry import RetryExhaustedError, RetryPolicy

logger = get_logger(__name__)

# US Eastern timezone for "today" in simulated series
MARKET_TZ = pytz.timezone('US/Eastern')


class HistoryUnavailableError(Exception):
    """Raised when a fallback is needed but no reference price is known."""


@dataclass
class HistoryResult:
    points: List[HistoryPoint] = field(default_factory=list)
    is_synthetic: bool = False


def format_label(dt: datetime) -> str:
    """Short chart label, e.g. "Oct 9"."""
    return f"{dt.strftime('%b')} {dt.day}"


def parse_candles(payload: Dict[str, Any], max_points: int) -> Optional[List[HistoryPoint]]:
    """
    Convert a Finnhub candle payload into chart points.

    Args:
        payload: Raw /stock/candle response.
        max_points: Keep only the most recent N entries.

    Returns:
        Points oldest first, or None if the payload lacks the timestamp or
        close arrays (which triggers the fallback).
    """
    timestamps = payload.get("t")
    closes = payload.get("c")
    if not isinstance(timestamps, list) or not isinstance(closes, list):
        return None
    count = min(len(timestamps), len(closes))
    if count == 0:
        return None

    start = max(0, count - max_points)
    points = []
    try:
        for ts, close in zip(timestamps[start:count], closes[start:count]):
            # Daily candles are stamped at 00:00 UTC
            dt = datetime.fromtimestamp(int(ts), tz=pytz.utc)
            points.append(HistoryPoint(label=format_label(dt), close=float(close)))
    except (TypeError, ValueError, OverflowError) as e:
        logger.warning(f"Malformed candle entry: {e}")
        return None
    return points


def generate_fallback_series(
    current_price: float,
    rng: Optional[random.Random] = None,
    days: int = 30,
    max_step_pct: float = 5.0,
    today: Optional[datetime] = None,
) -> List[HistoryPoint]:
    """
    Build a plausible-looking random walk ending today.

    Produces days + 1 points (days ago down to today). Each value is the
    previous one times (1 + u) with u uniform in [-max_step_pct, +max_step_pct)
    percent; the first step starts from current_price. The step bound holds
    for the unrounded walk; rounding to cents can exceed it for sub-dollar prices.

    Args:
        current_price: Starting price for the walk.
        rng: Random source. Pass a seeded random.Random for repeatable output.
        days: Number of days back from today.
        max_step_pct: Largest per-step move in percent.
        today: End date of the series. Defaults to now in US/Eastern.

    Returns:
        List of points oldest first, closes rounded to 2 places.
    """
    rng = rng or random.Random()
    today = today or datetime.now(MARKET_TZ)
    spread = 2 * max_step_pct / 100

    points = []
    price = current_price
    for i in range(days, -1, -1):
        day = today - timedelta(days=i)
        price = price * (1 + (rng.random() - 0.5) * spread)
        points.append(HistoryPoint(label=format_label(day), close=round(price, 2)))
    return points


class HistoryFetcher:
    """Daily close history with retry/backoff and synthetic fallback."""

    def __init__(
        self,
        client: Optional[FinnhubClient] = None,
        config: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the history fetcher.

        Args:
            client: Finnhub client instance.
            config: Settings with history/retry parameters.
            rng: Random source for fallback series.
            sleep: Awaitable sleep used between retries (tests pass a no-op).
            now: Returns the current aware datetime.
        """
        self._client = client or get_finnhub_client()
        self._config = config or settings
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._now = now or (lambda: datetime.now(MARKET_TZ))

    def _policy(self, max_retries: Optional[int]) -> RetryPolicy:
        return RetryPolicy(
            max_retries=max_retries if max_retries is not None else self._config.history_max_retries,
            base_delay=self._config.history_base_delay,
            rate_limit_delay=self._config.history_rate_limit_delay,
            max_delay=self._config.history_max_delay,
            sleep=self._sleep,
        )

    async def fetch_history(
        self,
        symbol: str,
        current_price: Optional[float] = None,
        max_retries: Optional[int] = None,
        sink: Optional[EventSink] = None,
        price_lookup: Optional[Callable[[], Awaitable[Optional[float]]]] = None,
    ) -> HistoryResult:
        """
        Get up to the last 30 daily closes for a symbol.

        Args:
            symbol: Ticker symbol.
            current_price: Starting price for a fallback series.
            max_retries: Retry budget. Defaults to config value (2).
            sink: Optional event sink for fallback warnings.
            price_lookup: Called for a reference price when a fallback is
                needed and current_price is None.

        Returns:
            HistoryResult with real or synthetic points.

        Raises:
            HistoryUnavailableError: If a fallback is needed but no reference
                price can be found.
        """
        end = self._now()
        start = end - timedelta(days=self._config.history_days)
        policy = self._policy(max_retries)

        try:
            payload = await policy.run(
                lambda: self._client.get_candles(symbol, start, end),
                description=f"history for {symbol}",
            )
        except RetryExhaustedError as e:
            logger.error(f"Error fetching historical data for {symbol}: {e}")
            emit(
                sink,
                "warning",
                "Historical Data Unavailable",
                f"Failed to load historical data for {symbol}. Showing simulated data.",
            )
            return await self._fallback(symbol, current_price, price_lookup)

        points = parse_candles(payload, self._config.history_max_points)
        if points is None:
            logger.info(f"No candle data in response for {symbol}, using simulated data")
            emit(
                sink,
                "info",
                "Simulated Data",
                f"No historical data returned for {symbol}. Showing simulated data.",
            )
            return await self._fallback(symbol, current_price, price_lookup)

        logger.debug(f"Loaded {len(points)} history points for {symbol}")
        return HistoryResult(points=points, is_synthetic=False)

    async def _fallback(
        self,
        symbol: str,
        current_price: Optional[float],
        price_lookup: Optional[Callable[[], Awaitable[Optional[float]]]],
    ) -> HistoryResult:
        if current_price is None and price_lookup is not None:
            current_price = await price_lookup()
        if current_price is None:
            raise HistoryUnavailableError(f"No reference price available for {symbol}")

        points = generate_fallback_series(
            current_price,
            rng=self._rng,
            days=self._config.history_days,
            max_step_pct=self._config.fallback_max_step_pct,
            today=self._now(),
        )
        return HistoryResult(points=points, is_synthetic=True)


# Singleton instance
_history_fetcher: Optional[HistoryFetcher] = None


def get_history_fetcher() -> HistoryFetcher:
    """Get the singleton history fetcher instance."""
    global _history_fetcher
    if _history_fetcher is None:
        _history_fetcher = HistoryFetcher()
    return _history_fetcher


def reset_history_fetcher() -> None:
    """Drop the singleton so the next request builds one on a fresh client."""
    global _history_fetcher
    _history_fetcher = None
