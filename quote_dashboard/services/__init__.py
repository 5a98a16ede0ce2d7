"""
Services package for the Quote Dashboard API.

This package contains the data pipeline separated from the API layer.
"""
from .cache import QuoteCache, get_quote_cache
from .finnhub_client import FinnhubClient, RateLimitError, get_finnhub_client
from .quote_fetcher import QuoteFetcher, BatchLoader, NoDataError
from .quote_service import QuoteService, DataUnavailableError, filter_quotes, get_quote_service
from .history import HistoryFetcher, HistoryUnavailableError, get_history_fetcher
from .notifier import EventCollector

__all__ = [
    "QuoteCache",
    "get_quote_cache",
    "FinnhubClient",
    "RateLimitError",
    "get_finnhub_client",
    "QuoteFetcher",
    "BatchLoader",
    "NoDataError",
    "QuoteService",
    "DataUnavailableError",
    "filter_quotes",
    "get_quote_service",
    "HistoryFetcher",
    "HistoryUnavailableError",
    "get_history_fetcher",
    "EventCollector",
]
