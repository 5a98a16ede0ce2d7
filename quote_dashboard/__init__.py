"""Quote Dashboard: near-real-time quotes and 30-day history from Finnhub."""
