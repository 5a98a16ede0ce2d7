from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, Optional


# Quote Schemas
class QuoteRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    name: str  # Display name, falls back to the symbol
    price: float = Field(default=0, ge=0)
    change_percent: float = 0.0  # Rounded to 2 places
    volume: int = Field(default=0, ge=0)


class HistoryPoint(BaseModel):
    label: str  # Short date, e.g. "Oct 9"
    close: float


class NotificationEvent(BaseModel):
    severity: Literal["info", "warning"]
    title: str
    message: str


# Response Schemas
class QuotesResponse(BaseModel):
    quotes: list[QuoteRecord] = []
    source: Literal["live", "cache"]
    total: int = 0  # Batch size before search filtering
    events: list[NotificationEvent] = []


class HistoryResponse(BaseModel):
    symbol: str
    points: list[HistoryPoint] = []
    is_synthetic: bool = False
    events: list[NotificationEvent] = []


class StatusResponse(BaseModel):
    api_key_configured: bool
    symbols: list[str]
    cache_ttl_seconds: int
    cache_age_seconds: Optional[float] = None
    rate_limit_calls_per_minute: Optional[int] = None
    rate_limit_calls_per_day: Optional[int] = None
