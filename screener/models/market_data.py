"""Market data models for quotes and their price history."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class DataSource:
    """Represents the source of market data."""

    name: str
    url: str
    fetched_at: datetime


@dataclass(frozen=True)
class PricePoint:
    """A single observed price in a chronological series."""

    timestamp: datetime
    price: float
    is_extended_hours: bool = False


@dataclass
class Quote:
    """Everything one fetch returns for a symbol; replaced wholesale on refresh."""

    symbol: str
    display_name: str
    current_price: float
    price_series: list[PricePoint] = field(default_factory=list)
    volatility_percentile: int = 0  # 0-100
    source: DataSource | None = None
