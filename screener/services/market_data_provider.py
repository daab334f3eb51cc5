"""Market data provider for fetching quotes and recent intraday history."""

import math
import random
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote as url_quote
from urllib.parse import urlencode

import requests

from screener.models.market_data import DataSource, PricePoint, Quote
from screener.services.errors import NetworkError, NoDataError
from screener.utils.config import MarketDataConfig
from screener.utils.logger import StructuredLogger
from screener.utils.trace_context import get_current_trace

# Raised while reading a chart or quote payload whose shape is not what Yahoo documents.
MALFORMED_PAYLOAD_ERRORS = (TypeError, AttributeError, KeyError, IndexError, ValueError)


def random_volatility_percentile(symbol: str) -> int:
    """
    Placeholder volatility percentile in [0, 99].

    The chart feed carries no implied-volatility ranking, so this value is
    NOT authoritative. Swap in a real source via the provider's
    volatility_source argument.
    """
    return random.randint(0, 99)


class MarketDataProvider(ABC):
    """Source of quotes for the watchlist."""

    @abstractmethod
    def fetch_quote(self, symbol: str) -> Quote:
        """
        Fetch the current quote and recent price series for a symbol.

        Raises:
            NetworkError: If the source could not be reached or answered garbage
            NoDataError: If the source returned no price points
        """


class YahooFinanceProvider(MarketDataProvider):
    """Fetches 5-minute bars and quote metadata from the public Yahoo Finance API."""

    SOURCE_NAME = "Yahoo Finance"
    SOURCE_URL = "https://finance.yahoo.com"

    def __init__(
        self,
        settings: MarketDataConfig | None = None,
        volatility_source: Callable[[str], int] = random_volatility_percentile,
        session: requests.Session | None = None,
    ):
        """
        Initialize the provider.

        Args:
            settings: Endpoint, proxy and series settings (defaults to MarketDataConfig())
            volatility_source: Callable returning a 0-100 percentile for a symbol
            session: Optional requests session, mainly for connection reuse
        """
        self.settings = settings or MarketDataConfig()
        self.volatility_source = volatility_source
        self.session = session or requests.Session()
        self.logger = StructuredLogger("YahooFinanceProvider")

    def _build_url(self, url: str, params: dict[str, Any]) -> str:
        full_url = f"{url}?{urlencode(params)}" if params else url
        if self.settings.proxy_url:
            return self.settings.proxy_url.format(url=url_quote(full_url, safe=""))
        return full_url

    def _get_json(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        response = self.session.get(
            self._build_url(url, params),
            timeout=self.settings.timeout,
            headers={"User-Agent": "Mozilla/5.0"},
        )
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("Unexpected response payload")
        return data

    def fetch_quote(self, symbol: str) -> Quote:
        """
        Fetch a quote for one symbol.

        Args:
            symbol: Normalized ticker symbol (e.g., "AAPL")

        Returns:
            Quote with at most `max_points` chronological price points

        Raises:
            NetworkError: If the chart request or its JSON decoding failed
            NoDataError: If the chart is empty or not shaped as expected
        """
        trace_id = get_current_trace()
        self.logger.info(
            "Starting quote fetch",
            context={"trace_id": trace_id, "source": self.SOURCE_NAME, "symbol": symbol},
        )

        try:
            chart_json = self._get_json(
                f"{self.settings.chart_url}/{symbol}",
                {"range": self.settings.chart_range, "interval": self.settings.chart_interval},
            )
        except (requests.RequestException, ValueError) as e:
            self.logger.error(
                f"Error fetching chart data for {symbol}",
                context={"trace_id": trace_id, "symbol": symbol, "result": "failed"},
                exception=e,
            )
            raise NetworkError(f"Could not fetch chart data for {symbol}", symbol) from e

        try:
            quote = self._build_quote(symbol, chart_json)
        except MALFORMED_PAYLOAD_ERRORS as e:
            self.logger.error(
                f"Malformed chart data for {symbol}",
                context={"trace_id": trace_id, "symbol": symbol, "result": "malformed"},
                exception=e,
            )
            raise NoDataError(f"Unreadable chart data for {symbol}", symbol) from e

        self.logger.info(
            "Successfully fetched quote",
            context={
                "trace_id": trace_id,
                "source": self.SOURCE_NAME,
                "symbol": symbol,
                "result": "success",
                "current_price": quote.current_price,
                "points": len(quote.price_series),
            },
        )
        return quote

    def _build_quote(self, symbol: str, chart_json: dict[str, Any]) -> Quote:
        result = self._chart_result(chart_json)
        if result is None:
            self.logger.warning(
                "No chart data available",
                context={"symbol": symbol, "result": "not_found"},
            )
            raise NoDataError(f"No chart data available for {symbol}", symbol)

        price_series = parse_price_series(result)[-self.settings.max_points:]
        if not price_series:
            self.logger.warning(
                "Chart data contained no usable prices",
                context={"symbol": symbol, "result": "empty"},
            )
            raise NoDataError(f"No price data available for {symbol}", symbol)

        meta = result.get("meta") or {}
        quote_info = self._fetch_quote_info(symbol)

        display_name = (
            quote_info.get("longName")
            or quote_info.get("shortName")
            or meta.get("longName")
            or meta.get("shortName")
            or symbol
        )
        current_price = (
            price_series[-1].price
            or quote_info.get("regularMarketPrice")
            or meta.get("regularMarketPrice")
            or 0
        )
        volatility = min(max(int(self.volatility_source(symbol)), 0), 100)

        return Quote(
            symbol=quote_info.get("symbol") or symbol,
            display_name=str(display_name),
            current_price=float(current_price),
            price_series=price_series,
            volatility_percentile=volatility,
            source=DataSource(
                name=self.SOURCE_NAME,
                url=self.SOURCE_URL,
                fetched_at=datetime.now(timezone.utc),
            ),
        )

    @staticmethod
    def _chart_result(chart_json: dict[str, Any]) -> dict[str, Any] | None:
        results = (chart_json.get("chart") or {}).get("result") or []
        if not results:
            return None
        if not isinstance(results[0], dict):
            raise TypeError(f"Chart result is {type(results[0]).__name__}, expected an object")
        return results[0]

    def _fetch_quote_info(self, symbol: str) -> dict[str, Any]:
        """Name and market price from the quote endpoint; empty when unavailable."""
        try:
            data = self._get_json(self.settings.quote_url, {"symbols": symbol})
            results = (data.get("quoteResponse") or {}).get("result") or []
        except (requests.RequestException, *MALFORMED_PAYLOAD_ERRORS) as e:
            self.logger.warning(
                f"Quote metadata unavailable for {symbol}, using chart metadata",
                context={"symbol": symbol},
                exception=e,
            )
            return {}
        first = results[0] if isinstance(results, list) and results else None
        return first if isinstance(first, dict) else {}


def parse_price_series(chart_result: dict[str, Any]) -> list[PricePoint]:
    """
    Turn a Yahoo chart result into price points.

    Each bar uses its close, falling back to its open. Bars without a usable
    positive price are dropped. Prices are rounded to cents.
    """
    timestamps = chart_result.get("timestamp") or []
    quotes = ((chart_result.get("indicators") or {}).get("quote") or [{}])[0] or {}
    closes = quotes.get("close") or []
    opens = quotes.get("open") or []

    points = []
    for i, ts in enumerate(timestamps):
        close = closes[i] if i < len(closes) else None
        open_ = opens[i] if i < len(opens) else None
        price = close if close is not None else open_ if open_ is not None else 0
        if not isinstance(price, (int, float)) or not math.isfinite(price):
            continue
        price = round(float(price), 2)
        if price <= 0:
            continue
        points.append(
            PricePoint(
                timestamp=datetime.fromtimestamp(ts, tz=timezone.utc),
                price=price,
                is_extended_hours=False,
            )
        )
    return points
