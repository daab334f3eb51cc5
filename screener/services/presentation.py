"""Display helpers that turn watchlist entries into rows for the browser."""

from collections.abc import Sequence
from typing import Any

from screener.models.market_data import PricePoint
from screener.models.signal import Classification
from screener.models.watchlist import WatchlistEntry

SIGNAL_STYLES = {
    Classification.BUY: {"label": "BUY", "color": "#10b981", "icon": "trending-up"},
    Classification.HOLD: {"label": "HOLD", "color": "#f59e0b", "icon": "minus"},
    Classification.AVOID: {"label": "AVOID", "color": "#ef4444", "icon": "trending-down"},
}
NEUTRAL_COLOR = "#6b7280"


def volatility_band(percentile: int) -> str:
    """Bucket a volatility percentile into low (<30), mid (<70) or high."""
    if percentile < 30:
        return "low"
    if percentile < 70:
        return "mid"
    return "high"


def sparkline_points(
    series: Sequence[PricePoint],
    width: float = 100.0,
    height: float = 30.0,
) -> list[tuple[float, float]]:
    """
    Scale a price series into (x, y) canvas coordinates.

    x runs evenly from 0 to width. y is inverted so higher prices sit higher,
    with 10% of the height kept as padding top and bottom. A flat series is
    drawn along the bottom padding line.
    """
    if not series:
        return []

    prices = [point.price for point in series]
    min_price = min(prices)
    price_range = (max(prices) - min_price) or 1
    padding = height * 0.1
    drawable = height - 2 * padding

    if len(prices) == 1:
        return [(0.0, round(height - padding, 2))]

    step = width / (len(prices) - 1)
    return [
        (
            round(i * step, 2),
            round(height - padding - ((price - min_price) / price_range) * drawable, 2),
        )
        for i, price in enumerate(prices)
    ]


def build_row(
    entry: WatchlistEntry,
    sparkline_width: float = 100.0,
    sparkline_height: float = 30.0,
) -> dict[str, Any]:
    """Flatten an entry into the JSON row the front end renders."""
    quote = entry.quote
    signal = entry.signal
    style = SIGNAL_STYLES.get(signal.classification) if signal else None

    return {
        "symbol": entry.symbol,
        "display_name": quote.display_name if quote else entry.symbol,
        "load_state": entry.load_state.value,
        "last_error": entry.last_error,
        "updated_at": entry.updated_at.isoformat() if entry.updated_at else None,
        "current_price": round(quote.current_price, 2) if quote else None,
        "volatility_percentile": quote.volatility_percentile if quote else None,
        "volatility_band": volatility_band(quote.volatility_percentile) if quote else None,
        "signal": signal.classification.value if signal else None,
        "signal_label": style["label"] if style else None,
        "signal_color": style["color"] if style else NEUTRAL_COLOR,
        "signal_icon": style["icon"] if style else None,
        "reasons": list(signal.reasons) if signal else [],
        "strategy_hint": signal.strategy_hint if signal else None,
        "sparkline": sparkline_points(
            quote.price_series if quote else [], sparkline_width, sparkline_height
        ),
        "source": quote.source.name if quote and quote.source else None,
    }
