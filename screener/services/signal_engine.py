"""Signal engine: trend and momentum classification of a price series."""

import time
from collections.abc import Sequence

from screener.models.market_data import PricePoint, Quote
from screener.models.signal import Classification, SignalResult
from screener.utils.event_store import EventStore
from screener.utils.logger import StructuredLogger
from screener.utils.trace_context import get_current_trace

SMA_PERIOD = 20
MOMENTUM_PERIOD = 5

BUY_MOMENTUM = 0.6
AVOID_MOMENTUM = 0.4
LOW_VOLATILITY = 50
HIGH_VOLATILITY = 70


def moving_average(prices: Sequence[float], period: int = SMA_PERIOD) -> float | None:
    """Arithmetic mean of the last `period` prices, or None when there are fewer."""
    if len(prices) < period:
        return None
    return sum(prices[-period:]) / period


def momentum_score(prices: Sequence[float], period: int = MOMENTUM_PERIOD) -> float:
    """
    Fraction of up-moves among the last `period` prices.

    Counts adjacent pairs where the later price is strictly higher and divides
    by the number of pairs (period - 1). Returns 0.0 for a series shorter
    than `period`.

    Raises:
        ValueError: If period is less than 2
    """
    if period < 2:
        raise ValueError(f"Momentum period must be at least 2, got {period}")
    if len(prices) < period:
        return 0.0

    recent = prices[-period:]
    up_count = sum(1 for previous, current in zip(recent, recent[1:]) if current > previous)
    return up_count / (period - 1)


def _percent(momentum: float) -> str:
    return f"{momentum * 100:.0f}%"


def classify(price_series: Sequence[PricePoint], volatility_percentile: int) -> SignalResult:
    """
    Classify a price series as buy, hold or avoid.

    Buy needs an uptrend over the 20-period SMA, momentum above 0.6 and a
    volatility percentile under 50. Avoid needs a downtrend with momentum
    under 0.4. Anything else, including a series too short for the SMA, is
    a hold. The checks run in that order.
    """
    prices = [point.price for point in price_series]
    current_price = prices[-1] if prices else None
    sma = moving_average(prices, SMA_PERIOD)
    momentum = momentum_score(prices, MOMENTUM_PERIOD)

    is_uptrend = sma is not None and current_price > sma
    is_downtrend = sma is not None and current_price < sma
    high_volatility = volatility_percentile > HIGH_VOLATILITY

    if is_uptrend and momentum > BUY_MOMENTUM and volatility_percentile < LOW_VOLATILITY:
        return SignalResult(
            classification=Classification.BUY,
            reasons=[
                f"Price above 20-SMA (${sma:.2f}) - uptrend confirmed",
                f"Strong momentum ({_percent(momentum)} up moves)",
                f"Low volatility percentile ({volatility_percentile}%) - favorable for long positions",
            ],
            strategy_hint="Low volatility favors buying stock or long options",
            sma=sma,
            momentum=momentum,
        )

    if is_downtrend and momentum < AVOID_MOMENTUM:
        return SignalResult(
            classification=Classification.AVOID,
            reasons=[
                f"Price below 20-SMA (${sma:.2f}) - downtrend",
                f"Weak momentum ({_percent(momentum)} up moves)",
                "Unfavorable technical setup",
            ],
            strategy_hint=(
                "High volatility: consider waiting or selling premium if experienced"
                if high_volatility
                else "Wait for better entry"
            ),
            sma=sma,
            momentum=momentum,
        )

    return SignalResult(
        classification=Classification.HOLD,
        reasons=[
            "Mixed technical signals",
            f"Price near 20-SMA (${sma:.2f})" if sma is not None else "Consolidating",
            f"Moderate momentum ({_percent(momentum)} up moves)",
        ],
        strategy_hint=(
            "High volatility: premium selling may be favorable"
            if high_volatility
            else "Wait for clearer direction"
        ),
        sma=sma,
        momentum=momentum,
    )


class SignalEngine:
    """Runs classify() on fetched quotes and records what it decided."""

    def __init__(self, event_store: EventStore | None = None):
        """
        Initialize the signal engine.

        Args:
            event_store: Optional event store for recording analysis events
        """
        self.logger = StructuredLogger("SignalEngine")
        self.event_store = event_store

    def evaluate(self, quote: Quote) -> SignalResult:
        """
        Classify a quote's price series.

        Args:
            quote: Freshly fetched quote

        Returns:
            SignalResult for the quote
        """
        start_time = time.time()
        result = classify(quote.price_series, quote.volatility_percentile)
        duration_ms = (time.time() - start_time) * 1000

        context = {
            "symbol": quote.symbol,
            "classification": result.classification.value,
            "sma": result.sma,
            "momentum": result.momentum,
            "volatility_percentile": quote.volatility_percentile,
            "points": len(quote.price_series),
        }
        self.logger.info(f"Signal computed for {quote.symbol}", context=context)

        if self.event_store:
            self.event_store.add_event(
                trace_id=get_current_trace(),
                event_type="analysis_complete",
                component="SignalEngine",
                message=f"Analysis completed for {quote.symbol}",
                context=context,
                duration_ms=duration_ms,
            )

        return result
