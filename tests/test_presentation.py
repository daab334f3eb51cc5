"""Tests for watchlist row presentation helpers."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from screener.models.watchlist import LoadState, WatchlistEntry
from screener.services.presentation import (
    NEUTRAL_COLOR,
    build_row,
    sparkline_points,
    volatility_band,
)
from screener.services.signal_engine import classify
from conftest import FALLING_PRICES, RISING_PRICES, make_quote, make_series


@pytest.mark.parametrize(
    "percentile,band",
    [(0, "low"), (29, "low"), (30, "mid"), (69, "mid"), (70, "high"), (100, "high")],
)
def test_volatility_band(percentile, band):
    assert volatility_band(percentile) == band


class TestSparklinePoints:
    """Tests for sparkline scaling."""

    def test_empty_series(self):
        assert sparkline_points([]) == []

    def test_single_point_sits_on_bottom_padding(self):
        assert sparkline_points(make_series([42.0])) == [(0.0, 27.0)]

    def test_flat_series_is_drawn_along_bottom(self):
        points = sparkline_points(make_series([10.0, 10.0, 10.0]))

        assert points == [(0.0, 27.0), (50.0, 27.0), (100.0, 27.0)]

    def test_min_and_max_touch_padding_lines(self):
        points = sparkline_points(make_series([10.0, 20.0, 15.0]))

        assert points == [(0.0, 27.0), (50.0, 3.0), (100.0, 15.0)]

    def test_custom_canvas(self):
        points = sparkline_points(make_series([1.0, 2.0]), width=200, height=50)

        assert points == [(0.0, 45.0), (200.0, 5.0)]

    @given(st.lists(st.floats(min_value=0.01, max_value=10000), min_size=2, max_size=60))
    def test_points_stay_inside_padded_canvas(self, prices):
        """Every point lies within the canvas width and its padded height."""
        points = sparkline_points(make_series(prices))

        assert len(points) == len(prices)
        assert points[0][0] == 0.0
        assert points[-1][0] == 100.0
        assert all(3.0 <= y <= 27.0 for _, y in points)


class TestBuildRow:
    """Tests for building display rows."""

    def test_row_without_data(self):
        row = build_row(WatchlistEntry(symbol="AAPL"))

        assert row["symbol"] == "AAPL"
        assert row["display_name"] == "AAPL"
        assert row["load_state"] == "idle"
        assert row["signal"] is None
        assert row["signal_color"] == NEUTRAL_COLOR
        assert row["reasons"] == []
        assert row["sparkline"] == []
        assert row["current_price"] is None

    def test_row_with_buy_signal(self):
        quote = make_quote("MSFT", RISING_PRICES, 20)
        entry = WatchlistEntry(symbol="MSFT")
        entry.apply(quote, classify(quote.price_series, 20))

        row = build_row(entry)

        assert row["display_name"] == "MSFT Inc."
        assert row["load_state"] == "ready"
        assert row["current_price"] == 120.0
        assert row["volatility_band"] == "low"
        assert row["signal"] == "buy"
        assert row["signal_label"] == "BUY"
        assert row["signal_color"] == "#10b981"
        assert row["signal_icon"] == "trending-up"
        assert len(row["reasons"]) == 3
        assert row["strategy_hint"] == "Low volatility favors buying stock or long options"
        assert len(row["sparkline"]) == len(RISING_PRICES)
        assert row["source"] == "Test Feed"
        assert row["updated_at"] is not None

    def test_failed_row_keeps_stale_data(self):
        quote = make_quote("TSLA", FALLING_PRICES, 80)
        entry = WatchlistEntry(symbol="TSLA")
        entry.apply(quote, classify(quote.price_series, 80))
        entry.mark_failed("Failed to load TSLA. Please check the ticker symbol.")

        row = build_row(entry)

        assert row["load_state"] == LoadState.FAILED.value
        assert row["last_error"] == "Failed to load TSLA. Please check the ticker symbol."
        assert row["signal"] == "avoid"
        assert row["signal_color"] == "#ef4444"
        assert row["volatility_band"] == "high"

    def test_row_sparkline_uses_requested_canvas(self):
        quote = make_quote("MSFT", [1.0, 2.0], 20)
        entry = WatchlistEntry(symbol="MSFT")
        entry.apply(quote, classify(quote.price_series, 20))

        row = build_row(entry, sparkline_width=200, sparkline_height=50)

        assert row["sparkline"] == [(0.0, 45.0), (200.0, 5.0)]
