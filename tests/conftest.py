"""Pytest configuration and fixtures."""

import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import create_engine

from main import app
from screener.api.dependencies import get_controller, get_event_store, get_metrics_calculator
from screener.database.db import create_session_factory, init_db
from screener.models.market_data import DataSource, PricePoint, Quote
from screener.services.errors import NoDataError
from screener.services.key_value_store import InMemoryKeyValueStore
from screener.services.market_data_provider import MarketDataProvider
from screener.services.watchlist_controller import WatchlistController
from screener.utils.config import WatchlistConfig
from screener.utils.event_store import EventStore
from screener.utils.metrics import MetricsCalculator

RISING_PRICES = [100 + i for i in range(19)] + [120]
FALLING_PRICES = [round(120 - i * 20 / 19, 2) for i in range(20)]
FLAT_PRICES = [100.0] * 25


def make_series(prices: list[float]) -> list[PricePoint]:
    """Price points five minutes apart, oldest first."""
    start = datetime(2024, 3, 1, 14, 30, tzinfo=timezone.utc)
    return [
        PricePoint(timestamp=start + timedelta(minutes=5 * i), price=float(price))
        for i, price in enumerate(prices)
    ]


def make_quote(symbol: str, prices: list[float], volatility_percentile: int = 20) -> Quote:
    return Quote(
        symbol=symbol,
        display_name=f"{symbol} Inc.",
        current_price=float(prices[-1]) if prices else 0.0,
        price_series=make_series(prices),
        volatility_percentile=volatility_percentile,
        source=DataSource(name="Test Feed", url="https://example.com", fetched_at=datetime.now(timezone.utc)),
    )


class FakeProvider(MarketDataProvider):
    """Returns canned quotes; raises configured errors; records every call."""

    def __init__(self, quotes: dict[str, Quote] | None = None, failures: dict | None = None):
        self.quotes = dict(quotes or {})
        self.failures = dict(failures or {})
        self.calls: list[str] = []
        self.on_fetch = None

    def fetch_quote(self, symbol: str) -> Quote:
        self.calls.append(symbol)
        if self.on_fetch:
            self.on_fetch(symbol)
        if symbol in self.failures:
            raise self.failures[symbol]
        if symbol not in self.quotes:
            raise NoDataError(f"No chart data available for {symbol}", symbol)
        return self.quotes[symbol]


@pytest.fixture
def fake_provider():
    return FakeProvider(
        quotes={
            "AAPL": make_quote("AAPL", FLAT_PRICES, 40),
            "MSFT": make_quote("MSFT", RISING_PRICES, 20),
            "TSLA": make_quote("TSLA", FALLING_PRICES, 80),
            "F": make_quote("F", FLAT_PRICES, 10),
        }
    )


@pytest.fixture
def memory_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def event_store():
    return EventStore()


@pytest.fixture
def make_controller(fake_provider, memory_store, event_store):
    """Factory for controllers on a paused scheduler; all are shut down afterwards."""
    created = []

    def _make(provider=None, store=None, settings=None):
        # Paused, so scheduled refreshes never run behind the test's back.
        scheduler = BackgroundScheduler()
        scheduler.start(paused=True)
        controller = WatchlistController(
            provider=provider if provider is not None else fake_provider,
            store=store if store is not None else memory_store,
            settings=settings or WatchlistConfig(),
            event_store=event_store,
            scheduler=scheduler,
        )
        created.append(controller)
        return controller

    yield _make

    for controller in created:
        controller.shutdown()


@pytest.fixture
def controller(make_controller):
    return make_controller()


@pytest.fixture(scope="function")
def test_db():
    """Create a file-based test database."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
    init_db(engine)

    yield engine

    engine.dispose()
    try:
        os.unlink(db_path)
    except OSError:
        pass


@pytest.fixture
def session_factory(test_db):
    return create_session_factory(test_db)


@pytest.fixture
def test_client(controller, event_store):
    """Create a test client wired to the test controller."""
    app.dependency_overrides[get_controller] = lambda: controller
    app.dependency_overrides[get_event_store] = lambda: event_store
    app.dependency_overrides[get_metrics_calculator] = lambda: MetricsCalculator(event_store)

    from fastapi.testclient import TestClient
    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()
