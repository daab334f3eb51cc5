"""Watchlist controller: tracked symbols, their data, persistence and the refresh schedule."""

import json
import re
import threading
import time
from datetime import datetime, timezone
from typing import Any

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from screener.models.market_data import Quote
from screener.models.watchlist import LoadState, WatchlistEntry
from screener.services.errors import (
    DuplicateSymbolError,
    FetchError,
    InvalidFormatError,
    StorageError,
    WatchlistError,
)
from screener.services.key_value_store import KeyValueStore
from screener.services.market_data_provider import MarketDataProvider
from screener.services.signal_engine import SignalEngine
from screener.utils.config import WatchlistConfig
from screener.utils.event_store import EventStore
from screener.utils.logger import StructuredLogger
from screener.utils.trace_context import get_current_trace, traced

SYMBOL_PATTERN = re.compile(r"^[A-Z]{1,5}$")
REFRESH_JOB_ID = "watchlist_refresh"


def normalize_symbol(raw: str | None) -> str:
    """Trim and uppercase user input."""
    return (raw or "").strip().upper()


class WatchlistController:
    """
    Owns the watchlist and every change made to it.

    Symbols keep their insertion order; each has one WatchlistEntry. State is
    guarded by a re-entrant lock that is never held across a fetch, so a
    symbol can be removed while a refresh pass is waiting on the network.
    Refresh passes are sequential and never overlap.
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        store: KeyValueStore,
        settings: WatchlistConfig | None = None,
        signal_engine: SignalEngine | None = None,
        event_store: EventStore | None = None,
        scheduler: BackgroundScheduler | None = None,
    ):
        """
        Initialize the controller.

        Args:
            provider: Source of quotes
            store: Where the ordered symbol list is persisted
            settings: Refresh interval, storage key and refresh policy
            signal_engine: Classifier for fetched quotes
            event_store: Optional event store for tracking operations
            scheduler: APScheduler scheduler that runs the periodic refresh
        """
        self.provider = provider
        self.store = store
        self.settings = settings or WatchlistConfig()
        self.event_store = event_store
        self.signal_engine = signal_engine or SignalEngine(event_store)
        self.scheduler = scheduler or BackgroundScheduler()
        self.logger = StructuredLogger("WatchlistController")

        self._symbols: list[str] = []
        self._entries: dict[str, WatchlistEntry] = {}
        self._pending: set[str] = set()
        self._error_message: str | None = None
        self._started = False
        self._lock = threading.RLock()
        self._refresh_lock = threading.Lock()

    # -- read access ---------------------------------------------------------

    @property
    def symbols(self) -> list[str]:
        """Tracked symbols in the order they were added."""
        with self._lock:
            return list(self._symbols)

    @property
    def error_message(self) -> str | None:
        """The one current user-visible error, if any."""
        with self._lock:
            return self._error_message

    @property
    def pending_symbols(self) -> list[str]:
        """Symbols whose first fetch (from add_symbol) is in flight."""
        with self._lock:
            return sorted(self._pending)

    def get_entry(self, symbol: str) -> WatchlistEntry | None:
        with self._lock:
            return self._entries.get(normalize_symbol(symbol))

    def sorted_view(self) -> list[str]:
        """
        Symbols ordered Buy, Hold, Avoid.

        Symbols without data sort as Hold. Equal priorities keep insertion order.
        """
        with self._lock:
            return sorted(self._symbols, key=lambda s: self._entries[s].classification.priority)

    def entries(self) -> list[WatchlistEntry]:
        """Entries in sorted_view() order."""
        with self._lock:
            return [self._entries[symbol] for symbol in self.sorted_view()]

    def dismiss_error(self) -> None:
        with self._lock:
            self._error_message = None

    @property
    def timer_active(self) -> bool:
        return self.scheduler.get_job(REFRESH_JOB_ID) is not None

    @property
    def next_refresh_time(self) -> datetime | None:
        job = self.scheduler.get_job(REFRESH_JOB_ID)
        return getattr(job, "next_run_time", None) if job else None

    # -- mutation ------------------------------------------------------------

    def add_symbol(self, raw: str) -> WatchlistEntry:
        """
        Validate, fetch and start tracking a symbol.

        The entry is only created once the first fetch succeeds.

        Args:
            raw: User input, e.g. "aapl "

        Returns:
            The new READY entry

        Raises:
            InvalidFormatError: If the input is empty or not 1-5 letters
            DuplicateSymbolError: If the symbol is already tracked
            FetchError: If the provider failed; nothing is added
            StorageError: If the new list could not be saved; nothing is added
        """
        symbol = normalize_symbol(raw)
        if not symbol:
            raise self._reject(InvalidFormatError("Please enter a ticker symbol", symbol))
        if not SYMBOL_PATTERN.match(symbol):
            raise self._reject(InvalidFormatError("Invalid ticker format (1-5 letters)", symbol))

        with self._lock:
            if symbol in self._entries or symbol in self._pending:
                raise self._reject(DuplicateSymbolError("Ticker already in watchlist", symbol))
            self._error_message = None
            self._pending.add(symbol)

        with traced():
            try:
                quote = self._fetch(symbol, origin="add")
                signal = self.signal_engine.evaluate(quote)
            except FetchError as e:
                raise self._reject(
                    type(e)(f"Failed to add {symbol}. Please check the symbol or try again.", symbol)
                ) from e
            except Exception as e:
                self.logger.error(
                    f"Unexpected error adding {symbol}",
                    context={"symbol": symbol},
                    exception=e,
                )
                message = f"Failed to add {symbol}. Please check the symbol or try again."
                raise self._reject(FetchError(message, symbol)) from e
            finally:
                with self._lock:
                    self._pending.discard(symbol)

            with self._lock:
                if symbol in self._entries:
                    raise self._reject(DuplicateSymbolError("Ticker already in watchlist", symbol))
                self._persist([*self._symbols, symbol])
                entry = WatchlistEntry(symbol=symbol)
                entry.apply(quote, signal)
                self._entries[symbol] = entry
                self._symbols.append(symbol)
                self.on_symbol_added(symbol)

            self.logger.info(
                f"Added {symbol} to watchlist",
                context={"symbol": symbol, "classification": signal.classification.value},
            )
            self._record_event("symbol_added", f"Added {symbol}", {"symbol": symbol})
        return entry

    def remove_symbol(self, raw: str) -> bool:
        """
        Stop tracking a symbol.

        Always persists the resulting list, even when it is now empty.

        Returns:
            True if the symbol was tracked

        Raises:
            StorageError: If the new list could not be saved; the symbol stays tracked
        """
        symbol = normalize_symbol(raw)
        with self._lock:
            removed = symbol in self._entries
            self._persist([s for s in self._symbols if s != symbol])
            if removed:
                self._symbols.remove(symbol)
                del self._entries[symbol]
            if not self._symbols:
                self._stop_timer()

        if removed:
            self.logger.info(f"Removed {symbol} from watchlist", context={"symbol": symbol})
            self._record_event("symbol_removed", f"Removed {symbol}", {"symbol": symbol})
        return removed

    def refresh_all(self) -> int:
        """
        Fetch and reclassify symbols one at a time.

        Only symbols without data are fetched unless refresh_loaded_symbols is
        set. A pass started while another is running does nothing.

        Returns:
            Number of symbols whose data was updated
        """
        if not self._refresh_lock.acquire(blocking=False):
            self.logger.debug("Refresh pass already running, skipping")
            self._record_event("refresh_skipped", "Refresh pass already running")
            return 0

        start_time = time.time()
        outcomes: dict[str, int] = {"refreshed": 0, "failed": 0, "discarded": 0, "skipped": 0}
        try:
            with traced():
                with self._lock:
                    candidates = [
                        symbol
                        for symbol in self._symbols
                        if self.settings.refresh_loaded_symbols or not self._entries[symbol].has_data
                    ]

                self.logger.info(
                    "Starting refresh pass",
                    context={"candidates": candidates, "tracked": len(self._symbols)},
                )
                for symbol in candidates:
                    outcomes[self._refresh_symbol(symbol)] += 1

                duration_ms = (time.time() - start_time) * 1000
                self.logger.info(
                    "Refresh pass completed",
                    context={**outcomes, "duration_ms": duration_ms},
                )
                self._record_event(
                    "refresh_complete",
                    "Refresh pass completed",
                    {**outcomes, "candidates": len(candidates)},
                    duration_ms=duration_ms,
                )
        finally:
            self._refresh_lock.release()

        return outcomes["refreshed"]

    def _refresh_symbol(self, symbol: str) -> str:
        with self._lock:
            entry = self._entries.get(symbol)
            if entry is None:
                return "skipped"
            if entry.has_data and not self.settings.refresh_loaded_symbols:
                return "skipped"
            entry.load_state = LoadState.LOADING

        try:
            quote = self._fetch(symbol, origin="refresh")
            signal = self.signal_engine.evaluate(quote)
        except FetchError:
            return self._fail(symbol, entry)
        except Exception as e:
            self.logger.error(
                f"Unexpected error refreshing {symbol}",
                context={"symbol": symbol},
                exception=e,
            )
            return self._fail(symbol, entry)

        with self._lock:
            if self._entries.get(symbol) is not entry:
                return self._discard(symbol)
            entry.apply(quote, signal)
        return "refreshed"

    def _fail(self, symbol: str, entry: WatchlistEntry) -> str:
        message = f"Failed to load {symbol}. Please check the ticker symbol."
        with self._lock:
            if self._entries.get(symbol) is not entry:
                return self._discard(symbol)
            entry.mark_failed(message)
            self._set_error(message, symbol)
        return "failed"

    # -- lifecycle hooks -----------------------------------------------------

    def on_start(self) -> list[str]:
        """
        Rehydrate the persisted watchlist and start scheduling.

        Returns:
            The symbols restored from storage
        """
        with self._lock:
            if self._started:
                return list(self._symbols)
            self._started = True
            restored = self._load_persisted()
            for symbol in restored:
                self._symbols.append(symbol)
                self._entries[symbol] = WatchlistEntry(symbol=symbol)

        if not self.scheduler.running:
            self.scheduler.start()

        with self._lock:
            if self._symbols:
                self._start_timer()

        self.logger.info("Watchlist controller started", context={"symbols": restored})
        return restored

    def on_symbol_added(self, symbol: str) -> None:
        """Start the refresh timer if this symbol made the list non-empty."""
        with self._lock:
            if self._symbols and not self.timer_active:
                self.logger.debug("Watchlist became non-empty", context={"symbol": symbol})
                self._start_timer()

    def on_timer_tick(self) -> int:
        refreshed = self.refresh_all()
        if self.event_store:
            purged = self.event_store.clear_old_events()
            if purged:
                self.logger.debug("Purged expired events", context={"count": purged})
        return refreshed

    def shutdown(self) -> None:
        """Cancel the refresh timer and stop the scheduler."""
        with self._lock:
            self._stop_timer()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.logger.info("Watchlist controller stopped")

    def _start_timer(self) -> None:
        # First run is immediate; replace_existing keeps it to one job.
        self.scheduler.add_job(
            self.on_timer_tick,
            IntervalTrigger(seconds=self.settings.refresh_interval_seconds),
            id=REFRESH_JOB_ID,
            name="Watchlist Refresh",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
        )
        self.logger.info(
            "Refresh timer started",
            context={"interval_seconds": self.settings.refresh_interval_seconds},
        )

    def _stop_timer(self) -> None:
        if self.scheduler.get_job(REFRESH_JOB_ID) is not None:
            self.scheduler.remove_job(REFRESH_JOB_ID)
            self.logger.info("Refresh timer stopped")

    # -- helpers -------------------------------------------------------------

    def _fetch(self, symbol: str, origin: str) -> Quote:
        start_time = time.time()
        try:
            quote = self.provider.fetch_quote(symbol)
        except Exception as e:
            self._record_event(
                "fetch_complete",
                f"Fetch failed for {symbol}",
                {
                    "symbol": symbol,
                    "origin": origin,
                    "status": "failed",
                    "error_type": getattr(e, "code", type(e).__name__),
                },
                duration_ms=(time.time() - start_time) * 1000,
            )
            raise
        self._record_event(
            "fetch_complete",
            f"Fetched {symbol}",
            {"symbol": symbol, "origin": origin, "status": "success"},
            duration_ms=(time.time() - start_time) * 1000,
        )
        return quote

    def _discard(self, symbol: str) -> str:
        self.logger.info(
            f"Discarding result for {symbol}, it was removed during the fetch",
            context={"symbol": symbol},
        )
        self._record_event("result_discarded", f"Discarded result for {symbol}", {"symbol": symbol})
        return "discarded"

    def _reject(self, error: WatchlistError) -> WatchlistError:
        self._set_error(error.message, error.symbol)
        return error

    def _set_error(self, message: str, symbol: str | None = None) -> None:
        with self._lock:
            self._error_message = message
        self.logger.warning(message, context={"symbol": symbol})
        self._record_event("error", message, {"symbol": symbol})

    def _persist(self, symbols: list[str]) -> None:
        """Save the list a mutation is about to produce; raises StorageError if that fails."""
        try:
            self.store.save(self.settings.storage_key, json.dumps(symbols))
        except Exception as e:
            self.logger.error(
                "Error persisting watchlist",
                context={"symbols": symbols},
                exception=e,
            )
            raise self._reject(StorageError("Could not save watchlist. Please try again.")) from e

    def _load_persisted(self) -> list[str]:
        """Read the stored symbol list; anything unreadable counts as an empty list."""
        try:
            raw = self.store.load(self.settings.storage_key)
        except Exception as e:
            self.logger.error("Error loading persisted watchlist", exception=e)
            return []
        if raw is None:
            return []

        try:
            data = json.loads(raw)
        except (ValueError, TypeError) as e:
            self.logger.warning("Persisted watchlist is not valid JSON, ignoring it", exception=e)
            return []
        if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
            self.logger.warning(
                "Persisted watchlist is not a list of symbols, ignoring it",
                context={"value": raw[:200]},
            )
            return []

        symbols: list[str] = []
        for item in data:
            symbol = normalize_symbol(item)
            if not SYMBOL_PATTERN.match(symbol) or symbol in symbols:
                self.logger.warning("Dropping persisted symbol", context={"symbol": item})
                continue
            symbols.append(symbol)
        return symbols

    def _record_event(
        self,
        event_type: str,
        message: str,
        context: dict[str, Any] | None = None,
        duration_ms: float | None = None,
    ) -> None:
        if self.event_store:
            self.event_store.add_event(
                trace_id=get_current_trace(),
                event_type=event_type,
                component="WatchlistController",
                message=message,
                context=context,
                duration_ms=duration_ms,
            )
