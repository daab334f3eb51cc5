"""Watchlist entry model and its load state."""

import enum
from dataclasses import dataclass
from datetime import datetime, timezone

from screener.models.market_data import Quote
from screener.models.signal import Classification, SignalResult


class LoadState(str, enum.Enum):
    """Where an entry is in its fetch cycle."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass
class WatchlistEntry:
    """
    A tracked symbol and its latest data.

    quote and signal are only ever set together through apply(), so an entry
    either has both or neither. A failed refresh leaves them untouched.
    """

    symbol: str
    quote: Quote | None = None
    signal: SignalResult | None = None
    load_state: LoadState = LoadState.IDLE
    last_error: str | None = None
    updated_at: datetime | None = None

    @property
    def has_data(self) -> bool:
        return self.quote is not None

    @property
    def classification(self) -> Classification:
        """Signal classification, treating missing data as HOLD."""
        return self.signal.classification if self.signal else Classification.HOLD

    def apply(self, quote: Quote, signal: SignalResult) -> None:
        """Store a fresh quote with its signal and mark the entry ready."""
        self.quote = quote
        self.signal = signal
        self.load_state = LoadState.READY
        self.last_error = None
        self.updated_at = datetime.now(timezone.utc)

    def mark_failed(self, message: str) -> None:
        self.load_state = LoadState.FAILED
        self.last_error = message
