"""Metrics calculator for aggregating event store data."""

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from screener.utils.event_store import EventStore


@dataclass
class Metrics:
    """Represents aggregated watchlist metrics."""

    total_refresh_passes: int
    average_refresh_duration_ms: float
    total_fetch_attempts: int
    successful_fetches: int
    failed_fetches: int
    fetch_success_rate: float
    average_fetch_duration_ms: float
    discarded_results: int
    symbols_added: int
    symbols_removed: int
    signal_counts: Dict[str, int]
    recent_errors_count: int
    uptime_seconds: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary."""
        return asdict(self)


def _average(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class MetricsCalculator:
    """Calculates metrics from event store data."""

    def __init__(self, event_store: EventStore, start_time: Optional[datetime] = None):
        """
        Initialize the metrics calculator.

        Args:
            event_store: The event store to calculate metrics from
            start_time: Optional start time for uptime calculation (defaults to now)
        """
        self.event_store = event_store
        self.start_time = start_time or datetime.now(timezone.utc)

    def calculate(self) -> Metrics:
        """
        Calculate metrics from the event store.

        Returns:
            Metrics object with aggregated statistics
        """
        events = self.event_store.get_all_events()
        counts = self.event_store.count_by_type()

        refreshes = [e for e in events if e.event_type == "refresh_complete"]
        fetches = [e for e in events if e.event_type == "fetch_complete"]
        successful_fetches = len([e for e in fetches if e.context.get("status") == "success"])
        failed_fetches = len([e for e in fetches if e.context.get("status") == "failed"])

        fetch_success_rate = (
            (successful_fetches / len(fetches) * 100) if fetches else 0.0
        )

        signal_counts: Dict[str, int] = {}
        for event in events:
            if event.event_type != "analysis_complete":
                continue
            classification = event.context.get("classification")
            if classification:
                signal_counts[classification] = signal_counts.get(classification, 0) + 1

        uptime_seconds = int((datetime.now(timezone.utc) - self.start_time).total_seconds())

        return Metrics(
            total_refresh_passes=counts["refresh_complete"],
            average_refresh_duration_ms=_average(
                [e.duration_ms for e in refreshes if e.duration_ms is not None]
            ),
            total_fetch_attempts=counts["fetch_complete"],
            successful_fetches=successful_fetches,
            failed_fetches=failed_fetches,
            fetch_success_rate=fetch_success_rate,
            average_fetch_duration_ms=_average(
                [e.duration_ms for e in fetches if e.duration_ms is not None]
            ),
            discarded_results=counts["result_discarded"],
            symbols_added=counts["symbol_added"],
            symbols_removed=counts["symbol_removed"],
            signal_counts=signal_counts,
            recent_errors_count=counts["error"],
            uptime_seconds=uptime_seconds,
        )
