"""In-memory event store for watchlist operations (fetches, refresh passes, edits)."""

import threading
import uuid
from collections import Counter, deque
from dataclasses import asdict, dataclass
from datetime import UTC, datetime, timedelta
from typing import Any


@dataclass
class Event:
    """One recorded step of a watchlist operation, tied to its trace."""

    id: str
    timestamp: str
    trace_id: str | None
    event_type: str
    component: str
    message: str
    context: dict[str, Any]
    duration_ms: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary, excluding None values."""
        return {k: v for k, v in asdict(self).items() if v is not None}


class EventStore:
    """Bounded, thread-safe event buffer with age-based purging."""

    def __init__(self, max_size: int = 5000, max_age_seconds: int = 3600):
        """
        Initialize the event store.

        Args:
            max_size: Maximum number of events to keep; oldest are dropped first
            max_age_seconds: Age used by clear_old_events when none is given
        """
        self.max_size = max_size
        self.max_age_seconds = max_age_seconds
        self._events: deque[Event] = deque(maxlen=max_size)
        self._lock = threading.RLock()

    def add_event(
        self,
        trace_id: str | None,
        event_type: str,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
        duration_ms: float | None = None,
    ) -> Event:
        """Record an event and return it."""
        with self._lock:
            event = Event(
                id=str(uuid.uuid4()),
                timestamp=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
                trace_id=trace_id,
                event_type=event_type,
                component=component,
                message=message,
                context=context or {},
                duration_ms=duration_ms,
            )
            self._events.append(event)
            return event

    def get_recent_events(self, limit: int = 100) -> list[Event]:
        """
        Get the most recent events.

        Returns:
            Up to `limit` events, oldest first
        """
        with self._lock:
            return list(self._events)[-limit:] if limit > 0 else []

    def get_events_by_trace(self, trace_id: str) -> list[Event]:
        """Get all events for one trace, in chronological order."""
        with self._lock:
            return [event for event in self._events if event.trace_id == trace_id]

    def get_events_by_type(self, event_type: str, limit: int = 100) -> list[Event]:
        with self._lock:
            matching = [event for event in self._events if event.event_type == event_type]
            return matching[-limit:] if limit > 0 else []

    def get_events_by_symbol(self, symbol: str, limit: int = 100) -> list[Event]:
        """Events whose context names this ticker symbol, oldest first."""
        with self._lock:
            matching = [event for event in self._events if event.context.get("symbol") == symbol]
            return matching[-limit:] if limit > 0 else []

    def count_by_type(self) -> Counter:
        """Number of buffered events per event type."""
        with self._lock:
            return Counter(event.event_type for event in self._events)

    def clear_old_events(self, max_age_seconds: int | None = None) -> int:
        """
        Remove events older than the specified age.

        Returns:
            Number of events removed
        """
        max_age = max_age_seconds or self.max_age_seconds
        cutoff_time = datetime.now(UTC) - timedelta(seconds=max_age)

        with self._lock:
            initial_count = len(self._events)
            kept = [
                event
                for event in self._events
                if datetime.fromisoformat(event.timestamp.replace("Z", "+00:00")) > cutoff_time
            ]
            self._events = deque(kept, maxlen=self.max_size)
            return initial_count - len(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._events)

    def get_all_events(self) -> list[Event]:
        with self._lock:
            return list(self._events)
