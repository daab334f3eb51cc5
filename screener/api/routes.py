"""API routes for the watchlist and its debug views."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from screener.api.dependencies import get_controller, get_event_store, get_metrics_calculator
from screener.services.presentation import build_row
from screener.services.watchlist_controller import WatchlistController
from screener.utils.event_store import EventStore
from screener.utils.metrics import MetricsCalculator

router = APIRouter()


class AddSymbolRequest(BaseModel):
    """Request model for adding a symbol to the watchlist."""
    symbol: str


def _watchlist_payload(controller: WatchlistController) -> dict:
    entries = controller.entries()
    return {
        "symbols": [entry.symbol for entry in entries],
        "entries": [build_row(entry) for entry in entries],
        "pending": controller.pending_symbols,
        "error": controller.error_message,
        "count": len(entries),
    }


@router.get("/watchlist")
def get_watchlist(controller: WatchlistController = Depends(get_controller)):
    """
    Get the watchlist sorted by signal priority.

    Returns:
        Rows for every tracked symbol (buys first, avoids last) plus the
        current error message
    """
    return _watchlist_payload(controller)


@router.post("/watchlist", status_code=status.HTTP_201_CREATED)
def add_symbol(
    request: AddSymbolRequest,
    controller: WatchlistController = Depends(get_controller),
):
    """
    Add a symbol; it is only tracked if its first fetch succeeds.

    Args:
        request: Raw symbol input, trimmed and uppercased by the controller
        controller: Watchlist controller

    Returns:
        The new row
    """
    entry = controller.add_symbol(request.symbol)
    return build_row(entry)


@router.post("/watchlist/refresh")
def refresh_watchlist(controller: WatchlistController = Depends(get_controller)):
    """Run a refresh pass now instead of waiting for the timer."""
    refreshed = controller.refresh_all()
    return {"refreshed": refreshed, **_watchlist_payload(controller)}


@router.delete("/watchlist/error")
def dismiss_error(controller: WatchlistController = Depends(get_controller)):
    controller.dismiss_error()
    return {"error": None}


@router.delete("/watchlist/{symbol}")
def remove_symbol(symbol: str, controller: WatchlistController = Depends(get_controller)):
    """Remove a symbol; removing an untracked symbol is not an error."""
    removed = controller.remove_symbol(symbol)
    return {"removed": removed, "symbols": controller.sorted_view()}


# Debug endpoints

@router.get("/debug/status")
def get_status(controller: WatchlistController = Depends(get_controller)):
    """Refresh timer state and watchlist size."""
    next_refresh = controller.next_refresh_time
    return {
        "timer_active": controller.timer_active,
        "next_refresh": next_refresh.isoformat() if next_refresh else None,
        "refresh_interval_seconds": controller.settings.refresh_interval_seconds,
        "symbol_count": len(controller.symbols),
        "pending": controller.pending_symbols,
    }


@router.get("/debug/events")
async def get_events(
    limit: int = Query(100, ge=1, le=1000),
    event_type: Optional[str] = Query(None, description="Only return events of this type"),
    trace_id: Optional[str] = Query(None, description="Only return events for this trace"),
    symbol: Optional[str] = Query(None, description="Only return events for this ticker"),
    event_store: EventStore = Depends(get_event_store),
):
    """
    Recent events, oldest first.

    Args:
        limit: Maximum number of events to return
        event_type: Optional event type filter
        trace_id: Optional trace filter; returns the whole trace
        symbol: Optional ticker filter
        event_store: Event store

    Returns:
        Events and their count
    """
    if trace_id:
        events = event_store.get_events_by_trace(trace_id)
    elif symbol:
        events = event_store.get_events_by_symbol(symbol.strip().upper(), limit=limit)
    elif event_type:
        events = event_store.get_events_by_type(event_type, limit=limit)
    else:
        events = event_store.get_recent_events(limit=limit)
    return {"events": [event.to_dict() for event in events], "count": len(events)}


@router.get("/debug/metrics")
async def get_metrics(calculator: MetricsCalculator = Depends(get_metrics_calculator)):
    return calculator.calculate().to_dict()
