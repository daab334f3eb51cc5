"""FastAPI dependencies for reaching the application's shared services."""

from fastapi import HTTPException, Request, status

from screener.services.watchlist_controller import WatchlistController
from screener.utils.event_store import EventStore
from screener.utils.metrics import MetricsCalculator


def get_controller(request: Request) -> WatchlistController:
    """
    Return the watchlist controller created during application startup.

    Raises:
        HTTPException: 503 if the application has not finished starting
    """
    controller = getattr(request.app.state, "controller", None)
    if controller is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "SERVICE_UNAVAILABLE", "message": "Watchlist is not ready"},
        )
    return controller


def get_event_store(request: Request) -> EventStore:
    event_store = getattr(request.app.state, "event_store", None)
    if event_store is None:
        event_store = EventStore()
        request.app.state.event_store = event_store
    return event_store


def get_metrics_calculator(request: Request) -> MetricsCalculator:
    calculator = getattr(request.app.state, "metrics", None)
    if calculator is None:
        calculator = MetricsCalculator(get_event_store(request))
        request.app.state.metrics = calculator
    return calculator
