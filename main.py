"""Main application entry point."""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from screener.api.error_handlers import validation_exception_handler, watchlist_exception_handler
from screener.api.routes import router
from screener.database.db import SessionLocal, init_db
from screener.services.errors import WatchlistError
from screener.services.key_value_store import SqlKeyValueStore
from screener.services.market_data_provider import YahooFinanceProvider
from screener.services.watchlist_controller import WatchlistController
from screener.utils.config import config
from screener.utils.event_store import EventStore
from screener.utils.logger import StructuredLogger
from screener.utils.metrics import MetricsCalculator

logger = StructuredLogger("App")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    # Startup
    try:
        config.validate()
    except ValueError as e:
        logger.critical(f"Configuration error: {e}", exception=e)
        raise

    init_db()
    event_store = EventStore()
    controller = WatchlistController(
        provider=YahooFinanceProvider(config.market_data),
        store=SqlKeyValueStore(SessionLocal),
        settings=config.watchlist,
        event_store=event_store,
    )
    app.state.event_store = event_store
    app.state.metrics = MetricsCalculator(event_store)
    app.state.controller = controller
    controller.on_start()
    yield
    # Shutdown
    controller.shutdown()


# Create FastAPI app
app = FastAPI(
    title="Stock Screener Watchlist",
    description="Buy/hold/avoid signals for a small watchlist of tickers",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(WatchlistError, watchlist_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

# Include API routes
app.include_router(router, prefix="/api", tags=["watchlist"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# Serve the built front end, if present; mounted last so /api and /health win.
frontend_dist = Path(__file__).parent / "frontend" / "dist"
if frontend_dist.exists():
    app.mount("/", StaticFiles(directory=str(frontend_dist), html=True), name="static")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
