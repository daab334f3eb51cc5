"""Configuration management for the application."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class WatchlistConfig:
    """Watchlist refresh and persistence settings."""

    refresh_interval_seconds: int = 300
    storage_key: str = "stockScreenerWatchlist"
    refresh_loaded_symbols: bool = False  # re-fetch symbols that already have data


@dataclass
class MarketDataConfig:
    """Quote provider configuration."""

    chart_url: str = "https://query1.finance.yahoo.com/v8/finance/chart"
    quote_url: str = "https://query1.finance.yahoo.com/v7/finance/quote"
    proxy_url: str | None = None  # template containing {url}
    chart_range: str = "1mo"
    chart_interval: str = "5m"
    max_points: int = 500
    timeout: int = 10


@dataclass
class DatabaseConfig:
    """Database configuration."""

    database_url: str
    echo: bool = False


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    file_path: str | None = None


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class Config:
    """Main application configuration."""

    def __init__(self):
        self.watchlist = WatchlistConfig(
            refresh_interval_seconds=int(os.getenv("WATCHLIST_REFRESH_INTERVAL", "300")),
            storage_key=os.getenv("WATCHLIST_STORAGE_KEY", "stockScreenerWatchlist"),
            refresh_loaded_symbols=_env_flag("WATCHLIST_REFRESH_LOADED"),
        )

        self.market_data = MarketDataConfig(
            chart_url=os.getenv(
                "MARKET_DATA_CHART_URL", "https://query1.finance.yahoo.com/v8/finance/chart"
            ),
            quote_url=os.getenv(
                "MARKET_DATA_QUOTE_URL", "https://query1.finance.yahoo.com/v7/finance/quote"
            ),
            proxy_url=os.getenv("MARKET_DATA_PROXY_URL") or None,
            chart_range=os.getenv("MARKET_DATA_RANGE", "1mo"),
            chart_interval=os.getenv("MARKET_DATA_INTERVAL", "5m"),
            max_points=int(os.getenv("MARKET_DATA_MAX_POINTS", "500")),
            timeout=int(os.getenv("MARKET_DATA_TIMEOUT", "10")),
        )

        self.database = DatabaseConfig(
            database_url=os.getenv("DATABASE_URL", "sqlite:///./watchlist.db"),
            echo=_env_flag("DATABASE_ECHO"),
        )

        self.logging = LoggingConfig(
            level=os.getenv("LOG_LEVEL", "INFO").upper(),
            file_path=os.getenv("LOG_FILE") or None,
        )

    def validate(self) -> bool:
        """
        Validate configuration.

        Returns:
            True if configuration is valid

        Raises:
            ValueError if configuration is invalid
        """
        if self.watchlist.refresh_interval_seconds <= 0:
            raise ValueError("WATCHLIST_REFRESH_INTERVAL must be a positive number of seconds")
        if not self.watchlist.storage_key:
            raise ValueError("WATCHLIST_STORAGE_KEY must not be empty")
        if self.market_data.proxy_url and "{url}" not in self.market_data.proxy_url:
            raise ValueError("MARKET_DATA_PROXY_URL must contain a {url} placeholder")
        if self.market_data.max_points <= 0:
            raise ValueError("MARKET_DATA_MAX_POINTS must be positive")
        if self.logging.level not in LOG_LEVELS:
            raise ValueError(f"Invalid LOG_LEVEL: {self.logging.level}")

        return True


# Global config instance
config = Config()
