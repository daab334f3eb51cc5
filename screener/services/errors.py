"""Exceptions raised by the watchlist services."""


class WatchlistError(Exception):
    """Base class for errors that surface to the user as a message."""

    code = "WATCHLIST_ERROR"

    def __init__(self, message: str, symbol: str | None = None):
        super().__init__(message)
        self.message = message
        self.symbol = symbol


class SymbolValidationError(WatchlistError):
    """The symbol was rejected before any fetch was attempted."""

    code = "VALIDATION_ERROR"


class InvalidFormatError(SymbolValidationError):
    code = "INVALID_FORMAT"


class DuplicateSymbolError(SymbolValidationError):
    code = "DUPLICATE_SYMBOL"


class FetchError(WatchlistError):
    """The provider was unreachable or returned nothing usable."""

    code = "FETCH_ERROR"


class NetworkError(FetchError):
    code = "NETWORK_ERROR"


class NoDataError(FetchError):
    """The provider answered but the price series was empty."""

    code = "NO_DATA"


class StorageError(WatchlistError):
    """The watchlist could not be saved; the change was not applied."""

    code = "STORAGE_ERROR"
