"""Tests for API error formatting."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from screener.api.error_handlers import (
    ApiError,
    ErrorResponse,
    create_validation_error_response,
    create_watchlist_error_response,
    status_for,
)
from screener.services.errors import (
    DuplicateSymbolError,
    FetchError,
    InvalidFormatError,
    NetworkError,
    NoDataError,
    StorageError,
    SymbolValidationError,
    WatchlistError,
)


@pytest.mark.parametrize(
    "error,expected",
    [
        (InvalidFormatError("bad"), 400),
        (DuplicateSymbolError("dup"), 409),
        (NoDataError("empty"), 404),
        (NetworkError("down"), 502),
        (FetchError("failed"), 502),
        (StorageError("unsaved"), 503),
        (SymbolValidationError("rejected"), 400),
        (WatchlistError("other"), 400),
    ],
)
def test_status_for(error, expected):
    assert status_for(error) == expected


def test_error_codes_are_hierarchical():
    assert isinstance(NetworkError("x"), FetchError)
    assert isinstance(DuplicateSymbolError("x"), SymbolValidationError)
    assert ApiError.DUPLICATE_SYMBOL == "DUPLICATE_SYMBOL"
    assert ApiError.NO_DATA == "NO_DATA"
    assert ApiError.STORAGE_ERROR == "STORAGE_ERROR"


class TestErrorResponse:
    """Tests for the standard error body."""

    def test_to_dict_without_details(self):
        response = ErrorResponse(ApiError.VALIDATION_ERROR, "Nothing to check")

        assert response.to_dict() == {"error": "VALIDATION_ERROR", "message": "Nothing to check"}

    def test_watchlist_error_carries_symbol(self):
        response = create_watchlist_error_response(
            DuplicateSymbolError("Ticker already in watchlist", "AAPL")
        )

        assert response.status_code == 409
        assert response.to_dict() == {
            "error": "DUPLICATE_SYMBOL",
            "message": "Ticker already in watchlist",
            "details": {"symbol": "AAPL"},
        }

    def test_validation_errors_keyed_by_field(self):
        response = create_validation_error_response(
            [{"loc": ("body", "symbol"), "msg": "Field required", "type": "missing"}]
        )

        assert response.status_code == 400
        assert response.to_dict()["details"] == {"body.symbol": "Field required"}

    @given(
        message=st.text(min_size=1, max_size=100),
        symbol=st.one_of(st.none(), st.text(alphabet="ABCDEFGHIJKLMNOPQRSTUVWXYZ", min_size=1, max_size=5)),
    )
    def test_every_watchlist_error_has_code_and_message(self, message, symbol):
        """Any watchlist error renders with its code and the original message."""
        error_classes = (
            InvalidFormatError,
            DuplicateSymbolError,
            NetworkError,
            NoDataError,
            StorageError,
        )
        for error_class in error_classes:
            body = create_watchlist_error_response(error_class(message, symbol)).to_dict()

            assert body["error"] == error_class.code
            assert body["message"] == message
            assert body.get("details") == ({"symbol": symbol} if symbol else None)
