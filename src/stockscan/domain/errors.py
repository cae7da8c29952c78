"""Exception types shared across the gateway, cache and loader layers."""
from __future__ import annotations


class StockScanError(Exception):
    """Base class for application errors."""


class MissingCredentialError(StockScanError, ValueError):
    """No Alpha Vantage API key is configured."""

    def __init__(self, message: str = "Alpha Vantage API key not found. Run `stockscan key set <KEY>` first.") -> None:
        super().__init__(message)


class UpstreamError(StockScanError):
    """Transport, HTTP status or JSON decoding failure talking to the provider."""
