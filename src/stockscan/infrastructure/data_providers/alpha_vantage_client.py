"""Thin wrapper around the Alpha Vantage REST API."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from stockscan.config import ALPHA_VANTAGE_BASE_URL
from stockscan.domain.errors import MissingCredentialError, UpstreamError

logger = logging.getLogger(__name__)

# Bodies Alpha Vantage returns with HTTP 200 instead of data.
_NOTICE_KEYS = ("Note", "Information", "Error Message")


def upstream_notice(payload: Any) -> Optional[str]:
    """Return the throttling/error notice carried by ``payload``, if any."""
    if not isinstance(payload, dict):
        return None
    for key in _NOTICE_KEYS:
        if payload.get(key):
            return str(payload[key])
    return None


def is_rate_limited(payload: Any) -> bool:
    return isinstance(payload, dict) and bool(payload.get("Note") or payload.get("Information"))


class AlphaVantageClient:
    """Issue one GET per query function and return the decoded JSON body.

    Failures surface as :class:`UpstreamError`; nothing is retried.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = ALPHA_VANTAGE_BASE_URL,
        timeout: float = 30.0,
        proxy_url: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if not api_key:
            raise MissingCredentialError()
        self._api_key = api_key
        self._base_url = base_url

        http_client_kwargs: Dict[str, Any] = {
            "timeout": httpx.Timeout(timeout, connect=10.0),
        }
        if proxy_url:
            http_client_kwargs["proxy"] = proxy_url
        if transport is not None:
            http_client_kwargs["transport"] = transport
        self._http_client = httpx.Client(**http_client_kwargs)

    # ------------------
    # Public API helpers
    # ------------------
    def symbol_search(self, keywords: str) -> Dict[str, Any]:
        return self._get("SYMBOL_SEARCH", keywords=keywords)

    def overview(self, symbol: str) -> Dict[str, Any]:
        return self._get("OVERVIEW", symbol=symbol)

    def global_quote(self, symbol: str) -> Dict[str, Any]:
        return self._get("GLOBAL_QUOTE", symbol=symbol)

    def income_statement(self, symbol: str) -> Dict[str, Any]:
        return self._get("INCOME_STATEMENT", symbol=symbol)

    def balance_sheet(self, symbol: str) -> Dict[str, Any]:
        return self._get("BALANCE_SHEET", symbol=symbol)

    def cash_flow(self, symbol: str) -> Dict[str, Any]:
        return self._get("CASH_FLOW", symbol=symbol)

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self._http_client.close()

    def __enter__(self) -> "AlphaVantageClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # -----------------
    # Internal helpers
    # -----------------
    def _redact(self, message: str) -> str:
        return message.replace(self._api_key, "***")

    def _get(self, function: str, **params: str) -> Dict[str, Any]:
        query = {"function": function, **params, "apikey": self._api_key}
        logger.debug("API request: %s %s", function, params)
        try:
            response = self._http_client.get(self._base_url, params=query)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise UpstreamError(self._redact(f"{function} request failed: {exc}")) from exc
        except ValueError as exc:
            raise UpstreamError(f"{function} returned invalid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise UpstreamError(f"{function} returned {type(payload).__name__}, expected an object")
        return payload
