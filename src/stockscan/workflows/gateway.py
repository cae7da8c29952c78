"""Financial data gateway: upstream queries, normalization and aggregation.

One symbol costs five upstream calls (overview, quote, income statement,
balance sheet, cash flow) issued one after another. The overview goes first;
when it comes back empty or throttled the remaining four are skipped.
"""
from __future__ import annotations

import logging
from typing import Callable, List, Optional

from stockscan.domain.errors import MissingCredentialError
from stockscan.domain.models.financials import AnalysisScores, FetchResult, StockData, SymbolMatch
from stockscan.domain.services.fixtures import build_mock_stock_data, is_mock_symbol
from stockscan.domain.services.scoring import QuickScanCalculator
from stockscan.infrastructure.credentials import CredentialStore
from stockscan.infrastructure.data_providers.alpha_vantage_client import (
    AlphaVantageClient,
    is_rate_limited,
    upstream_notice,
)
from stockscan.workflows.normalize import (
    MAX_ANNUAL_REPORTS,
    build_overview,
    build_valuation,
    normalize_statements,
)

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], AlphaVantageClient]


class FinancialDataGateway:
    """Fetch and assemble :class:`StockData`; reads the API key on every call."""

    def __init__(
        self,
        credentials: CredentialStore,
        client_factory: ClientFactory = AlphaVantageClient,
        *,
        calculator: Optional[QuickScanCalculator] = None,
        max_reports: int = MAX_ANNUAL_REPORTS,
    ) -> None:
        self._credentials = credentials
        self._client_factory = client_factory
        self._calculator = calculator or QuickScanCalculator()
        self._max_reports = max_reports

    # -------------
    # Symbol search
    # -------------
    def search(self, keyword: str) -> FetchResult[List[SymbolMatch]]:
        if not keyword or not keyword.strip():
            return FetchResult.empty("blank keyword")
        api_key = self._credentials.get()
        if not api_key:
            logger.warning("No API key configured; symbol search is unavailable.")
            return FetchResult.failed("missing API key")

        try:
            with self._client_factory(api_key) as client:
                payload = client.symbol_search(keyword.strip())
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Symbol search failed for %r: %s", keyword, exc)
            return FetchResult.failed(str(exc))

        notice = upstream_notice(payload)
        if notice:
            logger.warning("Symbol search for %r rejected upstream: %s", keyword, notice)
            return FetchResult.failed(notice)

        matches = [
            SymbolMatch(symbol=str(item.get("1. symbol", "")), name=str(item.get("2. name", "")))
            for item in payload.get("bestMatches") or []
            if isinstance(item, dict) and item.get("1. symbol")
        ]
        if not matches:
            return FetchResult.empty("no matches")
        return FetchResult.ok(matches)

    def search_symbol(self, keyword: str) -> List[SymbolMatch]:
        """Fail-closed search: any failure yields an empty list."""
        result = self.search(keyword)
        return list(result.data) if result.is_ok and result.data else []

    # -------------
    # Full dataset
    # -------------
    def fetch(self, symbol: str) -> FetchResult[StockData]:
        """Fetch one symbol.

        Raises:
            MissingCredentialError: no API key is configured (not raised for ``TEST``).
        """
        ticker = (symbol or "").strip().upper()
        if not ticker:
            return FetchResult.empty("empty symbol")
        if is_mock_symbol(ticker):
            return FetchResult.ok(build_mock_stock_data(self._calculator))

        api_key = self._credentials.require()
        try:
            return self._fetch_remote(ticker, api_key)
        except MissingCredentialError:
            raise
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Failed to fetch full stock data for %s", ticker)
            return FetchResult.failed(str(exc))

    def fetch_full_stock_data(self, symbol: str) -> Optional[StockData]:
        """Return the assembled record or None when nothing usable came back."""
        result = self.fetch(symbol)
        return result.data if result.is_ok else None

    def _fetch_remote(self, ticker: str, api_key: str) -> FetchResult[StockData]:
        with self._client_factory(api_key) as client:
            overview = client.overview(ticker)
            if not overview or upstream_notice(overview):
                reason = upstream_notice(overview) or "empty overview"
                kind = "rate-limited" if is_rate_limited(overview) else "not available"
                logger.warning("Overview data for %s %s: %s", ticker, kind, reason)
                return FetchResult.empty(reason)

            quote = client.global_quote(ticker)
            income = client.income_statement(ticker)
            balance = client.balance_sheet(ticker)
            cash = client.cash_flow(ticker)

        # A throttled quote or statement still yields OK with those fields at 0,
        # and the loader caches it like any other success.
        for label, payload in (("quote", quote), ("income", income), ("balance", balance), ("cash flow", cash)):
            notice = upstream_notice(payload)
            if notice:
                logger.warning("%s %s response carried a notice; fields default to 0: %s", ticker, label, notice)

        statements = normalize_statements(income, balance, cash, limit=self._max_reports)
        score = self._calculator.calculate(statements.income, statements.balance, statements.cash)
        data = StockData(
            overview=build_overview(ticker, overview, quote),
            income_statements=statements.income,
            balance_sheets=statements.balance,
            cash_flows=statements.cash,
            valuation=build_valuation(overview),
            analysis=AnalysisScores(quick_scan_score=score),
        )
        logger.info("Fetched %s: %d income, %d balance, %d cash flow years, score %d",
                    ticker, len(data.income_statements), len(data.balance_sheets), len(data.cash_flows), score)
        return FetchResult.ok(data)
