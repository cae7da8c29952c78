from __future__ import annotations

from functools import partial
from typing import Any, Dict, List

import httpx
import pytest

from stockscan.infrastructure.credentials import CredentialStore
from stockscan.infrastructure.data_providers.alpha_vantage_client import AlphaVantageClient
from stockscan.infrastructure.db.memory import InMemoryKeyValueStore

BASE_URL = "https://alphavantage.test/query"


class FakeAlphaVantage:
    """httpx handler answering by the ``function`` query parameter."""

    def __init__(self, responses: Dict[str, Any]) -> None:
        self.responses = responses
        self.calls: List[str] = []
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        function = request.url.params.get("function", "")
        self.calls.append(function)
        self.requests.append(request)
        body = self.responses.get(function, {})
        if isinstance(body, httpx.Response):
            return body
        return httpx.Response(200, json=body)

    def factory(self):
        return partial(AlphaVantageClient, base_url=BASE_URL, transport=httpx.MockTransport(self))


def annual_reports(years, **fields) -> Dict[str, Any]:
    """Build a statement payload, newest year first, with string-encoded amounts."""
    reports = []
    for year in sorted(years, reverse=True):
        report = {"fiscalDateEnding": f"{year}-12-31", "reportedCurrency": "USD"}
        for name, values in fields.items():
            report[name] = str(values[year]) if year in values else "None"
        reports.append(report)
    return {"symbol": "IBM", "annualReports": reports}


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def credentials(store) -> CredentialStore:
    creds = CredentialStore(store)
    creds.set("demo-key")
    return creds


@pytest.fixture
def upstream_payloads() -> Dict[str, Any]:
    years = [2019, 2020, 2021, 2022, 2023]
    return {
        "OVERVIEW": {
            "Symbol": "IBM",
            "Name": "International Business Machines",
            "DividendPerShare": "6.64",
            "SharesOutstanding": "916320000",
            "PERatio": "22.5",
        },
        "GLOBAL_QUOTE": {"Global Quote": {"01. symbol": "IBM", "05. price": "187.5000"}},
        "INCOME_STATEMENT": annual_reports(
            years,
            totalRevenue={y: 50_000_000_000 + i * 1_000_000_000 for i, y in enumerate(years)},
            netIncome={y: 5_000_000_000 + i * 500_000_000 for i, y in enumerate(years)},
        ),
        "BALANCE_SHEET": annual_reports(
            years,
            totalAssets={y: 130_000_000_000 for y in years},
            totalLiabilities={y: 110_000_000_000 - i * 1_000_000_000 for i, y in enumerate(years)},
        ),
        "CASH_FLOW": annual_reports(
            years,
            operatingCashflow={y: 12_000_000_000 + i * 100_000_000 for i, y in enumerate(years)},
            capitalExpenditures={y: 2_000_000_000 for y in years},
        ),
    }


@pytest.fixture
def fake_upstream(upstream_payloads) -> FakeAlphaVantage:
    return FakeAlphaVantage(upstream_payloads)


@pytest.fixture
def make_upstream():
    return FakeAlphaVantage


@pytest.fixture
def make_reports():
    return annual_reports
