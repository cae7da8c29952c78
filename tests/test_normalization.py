"""Unit tests for Alpha Vantage -> typed statement mapping."""
from __future__ import annotations

import pytest

from stockscan.domain.models.financials import CashFlow, IncomeStatement
from stockscan.workflows.normalize import (
    attach_sales_ratios,
    build_overview,
    build_valuation,
    latest_reports,
    normalize_balance_report,
    normalize_cash_flow_report,
    normalize_income_report,
    normalize_statements,
)


def test_income_report_scaled_to_millions_with_margin():
    stmt = normalize_income_report(
        {"fiscalDateEnding": "2023-09-30", "totalRevenue": "383285000000", "netIncome": "96995000000"}
    )
    assert stmt.year == 2023
    assert stmt.total_revenue == pytest.approx(383285.0)
    assert stmt.net_income == pytest.approx(96995.0)
    assert stmt.profit_margin == pytest.approx(96995.0 / 383285.0 * 100)


def test_income_report_zero_revenue_has_zero_margin():
    stmt = normalize_income_report({"fiscalDateEnding": "2023-12-31", "totalRevenue": "0", "netIncome": "-5000000"})
    assert stmt.net_income == pytest.approx(-5.0)
    assert stmt.profit_margin == 0.0


def test_balance_report_debt_ratio():
    stmt = normalize_balance_report(
        {"fiscalDateEnding": "2022-12-31", "totalAssets": "2000000000", "totalLiabilities": "800000000"}
    )
    assert (stmt.year, stmt.total_assets, stmt.total_liabilities) == (2022, 2000.0, 800.0)
    assert stmt.debt_ratio == pytest.approx(0.4)

    empty = normalize_balance_report({"fiscalDateEnding": "2022-12-31", "totalAssets": "None", "totalLiabilities": "5"})
    assert empty.debt_ratio == 0.0


def test_cash_flow_report_free_cash_flow():
    stmt = normalize_cash_flow_report(
        {"fiscalDateEnding": "2023-09-30", "operatingCashflow": "110543000000", "capitalExpenditures": "10959000000"}
    )
    assert stmt.free_cash_flow == pytest.approx(99584.0)
    assert stmt.fcf_sales_ratio == 0.0


def test_unparseable_fields_default_to_zero():
    stmt = normalize_income_report({"fiscalDateEnding": "unknown", "totalRevenue": "None", "netIncome": "-"})
    assert (stmt.year, stmt.total_revenue, stmt.net_income, stmt.profit_margin) == (0, 0.0, 0.0, 0.0)
    assert normalize_cash_flow_report({}).free_cash_flow == 0.0


def test_truncates_to_five_most_recent(make_reports):
    years = list(range(2016, 2024))
    payload = make_reports(years, totalRevenue={y: y * 1_000_000 for y in years}, netIncome={y: 1_000_000 for y in years})

    assert len(latest_reports(payload)) == 5
    statements = normalize_statements(payload, None, None)
    assert [s.year for s in statements.income] == [2019, 2020, 2021, 2022, 2023]
    assert statements.balance == ()
    assert statements.cash == ()


def test_latest_reports_handles_missing_payloads():
    assert latest_reports(None) == []
    assert latest_reports({}) == []
    assert latest_reports({"Note": "Thank you for using Alpha Vantage!"}) == []


def test_duplicate_years_keep_newest_listed():
    payload = {
        "annualReports": [
            {"fiscalDateEnding": "2023-12-31", "totalRevenue": "2000000", "netIncome": "0"},
            {"fiscalDateEnding": "2023-06-30", "totalRevenue": "1000000", "netIncome": "0"},
            {"fiscalDateEnding": "2022-12-31", "totalRevenue": "500000", "netIncome": "0"},
        ]
    }
    statements = normalize_statements(payload, None, None)
    assert [(s.year, s.total_revenue) for s in statements.income] == [(2022, 0.5), (2023, 2.0)]


def test_sales_ratio_matches_on_year_and_defaults_to_zero():
    income = [IncomeStatement.from_values(2022, 200.0, 20.0)]
    cash = [CashFlow(year=2021, free_cash_flow=30.0), CashFlow(year=2022, free_cash_flow=50.0)]

    ratios = {row.year: row.fcf_sales_ratio for row in attach_sales_ratios(cash, income)}
    assert ratios[2021] == 0.0
    assert ratios[2022] == pytest.approx(25.0)


def test_overview_uses_quote_price_and_name_fallback():
    overview = build_overview("ibm", {"Name": "IBM Corp"}, {"Global Quote": {"05. price": "187.50"}})
    assert (overview.symbol, overview.name, overview.current_price) == ("IBM", "IBM Corp", 187.5)

    bare = build_overview("msft", {"Symbol": "MSFT"}, {})
    assert (bare.name, bare.current_price) == ("MSFT", 0.0)


def test_valuation_fields_parse_or_zero():
    valuation = build_valuation({"DividendPerShare": "1.25", "SharesOutstanding": "1000000", "PERatio": "None"})
    assert valuation.dividend_per_share == 1.25
    assert valuation.shares_issued == 1_000_000
    assert valuation.pe_ratio == 0.0
