"""Canonical five-year dataset served for the reserved ``TEST`` symbol."""
from __future__ import annotations

from typing import Optional

from stockscan.domain.models.financials import (
    AnalysisScores,
    BalanceSheet,
    CashFlow,
    CompanyOverview,
    IncomeStatement,
    StockData,
    ValuationMetrics,
)
from stockscan.domain.services.scoring import QuickScanCalculator

MOCK_SYMBOL = "TEST"

# (year, revenue, net income, total assets, total liabilities, free cash flow), in millions
_MOCK_YEARS = (
    (2019, 500.0, 40.0, 2000.0, 800.0, 50.0),
    (2020, 550.0, 45.0, 2200.0, 900.0, 60.0),
    (2021, 600.0, 60.0, 2500.0, 1000.0, 70.0),
    (2022, 700.0, 80.0, 2700.0, 1000.0, 80.0),
    (2023, 800.0, 100.0, 3000.0, 1100.0, 90.0),
)


def is_mock_symbol(symbol: str) -> bool:
    return symbol.strip().upper() == MOCK_SYMBOL


def build_mock_stock_data(calculator: Optional[QuickScanCalculator] = None) -> StockData:
    """Build the fixture record; its Quick Scan Score is 79 (19 of 24 intervals)."""
    income = tuple(IncomeStatement.from_values(year, revenue, net) for year, revenue, net, _, _, _ in _MOCK_YEARS)
    balance = tuple(BalanceSheet.from_values(year, assets, liabilities) for year, _, _, assets, liabilities, _ in _MOCK_YEARS)
    revenue_by_year = {row.year: row.total_revenue for row in income}
    cash = tuple(
        CashFlow(year=year, free_cash_flow=fcf).with_sales_ratio(revenue_by_year.get(year))
        for year, _, _, _, _, fcf in _MOCK_YEARS
    )
    score = (calculator or QuickScanCalculator()).calculate(income, balance, cash)

    return StockData(
        overview=CompanyOverview(symbol=MOCK_SYMBOL, name="Mock Testing Inc.", current_price=123.45),
        income_statements=income,
        balance_sheets=balance,
        cash_flows=cash,
        valuation=ValuationMetrics(dividend_per_share=1.25, shares_issued=1_000_000, pe_ratio=15),
        analysis=AnalysisScores(
            quick_scan_score=score,
            return_potential_score=65,
            min_return_3y=5,
            avg_return_3y=10,
            max_return_3y=20,
            valuation_indicator="Fairly Valued",
        ),
    )
