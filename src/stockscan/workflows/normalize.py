"""Convert raw Alpha Vantage payloads into typed annual statements."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar

from stockscan.domain.models.financials import (
    BalanceSheet,
    CashFlow,
    CompanyOverview,
    IncomeStatement,
    ValuationMetrics,
)
from stockscan.domain.services.parsing import number_or_zero, parse_fiscal_year

MILLION = 1_000_000.0
MAX_ANNUAL_REPORTS = 5

INCOME_MAP = {
    "total_revenue": "totalRevenue",
    "net_income": "netIncome",
}

BALANCE_MAP = {
    "total_assets": "totalAssets",
    "total_liabilities": "totalLiabilities",
}

CASHFLOW_MAP = {
    "operating_cash_flow": "operatingCashflow",
    "capital_expenditures": "capitalExpenditures",
}

VALUATION_MAP = {
    "dividend_per_share": "DividendPerShare",
    "shares_issued": "SharesOutstanding",
    "pe_ratio": "PERatio",
}

S = TypeVar("S", IncomeStatement, BalanceSheet, CashFlow)


@dataclass(frozen=True)
class NormalizedStatements:
    income: Tuple[IncomeStatement, ...]
    balance: Tuple[BalanceSheet, ...]
    cash: Tuple[CashFlow, ...]


def latest_reports(payload: Optional[Mapping[str, Any]], limit: int = MAX_ANNUAL_REPORTS) -> List[Dict[str, Any]]:
    """First ``limit`` annual reports; upstream lists them newest first."""
    if not payload:
        return []
    reports = payload.get("annualReports") or []
    return [report for report in reports if isinstance(report, dict)][:limit]


def _millions(report: Mapping[str, Any], field: str) -> float:
    return number_or_zero(report.get(field)) / MILLION


def _year(report: Mapping[str, Any]) -> int:
    return parse_fiscal_year(report.get("fiscalDateEnding"))


def normalize_income_report(report: Mapping[str, Any]) -> IncomeStatement:
    return IncomeStatement.from_values(
        year=_year(report),
        total_revenue=_millions(report, INCOME_MAP["total_revenue"]),
        net_income=_millions(report, INCOME_MAP["net_income"]),
    )


def normalize_balance_report(report: Mapping[str, Any]) -> BalanceSheet:
    return BalanceSheet.from_values(
        year=_year(report),
        total_assets=_millions(report, BALANCE_MAP["total_assets"]),
        total_liabilities=_millions(report, BALANCE_MAP["total_liabilities"]),
    )


def normalize_cash_flow_report(report: Mapping[str, Any]) -> CashFlow:
    operating = number_or_zero(report.get(CASHFLOW_MAP["operating_cash_flow"]))
    capex = number_or_zero(report.get(CASHFLOW_MAP["capital_expenditures"]))
    return CashFlow(year=_year(report), free_cash_flow=(operating - capex) / MILLION)


def attach_sales_ratios(cash: Iterable[CashFlow], income: Iterable[IncomeStatement]) -> Tuple[CashFlow, ...]:
    """Derive FCF/sales per cash-flow year; years without income data get 0."""
    revenue_by_year = {row.year: row.total_revenue for row in income}
    return tuple(row.with_sales_ratio(revenue_by_year.get(row.year)) for row in cash)


def normalize_statements(
    income_payload: Optional[Mapping[str, Any]],
    balance_payload: Optional[Mapping[str, Any]],
    cash_payload: Optional[Mapping[str, Any]],
    *,
    limit: int = MAX_ANNUAL_REPORTS,
) -> NormalizedStatements:
    """Truncate each statement to its latest ``limit`` reports and sort ascending by year."""
    income = _ascending(_dedup_years(normalize_income_report(r) for r in latest_reports(income_payload, limit)))
    balance = _ascending(_dedup_years(normalize_balance_report(r) for r in latest_reports(balance_payload, limit)))
    cash = _ascending(_dedup_years(normalize_cash_flow_report(r) for r in latest_reports(cash_payload, limit)))
    return NormalizedStatements(income=income, balance=balance, cash=attach_sales_ratios(cash, income))


def build_overview(
    symbol: str,
    overview_payload: Mapping[str, Any],
    quote_payload: Optional[Mapping[str, Any]],
) -> CompanyOverview:
    quote = (quote_payload or {}).get("Global Quote") or {}
    price = number_or_zero(quote.get("05. price")) if isinstance(quote, dict) else 0.0
    ticker = symbol.strip().upper()
    return CompanyOverview(
        symbol=ticker,
        name=str(overview_payload.get("Name") or ticker),
        current_price=max(price, 0.0),
    )


def build_valuation(overview_payload: Mapping[str, Any]) -> ValuationMetrics:
    return ValuationMetrics(**{field: number_or_zero(overview_payload.get(key)) for field, key in VALUATION_MAP.items()})


def _dedup_years(statements: Iterable[S]) -> List[S]:
    """Keep the first (newest-listed) statement for each fiscal year."""
    seen = set()
    unique: List[S] = []
    for statement in statements:
        if statement.year in seen:
            continue
        seen.add(statement.year)
        unique.append(statement)
    return unique


def _ascending(statements: Sequence[S]) -> Tuple[S, ...]:
    return tuple(sorted(statements, key=lambda s: s.year))
