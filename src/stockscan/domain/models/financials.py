"""Domain models describing the financial data exchanged between services."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, Optional, Tuple, TypeVar

import pandas as pd

T = TypeVar("T")

VALUATION_INDICATORS = ("Overvalued", "Undervalued", "Fairly Valued")


def _ratio(numerator: float, denominator: float, scale: float = 1.0) -> float:
    return (numerator / denominator) * scale if denominator else 0.0


@dataclass(frozen=True)
class CompanyOverview:
    symbol: str
    name: str
    current_price: float = 0.0


@dataclass(frozen=True)
class IncomeStatement:
    """Annual income statement; currency amounts are in millions."""

    year: int
    total_revenue: float
    net_income: float
    profit_margin: float = 0.0  # percent

    @classmethod
    def from_values(cls, year: int, total_revenue: float, net_income: float) -> "IncomeStatement":
        return cls(
            year=year,
            total_revenue=total_revenue,
            net_income=net_income,
            profit_margin=_ratio(net_income, total_revenue, 100.0),
        )


@dataclass(frozen=True)
class BalanceSheet:
    """Annual balance sheet; currency amounts are in millions."""

    year: int
    total_assets: float
    total_liabilities: float
    debt_ratio: float = 0.0  # liabilities / assets, e.g. 0.5

    @classmethod
    def from_values(cls, year: int, total_assets: float, total_liabilities: float) -> "BalanceSheet":
        return cls(
            year=year,
            total_assets=total_assets,
            total_liabilities=total_liabilities,
            debt_ratio=_ratio(total_liabilities, total_assets),
        )


@dataclass(frozen=True)
class CashFlow:
    """Annual free cash flow in millions plus its share of same-year revenue."""

    year: int
    free_cash_flow: float
    fcf_sales_ratio: float = 0.0  # percent

    def with_sales_ratio(self, revenue: Optional[float]) -> "CashFlow":
        """Return a copy whose FCF/sales ratio is derived from ``revenue``."""
        return CashFlow(
            year=self.year,
            free_cash_flow=self.free_cash_flow,
            fcf_sales_ratio=_ratio(self.free_cash_flow, revenue or 0.0, 100.0),
        )


@dataclass(frozen=True)
class ValuationMetrics:
    dividend_per_share: float = 0.0
    shares_issued: float = 0.0
    pe_ratio: float = 0.0


@dataclass(frozen=True)
class AnalysisScores:
    """Quick Scan Score plus forward-looking placeholders (not computed)."""

    quick_scan_score: int
    return_potential_score: float = 65
    min_return_3y: float = 0
    avg_return_3y: float = 0
    max_return_3y: float = 0
    valuation_indicator: str = "Fairly Valued"

    def __post_init__(self) -> None:
        if self.valuation_indicator not in VALUATION_INDICATORS:
            raise ValueError(f"Unknown valuation indicator: {self.valuation_indicator!r}")


@dataclass(frozen=True)
class StockData:
    """Aggregate record for one symbol; replaced wholesale on refresh."""

    overview: CompanyOverview
    income_statements: Tuple[IncomeStatement, ...] = ()
    balance_sheets: Tuple[BalanceSheet, ...] = ()
    cash_flows: Tuple[CashFlow, ...] = ()
    valuation: ValuationMetrics = field(default_factory=ValuationMetrics)
    analysis: AnalysisScores = field(default_factory=lambda: AnalysisScores(quick_scan_score=0))

    @property
    def symbol(self) -> str:
        return self.overview.symbol

    def to_frame(self, kind: str) -> pd.DataFrame:
        """Tabulate one statement series ("income", "balance" or "cash") ascending by year."""
        series = {
            "income": (self.income_statements, IncomeStatement),
            "balance": (self.balance_sheets, BalanceSheet),
            "cash": (self.cash_flows, CashFlow),
        }
        if kind not in series:
            raise ValueError(f"Unknown statement kind: {kind!r}")
        items, record_type = series[kind]
        columns = list(record_type.__dataclass_fields__)
        if not items:
            return pd.DataFrame(columns=columns)
        return pd.DataFrame([asdict(item) for item in items], columns=columns).sort_values("year").reset_index(drop=True)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        for key in ("income_statements", "balance_sheets", "cash_flows"):
            payload[key] = list(payload[key])
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "StockData":
        """Rebuild from :meth:`to_dict` output; raises on malformed input."""
        if not isinstance(payload, dict):
            raise TypeError(f"Expected a mapping, got {type(payload).__name__}")
        return cls(
            overview=CompanyOverview(**payload["overview"]),
            income_statements=tuple(IncomeStatement(**row) for row in payload["income_statements"]),
            balance_sheets=tuple(BalanceSheet(**row) for row in payload["balance_sheets"]),
            cash_flows=tuple(CashFlow(**row) for row in payload["cash_flows"]),
            valuation=ValuationMetrics(**payload["valuation"]),
            analysis=AnalysisScores(**payload["analysis"]),
        )


@dataclass(frozen=True)
class SymbolMatch:
    symbol: str
    name: str

    def to_dict(self) -> Dict[str, str]:
        return {"symbol": self.symbol, "name": self.name}


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """Cached payload plus the epoch-millisecond time it was captured."""

    payload: T
    captured_at_ms: int

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.captured_at_ms


class FetchStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Outcome of an upstream lookup: data, nothing found, or a failure reason."""

    status: FetchStatus
    data: Optional[T] = None
    reason: Optional[str] = None

    @classmethod
    def ok(cls, data: T) -> "FetchResult[T]":
        return cls(status=FetchStatus.OK, data=data)

    @classmethod
    def empty(cls, reason: Optional[str] = None) -> "FetchResult[T]":
        return cls(status=FetchStatus.EMPTY, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> "FetchResult[T]":
        return cls(status=FetchStatus.FAILED, reason=reason)

    @property
    def is_ok(self) -> bool:
        return self.status is FetchStatus.OK
