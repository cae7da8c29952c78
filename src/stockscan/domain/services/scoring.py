"""Quick Scan Score: a year-over-year trend count across the three statements.

Each tracked metric contributes one interval per consecutive pair of fiscal
years and earns a point when it moved in the favourable direction. The score
is the share of improving intervals mapped onto 0-100. Equal consecutive
values earn nothing in either direction.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

import pandas as pd

from stockscan.domain.models.financials import BalanceSheet, CashFlow, IncomeStatement

HIGHER_IS_BETTER = "higher"
LOWER_IS_BETTER = "lower"


@dataclass(frozen=True)
class TrackedMetric:
    key: str
    source: str  # "income", "balance" or "cash"
    direction: str


TRACKED_METRICS: Tuple[TrackedMetric, ...] = (
    TrackedMetric("total_revenue", "income", HIGHER_IS_BETTER),
    TrackedMetric("net_income", "income", HIGHER_IS_BETTER),
    TrackedMetric("profit_margin", "income", HIGHER_IS_BETTER),
    TrackedMetric("free_cash_flow", "cash", HIGHER_IS_BETTER),
    TrackedMetric("total_liabilities", "balance", LOWER_IS_BETTER),
    TrackedMetric("debt_ratio", "balance", LOWER_IS_BETTER),
)


class QuickScanCalculator:
    """Compute the 0-100 Quick Scan Score from annual statement series."""

    def __init__(self, metrics: Sequence[TrackedMetric] = TRACKED_METRICS) -> None:
        self._metrics = tuple(metrics)

    def calculate(
        self,
        income: Iterable[IncomeStatement],
        balance: Iterable[BalanceSheet],
        cash: Iterable[CashFlow],
    ) -> int:
        breakdown = self.breakdown(income, balance, cash)
        points = sum(earned for earned, _ in breakdown.values())
        intervals = sum(total for _, total in breakdown.values())
        if intervals == 0:
            return 0
        return _round_half_up(points / intervals * 100)

    def breakdown(
        self,
        income: Iterable[IncomeStatement],
        balance: Iterable[BalanceSheet],
        cash: Iterable[CashFlow],
    ) -> Dict[str, Tuple[int, int]]:
        """Return ``{metric: (points_earned, intervals)}`` for every tracked metric."""
        frames = {
            "income": _frame_from_series(income, self._keys_for("income")),
            "balance": _frame_from_series(balance, self._keys_for("balance")),
            "cash": _frame_from_series(cash, self._keys_for("cash")),
        }
        result: Dict[str, Tuple[int, int]] = {}
        for metric in self._metrics:
            frame = frames[metric.source]
            intervals = max(len(frame) - 1, 0)
            if intervals == 0:
                result[metric.key] = (0, 0)
                continue
            column = frame[metric.key]
            previous = column.shift()
            if metric.direction == HIGHER_IS_BETTER:
                improved = column > previous
            else:
                improved = column < previous
            result[metric.key] = (int(improved.sum()), intervals)
        return result

    def _keys_for(self, source: str) -> List[str]:
        return [m.key for m in self._metrics if m.source == source]


def calculate_quick_scan_score(
    income: Iterable[IncomeStatement],
    balance: Iterable[BalanceSheet],
    cash: Iterable[CashFlow],
) -> int:
    """Module-level shortcut for :meth:`QuickScanCalculator.calculate`."""
    return QuickScanCalculator().calculate(income, balance, cash)


def _frame_from_series(series: Iterable[object], keys: List[str]) -> pd.DataFrame:
    rows: List[Dict[str, float]] = []
    for item in series:
        row: Dict[str, float] = {k: _to_float(getattr(item, k, None)) for k in keys}
        row["year"] = int(getattr(item, "year", 0) or 0)
        rows.append(row)
    if not rows:
        return pd.DataFrame(columns=["year", *keys])
    df = pd.DataFrame(rows, columns=["year", *keys])
    # Missing values count as 0 so a gap never produces a NaN comparison.
    if keys:
        df[keys] = df[keys].fillna(0.0)
    return df.sort_values("year", kind="mergesort").reset_index(drop=True)


def _to_float(value: object) -> float:
    try:
        result = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return float("nan")
    return result


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
