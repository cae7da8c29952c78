"""View state published by the loader to presentation code."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from stockscan.domain.models.financials import StockData


@dataclass(frozen=True)
class ViewState:
    symbol: str = ""
    stock_data: Optional[StockData] = None
    loading: bool = False
    error: Optional[str] = None
    from_cache: bool = False
    stale: bool = False  # stock_data is an expired cache entry kept after a failed refresh
