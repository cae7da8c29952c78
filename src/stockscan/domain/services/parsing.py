"""Permissive parsing of provider text fields.

Alpha Vantage encodes every number as a string and uses placeholders such as
``"None"`` or ``"-"`` for missing values. :func:`parse_number` reports whether a
field was usable; callers that favour partial display over failure use
:meth:`ParsedNumber.or_zero`.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional

_MISSING_TOKENS = {"", "none", "null", "nan", "n/a", "na", "-"}


@dataclass(frozen=True)
class ParsedNumber:
    value: Optional[float]
    raw: Any = None

    @property
    def ok(self) -> bool:
        return self.value is not None

    def or_zero(self) -> float:
        return self.value if self.value is not None else 0.0


def parse_number(raw: Any) -> ParsedNumber:
    """Parse ``raw`` into a finite float, or mark it unparseable."""
    if raw is None or isinstance(raw, bool):
        return ParsedNumber(None, raw)
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        text = raw.strip()
        if text.lower() in _MISSING_TOKENS:
            return ParsedNumber(None, raw)
        try:
            value = float(text.replace(",", ""))
        except ValueError:
            return ParsedNumber(None, raw)
    else:
        return ParsedNumber(None, raw)
    if math.isnan(value) or math.isinf(value):
        return ParsedNumber(None, raw)
    return ParsedNumber(value, raw)


def number_or_zero(raw: Any) -> float:
    return parse_number(raw).or_zero()


def parse_fiscal_year(date_text: Any) -> int:
    """Return the 4-digit year prefix of a ``YYYY-MM-DD`` string, 0 if unparseable."""
    if not isinstance(date_text, str):
        return 0
    prefix = date_text.strip()[:4]
    if len(prefix) != 4 or not prefix.isdigit():
        return 0
    return int(prefix)
