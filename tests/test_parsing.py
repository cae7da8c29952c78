from __future__ import annotations

import pytest

from stockscan.domain.services.parsing import number_or_zero, parse_fiscal_year, parse_number


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("383285000000", 383285000000.0),
        ("-1234.5", -1234.5),
        (" 42 ", 42.0),
        ("1,500", 1500.0),
        (7, 7.0),
        (2.5, 2.5),
    ],
)
def test_parse_number_accepts_numeric_text(raw, expected):
    parsed = parse_number(raw)
    assert parsed.ok
    assert parsed.value == expected


@pytest.mark.parametrize("raw", [None, "", "None", "none", "-", "n/a", "abc", "nan", "inf", float("nan"), True, {}])
def test_parse_number_flags_unparseable(raw):
    parsed = parse_number(raw)
    assert not parsed.ok
    assert parsed.or_zero() == 0.0
    assert number_or_zero(raw) == 0.0


def test_parse_number_keeps_raw_value():
    assert parse_number("None").raw == "None"


@pytest.mark.parametrize(
    "text, year",
    [
        ("2023-09-30", 2023),
        ("1999-12-31", 1999),
        ("", 0),
        (None, 0),
        ("FY23", 0),
        ("20x1-01-01", 0),
    ],
)
def test_parse_fiscal_year(text, year):
    assert parse_fiscal_year(text) == year
