"""
tests/test_value_parsers.py

Pytest unit tests for localized value parsing.

Coverage
--------
- Brazilian and US number formats, currency markers, negatives
- Percent and currency helpers
- Every accepted date layout, impossible calendar dates, idempotence
- Durations
"""

from __future__ import annotations

import pytest

from app.mappers.value_parsers import (
    days_between,
    fold_accents,
    parse_currency,
    parse_date,
    parse_duration,
    parse_number,
    parse_percent,
)


class TestParseNumber:
    @pytest.mark.parametrize(
        ("raw", "integer", "expected"),
        [
            ("1200", True, 1200),
            ("1.234", True, 1234),
            ("1.234", False, 1.234),
            ("1,234", True, 1234),
            ("12,5", False, 12.5),
            ("1.234,56", False, 1234.56),
            ("1,234.56", False, 1234.56),
            ("(1,200)", True, -1200),
            ("-15", True, -15),
            ("R$ 10,50", False, 10.5),
            (" 7 ", True, 7),
        ],
    )
    def test_parses_localized_numbers(self, raw: str, integer: bool, expected: float) -> None:
        assert parse_number(raw, integer=integer) == expected

    @pytest.mark.parametrize("raw", ["", "   ", None, "abc", "--", "1.2.3,4,5"])
    def test_unparseable_returns_none(self, raw: str | None) -> None:
        assert parse_number(raw) is None

    def test_integer_mode_returns_int(self) -> None:
        assert isinstance(parse_number("42", integer=True), int)


def test_parse_percent_strips_sign_and_uses_decimal_comma() -> None:
    assert parse_percent("36,66%") == 36.66
    assert parse_percent("4.5 %") == 4.5
    assert parse_percent("n/a") is None


def test_parse_currency_rounds_to_cents() -> None:
    assert parse_currency("R$ 1.234,56") == 1234.56
    assert parse_currency("US$1,234.567") == 1234.57
    assert parse_currency("") is None


class TestParseDate:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("2024-03-01", "2024-03-01"),
            ("2024-03-01T10:15:00Z", "2024-03-01"),
            ("2024-03-01 10:15:00", "2024-03-01"),
            ("2024-03-01T10:15:00-03:00", "2024-03-01"),
            ("2025-02-11 10:00 +0000", "2025-02-11"),
            ("2025-02-11 10:00 -03:00", "2025-02-11"),
            ("2024/03/01", "2024-03-01"),
            ("01/03/2024", "2024-03-01"),
            ("01/03/2024 10:00", "2024-03-01"),
            ("10 de dez. de 2022", "2022-12-10"),
            ("5 de março de 2024", "2024-03-05"),
            ("Feb 11, 2025", "2025-02-11"),
            ("Tue, Feb 11, 2025", "2025-02-11"),
            ("11 Feb 2025", "2025-02-11"),
        ],
    )
    def test_accepted_layouts(self, raw: str, expected: str) -> None:
        assert parse_date(raw) == expected

    @pytest.mark.parametrize("raw", ["31/02/2024", "2023-02-29", "", None, "yesterday", "13 de foo de 2024"])
    def test_invalid_dates_return_none(self, raw: str | None) -> None:
        assert parse_date(raw) is None

    @pytest.mark.parametrize("raw", ["01/03/2024", "Feb 11, 2025", "10 de dez. de 2022", "2024-03-01T00:00:00Z"])
    def test_parsing_is_idempotent(self, raw: str) -> None:
        once = parse_date(raw)
        assert parse_date(once) == once

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("12/25/2025 06:54", "2025-12-25"),
            ("12/10/2025 06:54", "2025-12-10"),
            ("03/01/2024", "2024-03-01"),
            ("2024-03-01", "2024-03-01"),
        ],
    )
    def test_month_first_layout(self, raw: str, expected: str) -> None:
        assert parse_date(raw, day_first=False) == expected

    def test_day_first_is_the_default(self) -> None:
        assert parse_date("12/10/2025") == "2025-10-12"
        assert parse_date("12/25/2025 06:54") is None


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("1:02:03", 3723), ("02:30", 150), ("45", 45), ("45,6", 46), ("", None), ("1:x", None)],
)
def test_parse_duration(raw: str, expected: int | None) -> None:
    assert parse_duration(raw) == expected


def test_fold_accents_and_days_between() -> None:
    assert fold_accents("Visualizações") == "Visualizacoes"
    assert days_between("2024-02-28", "2024-03-01") == 2
