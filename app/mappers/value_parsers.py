"""
app/mappers/value_parsers.py

Parsers for localized numbers, percentages, currency, dates and durations
found in platform exports.

Every parser returns ``None`` when the text cannot be interpreted; callers
decide whether that is an imputation or an error.
"""

from __future__ import annotations

import re
import unicodedata
from datetime import date, datetime

_CURRENCY_MARKERS = ("R$", "US$", "$", "€", "£")
_THOUSANDS_COMMA = re.compile(r"^\d{1,3}(,\d{3})+$")
_THOUSANDS_DOT = re.compile(r"^\d{1,3}(\.\d{3})+$")
_NUMERIC = re.compile(r"^\d+(\.\d+)?$")

_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[t ][\d:.]+)?(?:\s*(?:z|[+-]\d{2}:?\d{2}))?$")
_SLASH_YMD = re.compile(r"^(\d{4})/(\d{1,2})/(\d{1,2})$")
_NUMERIC_DATE = re.compile(r"^(\d{1,2})[/.-](\d{1,2})[/.-](\d{4})(?:,?\s+\d{1,2}:\d{2}(?::\d{2})?)?$")
_PT_LONG = re.compile(r"^(\d{1,2})\s+de\s+([a-z]+)\.?\s+de\s+(\d{4})")
_EN_LONG = re.compile(r"^(?:[a-z]+,\s+)?([a-z]+)\.?\s+(\d{1,2}),?\s+(\d{4})")
_EN_DAY_MONTH = re.compile(r"^(?:[a-z]+,\s+)?(\d{1,2})\s+([a-z]+)\.?,?\s+(\d{4})")

_MONTHS = {
    "jan": 1,
    "feb": 2,
    "fev": 2,
    "mar": 3,
    "apr": 4,
    "abr": 4,
    "may": 5,
    "mai": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "ago": 8,
    "sep": 9,
    "set": 9,
    "oct": 10,
    "out": 10,
    "nov": 11,
    "dec": 12,
    "dez": 12,
}


def fold_accents(value: str) -> str:
    """
    Strip diacritics so Portuguese and English headers compare equally.
    """

    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _clean_text(raw: str | None) -> str:
    if raw is None:
        return ""
    return raw.replace("\xa0", " ").strip().strip('"').strip("'").strip()


def parse_number(raw: str | None, *, integer: bool = False) -> float | int | None:
    """
    Parse a localized number such as ``1.234,56``, ``1,234.56`` or ``(1,200)``.
    """

    text = _clean_text(raw)
    if not text:
        return None

    negative = False
    if text.startswith("(") and text.endswith(")"):
        negative = True
        text = text[1:-1].strip()
    for marker in _CURRENCY_MARKERS:
        text = text.replace(marker, "")
    text = text.replace("%", "").replace(" ", "").strip()
    if text.startswith("-"):
        negative = not negative
        text = text[1:]
    elif text.startswith("+"):
        text = text[1:]
    if not text:
        return None

    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        if _THOUSANDS_COMMA.match(text):
            text = text.replace(",", "")
        else:
            text = text.replace(",", ".")
    elif "." in text and integer and _THOUSANDS_DOT.match(text):
        # Brazilian exports write 1.234 for one thousand two hundred thirty-four.
        text = text.replace(".", "")

    if not _NUMERIC.match(text):
        return None

    value = float(text)
    if negative:
        value = -value
    if integer:
        return int(round(value))
    return value


def parse_percent(raw: str | None) -> float | None:
    """
    Parse ``"36.66%"`` or ``"36,66"`` to ``36.66``.
    """

    value = parse_number(raw)
    if value is None:
        return None
    return float(value)


def parse_currency(raw: str | None) -> float | None:
    value = parse_number(raw)
    if value is None:
        return None
    return round(float(value), 2)


def _safe_date(year: int, month: int, day: int) -> str | None:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def parse_date(raw: str | None, *, day_first: bool = True) -> str | None:
    """
    Resolve a date string to ``YYYY-MM-DD``.

    Accepted: ISO dates with optional time and zone (``2025-02-11 10:00 +0000``),
    ``YYYY/MM/DD``, ``DD/MM/YYYY`` with optional time, ``Feb 11, 2025``,
    ``11 Feb 2025`` and ``10 de dez. de 2022``. Numeric ``NN/NN/YYYY`` dates are
    read day first unless ``day_first`` is false (``MM/DD/YYYY``). Impossible
    calendar dates such as ``31/02/2024`` return ``None``.
    """

    text = fold_accents(_clean_text(raw)).lower()
    if not text:
        return None

    match = _ISO_DATE.match(text)
    if match:
        return _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    match = _SLASH_YMD.match(text)
    if match:
        return _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    match = _NUMERIC_DATE.match(text)
    if match:
        first, second = int(match.group(1)), int(match.group(2))
        day, month = (first, second) if day_first else (second, first)
        return _safe_date(int(match.group(3)), month, day)

    match = _PT_LONG.match(text)
    if match:
        month = _MONTHS.get(match.group(2)[:3])
        if month is None:
            return None
        return _safe_date(int(match.group(3)), month, int(match.group(1)))

    match = _EN_LONG.match(text)
    if match and match.group(1)[:3] in _MONTHS:
        return _safe_date(int(match.group(3)), _MONTHS[match.group(1)[:3]], int(match.group(2)))

    match = _EN_DAY_MONTH.match(text)
    if match and match.group(2)[:3] in _MONTHS:
        return _safe_date(int(match.group(3)), _MONTHS[match.group(2)[:3]], int(match.group(1)))

    return None


def parse_duration(raw: str | None) -> int | None:
    """
    Convert ``HH:MM:SS``, ``MM:SS`` or raw seconds to integer seconds.
    """

    text = _clean_text(raw)
    if not text:
        return None

    if ":" in text:
        parts = text.split(":")
        if len(parts) > 3 or not all(part.strip().isdigit() for part in parts):
            return None
        seconds = 0
        for part in parts:
            seconds = seconds * 60 + int(part)
        return seconds

    value = parse_number(text)
    if value is None:
        return None
    return int(round(value))


def days_between(start: str, end: str) -> int:
    return (datetime.strptime(end, "%Y-%m-%d") - datetime.strptime(start, "%Y-%m-%d")).days
