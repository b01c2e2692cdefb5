# WORKFLOW: Tolerant field coercion for POS export values.
# Used by: Header defaults, row canonicalizer, ingestion pipeline, report queries
# Functions:
# 1. parse_date_to_iso() - Multi-format date parser with Excel serial fallback
# 2. number_or_zero() - Numeric parser for thousands separators, percents, (negatives)
# 3. int_or_zero() - Leading-integer parser for sub-department / category numbers
# 4. pad13() - Digits-only, zero-padded 13 character item code
#
# Coercion never raises: numbers fall back to 0, dates fall back to None
# (the caller drops rows whose date cannot be parsed).

"""
Tolerant field coercion for POS export values.
"""

import math
import re
from datetime import date, datetime, timedelta
from typing import Any, Optional

# Tried in order; the first that parses wins.
DATE_FORMATS = [
    "yyyy-MM-dd",
    "MM/dd/yyyy",
    "M/d/yyyy",
    "M/d/yy",
    "dd/MM/yyyy",
    "d/M/yyyy",
    "d/M/yy",
    "yyyy/M/d",
    "dd-MMM-yy",
    "dd-MMM-yyyy",
]

EXCEL_EPOCH = datetime(1899, 12, 30)

MONTH_ABBREVIATIONS = {
    name: index
    for index, name in enumerate(
        ["jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"],
        start=1,
    )
}

_TOKEN_PATTERNS = [
    ("yyyy", "year4", r"\d{4}"),
    ("yy", "year2", r"\d{2}"),
    ("MMM", "mon", r"[A-Za-z]{3}"),
    ("MM", "month", r"\d{1,2}"),
    ("M", "month", r"\d{1,2}"),
    ("dd", "day", r"\d{1,2}"),
    ("d", "day", r"\d{1,2}"),
]


def _compile_format(fmt: str) -> "re.Pattern[str]":
    pattern = ""
    i = 0
    while i < len(fmt):
        for token, group, regex in _TOKEN_PATTERNS:
            if fmt.startswith(token, i):
                pattern += f"(?P<{group}>{regex})"
                i += len(token)
                break
        else:
            pattern += re.escape(fmt[i])
            i += 1
    return re.compile(pattern)


_COMPILED_FORMATS = [(fmt, _compile_format(fmt)) for fmt in DATE_FORMATS]


def coerce_century(year: int) -> int:
    """Two-digit years: 70-99 -> 1900s, 00-69 -> 2000s."""
    if year >= 100:
        return year
    return (1900 if year >= 70 else 2000) + year


def _match_format(pattern: "re.Pattern[str]", text: str) -> Optional[date]:
    m = pattern.fullmatch(text)
    if not m:
        return None
    parts = m.groupdict()
    if "year4" in parts:
        year = int(parts["year4"])
    else:
        year = coerce_century(int(parts["year2"]))
    if "mon" in parts:
        month = MONTH_ABBREVIATIONS.get(parts["mon"].lower())
        if month is None:
            return None
    else:
        month = int(parts["month"])
    try:
        return date(year, month, int(parts["day"]))
    except ValueError:
        return None


def excel_serial_to_date(serial: float) -> Optional[date]:
    """Days since 1899-12-30; the 1900 leap-year quirk is not corrected."""
    if not math.isfinite(serial):
        return None
    try:
        return (EXCEL_EPOCH + timedelta(days=serial)).date()
    except OverflowError:
        return None


def parse_date_to_iso(value: Any) -> Optional[str]:
    """
    Parse a loosely formatted date into ``yyyy-MM-dd``.

    Calendar formats are tried in DATE_FORMATS order, then the value is read
    as an Excel serial number. Returns None when nothing matches.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    s = str(value).strip()
    if not s:
        return None

    for _fmt, pattern in _COMPILED_FORMATS:
        parsed = _match_format(pattern, s)
        if parsed is not None:
            return parsed.isoformat()

    try:
        serial = float(s)
    except ValueError:
        return None
    parsed = excel_serial_to_date(serial)
    return parsed.isoformat() if parsed is not None else None


_PARENS = re.compile(r"^\((.*)\)$")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def number_or_zero(value: Any) -> float:
    """
    Parse a numeric cell, defaulting to 0.

    Handles whitespace, thousands commas, a trailing percent sign and
    accounting-style negatives such as ``(12.34)``.
    """
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0

    s = re.sub(r"\s+", "", str(value)).replace(",", "")
    if s.endswith("%"):
        s = s[:-1]
    s = _PARENS.sub(r"-\1", s)
    if not s or "_" in s:
        return 0.0
    try:
        n = float(s)
    except ValueError:
        return 0.0
    return n if math.isfinite(n) else 0.0


def int_or_zero(value: Any) -> int:
    """Leading integer of a value (``"12.7"`` -> 12), or 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else 0
    m = _LEADING_INT.match(str(value))
    return int(m.group(1)) if m else 0


def pad13(value: Any) -> str:
    digits = re.sub(r"\D+", "", "" if value is None else str(value))
    return digits.rjust(13, "0")
