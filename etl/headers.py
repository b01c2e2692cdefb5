# WORKFLOW: Header normalization and synonym mapping for POS export files.
# Used by: File parsers, ingestion pipeline
# Functions:
# 1. normalize_header() - Canonicalize raw header text into a lookup key
# 2. canonical_for() - Resolve a raw header to its canonical field name (or None)
# 3. validate_headers() - Check a header set against the minimum/full required lists
# 4. remap_row() - Re-key a raw row by canonical names, dropping unknown columns
# 5. fill_defaults() - Produce all 19 canonical keys with numeric/text defaults
#
# Header flow: raw header -> normalize -> exact canonical match | synonym | dropped
# The lookup table is plain data built once at import time.

"""
Header normalization and synonym mapping for POS export files.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from etl.coercers import number_or_zero

REQUIRED_HEADERS: List[str] = [
    "Date",
    "Item-Code",
    "Item-Brand",
    "Item-POS description",
    "Sub-department-Number",
    "Sub-department-Description",
    "Category-Number",
    "Category-Description",
    "Vendor-ID",
    "Vendor-Name",
    "Units-Sum",
    "Amount-Sum",
    "Weight/Volume-Sum",
    "Bottom line-Profit",
    "Bottom line-Margin",
    "Bottom line-Rank",
    "Bottom line-Ratio",
    "Proportion-Rank",
    "Proportion-Ratio",
]

MIN_HEADERS: List[str] = [
    "Date",
    "Item-Code",
    "Item-POS description",
    "Sub-department-Number",
    "Sub-department-Description",
    "Units-Sum",
    "Amount-Sum",
    "Weight/Volume-Sum",
]

NUMERIC_HEADERS = frozenset([
    "Units-Sum",
    "Amount-Sum",
    "Weight/Volume-Sum",
    "Bottom line-Profit",
    "Bottom line-Margin",
    "Bottom line-Rank",
    "Bottom line-Ratio",
    "Proportion-Rank",
    "Proportion-Ratio",
    "Category-Number",
    "Sub-department-Number",
])

# Alternate export names -> canonical header. None marks a column that is
# recognised but intentionally dropped.
HEADER_SYNONYMS: Dict[str, Optional[str]] = {
    "main code": "Item-Code",
    "pos description": "Item-POS description",
    "totalizer-number": "Sub-department-Number",
    "totalizer-description": "Sub-department-Description",
    "quantity": "Units-Sum",
    "amount": "Amount-Sum",
    "weight/volume": "Weight/Volume-Sum",
    "category-number": "Category-Number",
    "category-description": "Category-Description",
    "vendor-id": "Vendor-ID",
    "vendor-name": "Vendor-Name",
    "transaction-number": None,
    "operator validated": None,
}

_WRAPPING_QUOTES = [('"', '"'), ("'", "'"), ("\u201c", "\u201d"), ("\u2018", "\u2019")]
_DASHES = re.compile("[\u2010-\u2014\u2212]")
_WHITESPACE = re.compile(r"\s+")
# Letters and digits are \w minus underscore.
_DISALLOWED = re.compile(r"[^\w\s\-/.]|_")


def normalize_header(header: Any) -> str:
    """
    Canonicalize header text into a lookup key.

    Trims, strips one level of wrapping quotes, folds NBSP and unicode dashes
    to ASCII, lowercases, collapses whitespace and drops anything that is not
    a letter, digit, space, hyphen, slash or period.
    """
    if header is None:
        return ""
    s = str(header).strip()
    for open_q, close_q in _WRAPPING_QUOTES:
        if len(s) >= 2 and s.startswith(open_q) and s.endswith(close_q):
            s = s[1:-1].strip()
            break
    s = s.strip('"').strip()
    s = s.replace("\u00a0", " ")
    s = _DASHES.sub("-", s)
    s = s.replace("\u201c", '"').replace("\u201d", '"').replace("\u2019", "'")
    s = _WHITESPACE.sub(" ", s.lower())
    return _DISALLOWED.sub("", s)


def _build_lookup() -> Dict[str, Optional[str]]:
    lookup: Dict[str, Optional[str]] = {}
    for alt, canon in HEADER_SYNONYMS.items():
        lookup[normalize_header(alt)] = canon
    # exact canonical names always win over synonyms
    for req in REQUIRED_HEADERS:
        lookup[normalize_header(req)] = req
    return lookup


CANONICAL_FROM_NORM: Dict[str, Optional[str]] = _build_lookup()


def canonical_for(header: Any) -> Optional[str]:
    """Return the canonical field for a raw header, or None when it is ignored."""
    return CANONICAL_FROM_NORM.get(normalize_header(header))


@dataclass
class HeaderCheck:
    ok: bool
    missing: List[str] = field(default_factory=list)


def validate_headers(headers: Iterable[Any]) -> HeaderCheck:
    """
    Validate a header set.

    Accepted when every MIN_HEADERS entry resolves; ``missing`` always lists
    the full-set gaps so callers can report them even on success.
    """
    present = {canon for canon in (canonical_for(h) for h in headers) if canon}
    missing_all = [h for h in REQUIRED_HEADERS if h not in present]
    missing_min = [h for h in MIN_HEADERS if h not in present]
    return HeaderCheck(ok=not missing_min, missing=missing_all)


def remap_row(raw: Dict[Any, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in raw.items():
        canon = canonical_for(key)
        if canon:
            out[canon] = value
    return out


def fill_defaults(row: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key in REQUIRED_HEADERS:
        value = row.get(key)
        if value is None:
            value = ""
        if key in NUMERIC_HEADERS:
            value = number_or_zero(value)
        out[key] = value
    return out
