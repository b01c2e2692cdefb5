# WORKFLOW: Read-side reports over stored transactions.
# Used by: Report endpoints (/range, /search-upcs, /export, /subdepartments)
# Functions:
# 1. validate_date_range() - Require ISO start/end dates
# 2. ReportService.range() - Per-item aggregate over a date window (+ subdepartment filter)
# 3. ReportService.search_upcs() - Same aggregate restricted to a list of item codes
# 4. ReportService.subdepartments() - Dimension list with display labels
# 5. export_csv() / export_filename() - Delimited-text rendering with attachment name
#
# Report flow: query params -> validation -> aggregate SQL -> JSON rows | CSV text

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import pandas as pd
from sqlalchemy.orm import Session

from db.repository import query_subdepartments, range_aggregate
from etl.coercers import int_or_zero, pad13

ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

EXPORT_COLUMNS = [
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
]


@dataclass
class ReportFilter:
    start: str
    end: str
    subdept: Optional[int] = None
    subdept_start: Optional[int] = None
    subdept_end: Optional[int] = None


def validate_date_range(start: Optional[str], end: Optional[str]) -> ReportFilter:
    start = (start or "").strip()
    end = (end or "").strip()
    if not ISO_DATE.match(start) or not ISO_DATE.match(end):
        raise ValueError("start and end are required in YYYY-MM-DD")
    return ReportFilter(start=start, end=end)


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int_or_zero(value)


def build_filter(start: Optional[str], end: Optional[str], subdept: Any = None,
                 subdept_start: Any = None, subdept_end: Any = None) -> ReportFilter:
    report_filter = validate_date_range(start, end)
    report_filter.subdept = _optional_int(subdept)
    report_filter.subdept_start = _optional_int(subdept_start)
    report_filter.subdept_end = _optional_int(subdept_end)
    return report_filter


class ReportService:
    def __init__(self, db: Session):
        self.db = db

    def subdepartments(self) -> List[Dict[str, Any]]:
        return [
            {"subdept_no": s.subdept_no, "label": f"{s.subdept_no} - {s.subdept_desc}"}
            for s in query_subdepartments(self.db)
        ]

    def range(self, report_filter: ReportFilter) -> List[Dict[str, Any]]:
        return range_aggregate(
            self.db,
            report_filter.start,
            report_filter.end,
            subdept=report_filter.subdept,
            subdept_start=report_filter.subdept_start,
            subdept_end=report_filter.subdept_end,
        )

    def search_upcs(self, report_filter: ReportFilter, upcs: List[Any]) -> List[Dict[str, Any]]:
        codes = [pad13(u) for u in upcs if str(u).strip()]
        if not codes:
            return []
        return range_aggregate(
            self.db,
            report_filter.start,
            report_filter.end,
            subdept=report_filter.subdept,
            subdept_start=report_filter.subdept_start,
            subdept_end=report_filter.subdept_end,
            item_codes=codes,
        )


def export_filename(report_filter: ReportFilter) -> str:
    start = report_filter.start.replace("-", "")
    end = report_filter.end.replace("-", "")
    return f"item_movement_{start}_{end}.csv"


def export_csv(rows: List[Dict[str, Any]]) -> str:
    """Render aggregate rows as CSV with a header row (header only when empty)."""
    df = pd.DataFrame(rows, columns=EXPORT_COLUMNS)
    return df.to_csv(index=False)
