"""Builders for POS export rows and files used across the test suite."""

import csv
from pathlib import Path
from typing import Dict, List, Optional

from etl.headers import REQUIRED_HEADERS


def sample_row(i: int, date: str = "2024-07-05", subdept: int = 12,
               subdept_desc: str = "DAIRY") -> Dict[str, str]:
    """One export row keyed by canonical headers; ``i`` makes the item code unique."""
    return {
        "Date": date,
        "Item-Code": str(70000000000 + i),
        "Item-Brand": "ACME",
        "Item-POS description": f"ITEM {i}",
        "Sub-department-Number": str(subdept),
        "Sub-department-Description": subdept_desc,
        "Category-Number": "3",
        "Category-Description": "CHILLED",
        "Vendor-ID": "V001",
        "Vendor-Name": "Acme Foods",
        "Units-Sum": str(i % 7 + 1),
        "Amount-Sum": f"{(i % 7 + 1) * 2.5:,.2f}",
        "Weight/Volume-Sum": "0",
        "Bottom line-Profit": "1.25",
        "Bottom line-Margin": "12.5%",
        "Bottom line-Rank": "4",
        "Bottom line-Ratio": "0.5",
        "Proportion-Rank": "9",
        "Proportion-Ratio": "(0.25)",
    }


def sample_rows(n: int, start: int = 0, **kwargs) -> List[Dict[str, str]]:
    return [sample_row(i, **kwargs) for i in range(start, start + n)]


def write_csv(path: Path, rows: List[Dict[str, str]], headers: Optional[List[str]] = None,
              rename: Optional[Dict[str, str]] = None, bom: bool = False) -> Path:
    """Write rows to CSV; ``rename`` maps canonical header -> header text written to the file."""
    headers = headers or list(REQUIRED_HEADERS)
    rename = rename or {}
    with open(path, "w", newline="", encoding="utf-8-sig" if bom else "utf-8") as f:
        writer = csv.writer(f)
        writer.writerow([rename.get(h, h) for h in headers])
        for row in rows:
            writer.writerow([row.get(h, "") for h in headers])
    return path
