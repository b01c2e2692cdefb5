# WORKFLOW: Fact record construction, canonical form and content hashing.
# Used by: Ingestion pipeline
# Functions:
# 1. build_transaction() - Canonical row dict -> TransactionRecord (None if date unparseable)
# 2. canonicalize() - Stable JSON over the 19 canonical fields in fixed order
# 3. content_hash() - SHA-256 hex digest used as the storage uniqueness key
#
# Canonical flow: canonical row -> coerce fields -> canonical JSON -> sha256 -> content_hash
# The source file name is not part of the canonical form, so identical rows
# from different uploads collide and are stored once.

import hashlib
import json
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from etl.coercers import int_or_zero, number_or_zero, pad13, parse_date_to_iso


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _fixed6(value: float) -> str:
    # adding 0.0 folds -0.0 into 0.0
    return f"{value + 0.0:.6f}"


@dataclass
class TransactionRecord:
    date_iso: str
    item_code: str
    item_brand: str
    item_pos_desc: str
    subdept_no: int
    subdept_desc: str
    category_no: int
    category_desc: str
    vendor_id: str
    vendor_name: str
    units_sum: float
    amount_sum: float
    weight_volume_sum: float
    bl_profit: float
    bl_margin: float
    bl_rank: float
    bl_ratio: float
    prop_rank: float
    prop_ratio: float
    source_filename: str
    content_hash: str = ""

    def to_row(self) -> Dict[str, Any]:
        return asdict(self)


def build_transaction(row: Dict[str, Any], source_filename: str) -> Optional[TransactionRecord]:
    """Build a hashed fact record from a canonical row, or None when the date is unusable."""
    date_iso = parse_date_to_iso(row.get("Date"))
    if not date_iso:
        return None

    record = TransactionRecord(
        date_iso=date_iso,
        item_code=pad13(row.get("Item-Code")),
        item_brand=_text(row.get("Item-Brand")),
        item_pos_desc=_text(row.get("Item-POS description")),
        subdept_no=int_or_zero(row.get("Sub-department-Number")),
        subdept_desc=_text(row.get("Sub-department-Description")),
        category_no=int_or_zero(row.get("Category-Number")),
        category_desc=_text(row.get("Category-Description")),
        vendor_id=_text(row.get("Vendor-ID")),
        vendor_name=_text(row.get("Vendor-Name")),
        units_sum=number_or_zero(row.get("Units-Sum")),
        amount_sum=number_or_zero(row.get("Amount-Sum")),
        weight_volume_sum=number_or_zero(row.get("Weight/Volume-Sum")),
        bl_profit=number_or_zero(row.get("Bottom line-Profit")),
        bl_margin=number_or_zero(row.get("Bottom line-Margin")),
        bl_rank=number_or_zero(row.get("Bottom line-Rank")),
        bl_ratio=number_or_zero(row.get("Bottom line-Ratio")),
        prop_rank=number_or_zero(row.get("Proportion-Rank")),
        prop_ratio=number_or_zero(row.get("Proportion-Ratio")),
        source_filename=source_filename,
    )
    record.content_hash = content_hash(canonicalize(record))
    return record


def canonicalize(record: TransactionRecord) -> str:
    # Key order follows REQUIRED_HEADERS; json.dumps keeps insertion order.
    obj = {
        "Date": record.date_iso,
        "Item-Code": record.item_code,
        "Item-Brand": record.item_brand.strip(),
        "Item-POS description": record.item_pos_desc.strip(),
        "Sub-department-Number": str(record.subdept_no),
        "Sub-department-Description": record.subdept_desc.strip(),
        "Category-Number": str(record.category_no),
        "Category-Description": record.category_desc.strip(),
        "Vendor-ID": record.vendor_id.strip(),
        "Vendor-Name": record.vendor_name.strip(),
        "Units-Sum": _fixed6(record.units_sum),
        "Amount-Sum": _fixed6(record.amount_sum),
        "Weight/Volume-Sum": _fixed6(record.weight_volume_sum),
        "Bottom line-Profit": _fixed6(record.bl_profit),
        "Bottom line-Margin": _fixed6(record.bl_margin),
        "Bottom line-Rank": _fixed6(record.bl_rank),
        "Bottom line-Ratio": _fixed6(record.bl_ratio),
        "Proportion-Rank": _fixed6(record.prop_rank),
        "Proportion-Ratio": _fixed6(record.prop_ratio),
    }
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"))


def content_hash(canonical: str) -> str:
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
