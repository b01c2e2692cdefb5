# WORKFLOW: File parsing for uploaded POS exports (CSV and spreadsheet workbooks).
# Used by: Ingestion pipeline
# Functions:
# 1. parse_uploaded_file() - Dispatch on file extension
# 2. parse_csv() - Chunked CSV read (BOM tolerant, blank lines skipped, values trimmed)
# 3. parse_workbook() - First sheet of an .xlsb/.xlsx workbook, every cell as text
# 4. finalize_rows() - Shared header validation and canonical remapping
#
# Parse flow: file -> raw rows (header row = field names) -> validate headers ->
#             remap to canonical names -> fill defaults -> ParsedFile

"""
File parsing for uploaded POS exports.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from core.config import settings
from core.exceptions import ParseError, UnsupportedFileType
from etl.headers import REQUIRED_HEADERS, fill_defaults, remap_row, validate_headers

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = {".csv"}
WORKBOOK_ENGINES = {".xlsb": "pyxlsb", ".xlsx": "openpyxl"}


@dataclass
class ParsedFile:
    rows: List[Dict[str, Any]] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    headers: List[str] = field(default_factory=list)


def file_extension(name: str) -> str:
    return Path(name).suffix.lower()


def is_supported(name: str) -> bool:
    ext = file_extension(name)
    return ext in CSV_EXTENSIONS or ext in WORKBOOK_ENGINES


def finalize_rows(headers: List[str], raw_rows: List[Dict[str, Any]]) -> ParsedFile:
    """Validate the header set and remap every raw row to canonical fields."""
    if not raw_rows:
        return ParsedFile(rows=[], missing=list(REQUIRED_HEADERS), headers=headers)

    check = validate_headers(headers)
    if not check.ok:
        logger.warning(f"Header validation failed, missing: {check.missing}")
        return ParsedFile(rows=[], missing=check.missing, headers=headers)
    if check.missing:
        logger.info(f"Optional headers absent: {check.missing}")

    rows = [fill_defaults(remap_row(raw)) for raw in raw_rows]
    return ParsedFile(rows=rows, missing=[], headers=headers)


def _strip_record(record: Dict[str, Any]) -> Dict[str, Any]:
    return {str(k).strip(): (v.strip() if isinstance(v, str) else v) for k, v in record.items()}


def parse_csv(file_path: str, chunk_size: Optional[int] = None) -> ParsedFile:
    """
    Parse a delimited text export.

    Args:
        file_path: Path to the CSV file
        chunk_size: Rows per pandas chunk (defaults to settings.csv_chunk_size)

    Returns:
        ParsedFile with canonical rows or the list of missing headers
    """
    chunk_size = chunk_size or settings.csv_chunk_size
    headers: List[str] = []
    raw_rows: List[Dict[str, Any]] = []

    try:
        reader = pd.read_csv(
            file_path,
            dtype=str,
            keep_default_na=False,
            na_filter=False,
            skip_blank_lines=True,
            encoding="utf-8-sig",
            index_col=False,
            chunksize=chunk_size,
        )
        with reader:
            for chunk in reader:
                if not headers:
                    headers = [str(c).strip() for c in chunk.columns]
                raw_rows.extend(_strip_record(rec) for rec in chunk.to_dict(orient="records"))
    except pd.errors.EmptyDataError:
        logger.warning(f"CSV file {file_path} is empty")
        return ParsedFile(rows=[], missing=list(REQUIRED_HEADERS))
    except (pd.errors.ParserError, UnicodeDecodeError, ValueError) as e:
        logger.error(f"Failed to parse CSV file {file_path}: {e}")
        raise ParseError(f"Malformed CSV: {e}") from e

    logger.info(f"Parsed {len(raw_rows)} CSV rows from {file_path}")
    return finalize_rows(headers, raw_rows)


def cell_to_text(value: Any) -> str:
    """Render a workbook cell the way it would appear in a CSV export."""
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (pd.Timestamp, datetime)):
        if pd.isna(value):
            return ""
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if value is pd.NaT:
        return ""
    return str(value).strip()


def _is_blank(record: Iterable[str]) -> bool:
    return all(v == "" for v in record)


def parse_workbook(file_path: str, engine: Optional[str] = None) -> ParsedFile:
    """
    Parse the first sheet of a workbook, using its first row as headers.

    Args:
        file_path: Path to the workbook
        engine: pandas Excel engine (pyxlsb for .xlsb, openpyxl for .xlsx)

    Returns:
        ParsedFile with canonical rows or the list of missing headers
    """
    try:
        df = pd.read_excel(
            file_path,
            sheet_name=0,
            header=0,
            dtype=object,
            engine=engine,
            keep_default_na=False,
            na_values=[],
        )
    except Exception as e:
        logger.error(f"Failed to parse workbook {file_path}: {e}")
        raise ParseError(f"Malformed workbook: {e}") from e

    headers = [cell_to_text(c) for c in df.columns]
    raw_rows: List[Dict[str, Any]] = []
    for values in df.itertuples(index=False, name=None):
        texts = [cell_to_text(v) for v in values]
        if _is_blank(texts):
            continue
        raw_rows.append(dict(zip(headers, texts)))

    logger.info(f"Parsed {len(raw_rows)} workbook rows from first sheet of {file_path}")
    return finalize_rows(headers, raw_rows)


def parse_uploaded_file(file_path: str, original_name: str) -> ParsedFile:
    """Parse an upload, choosing the parser from the original file name."""
    ext = file_extension(original_name)
    if ext in CSV_EXTENSIONS:
        return parse_csv(file_path)
    if ext in WORKBOOK_ENGINES:
        return parse_workbook(file_path, engine=WORKBOOK_ENGINES[ext])
    raise UnsupportedFileType(original_name)
