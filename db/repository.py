# WORKFLOW: Storage operations on the POS sales store.
# Used by: Ingestion pipeline, report service, admin endpoints
# Functions:
# 1. insert_transactions() - INSERT ... ON CONFLICT(content_hash) DO NOTHING for one batch
# 2. upsert_subdepartments() - insert or overwrite sub-department descriptions
# 3. insert_upload_meta() - append one audit row per completed ingestion
# 4. count_transactions() - table-wide fact count
# 5. query_subdepartments() / range_aggregate() - read side used by reports
# 6. admin_summary() / optimize() - maintenance helpers
#
# Write flow: batch of fact dicts -> dialect insert-or-ignore -> caller commits the transaction

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

from sqlalchemy import func, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from core.exceptions import StorageError
from db.models import RawTransaction, Subdepartment, UploadMeta

logger = logging.getLogger(__name__)


def _dialect_insert(session: Session, table):
    name = session.get_bind().dialect.name
    if name == "sqlite":
        return sqlite.insert(table)
    if name == "postgresql":
        return postgresql.insert(table)
    raise StorageError(f"Insert-or-ignore is not supported on dialect {name!r}")


def insert_transactions(session: Session, rows: List[Dict[str, Any]]) -> None:
    """Insert fact rows, silently skipping rows whose content_hash already exists."""
    if not rows:
        return
    stmt = _dialect_insert(session, RawTransaction.__table__).on_conflict_do_nothing(
        index_elements=["content_hash"]
    )
    session.execute(stmt, rows)


def upsert_subdepartments(session: Session, pairs: Iterable[Tuple[int, str]]) -> int:
    """Insert or overwrite (subdept_no, subdept_desc) pairs; last writer wins."""
    params = [{"subdept_no": no, "subdept_desc": desc} for no, desc in pairs]
    if not params:
        return 0
    stmt = _dialect_insert(session, Subdepartment.__table__)
    stmt = stmt.on_conflict_do_update(
        index_elements=["subdept_no"],
        set_={"subdept_desc": stmt.excluded.subdept_desc},
    )
    session.execute(stmt, params)
    return len(params)


def insert_upload_meta(session: Session, file_name: str, rows_parsed: int,
                       inserted: int, ignored: int) -> UploadMeta:
    meta = UploadMeta(
        file_name=file_name,
        uploaded_at=datetime.now(timezone.utc),
        rows_parsed=rows_parsed,
        inserted=inserted,
        ignored=ignored,
    )
    session.add(meta)
    return meta


def count_transactions(session: Session) -> int:
    return session.execute(select(func.count()).select_from(RawTransaction)).scalar_one()


def query_subdepartments(session: Session) -> List[Subdepartment]:
    return list(
        session.execute(select(Subdepartment).order_by(Subdepartment.subdept_no.asc())).scalars()
    )


def range_aggregate(
    session: Session,
    start: str,
    end: str,
    subdept: Optional[int] = None,
    subdept_start: Optional[int] = None,
    subdept_end: Optional[int] = None,
    item_codes: Optional[List[str]] = None,
) -> List[Dict[str, Any]]:
    """
    Aggregate facts per item code over an inclusive ISO date window.

    Keys of each returned dict are canonical export headers so the rows
    can be written straight to CSV.
    """
    t = RawTransaction
    amount = func.round(func.sum(t.amount_sum), 2).label("Amount-Sum")
    stmt = (
        select(
            t.item_code.label("Item-Code"),
            func.max(t.item_brand).label("Item-Brand"),
            func.max(t.item_pos_desc).label("Item-POS description"),
            func.max(t.subdept_no).label("Sub-department-Number"),
            func.max(t.subdept_desc).label("Sub-department-Description"),
            func.max(t.category_no).label("Category-Number"),
            func.max(t.category_desc).label("Category-Description"),
            func.max(t.vendor_id).label("Vendor-ID"),
            func.max(t.vendor_name).label("Vendor-Name"),
            func.round(func.sum(t.units_sum), 6).label("Units-Sum"),
            amount,
        )
        .where(t.date_iso.between(start, end))
        .group_by(t.item_code)
        .order_by(amount.desc())
    )

    if subdept is not None:
        stmt = stmt.where(t.subdept_no == subdept)
    elif subdept_start is not None and subdept_end is not None:
        stmt = stmt.where(t.subdept_no.between(subdept_start, subdept_end))

    if item_codes is not None:
        stmt = stmt.where(t.item_code.in_(item_codes))

    return [dict(row) for row in session.execute(stmt).mappings()]


def admin_summary(session: Session) -> Dict[str, Any]:
    row_count, min_date, max_date = session.execute(
        select(func.count(), func.min(RawTransaction.date_iso), func.max(RawTransaction.date_iso))
    ).one()
    last = session.execute(
        select(UploadMeta).order_by(UploadMeta.uploaded_at.desc(), UploadMeta.id.desc()).limit(1)
    ).scalar_one_or_none()

    last_upload = None
    if last is not None:
        last_upload = {
            "file_name": last.file_name,
            "uploaded_at": last.uploaded_at.isoformat(),
            "rows_parsed": last.rows_parsed,
            "inserted": last.inserted,
            "ignored": last.ignored,
        }
    return {
        "rowCount": row_count,
        "minDate": min_date,
        "maxDate": max_date,
        "lastUpload": last_upload,
    }


def optimize(engine) -> None:
    """Refresh planner statistics; VACUUM on SQLite when the file is not busy."""
    with engine.connect() as conn:
        if engine.dialect.name == "sqlite":
            conn.execute(text("PRAGMA analysis_limit=400"))
            conn.execute(text("PRAGMA optimize"))
        conn.execute(text("ANALYZE"))
        conn.commit()

    if engine.dialect.name == "sqlite":
        try:
            with engine.connect().execution_options(isolation_level="AUTOCOMMIT") as conn:
                conn.execute(text("VACUUM"))
        except Exception as e:
            logger.warning(f"VACUUM skipped: {e}")
