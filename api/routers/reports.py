# WORKFLOW: Report and maintenance endpoints over stored transactions.
# Used by: Item movement screen, department screens, admin screen, CSV downloads
# Endpoints:
# 1. GET /subdepartments - Sub-department options
# 2. GET /range - Per-item aggregate for a date window
# 3. POST /search-upcs - Aggregate restricted to a list of item codes
# 4. GET /export - Same aggregate as a CSV attachment
# 5. POST /refresh - Refresh store statistics
# 6. GET /admin/summary - Row count, date span and last upload
#
# Request flow: query/body -> filter validation -> ReportService -> JSON rows | CSV

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from api.schemas.request import SearchUpcsRequest
from api.schemas.response import AdminSummary, SubdepartmentOption
from db.repository import admin_summary, optimize
from db.session import Database, get_database, get_db
from services.reports import ReportService, build_filter, export_csv, export_filename

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reports"])


def _filter_or_400(start, end, subdept=None, subdept_start=None, subdept_end=None):
    try:
        return build_filter(start, end, subdept, subdept_start, subdept_end)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/subdepartments", response_model=List[SubdepartmentOption])
def list_subdepartments(db: Session = Depends(get_db)):
    return ReportService(db).subdepartments()


@router.get("/range")
def range_report(
    start: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    end: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    subdept: Optional[str] = Query(None),
    subdept_start: Optional[str] = Query(None),
    subdept_end: Optional[str] = Query(None),
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    report_filter = _filter_or_400(start, end, subdept, subdept_start, subdept_end)
    return ReportService(db).range(report_filter)


@router.post("/search-upcs")
def search_upcs(request: SearchUpcsRequest, db: Session = Depends(get_db)) -> List[Dict[str, Any]]:
    report_filter = _filter_or_400(request.start, request.end, request.subdept)
    if request.subdept in (None, "") and request.subdept_start and request.subdept_end:
        report_filter = _filter_or_400(
            request.start, request.end, None, request.subdept_start, request.subdept_end
        )
    return ReportService(db).search_upcs(report_filter, request.upcs)


@router.get("/export")
def export_report(
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    subdept: Optional[str] = Query(None),
    subdept_start: Optional[str] = Query(None),
    subdept_end: Optional[str] = Query(None),
    upcs: Optional[str] = Query(None, description="Comma separated item codes"),
    db: Session = Depends(get_db),
):
    report_filter = _filter_or_400(start, end, subdept, subdept_start, subdept_end)
    service = ReportService(db)
    if upcs and upcs.strip():
        rows = service.search_upcs(report_filter, [u.strip() for u in upcs.split(",")])
    else:
        rows = service.range(report_filter)

    filename = export_filename(report_filter)
    logger.info(f"Exporting {len(rows)} rows as {filename}")
    return Response(
        content=export_csv(rows),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/refresh")
def refresh_store(database: Database = Depends(get_database)):
    try:
        optimize(database.engine)
    except Exception as e:
        logger.error(f"Store refresh failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Refresh failed: {str(e)}",
        )
    return {"status": "ok"}


@router.get("/admin/summary", response_model=AdminSummary)
def store_summary(db: Session = Depends(get_db)):
    return admin_summary(db)
