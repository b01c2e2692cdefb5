# WORKFLOW: Upload and job status endpoints.
# Used by: Admin upload screen, scripted uploads, job polling clients
# Endpoints:
# 1. POST /upload - Store the file, then ingest inline (sync) or queue a job (async)
# 2. GET /jobs/{job_id} - Poll the state of an async upload job
#
# Sync flow: multipart file -> extension/size checks -> temp file -> IngestionPipeline -> result
# Async flow: multipart file -> checks -> temp file -> JobQueue.create -> 202 {id, status}
#             -> JobWorker claims it -> client polls /jobs/{id}

import logging
import os
import re
import time
import uuid
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import JSONResponse

from api.schemas.response import IngestResultResponse, JobAcceptedResponse, JobStatusResponse
from core.config import settings
from core.exceptions import HeaderValidationError, ParseError, StorageError, UnsupportedFileType
from db.session import Database, get_database
from etl.parsers import file_extension
from etl.pipeline import IngestionPipeline
from services.job_queue import JobQueue

logger = logging.getLogger(__name__)

router = APIRouter(tags=["upload"])

_UNSAFE_NAME = re.compile(r"[^\w.\- ]+")
_COPY_CHUNK = 1024 * 1024


class UploadTooLarge(Exception):
    pass


def sanitize_filename(name: str) -> str:
    return _UNSAFE_NAME.sub("_", os.path.basename(name or "upload"))


def _save_upload(file: UploadFile, limit: int) -> tuple[str, int]:
    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    dest = upload_dir / f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{sanitize_filename(file.filename)}"

    size = 0
    try:
        with open(dest, "wb") as out:
            while True:
                chunk = file.file.read(_COPY_CHUNK)
                if not chunk:
                    break
                size += len(chunk)
                if size > limit:
                    raise UploadTooLarge()
                out.write(chunk)
    except UploadTooLarge:
        dest.unlink(missing_ok=True)
        raise
    return str(dest), size


def _error(status_code: int, error: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, **extra})


@router.post(
    "/upload",
    response_model=IngestResultResponse,
    response_model_by_alias=True,
    responses={202: {"model": JobAcceptedResponse}},
)
def upload_file(
    request: Request,
    file: Optional[UploadFile] = File(None),
    mode: Optional[str] = Query(None, pattern="^(sync|async)$"),
    database: Database = Depends(get_database),
):
    """
    Upload a POS export (.csv or workbook) for ingestion.

    In sync mode the ingestion result is returned directly. In async mode a
    job id is returned and the file is processed by a background worker.
    """
    if file is None or not file.filename:
        return _error(status.HTTP_400_BAD_REQUEST, "Missing file")

    ext = file_extension(file.filename)
    if ext not in settings.allowed_extensions:
        allowed = " or ".join(settings.allowed_extensions)
        return _error(status.HTTP_400_BAD_REQUEST, f"Only {allowed} files are allowed")

    try:
        tmp_path, size = _save_upload(file, settings.max_upload_bytes)
    except UploadTooLarge:
        return _error(
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            f"File too large. Max {settings.max_upload_mb} MB.",
        )

    mode = mode or settings.upload_mode
    if mode == "async":
        queue = JobQueue(database)
        job = queue.create(uuid.uuid4().hex, file.filename, tmp_path, size)
        worker = getattr(request.app.state, "worker", None)
        if worker is not None:
            worker.notify()
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content={"id": job.id, "status": job.status},
        )

    pipeline = IngestionPipeline(database)
    try:
        result = pipeline.process_upload(tmp_path, file.filename)
    except HeaderValidationError as e:
        return _error(status.HTTP_400_BAD_REQUEST, "Header validation failed", missingHeaders=e.missing)
    except UnsupportedFileType as e:
        return _error(status.HTTP_400_BAD_REQUEST, str(e))
    except ParseError as e:
        logger.error(f"Upload failed during parse: {e}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Upload failed during parse", message=str(e))
    except StorageError as e:
        logger.error(f"Upload failed during insert: {e}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Upload failed during insert", message=str(e))
    finally:
        Path(tmp_path).unlink(missing_ok=True)

    return result.to_payload()


@router.get("/jobs/{job_id}", response_model=JobStatusResponse, response_model_exclude_none=True)
def get_job_status(job_id: str, database: Database = Depends(get_database)):
    """Return {id, status, result?, error?} for an upload job."""
    job = JobQueue(database).get(job_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return JobQueue.status_payload(job)
