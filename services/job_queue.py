# WORKFLOW: Durable upload job queue persisted in the relational store.
# Used by: Upload endpoint (async mode), job status endpoint, job worker
# Functions:
# 1. create() - Insert a job in 'queued' state
# 2. start() - queued|processing -> processing (idempotent restart after a crash)
# 3. claim() / try_claim() - Oldest (or given) queued job -> processing; only one caller wins
# 4. finish() - processing -> done with the result payload
# 5. fail() - queued|processing -> error with a truncated message
# 6. peek_next() / get() - Read side for workers and status polling
# 7. requeue_stale() - processing jobs left behind by a dead worker -> queued
#
# State machine: queued -> processing -> {done | error}; done and error are terminal.
# Every transition is a single conditioned UPDATE, so it is atomic per row and a
# transition out of a terminal state simply matches zero rows.

"""
Durable upload job queue persisted in the relational store.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import select, update

from core.config import settings
from db.models import UploadJob
from db.session import Database

logger = logging.getLogger(__name__)

QUEUED = "queued"
PROCESSING = "processing"
DONE = "done"
ERROR = "error"

TERMINAL_STATUSES = frozenset([DONE, ERROR])
STARTABLE_STATUSES = (QUEUED, PROCESSING)


def truncate_error(message: str, limit: Optional[int] = None) -> str:
    limit = limit or settings.job_error_max_length
    return message if len(message) <= limit else message[:limit]


class JobQueue:
    """Upload jobs stored in ``upload_jobs`` with conditioned status transitions."""

    def __init__(self, database: Database):
        self.database = database

    def create(self, job_id: str, original_name: str, tmp_path: str, size_bytes: int) -> UploadJob:
        with self.database.session() as session:
            job = UploadJob(
                id=job_id,
                original_name=original_name,
                tmp_path=tmp_path,
                size_bytes=size_bytes,
                status=QUEUED,
                queued_at=datetime.now(timezone.utc),
            )
            session.add(job)
            session.flush()
            session.expunge(job)
        logger.info(f"Queued job {job_id} for {original_name} ({size_bytes} bytes)")
        return job

    def _transition(self, job_id: str, allowed, **values) -> bool:
        stmt = (
            update(UploadJob)
            .where(UploadJob.id == job_id, UploadJob.status.in_(allowed))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with self.database.session() as session:
            changed = session.execute(stmt).rowcount
        return changed == 1

    def start(self, job_id: str) -> bool:
        """Move a queued (or crashed processing) job to processing."""
        ok = self._transition(
            job_id, STARTABLE_STATUSES,
            status=PROCESSING, started_at=datetime.now(timezone.utc), error=None,
        )
        if ok:
            logger.info(f"Job {job_id} started")
        else:
            logger.warning(f"Job {job_id} could not be started (missing or terminal)")
        return ok

    def finish(self, job_id: str, result: Dict[str, Any]) -> bool:
        ok = self._transition(
            job_id, (PROCESSING,),
            status=DONE, finished_at=datetime.now(timezone.utc), result=result, error=None,
        )
        if ok:
            logger.info(f"Job {job_id} done")
        else:
            logger.warning(f"Job {job_id} could not be finished (not processing)")
        return ok

    def fail(self, job_id: str, error: str) -> bool:
        ok = self._transition(
            job_id, STARTABLE_STATUSES,
            status=ERROR, finished_at=datetime.now(timezone.utc), error=truncate_error(str(error)),
        )
        if ok:
            logger.info(f"Job {job_id} failed: {str(error)[:200]}")
        else:
            logger.warning(f"Job {job_id} could not be marked failed (missing or terminal)")
        return ok

    def peek_next(self) -> Optional[UploadJob]:
        """Oldest queued job (FIFO by queued_at), or None."""
        stmt = (
            select(UploadJob)
            .where(UploadJob.status == QUEUED)
            .order_by(UploadJob.queued_at.asc(), UploadJob.id.asc())
            .limit(1)
        )
        with self.database.session() as session:
            job = session.execute(stmt).scalar_one_or_none()
            if job is not None:
                session.expunge(job)
            return job

    def claim(self, max_attempts: int = 5) -> Optional[UploadJob]:
        """
        Claim the oldest queued job for this worker.

        Another worker can win the race between peek and claim; in that case
        the next queued job is tried.
        """
        for _ in range(max_attempts):
            job = self.peek_next()
            if job is None:
                return None
            if self.try_claim(job.id):
                return self.get(job.id)
            logger.debug(f"Job {job.id} was claimed by another worker")
        return None

    def try_claim(self, job_id: str) -> bool:
        """queued -> processing. Exactly one caller succeeds per job."""
        ok = self._transition(
            job_id, (QUEUED,),
            status=PROCESSING, started_at=datetime.now(timezone.utc), error=None,
        )
        if ok:
            logger.info(f"Job {job_id} claimed")
        return ok

    def requeue_stale(self, older_than: Optional[float] = None) -> int:
        """
        Put processing jobs whose worker died back in the queue.

        Args:
            older_than: Seconds since started_at after which a processing job is
                considered abandoned (defaults to settings.job_stale_after)

        Returns:
            Number of jobs moved back to queued
        """
        older_than = older_than if older_than is not None else settings.job_stale_after
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=older_than)
        stmt = (
            update(UploadJob)
            .where(UploadJob.status == PROCESSING, UploadJob.started_at <= cutoff)
            .values(status=QUEUED, started_at=None)
            .execution_options(synchronize_session=False)
        )
        with self.database.session() as session:
            count = session.execute(stmt).rowcount
        if count:
            logger.warning(f"Requeued {count} stale processing job(s)")
        return count

    def get(self, job_id: str) -> Optional[UploadJob]:
        with self.database.session() as session:
            job = session.get(UploadJob, job_id)
            if job is not None:
                session.expunge(job)
            return job

    @staticmethod
    def status_payload(job: UploadJob) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"id": job.id, "status": job.status}
        if job.result is not None:
            payload["result"] = job.result
        if job.error:
            payload["error"] = job.error
        return payload
