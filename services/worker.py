# WORKFLOW: Background workers that drain the upload job queue.
# Used by: API startup (in-process workers), scripts/run_worker.py (standalone process)
# Functions:
# 1. run_job() - Execute the ingestion pipeline for one claimed job and record the outcome
# 2. JobWorker.run_once() - Claim and run the oldest queued job, if any
# 3. JobWorker.start()/stop() - Requeue abandoned jobs, then poll on one or more daemon threads
# 4. wait_for_job() - Bounded client-side poll until a job reaches a terminal state
#
# Worker flow: poll -> claim (queued -> processing) -> IngestionPipeline.process_upload ->
#              finish (done) | fail (error) -> remove temp file
# A client timeout in wait_for_job never changes server-side job state.

import logging
import os
import threading
import time
from typing import List, Optional

from core.config import settings
from core.exceptions import JobWaitTimeout
from db.models import UploadJob
from db.session import Database
from etl.pipeline import IngestionPipeline
from services.job_queue import TERMINAL_STATUSES, JobQueue

logger = logging.getLogger(__name__)


def _remove_file(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove temp file {path}: {e}")


def run_job(queue: JobQueue, pipeline: IngestionPipeline, job: UploadJob,
            remove_file: bool = True) -> bool:
    """
    Run ingestion for a job already in 'processing' and record its terminal state.

    Returns:
        True when the job finished successfully
    """
    try:
        result = pipeline.process_upload(job.tmp_path, job.original_name)
    except Exception as e:
        logger.error(f"Job {job.id} ({job.original_name}) failed: {e}")
        queue.fail(job.id, str(e) or type(e).__name__)
        return False
    finally:
        if remove_file:
            _remove_file(job.tmp_path)

    queue.finish(job.id, result.to_payload())
    return True


class JobWorker:
    """Polls the queue, claims jobs and runs them to completion."""

    def __init__(self, database: Database, concurrency: Optional[int] = None,
                 poll_interval: Optional[float] = None, batch_size: Optional[int] = None):
        self.database = database
        self.queue = JobQueue(database)
        self.concurrency = concurrency or settings.worker_count
        self.poll_interval = poll_interval if poll_interval is not None else settings.worker_poll_interval
        self.batch_size = batch_size
        self._stop = threading.Event()
        self._wake = threading.Event()
        self._threads: List[threading.Thread] = []

    def run_once(self) -> bool:
        """Claim and run one job. Returns False when the queue was empty."""
        job = self.queue.claim()
        if job is None:
            return False
        logger.info(f"Worker claimed job {job.id} ({job.original_name})")
        pipeline = IngestionPipeline(self.database, batch_size=self.batch_size)
        run_job(self.queue, pipeline, job)
        return True

    def notify(self) -> None:
        """Wake idle workers immediately (called after a job is queued)."""
        self._wake.set()

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                worked = self.run_once()
            except Exception as e:
                logger.error(f"Worker loop error: {e}")
                worked = False
            if not worked:
                self._wake.wait(self.poll_interval)
                self._wake.clear()

    def start(self) -> None:
        if self._threads:
            return
        self.queue.requeue_stale()
        self._stop.clear()
        for i in range(self.concurrency):
            thread = threading.Thread(target=self._loop, name=f"upload-worker-{i}", daemon=True)
            thread.start()
            self._threads.append(thread)
        logger.info(f"Started {self.concurrency} upload worker thread(s)")

    def stop(self, timeout: float = 10.0) -> None:
        self._stop.set()
        self._wake.set()
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []
        logger.info("Upload workers stopped")

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads)


def wait_for_job(queue: JobQueue, job_id: str, timeout: Optional[float] = None,
                 interval: float = 0.5) -> UploadJob:
    """
    Poll a job until it is done or errored.

    Raises:
        KeyError: unknown job id
        JobWaitTimeout: deadline passed first (the job keeps running)
    """
    timeout = timeout if timeout is not None else settings.job_wait_timeout
    deadline = time.monotonic() + timeout
    last_status = None
    while True:
        job = queue.get(job_id)
        if job is None:
            raise KeyError(job_id)
        last_status = job.status
        if job.status in TERMINAL_STATUSES:
            return job
        if time.monotonic() >= deadline:
            raise JobWaitTimeout(job_id, timeout, last_status)
        time.sleep(interval)
