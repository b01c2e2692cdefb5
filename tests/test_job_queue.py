"""Tests for the durable upload job queue state machine."""

import threading
from collections import Counter
from datetime import datetime, timedelta, timezone

from sqlalchemy import update

from db.models import UploadJob
from services.job_queue import DONE, ERROR, PROCESSING, QUEUED, JobQueue, truncate_error


class TestJobQueue:
    def setup_method(self):
        self.result = {"fileName": "a.csv", "rowsParsed": 1, "inserted": 1, "ignored": 0,
                       "sampleDates": ["2024-07-05"], "elapsedMs": 3}

    def _queue(self, database, *ids):
        queue = JobQueue(database)
        for job_id in ids:
            queue.create(job_id, f"{job_id}.csv", f"/tmp/{job_id}.csv", 10)
        return queue

    def test_create_is_queued(self, database):
        queue = self._queue(database, "job1")
        job = queue.get("job1")
        assert job.status == QUEUED
        assert job.original_name == "job1.csv"
        assert job.size_bytes == 10
        assert job.queued_at is not None
        assert job.started_at is None

    def test_happy_path(self, database):
        queue = self._queue(database, "job1")
        assert queue.start("job1")
        assert queue.get("job1").status == PROCESSING
        assert queue.finish("job1", self.result)

        job = queue.get("job1")
        assert job.status == DONE
        assert job.result == self.result
        assert job.error is None
        assert job.finished_at is not None

    def test_start_is_idempotent_for_processing(self, database):
        queue = self._queue(database, "job1")
        assert queue.start("job1")
        assert queue.start("job1")
        assert queue.get("job1").status == PROCESSING

    def test_terminal_states_are_final(self, database):
        queue = self._queue(database, "ok", "bad")
        queue.start("ok")
        queue.finish("ok", self.result)
        queue.fail("bad", "boom")

        assert not queue.start("ok")
        assert not queue.fail("ok", "late failure")
        assert not queue.finish("bad", self.result)
        assert not queue.start("bad")
        assert queue.get("ok").status == DONE
        assert queue.get("bad").status == ERROR
        assert queue.get("bad").error == "boom"

    def test_finish_requires_processing(self, database):
        queue = self._queue(database, "job1")
        assert not queue.finish("job1", self.result)
        assert queue.get("job1").status == QUEUED

    def test_unknown_job(self, database):
        queue = JobQueue(database)
        assert queue.get("missing") is None
        assert not queue.start("missing")
        assert not queue.fail("missing", "x")

    def test_error_message_is_truncated(self, database):
        queue = self._queue(database, "job1")
        queue.start("job1")
        queue.fail("job1", "x" * 5000)
        assert len(queue.get("job1").error) == 4000

    def test_truncate_error(self):
        assert truncate_error("short") == "short"
        assert truncate_error("abcdef", limit=3) == "abc"

    def test_peek_next_is_fifo(self, database):
        queue = self._queue(database, "first", "second", "third")
        assert queue.peek_next().id == "first"
        queue.start("first")
        assert queue.peek_next().id == "second"

    def test_claim_moves_oldest_to_processing(self, database):
        queue = self._queue(database, "first", "second")
        job = queue.claim()
        assert job.id == "first"
        assert job.status == PROCESSING
        assert job.started_at is not None
        assert queue.claim().id == "second"
        assert queue.claim() is None

    def test_status_payload(self, database):
        queue = self._queue(database, "ok", "bad", "waiting")
        queue.start("ok")
        queue.finish("ok", self.result)
        queue.fail("bad", "Header validation failed: Date")

        assert JobQueue.status_payload(queue.get("waiting")) == {"id": "waiting", "status": "queued"}
        assert JobQueue.status_payload(queue.get("ok")) == {"id": "ok", "status": "done", "result": self.result}
        assert JobQueue.status_payload(queue.get("bad")) == {
            "id": "bad", "status": "error", "error": "Header validation failed: Date",
        }

    def test_claim_after_stale_peek_loses(self, database):
        queue = self._queue(database, "job1")
        seen = queue.peek_next()
        assert queue.claim().id == seen.id
        assert not queue.try_claim(seen.id)
        assert queue.claim() is None

    def test_concurrent_claims_take_each_job_once(self, database):
        ids = [f"j{i:03d}" for i in range(30)]
        queue = self._queue(database, *ids)
        claimed = []
        lock = threading.Lock()

        def drain():
            own = JobQueue(database)
            while True:
                job = own.claim()
                if job is None:
                    return
                with lock:
                    claimed.append(job.id)

        threads = [threading.Thread(target=drain) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(60)

        # a thread can give up after losing several races in a row
        while True:
            job = queue.claim()
            if job is None:
                break
            claimed.append(job.id)

        duplicates = {job_id: n for job_id, n in Counter(claimed).items() if n > 1}
        assert duplicates == {}
        assert sorted(claimed) == ids


class TestRequeueStale:
    def _age(self, database, job_id, seconds):
        started = datetime.now(timezone.utc) - timedelta(seconds=seconds)
        with database.session() as session:
            session.execute(update(UploadJob).where(UploadJob.id == job_id).values(started_at=started))

    def test_old_processing_job_is_requeued(self, database):
        queue = JobQueue(database)
        queue.create("stuck", "stuck.csv", "/tmp/stuck.csv", 1)
        queue.create("busy", "busy.csv", "/tmp/busy.csv", 1)
        queue.claim()
        queue.claim()
        self._age(database, "stuck", 7200)

        assert queue.requeue_stale(3600) == 1

        stuck = queue.get("stuck")
        assert stuck.status == QUEUED
        assert stuck.started_at is None
        assert queue.get("busy").status == PROCESSING
        assert queue.claim().id == "stuck"

    def test_terminal_and_queued_jobs_untouched(self, database):
        queue = JobQueue(database)
        for job_id in ("done", "failed", "waiting"):
            queue.create(job_id, f"{job_id}.csv", f"/tmp/{job_id}.csv", 1)
        queue.start("done")
        queue.finish("done", {"inserted": 0})
        queue.fail("failed", "boom")

        assert queue.requeue_stale(0) == 0
        assert queue.get("done").status == DONE
        assert queue.get("failed").status == ERROR
        assert queue.get("waiting").status == QUEUED
