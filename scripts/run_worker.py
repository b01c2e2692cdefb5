# WORKFLOW: Standalone upload worker process.
# Used by: Deployments that run ingestion outside the API process (set RUN_WORKERS=false on the API)
# Functions:
# 1. main() - Initialize the database and drain the job queue until interrupted
#
# Worker flow: poll queue -> claim -> ingest -> finish/fail -> repeat

"""
Run upload workers against the shared job table.

Usage:
    python scripts/run_worker.py --concurrency 2 --poll-interval 1.0
"""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from core.config import settings  # noqa: E402
from db.session import Database, init_db  # noqa: E402
from services.worker import JobWorker  # noqa: E402

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Process queued POS upload jobs")
    parser.add_argument("--database-url", default=settings.database_url)
    parser.add_argument("--concurrency", type=int, default=settings.worker_count)
    parser.add_argument("--poll-interval", type=float, default=settings.worker_poll_interval)
    parser.add_argument("--once", action="store_true", help="Drain the queue and exit")
    parser.add_argument(
        "--requeue-stale", action="store_true",
        help="Requeue every processing job at startup (only when no other worker is running)",
    )
    args = parser.parse_args(argv)

    database = init_db(Database(args.database_url))
    worker = JobWorker(database, concurrency=args.concurrency, poll_interval=args.poll_interval)

    if args.requeue_stale:
        worker.queue.requeue_stale(0)

    if args.once:
        worker.queue.requeue_stale()
        processed = 0
        while worker.run_once():
            processed += 1
        logger.info(f"Processed {processed} job(s)")
        database.dispose()
        return 0

    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    worker.start()
    logger.info("Worker running; press Ctrl+C to stop")
    stop.wait()
    worker.stop()
    database.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
