# WORKFLOW: Command-line ingestion of POS export files without the HTTP layer.
# Used by: Backfills, operators loading historical exports, local development
# Functions:
# 1. ingest_paths() - Run the ingestion pipeline over each file in order
# 2. main() - Parse arguments, initialize the database, print result payloads
#
# CLI flow: file paths -> init_db -> IngestionPipeline.process_upload per file -> JSON summary

"""
Ingest one or more POS export files directly into the sales store.

Usage:
    python scripts/ingest_file.py data/raw/week_27.csv data/raw/week_28.xlsb --batch-size 1000
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from core.config import settings  # noqa: E402
from core.exceptions import HeaderValidationError, IngestionError  # noqa: E402
from db.session import Database, init_db  # noqa: E402
from etl.pipeline import IngestionPipeline  # noqa: E402

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)


def ingest_paths(database: Database, paths: List[str], batch_size: int) -> int:
    """
    Ingest each file in order.

    Returns:
        Number of files that failed
    """
    pipeline = IngestionPipeline(database, batch_size=batch_size)
    failures = 0
    for path in paths:
        try:
            result = pipeline.process_upload(path, Path(path).name)
            print(json.dumps(result.to_payload()))
        except HeaderValidationError as e:
            failures += 1
            logger.error(f"{path}: missing headers {e.missing}")
        except IngestionError as e:
            failures += 1
            logger.error(f"{path}: {e}")
    return failures


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Ingest POS export files")
    parser.add_argument("paths", nargs="+", help="CSV or workbook files")
    parser.add_argument("--database-url", default=settings.database_url)
    parser.add_argument("--batch-size", type=int, default=settings.batch_size)
    args = parser.parse_args(argv)

    database = init_db(Database(args.database_url))
    try:
        failures = ingest_paths(database, args.paths, args.batch_size)
    finally:
        database.dispose()
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
