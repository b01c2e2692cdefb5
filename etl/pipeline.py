# WORKFLOW: Ingestion pipeline for uploaded POS export files.
# Used by: Upload endpoint (sync mode), job worker (async mode), ingest CLI script
# Functions:
# 1. IngestionPipeline.process_upload() - End-to-end ingestion of one file
# 2. IngestionPipeline._flush() - Commit one batch with insert-or-ignore semantics
# 3. IngestResult.to_payload() - camelCase result payload for API/job consumers
#
# Ingestion flow: Parse file -> Validate headers -> Coerce + hash rows -> Batched insert-or-ignore ->
#                 Upsert subdepartments -> Audit record -> Result summary
# Batches commit in file order, one transaction each. Completed batches stay committed if a
# later batch fails. inserted/ignored come from table-wide counts taken before and after the run,
# so they are exact only while this pipeline is the sole writer.

"""
Ingestion pipeline for uploaded POS export files.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy.exc import SQLAlchemyError

from core.config import settings
from core.exceptions import HeaderValidationError, StorageError
from db.repository import (
    count_transactions, insert_transactions, insert_upload_meta, upsert_subdepartments
)
from db.session import Database
from etl.canonical import TransactionRecord, build_transaction
from etl.parsers import parse_uploaded_file

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    file_name: str
    rows_parsed: int
    inserted: int
    ignored: int
    sample_dates: List[str] = field(default_factory=list)
    elapsed_ms: int = 0

    def to_payload(self) -> Dict[str, Any]:
        return {
            "fileName": self.file_name,
            "rowsParsed": self.rows_parsed,
            "inserted": self.inserted,
            "ignored": self.ignored,
            "sampleDates": list(self.sample_dates),
            "elapsedMs": self.elapsed_ms,
        }


class IngestionPipeline:
    """Parses, deduplicates and loads one upload at a time into the store."""

    def __init__(self, database: Database, batch_size: Optional[int] = None):
        self.database = database
        self.batch_size = batch_size or settings.batch_size
        if self.batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.flush_count = 0
        self.flush_sizes: List[int] = []

    def process_upload(self, file_path: str, original_name: str) -> IngestResult:
        """
        Ingest one uploaded file.

        Args:
            file_path: Location of the uploaded bytes on disk
            original_name: Client file name (selects the parser, stored as source_filename)

        Returns:
            IngestResult summary of the run

        Raises:
            HeaderValidationError: minimum required columns are missing (nothing written)
            UnsupportedFileType: unknown extension
            ParseError: malformed file content
            StorageError: database failure
        """
        started = time.monotonic()
        self.flush_count = 0
        self.flush_sizes = []
        logger.info(f"Starting ingestion of {original_name}")

        parsed = parse_uploaded_file(file_path, original_name)
        if parsed.missing:
            raise HeaderValidationError(parsed.missing)

        try:
            before = self._count()
            processed = 0
            sample_dates: Set[str] = set()
            sub_pairs: Dict[int, str] = {}
            batch: List[TransactionRecord] = []

            for row in parsed.rows:
                record = build_transaction(row, original_name)
                if record is None:
                    continue
                batch.append(record)
                processed += 1
                sample_dates.add(record.date_iso)
                if record.subdept_no and record.subdept_desc:
                    sub_pairs[record.subdept_no] = record.subdept_desc
                if len(batch) >= self.batch_size:
                    self._flush(batch)
                    batch = []

            if batch:
                self._flush(batch)

            if sub_pairs:
                self._upsert_subdepartments(sub_pairs.items())

            inserted = self._count() - before
            ignored = processed - inserted

            with self.database.session() as session:
                insert_upload_meta(session, original_name, len(parsed.rows), inserted, ignored)
        except SQLAlchemyError as e:
            logger.error(f"Ingestion of {original_name} failed during storage: {e}")
            raise StorageError(str(e)) from e

        result = IngestResult(
            file_name=original_name,
            rows_parsed=len(parsed.rows),
            inserted=inserted,
            ignored=ignored,
            sample_dates=sorted(sample_dates),
            elapsed_ms=int((time.monotonic() - started) * 1000),
        )
        logger.info(
            f"Ingested {original_name}: parsed={result.rows_parsed} inserted={inserted} "
            f"ignored={ignored} batches={self.flush_count} in {result.elapsed_ms}ms"
        )
        return result

    def _count(self) -> int:
        with self.database.session() as session:
            return count_transactions(session)

    def _flush(self, batch: List[TransactionRecord]) -> None:
        with self.database.session() as session:
            insert_transactions(session, [record.to_row() for record in batch])
        self.flush_count += 1
        self.flush_sizes.append(len(batch))
        logger.debug(f"Committed batch {self.flush_count} ({len(batch)} rows)")

    def _upsert_subdepartments(self, pairs: Iterable[Tuple[int, str]]) -> None:
        ordered = sorted(pairs)
        with self.database.session() as session:
            upsert_subdepartments(session, ordered)
        logger.info(f"Upserted {len(ordered)} subdepartments")
