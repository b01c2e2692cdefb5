# WORKFLOW: Error taxonomy for ingestion, storage and job handling.
# Used by: ETL parsers, ingestion pipeline, job worker, API routers
# Errors:
# 1. HeaderValidationError - minimum required columns absent (carries missing list)
# 2. UnsupportedFileType - upload extension not recognized
# 3. ParseError - malformed file content
# 4. StorageError - database failure other than the expected duplicate ignore
# 5. JobWaitTimeout - client-side poll deadline exceeded
#
# Rows with unparseable dates are skipped silently and never raise.

from typing import List, Optional


class IngestionError(Exception):
    """Base class for all ingestion failures."""


class HeaderValidationError(IngestionError):
    """Raised when an upload lacks one of the minimum required columns."""

    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__("Header validation failed: " + ", ".join(self.missing))


class UnsupportedFileType(IngestionError):
    def __init__(self, file_name: str):
        self.file_name = file_name
        super().__init__(f"Unsupported file type: {file_name}")


class ParseError(IngestionError):
    pass


class StorageError(IngestionError):
    pass


class JobWaitTimeout(Exception):
    """Raised by the polling client when a job is not terminal before its deadline."""

    def __init__(self, job_id: str, timeout: float, last_status: Optional[str] = None):
        self.job_id = job_id
        self.timeout = timeout
        self.last_status = last_status
        super().__init__(
            f"Timed out after {timeout:.1f}s waiting for job {job_id} (last status: {last_status})"
        )
