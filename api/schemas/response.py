# WORKFLOW: Pydantic response schemas for the ingestion and report API.
# Used by: API routers (response_model), OpenAPI docs, tests
# Schemas include:
# 1. IngestResultResponse - Summary of one completed ingestion
# 2. JobStatusResponse / JobAcceptedResponse - Async job polling payloads
# 3. SubdepartmentOption - Dimension entries for filters
# 4. LastUpload / AdminSummary - Store overview
#
# Response flow: Service result -> Pydantic model -> JSON response

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional


class IngestResultResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(..., alias="fileName")
    rows_parsed: int = Field(..., alias="rowsParsed")
    inserted: int
    ignored: int
    sample_dates: List[str] = Field(default_factory=list, alias="sampleDates")
    elapsed_ms: int = Field(..., alias="elapsedMs")


class JobAcceptedResponse(BaseModel):
    id: str
    status: str


class JobStatusResponse(BaseModel):
    id: str
    status: str
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class SubdepartmentOption(BaseModel):
    subdept_no: int
    label: str


class LastUpload(BaseModel):
    file_name: str
    uploaded_at: str
    rows_parsed: int
    inserted: int
    ignored: int


class AdminSummary(BaseModel):
    rowCount: int
    minDate: Optional[str] = None
    maxDate: Optional[str] = None
    lastUpload: Optional[LastUpload] = None
