# WORKFLOW: Pydantic request schemas for API input validation.
# Used by: FastAPI endpoints for request validation and documentation
# Schemas include:
# 1. SearchUpcsRequest - For /api/search-upcs
#
# Query-string endpoints (/range, /export) validate dates in services.reports.
# Validation flow: HTTP request -> Pydantic validation -> Endpoint processing

from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Union


class SearchUpcsRequest(BaseModel):
    """Request schema for the UPC search endpoint."""
    start: str = Field(..., description="Start date (YYYY-MM-DD)")
    end: str = Field(..., description="End date (YYYY-MM-DD)")
    upcs: List[Union[str, int]] = Field(default_factory=list, description="Item codes; padded to 13 digits")
    subdept: Optional[Union[str, int]] = Field(None, description="Single sub-department number")
    subdept_start: Optional[Union[str, int]] = Field(None, description="Sub-department range start")
    subdept_end: Optional[Union[str, int]] = Field(None, description="Sub-department range end")

    @field_validator("upcs", mode="before")
    @classmethod
    def coerce_upcs(cls, v):
        if v is None:
            return []
        if not isinstance(v, list):
            return []
        return v
