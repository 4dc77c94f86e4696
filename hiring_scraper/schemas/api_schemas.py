"""
Pydantic models for API request/response schemas
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SearchRequest(BaseModel):
    """Request model for POST /api/search. Only ``query`` drives the search."""
    query: str = ""
    location: Optional[str] = None
    location_country: Optional[str] = None
    workplace_types: List[str] = Field(default_factory=list)
    commitment_types: List[str] = Field(default_factory=list)
    seniority_levels: List[str] = Field(default_factory=list)
    max_pages: Optional[int] = Field(None, ge=0)
    page_size: Optional[int] = Field(None, ge=0)
    date_past_days: Optional[int] = Field(None, ge=0)

    class Config:
        json_schema_extra = {
            "example": {
                "query": "python developer",
                "workplace_types": ["Remote"],
            }
        }


class SearchResponse(BaseModel):
    """Jobs returned for one query"""
    query: str
    total: int = 0
    scraped: int = 0
    budget_exhausted: bool = False
    unidentified: int = 0
    jobs: List[Dict[str, Any]] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Standard error envelope"""
    error: str
    message: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = "ok"
    time: datetime
