from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

# =============================================================================
# Job Records
# =============================================================================

# Listings are schema-less; only the identifier field is assumed.
JobRecord = dict[str, Any]

IDENTIFIER_FIELDS = ("id", "objectID")


def get_field(record: JobRecord, key: str) -> Optional[Any]:
    """Return the value stored under ``key``, or None when the key is absent."""
    if key not in record:
        return None
    return record[key]


def record_id(record: JobRecord) -> Optional[str]:
    """Stable identifier of a listing: ``id``, falling back to ``objectID``."""
    for key in IDENTIFIER_FIELDS:
        value = get_field(record, key)
        if isinstance(value, str) and value:
            return value
    return None


# =============================================================================
# Captures
# =============================================================================


@dataclass(frozen=True)
class CapturedResponse:
    request_id: str
    url: str
    body: str
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SessionState(str, Enum):
    INITIALIZING = "initializing"
    READY = "ready"
    SEARCHING = "searching"
    SCROLLING = "scrolling"
    CONVERGED = "converged"
    FAILED = "failed"


# =============================================================================
# Scrape Results
# =============================================================================


class ScrapeResult(BaseModel):
    """
    Jobs found for one query.

    ``budget_exhausted`` is True when scrolling stopped at the scroll budget
    before results stopped growing, i.e. the list may be partial.
    ``unidentified`` counts captured records that carried no identifier.
    """
    query: str
    total: int = 0
    scraped: int = 0
    budget_exhausted: bool = False
    unidentified: int = 0
    jobs: list[dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_jobs(
        cls,
        query: str,
        jobs: list[JobRecord],
        budget_exhausted: bool = False,
        unidentified: int = 0,
    ) -> "ScrapeResult":
        return cls(
            query=query,
            total=len(jobs),
            scraped=len(jobs),
            budget_exhausted=budget_exhausted,
            unidentified=unidentified,
            jobs=jobs,
        )
