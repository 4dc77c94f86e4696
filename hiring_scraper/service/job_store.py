from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from hiring_scraper.core.config import Settings, settings


@dataclass
class UpsertCounts:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0

    @classmethod
    def from_response(cls, value: Any) -> "UpsertCounts":
        """Read counts from a bulk-upsert reply; anything missing counts as zero."""
        if not isinstance(value, dict):
            return cls()

        def _count(key: str) -> int:
            raw = value.get(key)
            if isinstance(raw, bool) or not isinstance(raw, (int, float)):
                return 0
            return int(raw)

        return cls(inserted=_count("inserted"), updated=_count("updated"), skipped=_count("skipped"))


class JobStore(ABC):
    """Downstream store for normalized jobs, keyed by ``externalId``."""

    name: str = "store"

    @abstractmethod
    async def bulk_upsert(self, jobs: list[dict[str, Any]]) -> UpsertCounts:
        """Insert new jobs, update changed ones and skip the rest."""

    @abstractmethod
    async def list_all(self) -> list[dict[str, Any]]:
        """Every stored job."""

    async def close(self) -> None:
        pass

    async def __aenter__(self) -> "JobStore":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def create_job_store(config: Settings = settings) -> JobStore:
    """Build the store selected by ``PERSISTENCE_BACKEND``."""
    if config.PERSISTENCE_BACKEND == "mongo":
        from hiring_scraper.service.mongodb_service import MongoJobStore

        return MongoJobStore(mongo_uri=config.MONGO_URI, database_name=config.DATABASE_NAME)

    from hiring_scraper.service.convex_service import ConvexJobStore

    return ConvexJobStore(base_url=str(config.CONVEX_URL), timeout=config.CONVEX_TIMEOUT)
