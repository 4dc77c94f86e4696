import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional

from hiring_scraper.models.job_models import ScrapeResult
from hiring_scraper.service.scrape_session import ScrapeSession
from hiring_scraper.utils.logging import setup_logger

logger = setup_logger(__name__)


@dataclass
class CacheEntry:
    result: ScrapeResult
    cached_at: float


class ResultCache:
    """
    Per-query memoization in front of a single scrape session.

    Fresh entries are served without touching the browser. Misses go through
    one lock, so concurrent callers queue for the browser instead of racing it.
    """

    def __init__(
        self,
        session: ScrapeSession,
        ttl_seconds: float = 900.0,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._session = session
        self._ttl = ttl_seconds
        self._clock = clock or time.monotonic
        self._entries: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()
        self.hits = 0
        self.misses = 0

    @property
    def session(self) -> ScrapeSession:
        return self._session

    def _fresh(self, query: str) -> Optional[ScrapeResult]:
        entry = self._entries.get(query)
        if entry is None:
            return None
        if self._clock() - entry.cached_at >= self._ttl:
            return None
        return entry.result

    async def search(self, query: str) -> ScrapeResult:
        cached = self._fresh(query)
        if cached is not None:
            self.hits += 1
            logger.info("Cache hit", extra={"query": query})
            return cached

        async with self._lock:
            # Another caller may have filled this entry while we queued.
            cached = self._fresh(query)
            if cached is not None:
                self.hits += 1
                logger.info("Cache hit after wait", extra={"query": query})
                return cached

            self.misses += 1
            result = await self._session.search_once(query)
            self._entries[query] = CacheEntry(result=result, cached_at=self._clock())
            return result
