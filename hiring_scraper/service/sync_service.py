import asyncio
from dataclasses import dataclass
from typing import Any, Optional

from hiring_scraper.core.config import Settings, settings
from hiring_scraper.core.exceptions import UpstreamBatchError
from hiring_scraper.service.dedup_service import DedupAccumulator
from hiring_scraper.service.job_store import JobStore
from hiring_scraper.service.job_transformer import transform_job
from hiring_scraper.service.scrape_session import ScrapeSession
from hiring_scraper.utils.logging import setup_logger

logger = setup_logger(__name__)


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class SyncConfig:
    query_max_scrolls: int = 100
    browse_max_scrolls: int = 300
    query_delay: float = 2.0
    batch_size: int = 50
    batch_delay: float = 0.2

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "SyncConfig":
        return cls(
            query_max_scrolls=config.SYNC_QUERY_MAX_SCROLLS,
            browse_max_scrolls=config.SYNC_BROWSE_MAX_SCROLLS,
            query_delay=config.SYNC_QUERY_DELAY,
            batch_size=config.UPSERT_BATCH_SIZE,
            batch_delay=config.UPSERT_BATCH_DELAY,
        )


@dataclass
class SyncReport:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    total: int = 0
    batches: int = 0


# =============================================================================
# Push
# =============================================================================


async def push_jobs(
    store: JobStore,
    jobs: list[dict[str, Any]],
    batch_size: int = 50,
    batch_delay: float = 0.2,
) -> SyncReport:
    """
    Upsert ``jobs`` in consecutive batches and aggregate the per-batch counts.

    The first failing batch stops the push; earlier batches stay written.

    Raises:
        UpstreamBatchError: naming the 1-based range of the failed batch
    """
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")

    total = len(jobs)
    report = SyncReport(total=total)

    for start in range(0, total, batch_size):
        end = min(start + batch_size, total)
        batch = jobs[start:end]

        logger.info(
            "Pushing batch",
            extra={"range": f"{start + 1}-{end}", "of": total, "store": store.name},
        )
        try:
            counts = await store.bulk_upsert(batch)
        except Exception as e:
            logger.error("Batch failed", extra={"range": f"{start + 1}-{end}", "error": str(e)})
            raise UpstreamBatchError(start + 1, end, e) from e

        report.inserted += counts.inserted
        report.updated += counts.updated
        report.skipped += counts.skipped
        report.batches += 1
        logger.info(
            "Batch stored",
            extra={"inserted": counts.inserted, "updated": counts.updated, "skipped": counts.skipped},
        )

        if end < total:
            await asyncio.sleep(batch_delay)

    logger.info(
        "Sync complete",
        extra={
            "inserted": report.inserted,
            "updated": report.updated,
            "skipped": report.skipped,
            "total": report.total,
        },
    )
    return report


# =============================================================================
# Scrape + push
# =============================================================================


async def collect_jobs(
    session: ScrapeSession,
    queries: Optional[list[str]],
    config: Optional[SyncConfig] = None,
) -> list[dict[str, Any]]:
    """
    Scrape every query (or browse everything when no query is given) and merge by id.

    A failing query is logged and skipped; a failing browse-all pass propagates.
    """
    config = config or SyncConfig()
    merged = DedupAccumulator()

    if not queries:
        logger.info("Sync: scraping all jobs (no query)")
        result = await session.scrape_all("", config.browse_max_scrolls)
        merged.add(result.jobs)
        logger.info("Total unique", extra={"unique": len(merged)})
        return merged.finalize()

    logger.info("Sync: running queries", extra={"queries": len(queries)})
    for index, query in enumerate(queries):
        logger.info("Sync query", extra={"n": f"{index + 1}/{len(queries)}", "query": query})
        try:
            result = await session.scrape_all(query, config.query_max_scrolls)
        except Exception as e:
            logger.warning(
                "Query failed, skipping",
                extra={"query": query, "error_type": type(e).__name__, "error": str(e)},
            )
        else:
            merged.add(result.jobs)
            logger.info(
                "Running total",
                extra={"unique": len(merged), "budget_exhausted": result.budget_exhausted},
            )

        if index < len(queries) - 1:
            await asyncio.sleep(config.query_delay)

    logger.info("Total unique", extra={"unique": len(merged)})
    return merged.finalize()


async def scrape_jobs(
    session: ScrapeSession,
    queries: Optional[list[str]] = None,
    config: Optional[SyncConfig] = None,
) -> list[dict[str, Any]]:
    """Collect and normalize jobs, ready to be saved or pushed."""
    raw_jobs = await collect_jobs(session, queries, config)
    return [transform_job(raw) for raw in raw_jobs]


async def run_sync(
    session: ScrapeSession,
    store: JobStore,
    queries: Optional[list[str]] = None,
    config: Optional[SyncConfig] = None,
) -> tuple[list[dict[str, Any]], SyncReport]:
    """Scrape, normalize and push. Returns the normalized jobs with the push report."""
    config = config or SyncConfig()
    jobs = await scrape_jobs(session, queries, config)

    logger.info("Pushing jobs", extra={"jobs": len(jobs), "store": store.name})
    report = await push_jobs(store, jobs, config.batch_size, config.batch_delay)
    return jobs, report
