"""
hiring.cafe job scraper command line.

Workflow:
  1. hiring-scraper --sync      scrape hiring.cafe into the job store
  2. hiring-scraper --export    job store -> dataset/jobs.jsonl
  3. commit dataset/jobs.jsonl  snapshot in the repo
  4. hiring-scraper --seed      new environment: dataset/jobs.jsonl -> job store
"""

import argparse
import asyncio
import json
import sys
from typing import Optional

from hiring_scraper.core.config import settings
from hiring_scraper.core.exceptions import ScraperError
from hiring_scraper.service.chromium_service import ChromeConfig, PlaywrightBrowser
from hiring_scraper.service.job_store import create_job_store
from hiring_scraper.service.scrape_session import ScrapeSession
from hiring_scraper.service.sync_service import SyncConfig, push_jobs, scrape_jobs
from hiring_scraper.utils.jsonl_storage import (
    DEFAULT_DATASET_PATH,
    export_jobs,
    seed_jobs,
    write_json,
)
from hiring_scraper.utils.logging import setup_logger
from hiring_scraper.utils.text_processor import TextProcessor

logger = setup_logger(__name__)

EPILOG = """\
Commands:
  --sync                      Scrape ALL jobs from hiring.cafe into the job store
  --sync --queries "a,b"      Scrape specific queries into the job store
  --export [--output f.jsonl] Export stored jobs to JSONL (default: dataset/jobs.jsonl)
  --seed   [--input f.jsonl]  Seed JSONL into the job store (default: dataset/jobs.jsonl)
  --query  "..."              Single query to stdout or --output file
  --serve                     HTTP API server

Environment:
  PERSISTENCE_BACKEND  convex | mongo (default: convex)
  CONVEX_URL           (default: http://127.0.0.1:3210)
  SCRAPER_PORT         (default: 3002)
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hiring-scraper",
        description="hiring.cafe job scraper",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--serve", action="store_true", help="Run as HTTP server")
    mode.add_argument("--sync", action="store_true", help="Scrape jobs and push them to the job store")
    mode.add_argument("--export", action="store_true", help="Export stored jobs to a JSONL file")
    mode.add_argument("--seed", action="store_true", help="Seed jobs from a JSONL file into the job store")
    mode.add_argument("--query", default="", help="Single search query")

    parser.add_argument("--queries", default="", help="Comma-separated search queries for --sync")
    parser.add_argument("--output", default="", help="Output file path")
    parser.add_argument("--input", default="", help="Input JSONL file for --seed")
    return parser


def _new_session() -> ScrapeSession:
    return ScrapeSession.from_settings(PlaywrightBrowser(ChromeConfig.from_settings()))


# ===== Modes =====


async def run_single_query(query: str, output: str) -> None:
    logger.info("Scraping", extra={"query": query})
    async with _new_session() as session:
        result = await session.search_once(query)
    logger.info("Found jobs", extra={"jobs": result.scraped})

    if output:
        write_json(result.model_dump(), output)
    else:
        print(json.dumps(result.model_dump(), indent=2, ensure_ascii=False))


async def run_sync_mode(queries: str, output: str) -> None:
    query_list: Optional[list[str]] = TextProcessor.split_csv(queries) or None
    config = SyncConfig.from_settings()

    async with _new_session() as session:
        jobs = await scrape_jobs(session, query_list, config)

    # Written before the push; a failed batch leaves the scrape on disk.
    if output:
        write_json(jobs, output)
        logger.info("Saved scraped jobs", extra={"jobs": len(jobs), "output": output})

    async with create_job_store() as store:
        logger.info("Pushing jobs", extra={"jobs": len(jobs), "store": store.name})
        report = await push_jobs(store, jobs, config.batch_size, config.batch_delay)
    logger.info("Sync complete", extra={"inserted": report.inserted, "updated": report.updated})


async def run_export(output: str) -> None:
    async with create_job_store() as store:
        written = await export_jobs(store, output or DEFAULT_DATASET_PATH)
    logger.info("Export complete", extra={"jobs": written})


async def run_seed(input_path: str) -> None:
    async with create_job_store() as store:
        await seed_jobs(
            store,
            input_path or DEFAULT_DATASET_PATH,
            batch_size=settings.UPSERT_BATCH_SIZE,
            batch_delay=settings.UPSERT_BATCH_DELAY,
        )
    logger.info("Seed complete")


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.serve:
            from hiring_scraper.main import serve

            serve()
        elif args.export:
            asyncio.run(run_export(args.output))
        elif args.seed:
            asyncio.run(run_seed(args.input))
        elif args.sync:
            asyncio.run(run_sync_mode(args.queries, args.output))
        elif args.query:
            asyncio.run(run_single_query(args.query, args.output))
        else:
            parser.print_help()
    except (ScraperError, FileNotFoundError) as e:
        logger.error("Command failed", extra={"error": str(e)})
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
