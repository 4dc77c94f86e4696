import json
from pathlib import Path
from typing import Any, Optional, Union

from hiring_scraper.service.job_store import JobStore
from hiring_scraper.service.job_transformer import now_millis
from hiring_scraper.service.sync_service import SyncReport, push_jobs
from hiring_scraper.utils.logging import setup_logger

logger = setup_logger(__name__)

DEFAULT_DATASET_PATH = Path("dataset") / "jobs.jsonl"

# Bookkeeping fields the store adds; not part of a portable job.
INTERNAL_FIELDS = ("_id", "_creationTime")


class JobFileManager:
    """Reads and writes job snapshots as JSON Lines, one job per line."""

    def __init__(self, path: Union[str, Path] = DEFAULT_DATASET_PATH):
        self.path = Path(path)

    def write(self, jobs: list[dict[str, Any]]) -> int:
        """Write ``jobs`` with internal fields stripped. Returns the number of lines written."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        written = 0
        with open(self.path, "w", encoding="utf-8") as f:
            for job in jobs:
                clean = {key: value for key, value in job.items() if key not in INTERNAL_FIELDS}
                try:
                    line = json.dumps(clean, ensure_ascii=False)
                except (TypeError, ValueError) as e:
                    logger.warning("Skip unserializable job", extra={"error": str(e)})
                    continue
                f.write(line)
                f.write("\n")
                written += 1
        logger.info("Saved jobs", extra={"jobs": written, "path": str(self.path)})
        return written

    def read(self) -> list[dict[str, Any]]:
        """Load every parseable line; bad lines are logged and skipped."""
        jobs: list[dict[str, Any]] = []
        with open(self.path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    job = json.loads(line)
                except json.JSONDecodeError as e:
                    logger.warning("Skip bad line", extra={"line": line_number, "error": str(e)})
                    continue
                if not isinstance(job, dict):
                    logger.warning("Skip bad line", extra={"line": line_number, "error": "not an object"})
                    continue
                jobs.append(job)
        logger.info("Loaded jobs", extra={"jobs": len(jobs), "path": str(self.path)})
        return jobs


async def export_jobs(store: JobStore, path: Union[str, Path] = DEFAULT_DATASET_PATH) -> int:
    """Dump every stored job to a JSONL file."""
    logger.info("Exporting jobs", extra={"store": store.name})
    jobs = await store.list_all()
    return JobFileManager(path).write(jobs)


async def seed_jobs(
    store: JobStore,
    path: Union[str, Path] = DEFAULT_DATASET_PATH,
    batch_size: int = 50,
    batch_delay: float = 0.2,
    scraped_at: Optional[int] = None,
) -> SyncReport:
    """Push a JSONL snapshot into ``store``, stamping every job as scraped now."""
    manager = JobFileManager(path)
    if not manager.path.exists():
        raise FileNotFoundError(f"file not found: {manager.path}")

    jobs = manager.read()
    stamp = scraped_at if scraped_at is not None else now_millis()
    for job in jobs:
        job["scrapedAt"] = stamp

    logger.info("Seeding jobs", extra={"jobs": len(jobs), "store": store.name})
    return await push_jobs(store, jobs, batch_size, batch_delay)


def write_json(data: Any, path: Union[str, Path]) -> None:
    """Pretty-printed JSON dump used for ``--output`` files."""
    path = Path(path)
    if path.parent != Path("."):
        path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=str)
    logger.info("Saved to file", extra={"path": str(path)})
