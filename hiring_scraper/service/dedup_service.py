from typing import Iterable, Optional

from hiring_scraper.models.job_models import JobRecord, record_id
from hiring_scraper.utils.logging import setup_logger

logger = setup_logger(__name__)


class DedupAccumulator:
    """
    Merges records across pages by identifier, last write wins.

    Records without an identifier cannot be deduplicated; they are counted in
    ``unidentified`` but not kept.
    """

    def __init__(self):
        self._records: dict[str, JobRecord] = {}
        self.unidentified = 0

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._records

    def get(self, identifier: str) -> Optional[JobRecord]:
        return self._records.get(identifier)

    def add(self, records: Iterable[JobRecord]) -> int:
        """Merge records and return how many identifiers were new."""
        before = len(self._records)
        skipped = 0
        for record in records:
            identifier = record_id(record)
            if identifier is None:
                skipped += 1
                continue
            self._records[identifier] = record
        if skipped:
            self.unidentified += skipped
            logger.debug(
                "Records without identifier skipped",
                extra={"skipped": skipped},
            )
        return len(self._records) - before

    def finalize(self) -> list[JobRecord]:
        return list(self._records.values())
