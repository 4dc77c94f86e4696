"""
Scroll pagination until the result set stops growing.

The page never signals a last page, so convergence is inferred: each round
scrolls to the bottom, waits for captures, drains them into the accumulator and
counts new identifiers. A run of ``empty_round_limit`` rounds without a new
identifier ends the pass; so does exhausting the scroll budget.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from hiring_scraper.core.config import Settings, settings
from hiring_scraper.core.exceptions import ScrapeTimeoutError
from hiring_scraper.models.job_models import JobRecord
from hiring_scraper.service.capture_service import CaptureBuffer
from hiring_scraper.service.dedup_service import DedupAccumulator
from hiring_scraper.service.search_ui_service import SearchInteractor
from hiring_scraper.utils.logging import setup_logger

logger = setup_logger(__name__)


class ControllerPhase(str, Enum):
    IDLE = "idle"
    SEARCHED = "searched"
    FIRST_PAGE_RECEIVED = "first_page_received"
    SCROLLING = "scrolling"
    DRAINING = "draining"
    CONVERGED = "converged"
    TIMED_OUT = "timed_out"


@dataclass
class ScrollConfig:
    first_page_timeout: float = 45.0
    first_page_settle: float = 2.0
    round_timeout: float = 8.0
    round_settle: float = 1.0
    round_delay: float = 0.5
    empty_round_limit: int = 3
    default_max_scrolls: int = 200

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "ScrollConfig":
        return cls(
            first_page_timeout=config.FIRST_PAGE_TIMEOUT,
            first_page_settle=config.FIRST_PAGE_SETTLE,
            round_timeout=config.ROUND_TIMEOUT,
            round_settle=config.ROUND_SETTLE,
            round_delay=config.ROUND_DELAY,
            empty_round_limit=config.EMPTY_ROUND_LIMIT,
            default_max_scrolls=config.DEFAULT_MAX_SCROLLS,
        )


@dataclass
class RoundReport:
    index: int
    signalled: bool
    new_ids: int
    total: int


@dataclass
class ConvergenceResult:
    records: list[JobRecord]
    rounds: list[RoundReport] = field(default_factory=list)
    budget_exhausted: bool = False
    unidentified: int = 0

    @property
    def scrolls(self) -> int:
        # Round 0 is the first page, not a scroll.
        return len(self.rounds) - 1 if self.rounds else 0


class ScrollConvergenceController:
    def __init__(
        self,
        buffer: CaptureBuffer,
        interactor: SearchInteractor,
        config: Optional[ScrollConfig] = None,
        on_phase: Optional[Callable[[ControllerPhase], None]] = None,
    ):
        self._buffer = buffer
        self._interactor = interactor
        self._config = config or ScrollConfig()
        self._on_phase = on_phase
        self._cursor = 0
        self.phase = ControllerPhase.IDLE

    def _set_phase(self, phase: ControllerPhase) -> None:
        self.phase = phase
        if self._on_phase is not None:
            self._on_phase(phase)

    def _drain(self, accumulator: DedupAccumulator) -> int:
        records, self._cursor = self._buffer.snapshot_new_since(self._cursor)
        return accumulator.add(records)

    async def run(self, query: str, max_scrolls: Optional[int] = None) -> ConvergenceResult:
        if not max_scrolls or max_scrolls <= 0:
            max_scrolls = self._config.default_max_scrolls

        if query:
            await self._interactor.perform_search(query)
        else:
            logger.info("Browsing all jobs (no query filter)")
            await self._interactor.clear_and_browse()
        self._set_phase(ControllerPhase.SEARCHED)

        logger.info("Waiting for first page", extra={"timeout": self._config.first_page_timeout})
        if not await self._buffer.wait_for_signal(self._config.first_page_timeout):
            self._set_phase(ControllerPhase.TIMED_OUT)
            raise ScrapeTimeoutError("first page", self._config.first_page_timeout)
        self._set_phase(ControllerPhase.FIRST_PAGE_RECEIVED)
        await asyncio.sleep(self._config.first_page_settle)

        accumulator = DedupAccumulator()
        first = self._drain(accumulator)
        result = ConvergenceResult(records=[])
        result.rounds.append(RoundReport(index=0, signalled=True, new_ids=first, total=len(accumulator)))
        logger.info("Page 0 drained", extra={"unique": len(accumulator)})

        empty_rounds = 0
        converged = False
        for scroll in range(1, max_scrolls + 1):
            self._set_phase(ControllerPhase.SCROLLING)
            # A round waits only for responses that arrive after its own scroll.
            stale = self._buffer.clear_signals()
            if stale:
                logger.debug("Dropped stale signals", extra={"scroll": scroll, "stale": stale})
            await self._interactor.scroll_to_bottom()

            signalled = await self._buffer.wait_for_signal(self._config.round_timeout)
            if signalled:
                # Admit near-simultaneous responses before draining.
                await asyncio.sleep(self._config.round_settle)

            # A timed-out round still drains: a response may land just after the wait.
            self._set_phase(ControllerPhase.DRAINING)
            new_ids = self._drain(accumulator)
            result.rounds.append(
                RoundReport(index=scroll, signalled=signalled, new_ids=new_ids, total=len(accumulator))
            )
            logger.info(
                "Scroll round drained",
                extra={"scroll": scroll, "new": new_ids, "unique": len(accumulator)},
            )

            if new_ids == 0:
                empty_rounds += 1
                if empty_rounds >= self._config.empty_round_limit:
                    logger.info(
                        "No more results, converged",
                        extra={"scroll": scroll, "empty_rounds": empty_rounds},
                    )
                    converged = True
                    break
            else:
                empty_rounds = 0

            await asyncio.sleep(self._config.round_delay)

        if not converged:
            logger.warning("Scroll budget exhausted", extra={"max_scrolls": max_scrolls})

        self._set_phase(ControllerPhase.CONVERGED)
        result.records = accumulator.finalize()
        result.budget_exhausted = not converged
        result.unidentified = accumulator.unidentified
        logger.info("Total unique jobs", extra={"unique": len(result.records)})
        return result
