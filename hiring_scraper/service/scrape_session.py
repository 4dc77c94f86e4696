import asyncio
from dataclasses import dataclass, field
from typing import Optional

from hiring_scraper.core.config import Settings, settings
from hiring_scraper.core.exceptions import (
    ChallengeUnsolvedError,
    NotReadyError,
    ScrapeTimeoutError,
)
from hiring_scraper.models.job_models import ScrapeResult, SessionState, record_id
from hiring_scraper.service.browser_driver import BrowserDriver
from hiring_scraper.service.capture_service import CaptureBuffer, CaptureConfig
from hiring_scraper.service.scroll_service import (
    ControllerPhase,
    ScrollConfig,
    ScrollConvergenceController,
)
from hiring_scraper.service.search_ui_service import SearchInputConfig, SearchInteractor
from hiring_scraper.utils.logging import setup_logger

logger = setup_logger(__name__)


@dataclass
class ChallengeConfig:
    url: str = "https://hiring.cafe"
    poll_interval: float = 1.0
    max_attempts: int = 30
    post_settle: float = 5.0
    # Title fragments shown while the bot check is still running.
    pending_markers: list[str] = field(default_factory=lambda: ["vercel", "security", "checkpoint"])

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "ChallengeConfig":
        return cls(
            url=config.HIRING_CAFE_URL,
            poll_interval=config.CHALLENGE_POLL_INTERVAL,
            max_attempts=config.CHALLENGE_MAX_ATTEMPTS,
            post_settle=config.POST_CHALLENGE_SETTLE,
        )

    def is_solved(self, title: Optional[str]) -> bool:
        if not title:
            return False
        lowered = title.lower()
        return not any(marker in lowered for marker in self.pending_markers)


class ScrapeSession:
    """
    One browser, one page, one operation at a time.

    The session owns the browser and its readiness. ``search_once`` and
    ``scrape_all`` only run in the ``ready`` state and always return the session
    to ``ready``, whether they succeed or time out.
    """

    def __init__(
        self,
        browser: BrowserDriver,
        challenge_config: Optional[ChallengeConfig] = None,
        capture_config: Optional[CaptureConfig] = None,
        scroll_config: Optional[ScrollConfig] = None,
        search_config: Optional[SearchInputConfig] = None,
        attach_delay: float = 0.3,
    ):
        self._browser = browser
        self._challenge = challenge_config or ChallengeConfig()
        self._capture_config = capture_config or CaptureConfig()
        self._scroll_config = scroll_config or ScrollConfig()
        self._interactor = SearchInteractor(browser, search_config)
        self._attach_delay = attach_delay
        self._state = SessionState.INITIALIZING

    @classmethod
    def from_settings(cls, browser: BrowserDriver, config: Settings = settings) -> "ScrapeSession":
        return cls(
            browser,
            challenge_config=ChallengeConfig.from_settings(config),
            capture_config=CaptureConfig.from_settings(config),
            scroll_config=ScrollConfig.from_settings(config),
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == SessionState.READY

    def _set_state(self, state: SessionState) -> None:
        if state != self._state:
            logger.debug("Session state", extra={"from": self._state.value, "to": state.value})
        self._state = state

    def _ensure_ready(self) -> None:
        if self._state != SessionState.READY:
            raise NotReadyError(self._state.value)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        self._set_state(SessionState.INITIALIZING)
        try:
            logger.info("Launching headless browser")
            await self._browser.launch()

            logger.info("Navigating", extra={"url": self._challenge.url})
            await self._browser.navigate(self._challenge.url)

            logger.info("Solving challenge")
            title = await self._resolve_challenge()
            logger.info("Challenge solved", extra={"title": title})

            await self._browser.wait_for_load()
            # Page scripts and the human-check token need time after the challenge.
            await asyncio.sleep(self._challenge.post_settle)
        except Exception:
            self._set_state(SessionState.FAILED)
            raise

        self._set_state(SessionState.READY)
        logger.info("Scrape session ready")

    async def _resolve_challenge(self) -> str:
        title: Optional[str] = None
        for attempt in range(1, self._challenge.max_attempts + 1):
            await asyncio.sleep(self._challenge.poll_interval)
            try:
                title = await self._browser.title()
            except Exception as e:
                logger.debug("Title read failed", extra={"attempt": attempt, "error": str(e)})
                continue
            if self._challenge.is_solved(title):
                return title

        raise ChallengeUnsolvedError(self._challenge.max_attempts, title)

    async def close(self) -> None:
        await self._browser.close()
        self._set_state(SessionState.INITIALIZING)

    async def __aenter__(self) -> "ScrapeSession":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def _open_capture(self) -> CaptureBuffer:
        buffer = CaptureBuffer(self._capture_config)
        buffer.attach(self._browser)
        await asyncio.sleep(self._attach_delay)
        return buffer

    def _on_phase(self, phase: ControllerPhase) -> None:
        if phase == ControllerPhase.SCROLLING:
            self._set_state(SessionState.SCROLLING)

    async def search_once(self, query: str) -> ScrapeResult:
        """Run one search and return whatever the first page delivered."""
        self._ensure_ready()
        self._set_state(SessionState.SEARCHING)
        buffer = await self._open_capture()
        try:
            await self._interactor.perform_search(query)

            logger.info("Waiting for results", extra={"query": query})
            timeout = self._scroll_config.first_page_timeout
            if not await buffer.wait_for_signal(timeout):
                raise ScrapeTimeoutError("results", timeout)
            await asyncio.sleep(self._scroll_config.first_page_settle)

            jobs = buffer.collect_all()
            unidentified = sum(1 for job in jobs if record_id(job) is None)
            logger.info("Search complete", extra={"query": query, "jobs": len(jobs)})
            return ScrapeResult.from_jobs(query, jobs, unidentified=unidentified)
        finally:
            await buffer.detach()
            self._set_state(SessionState.READY)

    async def scrape_all(self, query: str, max_scrolls: Optional[int] = None) -> ScrapeResult:
        """Search (or browse all when ``query`` is empty) and scroll until converged."""
        self._ensure_ready()
        self._set_state(SessionState.SEARCHING)
        buffer = await self._open_capture()
        controller = ScrollConvergenceController(
            buffer,
            self._interactor,
            self._scroll_config,
            on_phase=self._on_phase,
        )
        try:
            outcome = await controller.run(query, max_scrolls)
            self._set_state(SessionState.CONVERGED)
            logger.info(
                "Scrape complete",
                extra={
                    "query": query,
                    "jobs": len(outcome.records),
                    "scrolls": outcome.scrolls,
                    "budget_exhausted": outcome.budget_exhausted,
                    "unidentified": outcome.unidentified,
                },
            )
            return ScrapeResult.from_jobs(
                query,
                outcome.records,
                budget_exhausted=outcome.budget_exhausted,
                unidentified=outcome.unidentified,
            )
        finally:
            await buffer.detach()
            self._set_state(SessionState.READY)
