"""
Error taxonomy for the scraper.

Decode and body-fetch failures are recovered locally (logged and skipped).
Everything else propagates to the caller of the failing operation.
"""

from typing import Optional


class ScraperError(Exception):
    """Base class for all scraper errors."""


class NotReadyError(ScraperError):
    """Operation attempted before the session finished initializing."""

    def __init__(self, state: str):
        super().__init__(f"scrape session not ready (state={state})")
        self.state = state


class ChallengeUnsolvedError(ScraperError):
    """The anti-automation challenge page never cleared during startup."""

    def __init__(self, attempts: int, last_title: Optional[str] = None):
        super().__init__(
            f"challenge not solved after {attempts} attempts (last title: {last_title!r})"
        )
        self.attempts = attempts
        self.last_title = last_title


class ScrapeTimeoutError(ScraperError, TimeoutError):
    """No capture arrived within the allowed wait."""

    def __init__(self, phase: str, timeout: float):
        super().__init__(f"timeout waiting for {phase} ({timeout:g}s)")
        self.phase = phase
        self.timeout = timeout


class ElementNotFoundError(ScraperError):
    """None of the candidate selectors matched an element."""

    def __init__(self, selectors: list[str]):
        super().__init__(f"could not find element (tried: {', '.join(selectors)})")
        self.selectors = selectors


class DecodeError(ScraperError):
    """A response body matched none of the known envelope shapes."""

    PREVIEW_LENGTH = 200

    def __init__(self, body: str):
        self.preview = body[: self.PREVIEW_LENGTH]
        super().__init__(f"could not extract jobs: {self.preview}")


class UpstreamBatchError(ScraperError):
    """A persistence batch failed; later batches were not attempted."""

    def __init__(self, start: int, end: int, cause: Exception):
        super().__init__(f"batch {start}-{end} failed: {cause}")
        self.start = start
        self.end = end
        self.cause = cause


class PersistenceError(ScraperError):
    """The persistence backend rejected a call or answered with an error."""


class MissingQueryError(ScraperError):
    """A search request arrived without a query."""

    def __init__(self):
        super().__init__('query is required (GET: ?q=..., POST: {"query":"..."})')
