import asyncio
from dataclasses import dataclass, field
from typing import Optional

from hiring_scraper.core.exceptions import ElementNotFoundError
from hiring_scraper.service.browser_driver import BrowserDriver, BrowserElement
from hiring_scraper.utils.logging import setup_logger

logger = setup_logger(__name__)

SCROLL_TO_BOTTOM_SCRIPT = "() => window.scrollTo(0, document.body.scrollHeight)"


@dataclass
class SearchInputConfig:
    primary_selector: str = "#query-search-v4"
    primary_timeout: float = 5.0
    fallback_selectors: list[str] = field(default_factory=lambda: [
        'input[placeholder*="Search"]',
        'input[type="search"]',
    ])
    fallback_timeout: float = 2.0
    key_delay: float = 0.2
    submit_delay: float = 0.5


class SearchInteractor:
    """UI actions that make the page issue search-API requests."""

    def __init__(self, browser: BrowserDriver, config: Optional[SearchInputConfig] = None):
        self._browser = browser
        self._config = config or SearchInputConfig()

    async def _find_search_input(self) -> BrowserElement:
        candidates = [(self._config.primary_selector, self._config.primary_timeout)]
        candidates += [(sel, self._config.fallback_timeout) for sel in self._config.fallback_selectors]

        for selector, timeout in candidates:
            try:
                return await self._browser.find_element(selector, timeout)
            except ElementNotFoundError:
                logger.debug("Search input selector missed", extra={"selector": selector})
                continue

        raise ElementNotFoundError([selector for selector, _ in candidates])

    async def _clear(self, search_input: BrowserElement) -> None:
        await search_input.click()
        await asyncio.sleep(self._config.key_delay)
        await search_input.select_all_text()
        await search_input.press("Backspace")
        await asyncio.sleep(self._config.key_delay)

    async def perform_search(self, query: str) -> None:
        search_input = await self._find_search_input()
        await self._clear(search_input)

        logger.info("Typing search query", extra={"query": query})
        await search_input.input_text(query)
        await asyncio.sleep(self._config.submit_delay)

        await search_input.press("Enter")

    async def clear_and_browse(self) -> None:
        """Empty the search box and submit, which lists every job."""
        search_input = await self._find_search_input()
        await self._clear(search_input)
        await search_input.press("Enter")

    async def scroll_to_bottom(self) -> None:
        await self._browser.evaluate(SCROLL_TO_BOTTOM_SCRIPT)
