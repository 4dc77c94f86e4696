from typing import Optional

import pytest

from hiring_scraper.service.capture_service import CaptureConfig
from hiring_scraper.service.scrape_session import ChallengeConfig, ScrapeSession
from hiring_scraper.service.scroll_service import ScrollConfig
from hiring_scraper.service.search_ui_service import SearchInputConfig
from tests.fakes import FakeBrowser


@pytest.fixture
def fast_scroll_config() -> ScrollConfig:
    return ScrollConfig(
        first_page_timeout=0.2,
        first_page_settle=0,
        round_timeout=0.05,
        round_settle=0,
        round_delay=0,
        empty_round_limit=3,
        default_max_scrolls=200,
    )


@pytest.fixture
def fast_challenge_config() -> ChallengeConfig:
    return ChallengeConfig(poll_interval=0, max_attempts=3, post_settle=0)


@pytest.fixture
def fast_search_config() -> SearchInputConfig:
    return SearchInputConfig(primary_timeout=0, fallback_timeout=0, key_delay=0, submit_delay=0)


@pytest.fixture
def make_session(fast_scroll_config, fast_challenge_config, fast_search_config):
    def _make(browser: FakeBrowser, capture_config: Optional[CaptureConfig] = None) -> ScrapeSession:
        return ScrapeSession(
            browser,
            challenge_config=fast_challenge_config,
            capture_config=capture_config or CaptureConfig(),
            scroll_config=fast_scroll_config,
            search_config=fast_search_config,
            attach_delay=0,
        )

    return _make
