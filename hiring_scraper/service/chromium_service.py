import asyncio
import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import aiohttp
from playwright.async_api import (
    Browser,
    CDPSession,
    Locator,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from hiring_scraper.core.config import Settings, settings
from hiring_scraper.core.exceptions import ElementNotFoundError
from hiring_scraper.service.browser_driver import (
    BrowserDriver,
    BrowserElement,
    EventHandler,
)
from hiring_scraper.utils.logging import setup_logger

logger = setup_logger(__name__)


# =============================================================================
# Chrome CDP Manager
# =============================================================================


@dataclass
class ChromeConfig:
    port: int = 9222
    headless: bool = True
    binary_path: Optional[str] = None
    user_agent: Optional[str] = None
    startup_timeout: int = 20
    health_check_interval: float = 1.0
    health_check_timeout: float = 1.0
    chrome_paths: list[str] = field(default_factory=lambda: [
        # Windows
        r"C:\Program Files\Google\Chrome\Application\chrome.exe",
        r"C:\Program Files (x86)\Google\Chrome\Application\chrome.exe",

        # Linux
        "/usr/bin/google-chrome",
        "/usr/bin/chromium-browser",
        "/usr/bin/chromium",

        "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
        "chrome",
        "chromium",
    ])
    chrome_args: list[str] = field(default_factory=lambda: [
        "--no-first-run",
        "--no-default-browser-check",
        "--disable-extensions",
        "--disable-blink-features=AutomationControlled",
    ])

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "ChromeConfig":
        return cls(
            port=config.CHROME_DEBUG_PORT,
            headless=config.CHROME_HEADLESS,
            binary_path=config.CHROME_PATH,
            user_agent=config.USER_AGENT,
        )


class ChromeCDPManager:
    def __init__(self, config: Optional[ChromeConfig] = None):
        self.config = config or ChromeConfig()
        self._process: Optional[asyncio.subprocess.Process] = None
        self._user_data_dir: Optional[str] = None
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._page: Optional[Page] = None

    @property
    def cdp_url(self) -> str:
        return f"http://localhost:{self.config.port}"

    @property
    def page(self) -> Optional[Page]:
        return self._page

    async def _find_chrome_executable(self) -> str:
        candidates = list(self.config.chrome_paths)
        if self.config.binary_path:
            candidates.insert(0, self.config.binary_path)

        for path in candidates:
            if not os.path.exists(path) and path not in ["chrome", "chromium"]:
                continue

            try:
                proc = await asyncio.create_subprocess_exec(
                    path,
                    "--version",
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )
                await proc.wait()
                return path
            except OSError:
                continue

        raise RuntimeError("Chrome not found. Please install Chrome or set CHROME_PATH.")

    async def _wait_for_cdp_ready(self) -> bool:
        timeout = aiohttp.ClientTimeout(total=self.config.health_check_timeout)

        for _ in range(self.config.startup_timeout):
            try:
                async with aiohttp.ClientSession() as session:
                    async with session.get(
                        f"{self.cdp_url}/json/version",
                        timeout=timeout,
                    ) as response:
                        if response.status == 200:
                            return True
            except (aiohttp.ClientError, asyncio.TimeoutError):
                pass

            await asyncio.sleep(self.config.health_check_interval)

        return False

    async def start_chrome(self) -> asyncio.subprocess.Process:
        if self._process is not None:
            raise RuntimeError("Chrome is already running.")

        self._user_data_dir = tempfile.mkdtemp(prefix="chrome_cdp_")
        chrome_exe = await self._find_chrome_executable()

        cmd = [
            chrome_exe,
            f"--remote-debugging-port={self.config.port}",
            f"--user-data-dir={self._user_data_dir}",
            *self.config.chrome_args,
        ]
        if self.config.headless:
            cmd.append("--headless=new")
        cmd.append("about:blank")

        logger.info(
            "Launching Chrome",
            extra={"binary": chrome_exe, "headless": self.config.headless, "port": self.config.port},
        )
        self._process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )

        if not await self._wait_for_cdp_ready():
            await self.stop_chrome()
            raise RuntimeError("Chrome failed to start with CDP.")

        return self._process

    async def connect_playwright(self) -> Page:
        if self._browser is not None:
            raise RuntimeError("Playwright is already connected.")

        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.connect_over_cdp(self.cdp_url)

        contexts = self._browser.contexts
        if contexts and contexts[0].pages:
            self._page = contexts[0].pages[0]
        else:
            context = await self._browser.new_context()
            self._page = await context.new_page()

        return self._page

    async def stop_chrome(self) -> None:
        if self._process is not None:
            self._process.terminate()
            await self._process.wait()
            self._process = None

        if self._user_data_dir and Path(self._user_data_dir).exists():
            shutil.rmtree(self._user_data_dir, ignore_errors=True)
            self._user_data_dir = None

    async def disconnect_playwright(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
            self._page = None

        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def cleanup(self) -> None:
        await self.disconnect_playwright()
        await self.stop_chrome()


# =============================================================================
# Playwright Browser Driver
# =============================================================================


class PlaywrightElement(BrowserElement):
    def __init__(self, locator: Locator):
        self._locator = locator

    async def click(self) -> None:
        await self._locator.click()

    async def select_all_text(self) -> None:
        await self._locator.select_text()

    async def press(self, key: str) -> None:
        await self._locator.press(key)

    async def input_text(self, text: str) -> None:
        await self._locator.fill(text)


class PlaywrightBrowser(BrowserDriver):
    """Chrome driven through Playwright, with raw CDP access for network events."""

    def __init__(self, config: Optional[ChromeConfig] = None):
        self._manager = ChromeCDPManager(config or ChromeConfig.from_settings())
        self._cdp: Optional[CDPSession] = None

    @property
    def page(self) -> Page:
        if self._manager.page is None:
            raise RuntimeError("Browser not launched.")
        return self._manager.page

    async def launch(self) -> None:
        await self._manager.start_chrome()
        page = await self._manager.connect_playwright()

        self._cdp = await page.context.new_cdp_session(page)
        await self._cdp.send("Network.enable")
        if self._manager.config.user_agent:
            await self._cdp.send(
                "Network.setUserAgentOverride",
                {"userAgent": self._manager.config.user_agent},
            )
        logger.info("Browser ready", extra={"cdp_url": self._manager.cdp_url})

    async def navigate(self, url: str) -> None:
        await self.page.goto(url, wait_until="domcontentloaded")

    async def evaluate(self, expression: str) -> Any:
        return await self.page.evaluate(expression)

    async def title(self) -> str:
        return await self.page.title()

    async def wait_for_load(self) -> None:
        try:
            await self.page.wait_for_load_state("load", timeout=30000)
        except PlaywrightTimeoutError:
            logger.warning("Timeout waiting for page load")

    async def find_element(self, selector: str, timeout: float) -> BrowserElement:
        locator = self.page.locator(selector).first
        try:
            await locator.wait_for(state="visible", timeout=timeout * 1000)
        except PlaywrightTimeoutError as e:
            raise ElementNotFoundError([selector]) from e
        return PlaywrightElement(locator)

    def subscribe(self, event: str, handler: EventHandler) -> None:
        if self._cdp is None:
            raise RuntimeError("Browser not launched.")
        self._cdp.on(event, handler)

    def unsubscribe(self, event: str, handler: EventHandler) -> None:
        if self._cdp is not None:
            self._cdp.remove_listener(event, handler)

    async def get_response_body(self, request_id: str) -> tuple[str, bool]:
        if self._cdp is None:
            raise RuntimeError("Browser not launched.")
        result = await self._cdp.send("Network.getResponseBody", {"requestId": request_id})
        return result.get("body", ""), bool(result.get("base64Encoded"))

    async def close(self) -> None:
        if self._cdp is not None:
            try:
                await self._cdp.detach()
            except Exception as e:
                logger.debug("CDP detach failed", extra={"error": str(e)})
            self._cdp = None
        await self._manager.cleanup()
