"""
Capture of search-API responses from the browser's network event stream.

CDP event callbacks are the producer side: they correlate ``responseReceived``
with ``loadingFinished``, fetch the body in a background task and publish an
immutable ``CapturedResponse``. The scroll controller is the consumer side: it
only waits on the signal queue and reads the append-only log through a cursor.
"""

import asyncio
import base64
import binascii
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Optional

from hiring_scraper.core.config import Settings, settings
from hiring_scraper.core.exceptions import DecodeError
from hiring_scraper.models.job_models import CapturedResponse, JobRecord
from hiring_scraper.service.browser_driver import (
    LOADING_FINISHED,
    RESPONSE_RECEIVED,
    BrowserDriver,
)
from hiring_scraper.service.record_extractor import extract_jobs
from hiring_scraper.utils.logging import setup_logger
from hiring_scraper.utils.text_processor import TextProcessor

logger = setup_logger(__name__)


@dataclass
class CaptureConfig:
    api_path: str = "/api/search-jobs"
    api_exclude: str = "get-total-count"
    signal_capacity: int = 100
    max_pending: int = 256

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "CaptureConfig":
        return cls(
            api_path=config.SEARCH_API_PATH,
            api_exclude=config.SEARCH_API_EXCLUDE,
            signal_capacity=config.SIGNAL_CAPACITY,
            max_pending=config.MAX_PENDING_REQUESTS,
        )


class CaptureBuffer:
    def __init__(self, config: Optional[CaptureConfig] = None):
        self._config = config or CaptureConfig()
        # One coarse lock guards the log and the pending table.
        self._lock = threading.Lock()
        self._captures: list[CapturedResponse] = []
        self._pending: OrderedDict[str, str] = OrderedDict()
        self._signal: asyncio.Queue = asyncio.Queue(maxsize=self._config.signal_capacity)
        self._browser: Optional[BrowserDriver] = None
        self._fetches: set[asyncio.Task] = set()

    def __len__(self) -> int:
        with self._lock:
            return len(self._captures)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def matches(self, url: str, status: int) -> bool:
        return (
            self._config.api_path in url
            and self._config.api_exclude not in url
            and status == 200
        )

    # -------------------------------------------------------------------------
    # Producer side
    # -------------------------------------------------------------------------

    def attach(self, browser: BrowserDriver) -> None:
        if self._browser is not None:
            raise RuntimeError("CaptureBuffer is already attached.")
        self._browser = browser
        browser.subscribe(RESPONSE_RECEIVED, self._on_response_received)
        browser.subscribe(LOADING_FINISHED, self._on_loading_finished)
        logger.debug("Capture attached", extra={"api_path": self._config.api_path})

    async def detach(self) -> None:
        if self._browser is None:
            return
        self._browser.unsubscribe(RESPONSE_RECEIVED, self._on_response_received)
        self._browser.unsubscribe(LOADING_FINISHED, self._on_loading_finished)
        self._browser = None

        fetches = list(self._fetches)
        for task in fetches:
            task.cancel()
        if fetches:
            await asyncio.gather(*fetches, return_exceptions=True)

        with self._lock:
            abandoned = len(self._pending)
            self._pending.clear()
        logger.debug(
            "Capture detached",
            extra={"captures": len(self), "abandoned_requests": abandoned + len(fetches)},
        )

    def _on_response_received(self, params: dict[str, Any]) -> None:
        response = params.get("response") or {}
        url = response.get("url", "")
        if not self.matches(url, response.get("status", 0)):
            return

        with self._lock:
            self._pending[params["requestId"]] = url
            while len(self._pending) > self._config.max_pending:
                stale_id, stale_url = self._pending.popitem(last=False)
                logger.warning(
                    "Pending request table full, dropping oldest",
                    extra={"request_id": stale_id, "url": TextProcessor.truncate_url(stale_url)},
                )

    def _on_loading_finished(self, params: dict[str, Any]) -> None:
        request_id = params.get("requestId")
        with self._lock:
            url = self._pending.pop(request_id, None)
        if url is None:
            return

        task = asyncio.get_running_loop().create_task(self._fetch_body(request_id, url))
        self._fetches.add(task)
        task.add_done_callback(self._fetches.discard)

    async def _fetch_body(self, request_id: str, url: str) -> None:
        browser = self._browser
        if browser is None:
            return
        try:
            body, base64_encoded = await browser.get_response_body(request_id)
        except Exception as e:
            logger.warning(
                "Response body fetch failed, dropping response",
                extra={"url": TextProcessor.truncate_url(url), "error": str(e)},
            )
            return

        if base64_encoded:
            try:
                body = base64.b64decode(body).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError) as e:
                logger.debug("Body flagged base64 but did not decode", extra={"error": str(e)})

        self.publish(CapturedResponse(request_id=request_id, url=url, body=body))

    def publish(self, capture: CapturedResponse) -> None:
        with self._lock:
            self._captures.append(capture)
        logger.info(
            "Captured response",
            extra={"url": TextProcessor.truncate_url(capture.url), "bytes": len(capture.body)},
        )
        try:
            self._signal.put_nowait(None)
        except asyncio.QueueFull:
            # Edge-triggered wake-up; a full queue already guarantees one.
            pass

    # -------------------------------------------------------------------------
    # Consumer side
    # -------------------------------------------------------------------------

    async def wait_for_signal(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._signal.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def clear_signals(self) -> int:
        """Discard pending wake-ups. Captured data stays in the log."""
        cleared = 0
        while True:
            try:
                self._signal.get_nowait()
            except asyncio.QueueEmpty:
                return cleared
            cleared += 1

    def snapshot_new_since(self, cursor: int) -> tuple[list[JobRecord], int]:
        """
        Decode every capture appended since ``cursor``.

        Returns the records and the new cursor, which is the log length at the
        moment of the snapshot. Bodies that fail to decode are logged and skipped.
        """
        with self._lock:
            bodies = [capture.body for capture in self._captures[cursor:]]
            new_cursor = len(self._captures)

        records: list[JobRecord] = []
        for body in bodies:
            try:
                records.extend(extract_jobs(body))
            except DecodeError as e:
                logger.warning("Skipping undecodable body", extra={"preview": e.preview})
        return records, new_cursor

    def collect_all(self) -> list[JobRecord]:
        records, _ = self.snapshot_new_since(0)
        return records
