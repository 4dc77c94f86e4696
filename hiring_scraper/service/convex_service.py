"""
Convex HTTP client for the jobs table.

Talks to the deployment's public function endpoints: mutations go to
``/api/mutation`` and queries to ``/api/query``, both as
``{"path": ..., "args": ..., "format": "json"}``.
"""

from typing import Any, Optional

import aiohttp

from hiring_scraper.core.exceptions import PersistenceError
from hiring_scraper.service.job_store import JobStore, UpsertCounts
from hiring_scraper.utils.logging import setup_logger

logger = setup_logger(__name__)

BULK_UPSERT = "jobs:bulkUpsert"
LIST_ALL = "jobs:listAll"
ERROR_PREVIEW_LENGTH = 500


class ConvexJobStore(JobStore):
    name = "convex"

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:3210",
        timeout: float = 60.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def _call(self, kind: str, path: str, args: dict[str, Any]) -> Any:
        payload = {"path": path, "args": args, "format": "json"}
        url = f"{self.base_url}/api/{kind}"
        session = await self._get_session()

        try:
            async with session.post(url, json=payload) as response:
                text = await response.text()
                if response.status != 200:
                    raise PersistenceError(f"HTTP {response.status}: {text[:ERROR_PREVIEW_LENGTH]}")
                try:
                    result = await response.json(content_type=None)
                except ValueError as e:
                    raise PersistenceError(f"unmarshal response: {e}") from e
        except aiohttp.ClientError as e:
            raise PersistenceError(f"http post: {e}") from e

        if not isinstance(result, dict):
            raise PersistenceError(f"unexpected response: {text[:ERROR_PREVIEW_LENGTH]}")
        if "errorMessage" in result:
            raise PersistenceError(f"convex error: {result['errorMessage']}")
        return result.get("value")

    async def bulk_upsert(self, jobs: list[dict[str, Any]]) -> UpsertCounts:
        value = await self._call("mutation", BULK_UPSERT, {"jobs": jobs})
        return UpsertCounts.from_response(value)

    async def list_all(self) -> list[dict[str, Any]]:
        value = await self._call("query", LIST_ALL, {})
        if not isinstance(value, list):
            raise PersistenceError(f"{LIST_ALL} returned {type(value).__name__}, expected a list")
        return [job for job in value if isinstance(job, dict)]

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
