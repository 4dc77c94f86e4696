from unittest.mock import AsyncMock, MagicMock

import pytest

from hiring_scraper.core.exceptions import ScrapeTimeoutError, UpstreamBatchError
from hiring_scraper.models.job_models import ScrapeResult
from hiring_scraper.service.job_store import JobStore, UpsertCounts
from hiring_scraper.service.sync_service import (
    SyncConfig,
    collect_jobs,
    push_jobs,
    run_sync,
    scrape_jobs,
)


class RecordingStore(JobStore):
    name = "recording"

    def __init__(self, fail_on_call=None):
        self.batches = []
        self.fail_on_call = fail_on_call

    async def bulk_upsert(self, jobs):
        self.batches.append(list(jobs))
        if self.fail_on_call == len(self.batches):
            raise RuntimeError("HTTP 500: boom")
        return UpsertCounts(inserted=len(jobs) - 2, updated=1, skipped=1)

    async def list_all(self):
        return []


def _jobs(count):
    return [{"externalId": str(i), "title": f"Job {i}"} for i in range(count)]


@pytest.mark.asyncio
async def test_push_splits_into_batches_and_aggregates():
    store = RecordingStore()

    report = await push_jobs(store, _jobs(120), batch_size=50, batch_delay=0)

    assert [len(batch) for batch in store.batches] == [50, 50, 20]
    assert report.batches == 3
    assert report.total == 120
    assert report.inserted == 48 + 48 + 18
    assert report.updated == 3
    assert report.skipped == 3


@pytest.mark.asyncio
async def test_failed_batch_aborts_remaining_batches():
    store = RecordingStore(fail_on_call=2)

    with pytest.raises(UpstreamBatchError) as exc_info:
        await push_jobs(store, _jobs(120), batch_size=50, batch_delay=0)

    assert (exc_info.value.start, exc_info.value.end) == (51, 100)
    assert "batch 51-100 failed" in str(exc_info.value)
    assert len(store.batches) == 2


@pytest.mark.asyncio
async def test_push_with_no_jobs_makes_no_calls():
    store = RecordingStore()
    report = await push_jobs(store, [], batch_delay=0)
    assert store.batches == []
    assert report.total == 0


def _session(results):
    session = MagicMock()
    session.scrape_all = AsyncMock(side_effect=results)
    return session


@pytest.mark.asyncio
async def test_collect_merges_queries_and_skips_failures():
    session = _session([
        ScrapeResult.from_jobs("a", [{"id": "1", "v": "old"}, {"id": "2"}]),
        ScrapeTimeoutError("first page", 45),
        ScrapeResult.from_jobs("c", [{"id": "1", "v": "new"}, {"objectID": "3"}]),
    ])
    config = SyncConfig(query_delay=0)

    jobs = await collect_jobs(session, ["a", "b", "c"], config)

    by_id = {job.get("id") or job.get("objectID"): job for job in jobs}
    assert sorted(by_id) == ["1", "2", "3"]
    assert by_id["1"]["v"] == "new"
    assert [call.args for call in session.scrape_all.await_args_list] == [
        ("a", 100),
        ("b", 100),
        ("c", 100),
    ]


@pytest.mark.asyncio
async def test_collect_without_queries_browses_everything():
    session = _session([ScrapeResult.from_jobs("", [{"id": "1"}])])

    jobs = await collect_jobs(session, None, SyncConfig())

    session.scrape_all.assert_awaited_once_with("", 300)
    assert jobs == [{"id": "1"}]


@pytest.mark.asyncio
async def test_run_sync_transforms_and_pushes():
    session = _session([ScrapeResult.from_jobs("", [
        {"id": "1", "job_information": {"title": "Engineer"}},
        {"id": "2"},
    ])])
    store = RecordingStore()

    jobs, report = await run_sync(session, store, None, SyncConfig(batch_delay=0))

    assert [job["externalId"] for job in jobs] == ["1", "2"]
    assert jobs[0]["title"] == "Engineer"
    assert store.batches == [jobs]
    assert report.total == 2


@pytest.mark.asyncio
async def test_collect_skips_query_that_crashes_the_page():
    session = _session([
        RuntimeError("Target page, context or browser has been closed"),
        ScrapeResult.from_jobs("b", [{"id": "b"}]),
    ])

    jobs = await collect_jobs(session, ["a", "b"], SyncConfig(query_delay=0))

    assert jobs == [{"id": "b"}]


@pytest.mark.asyncio
async def test_collect_browse_all_failure_propagates():
    session = _session([RuntimeError("Target page, context or browser has been closed")])

    with pytest.raises(RuntimeError):
        await collect_jobs(session, None, SyncConfig())


@pytest.mark.asyncio
async def test_scrape_jobs_normalizes_without_pushing():
    session = _session([ScrapeResult.from_jobs("", [{"id": "1"}])])

    jobs = await scrape_jobs(session, None, SyncConfig())

    assert [job["externalId"] for job in jobs] == ["1"]
