import json
from unittest.mock import AsyncMock, MagicMock, patch

from hiring_scraper import cli
from hiring_scraper.core.exceptions import PersistenceError
from hiring_scraper.models.job_models import ScrapeResult
from hiring_scraper.service.job_store import JobStore, UpsertCounts


class MemoryStore(JobStore):
    name = "memory"

    def __init__(self, stored=None):
        self.stored = stored or []
        self.upserted = []
        self.closed = False

    async def bulk_upsert(self, jobs):
        self.upserted.extend(jobs)
        return UpsertCounts(inserted=len(jobs))

    async def list_all(self):
        return list(self.stored)

    async def close(self):
        self.closed = True


def _fake_session(**methods):
    session = MagicMock()
    for name, value in methods.items():
        setattr(session, name, AsyncMock(return_value=value))
    factory = MagicMock()
    factory.return_value.__aenter__ = AsyncMock(return_value=session)
    factory.return_value.__aexit__ = AsyncMock(return_value=False)
    return factory, session


def test_no_mode_prints_usage(capsys):
    assert cli.main([]) == 0
    out = capsys.readouterr().out
    assert "--sync" in out
    assert "dataset/jobs.jsonl" in out


def test_export_writes_jsonl(tmp_path):
    store = MemoryStore([{"_id": "x", "externalId": "a"}])
    output = tmp_path / "out.jsonl"

    with patch.object(cli, "create_job_store", return_value=store):
        assert cli.main(["--export", "--output", str(output)]) == 0

    assert json.loads(output.read_text(encoding="utf-8")) == {"externalId": "a"}
    assert store.closed


def test_seed_missing_file_fails(tmp_path):
    with patch.object(cli, "create_job_store", return_value=MemoryStore()):
        assert cli.main(["--seed", "--input", str(tmp_path / "missing.jsonl")]) == 1


def test_seed_pushes_file(tmp_path):
    path = tmp_path / "jobs.jsonl"
    path.write_text('{"externalId": "a"}\n{"externalId": "b"}\n', encoding="utf-8")
    store = MemoryStore()

    with patch.object(cli, "create_job_store", return_value=store):
        assert cli.main(["--seed", "--input", str(path)]) == 0

    assert [job["externalId"] for job in store.upserted] == ["a", "b"]


def test_sync_splits_queries(tmp_path):
    factory, session = _fake_session()
    scrape_jobs = AsyncMock(return_value=[{"externalId": "a"}])
    store = MemoryStore()
    output = tmp_path / "synced.json"

    with patch.object(cli, "_new_session", factory), \
            patch.object(cli, "create_job_store", return_value=store), \
            patch.object(cli, "scrape_jobs", scrape_jobs):
        assert cli.main(["--sync", "--queries", " python, golang ,", "--output", str(output)]) == 0

    assert scrape_jobs.await_args.args[1] == ["python", "golang"]
    assert json.loads(output.read_text(encoding="utf-8")) == [{"externalId": "a"}]
    assert store.upserted == [{"externalId": "a"}]


def test_sync_keeps_output_when_push_fails(tmp_path):
    factory, session = _fake_session()
    scrape_jobs = AsyncMock(return_value=[{"externalId": "a"}, {"externalId": "b"}])
    store = MemoryStore()
    store.bulk_upsert = AsyncMock(side_effect=PersistenceError("HTTP 500: down"))
    output = tmp_path / "synced.json"

    with patch.object(cli, "_new_session", factory), \
            patch.object(cli, "create_job_store", return_value=store), \
            patch.object(cli, "scrape_jobs", scrape_jobs):
        assert cli.main(["--sync", "--queries", "python", "--output", str(output)]) == 1

    assert output.exists()
    assert [job["externalId"] for job in json.loads(output.read_text(encoding="utf-8"))] == ["a", "b"]
    assert store.closed


def test_single_query_prints_result(capsys):
    factory, session = _fake_session(search_once=ScrapeResult.from_jobs("python", [{"id": "1"}]))

    with patch.object(cli, "_new_session", factory):
        assert cli.main(["--query", "python"]) == 0

    printed = json.loads(capsys.readouterr().out)
    assert printed["scraped"] == 1
    session.search_once.assert_awaited_once_with("python")
