import json
from unittest.mock import MagicMock

import pytest
from pymongo import InsertOne, UpdateOne

from hiring_scraper.core.config import Settings
from hiring_scraper.core.exceptions import PersistenceError
from hiring_scraper.service.convex_service import ConvexJobStore
from hiring_scraper.service.job_store import UpsertCounts, create_job_store
from hiring_scraper.service.mongodb_service import MongoJobStore


class FakeResponse:
    def __init__(self, status, payload):
        self.status = status
        self._text = payload if isinstance(payload, str) else json.dumps(payload)

    async def text(self):
        return self._text

    async def json(self, content_type="application/json"):
        return json.loads(self._text)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeHTTPSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.posts = []
        self.closed = False

    def post(self, url, json=None):
        self.posts.append((url, json))
        return self.responses.pop(0)


# ===== Convex =====


@pytest.mark.asyncio
async def test_convex_bulk_upsert_payload_and_counts():
    http = FakeHTTPSession(FakeResponse(200, {
        "status": "success",
        "value": {"inserted": 3, "updated": 1, "skipped": 0, "total": 4},
    }))
    store = ConvexJobStore("http://127.0.0.1:3210/", session=http)

    counts = await store.bulk_upsert([{"externalId": "a"}])

    assert counts == UpsertCounts(inserted=3, updated=1, skipped=0)
    url, payload = http.posts[0]
    assert url == "http://127.0.0.1:3210/api/mutation"
    assert payload == {"path": "jobs:bulkUpsert", "args": {"jobs": [{"externalId": "a"}]}, "format": "json"}


@pytest.mark.asyncio
async def test_convex_http_error_includes_body_preview():
    http = FakeHTTPSession(FakeResponse(500, "x" * 2000))
    store = ConvexJobStore(session=http)

    with pytest.raises(PersistenceError) as exc_info:
        await store.bulk_upsert([])

    message = str(exc_info.value)
    assert message.startswith("HTTP 500: ")
    assert len(message) == len("HTTP 500: ") + 500


@pytest.mark.asyncio
async def test_convex_error_message_is_raised():
    http = FakeHTTPSession(FakeResponse(200, {"status": "error", "errorMessage": "ArgumentValidationError"}))
    store = ConvexJobStore(session=http)

    with pytest.raises(PersistenceError, match="ArgumentValidationError"):
        await store.bulk_upsert([{"externalId": "a"}])


@pytest.mark.asyncio
async def test_convex_list_all_uses_query_endpoint():
    http = FakeHTTPSession(FakeResponse(200, {"status": "success", "value": [{"externalId": "a"}]}))
    store = ConvexJobStore("http://convex:3210", session=http)

    jobs = await store.list_all()

    assert jobs == [{"externalId": "a"}]
    assert http.posts[0][0] == "http://convex:3210/api/query"
    assert http.posts[0][1]["path"] == "jobs:listAll"


def test_upsert_counts_tolerate_missing_fields():
    assert UpsertCounts.from_response({"inserted": 2.0}) == UpsertCounts(inserted=2)
    assert UpsertCounts.from_response(None) == UpsertCounts()


def test_backend_selection():
    assert isinstance(create_job_store(Settings(PERSISTENCE_BACKEND="convex")), ConvexJobStore)


# ===== MongoDB =====


def _collection(existing):
    collection = MagicMock()
    collection.find.return_value = [dict(doc) for doc in existing]
    return collection


@pytest.mark.asyncio
async def test_mongo_insert_update_skip():
    collection = _collection([
        {"externalId": "same", "title": "T", "applyUrl": "u", "isExpired": False},
        {"externalId": "changed", "title": "T", "applyUrl": "u", "isExpired": False},
    ])
    store = MongoJobStore(collection=collection, create_indexes=False)

    counts = await store.bulk_upsert([
        {"externalId": "new", "title": "N", "applyUrl": "u", "isExpired": False},
        {"externalId": "same", "title": "T", "applyUrl": "u", "isExpired": False},
        {"externalId": "changed", "title": "T", "applyUrl": "u", "isExpired": True},
    ])

    assert counts == UpsertCounts(inserted=1, updated=1, skipped=1)
    operations = collection.bulk_write.call_args.args[0]
    assert [type(op) for op in operations] == [InsertOne, UpdateOne]


@pytest.mark.asyncio
async def test_mongo_duplicate_ids_in_one_batch():
    collection = _collection([])
    store = MongoJobStore(collection=collection, create_indexes=False)

    counts = await store.bulk_upsert([
        {"externalId": "a", "title": "T", "applyUrl": "u", "isExpired": False},
        {"externalId": "a", "title": "T", "applyUrl": "u", "isExpired": False},
    ])

    assert counts == UpsertCounts(inserted=1, skipped=1)


@pytest.mark.asyncio
async def test_mongo_all_skipped_writes_nothing():
    collection = _collection([{"externalId": "a", "title": "T", "applyUrl": "u", "isExpired": False}])
    store = MongoJobStore(collection=collection, create_indexes=False)

    await store.bulk_upsert([{"externalId": "a", "title": "T", "applyUrl": "u", "isExpired": False}])

    collection.bulk_write.assert_not_called()


@pytest.mark.asyncio
async def test_mongo_list_all_drops_object_id():
    collection = _collection([{"_id": "oid", "externalId": "a"}])
    store = MongoJobStore(collection=collection, create_indexes=False)

    assert await store.list_all() == [{"externalId": "a"}]
