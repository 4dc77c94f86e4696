from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from hiring_scraper.core.exceptions import ElementNotFoundError, NotReadyError, ScrapeTimeoutError
from hiring_scraper.main import create_app
from hiring_scraper.models.job_models import ScrapeResult
from hiring_scraper.service.result_cache import ResultCache


def _client(search_once):
    session = MagicMock()
    session.search_once = AsyncMock(side_effect=search_once)
    app = create_app(cache=ResultCache(session), manage_session=False)
    return TestClient(app), session


async def _found(query):
    return ScrapeResult.from_jobs(query, [{"id": "1", "title": "Python Dev"}])


def test_health():
    client, _ = _client(_found)
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["time"]


def test_get_search():
    client, session = _client(_found)
    response = client.get("/api/search", params={"q": "python"})

    assert response.status_code == 200
    assert response.json() == {
        "query": "python",
        "total": 1,
        "scraped": 1,
        "budget_exhausted": False,
        "unidentified": 0,
        "jobs": [{"id": "1", "title": "Python Dev"}],
    }
    session.search_once.assert_awaited_once_with("python")


def test_post_search_accepts_filters():
    client, session = _client(_found)
    response = client.post("/api/search", json={
        "query": "python",
        "workplace_types": ["Remote"],
        "date_past_days": 7,
    })

    assert response.status_code == 200
    assert response.json()["query"] == "python"
    session.search_once.assert_awaited_once_with("python")


def test_repeated_search_is_cached():
    client, session = _client(_found)
    client.get("/api/search", params={"q": "python"})
    client.post("/api/search", json={"query": "python"})

    assert session.search_once.await_count == 1


@pytest.mark.parametrize("request_kwargs", [
    {"method": "GET", "url": "/api/search"},
    {"method": "GET", "url": "/api/search?q="},
    {"method": "POST", "url": "/api/search", "json": {}},
    {"method": "POST", "url": "/api/search", "json": {"query": "   "}},
])
def test_missing_query_is_bad_request(request_kwargs):
    client, session = _client(_found)
    response = client.request(**request_kwargs)

    assert response.status_code == 400
    assert response.json()["error"] == "Bad Request"
    assert "query is required" in response.json()["message"]
    session.search_once.assert_not_awaited()


def test_invalid_json_is_bad_request():
    client, _ = _client(_found)
    response = client.post(
        "/api/search",
        content="{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Bad Request"


@pytest.mark.parametrize("error, status, phrase", [
    (NotReadyError("initializing"), 503, "Service Unavailable"),
    (ScrapeTimeoutError("results", 45), 504, "Gateway Timeout"),
    (ElementNotFoundError(["#query-search-v4"]), 500, "Internal Server Error"),
])
def test_scrape_errors_map_to_status(error, status, phrase):
    client, _ = _client(error)
    response = client.get("/api/search", params={"q": "python"})

    assert response.status_code == status
    assert response.json()["error"] == phrase
    assert response.json()["message"]


def test_cors_preflight_allows_any_origin():
    client, _ = _client(_found)
    response = client.options(
        "/api/search",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"


def test_partial_result_is_reported():
    async def partial(query):
        return ScrapeResult.from_jobs(query, [{"id": "1"}], budget_exhausted=True, unidentified=2)

    client, _ = _client(partial)
    body = client.get("/api/search", params={"q": "python"}).json()

    assert body["budget_exhausted"] is True
    assert body["unidentified"] == 2
