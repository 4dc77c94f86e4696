"""
FastAPI routes for job search
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from hiring_scraper.core.exceptions import MissingQueryError
from hiring_scraper.schemas.api_schemas import ErrorResponse, SearchRequest, SearchResponse
from hiring_scraper.service.result_cache import ResultCache
from hiring_scraper.utils.logging import setup_logger

logger = setup_logger(__name__)

router = APIRouter(prefix="/api", tags=["Search"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
    504: {"model": ErrorResponse},
}


def get_result_cache(request: Request) -> ResultCache:
    """Dependency to get the cache installed on the app"""
    return request.app.state.result_cache


async def _search(cache: ResultCache, query: Optional[str]) -> SearchResponse:
    query = (query or "").strip()
    if not query:
        raise MissingQueryError()

    logger.info("Search request", extra={"query": query})
    result = await cache.search(query)
    return SearchResponse(**result.model_dump())


@router.get("/search", response_model=SearchResponse, responses=ERROR_RESPONSES)
async def search_get(
    q: Optional[str] = Query(None, description="Search query"),
    cache: ResultCache = Depends(get_result_cache),
):
    """Search jobs for ``?q=`` (first page of results, cached per query)."""
    return await _search(cache, q)


@router.post("/search", response_model=SearchResponse, responses=ERROR_RESPONSES)
async def search_post(
    request: SearchRequest,
    cache: ResultCache = Depends(get_result_cache),
):
    """Search jobs for ``{"query": ...}``. Filters are accepted but not applied."""
    return await _search(cache, request.query)
