"""
HTTP server: FastAPI app wrapping one scrape session behind the result cache.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hiring_scraper.api.v1.routes.search_router import router as search_router
from hiring_scraper.core.config import settings
from hiring_scraper.core.exceptions import (
    MissingQueryError,
    NotReadyError,
    ScrapeTimeoutError,
    ScraperError,
)
from hiring_scraper.schemas.api_schemas import HealthResponse
from hiring_scraper.service.chromium_service import ChromeConfig, PlaywrightBrowser
from hiring_scraper.service.result_cache import ResultCache
from hiring_scraper.service.scrape_session import ScrapeSession
from hiring_scraper.utils.logging import RUNTIME, setup_logger

logger = setup_logger(__name__)


def error_response(status: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={"error": HTTPStatus(status).phrase, "message": message},
    )


def build_cache() -> ResultCache:
    browser = PlaywrightBrowser(ChromeConfig.from_settings())
    session = ScrapeSession.from_settings(browser)
    return ResultCache(session, ttl_seconds=settings.CACHE_TTL_SECONDS)


def create_app(cache: Optional[ResultCache] = None, manage_session: bool = True) -> FastAPI:
    """
    Build the API app.

    Args:
        cache: Result cache to serve from; a Playwright-backed one is built when omitted
        manage_session: Initialize and close the session with the app lifespan
    """
    cache = cache or build_cache()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_session:
            logger.info("Initializing scrape session", extra={"event": RUNTIME.STARTUP})
            await cache.session.initialize()
        logger.info(
            "Hiring.cafe scraper server ready",
            extra={"event": RUNTIME.STARTUP, "port": settings.SCRAPER_PORT},
        )
        try:
            yield
        finally:
            if manage_session:
                logger.info("Closing scrape session", extra={"event": RUNTIME.SHUTDOWN})
                await cache.session.close()

    app = FastAPI(title="Hiring.cafe Scraper API", version="1.0.0", lifespan=lifespan)
    app.state.result_cache = cache

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=86400,
    )

    app.include_router(search_router)

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        return HealthResponse(status="ok", time=datetime.now(timezone.utc).replace(microsecond=0))

    # ===== Error mapping =====

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return error_response(400, f"Invalid request: {exc.errors()}")

    @app.exception_handler(MissingQueryError)
    async def missing_query_handler(request: Request, exc: MissingQueryError):
        return error_response(400, str(exc))

    @app.exception_handler(NotReadyError)
    async def not_ready_handler(request: Request, exc: NotReadyError):
        return error_response(503, str(exc))

    @app.exception_handler(ScrapeTimeoutError)
    async def timeout_handler(request: Request, exc: ScrapeTimeoutError):
        logger.warning("Search timed out", extra={"error": str(exc)})
        return error_response(504, f"Scraping failed: {exc}")

    @app.exception_handler(ScraperError)
    async def scraper_error_handler(request: Request, exc: ScraperError):
        logger.error("Search failed", extra={"error": str(exc)})
        return error_response(500, f"Scraping failed: {exc}")

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unexpected error while searching")
        return error_response(500, f"Scraping failed: {exc}")

    return app


def serve(port: Optional[int] = None) -> None:
    port = port or settings.SCRAPER_PORT
    logger.info("Starting server", extra={"port": port})
    uvicorn.run(create_app(), host="0.0.0.0", port=port, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    serve()
