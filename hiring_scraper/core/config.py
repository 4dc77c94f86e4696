from pydantic_settings import BaseSettings
from pydantic import AnyUrl
from typing import Literal, Optional


class Settings(BaseSettings):
    # Target site
    HIRING_CAFE_URL: str = "https://hiring.cafe"
    SEARCH_API_PATH: str = "/api/search-jobs"
    SEARCH_API_EXCLUDE: str = "get-total-count"

    # Browser configuration
    CHROME_PATH: Optional[str] = None
    CHROME_HEADLESS: bool = True
    CHROME_DEBUG_PORT: int = 9222
    USER_AGENT: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    )

    # Challenge resolution
    CHALLENGE_POLL_INTERVAL: float = 1.0
    CHALLENGE_MAX_ATTEMPTS: int = 30
    POST_CHALLENGE_SETTLE: float = 5.0

    # Capture and scroll pagination
    FIRST_PAGE_TIMEOUT: float = 45.0
    FIRST_PAGE_SETTLE: float = 2.0
    ROUND_TIMEOUT: float = 8.0
    ROUND_SETTLE: float = 1.0
    ROUND_DELAY: float = 0.5
    EMPTY_ROUND_LIMIT: int = 3
    DEFAULT_MAX_SCROLLS: int = 200
    SIGNAL_CAPACITY: int = 100
    MAX_PENDING_REQUESTS: int = 256

    # Sync runs
    SYNC_QUERY_MAX_SCROLLS: int = 100
    SYNC_BROWSE_MAX_SCROLLS: int = 300
    SYNC_QUERY_DELAY: float = 2.0

    # Result cache
    CACHE_TTL_SECONDS: float = 900.0

    # Persistence
    PERSISTENCE_BACKEND: Literal["convex", "mongo"] = "convex"
    CONVEX_URL: AnyUrl = "http://127.0.0.1:3210"
    CONVEX_TIMEOUT: float = 60.0
    UPSERT_BATCH_SIZE: int = 50
    UPSERT_BATCH_DELAY: float = 0.2

    #Mongdb configuration
    MONGO_URI: str = "mongodb://127.0.0.1:27017"
    DATABASE_NAME: str = "job_scraper"

    # Server
    SCRAPER_PORT: int = 3002
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"  # Load values from .env file
        extra = "ignore"


settings = Settings()
