from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central settings object.
    Production provides env vars; locally you can use backend/.env.
    """
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Versioning
    APP_VERSION: str = "0.2.0"
    BUILD_ID: str = "dev"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_REDACT: bool = True

    # Cache
    CACHE_ENABLED: bool = True
    CACHE_DIR: str = "cache"
    CACHE_NORMALIZE_QUERIES: bool = True
    CACHE_TTL_OFFERS: int = 3600
    CACHE_TTL_TRANSLATE: int = 86400
    CACHE_TTL_DEFAULT: int = 1800

    # Offer search
    SEARCH_MAX_RESULTS: int = 5
    SEARCH_OWN_PRIORITY: int = 3
    SEARCH_OVERFETCH_FACTOR: int = 3
    SEARCH_DEADLINE_SECONDS: float = 15.0
    SEARCH_FALLBACK_SOURCES: List[str] = ["idealo", "geizhals"]
    OWN_SITE_NAME: str = "lak24.de"
    OWN_SITE_URL: str = "https://lak24.de"
    SCRAPE_TIMEOUT_SECONDS: float = 15.0

    # Amazon Product Advertising API
    AMAZON_ACCESS_KEY: str = ""
    AMAZON_SECRET_KEY: str = ""
    AMAZON_PARTNER_TAG: str = ""
    AMAZON_REGION: str = "eu-west-1"
    AMAZON_HOST: str = "webservices.amazon.de"
    AMAZON_MARKETPLACE: str = "www.amazon.de"
    AMAZON_TIMEOUT_SECONDS: float = 10.0

    # Awin product feed
    AWIN_FEED_URL: str = ""
    FEED_DB_PATH: str = "data/feed_products.db"
    FEED_BATCH_SIZE: int = 10000
    FEED_MIN_COLUMNS: int = 20
    FEED_DOWNLOAD_TIMEOUT_SECONDS: float = 300.0

    # Admin endpoints (feed import, cache maintenance)
    ADMIN_API_KEY: str = ""

    @property
    def amazon_enabled(self) -> bool:
        return bool(self.AMAZON_ACCESS_KEY.strip() and self.AMAZON_SECRET_KEY.strip())

    @property
    def feed_enabled(self) -> bool:
        return bool(self.AWIN_FEED_URL.strip())

    @property
    def cache_ttls(self) -> dict:
        return {
            "offers": self.CACHE_TTL_OFFERS,
            "translate": self.CACHE_TTL_TRANSLATE,
            "default": self.CACHE_TTL_DEFAULT,
        }


# ✅ MUST EXIST: other modules import this
settings = Settings()
