import logging
from functools import lru_cache

from app.core.cache import Cache
from app.core.config import settings
from app.core.feed_index import FeedIndex
from app.core.offer_search import OfferSearch
from app.core.paapi import PAAPIClient
from app.core.scrapers import Scraper

logger = logging.getLogger(__name__)


@lru_cache
def get_cache() -> Cache:
    return Cache(settings.CACHE_DIR, enabled=settings.CACHE_ENABLED, ttls=settings.cache_ttls)


@lru_cache
def get_feed_index() -> FeedIndex:
    return FeedIndex(
        settings.FEED_DB_PATH,
        feed_url=settings.AWIN_FEED_URL,
        batch_size=settings.FEED_BATCH_SIZE,
        min_columns=settings.FEED_MIN_COLUMNS,
        download_timeout=settings.FEED_DOWNLOAD_TIMEOUT_SECONDS,
    )


@lru_cache
def get_offer_search() -> OfferSearch:
    paapi = None
    if settings.amazon_enabled:
        paapi = PAAPIClient(
            access_key=settings.AMAZON_ACCESS_KEY,
            secret_key=settings.AMAZON_SECRET_KEY,
            partner_tag=settings.AMAZON_PARTNER_TAG,
            region=settings.AMAZON_REGION,
            host=settings.AMAZON_HOST,
            marketplace=settings.AMAZON_MARKETPLACE,
            timeout=settings.AMAZON_TIMEOUT_SECONDS,
        )
    else:
        logger.warning("Amazon PA-API is not configured; source disabled")

    feed_index = None
    if settings.feed_enabled:
        feed_index = get_feed_index()
    else:
        logger.warning("AWIN_FEED_URL is not configured; feed index source disabled")

    scraper = Scraper(
        own_site_name=settings.OWN_SITE_NAME,
        own_site_url=settings.OWN_SITE_URL,
        timeout=settings.SCRAPE_TIMEOUT_SECONDS,
    )

    return OfferSearch(settings, get_cache(), scraper=scraper, paapi=paapi, feed_index=feed_index)
