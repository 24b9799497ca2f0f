import asyncio
import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from app.core.cache import Cache
from app.core.config import settings
from app.core.feed_index import FeedIndex
from app.core.services import get_cache, get_feed_index
from app.schemas.feed import FeedStats, ImportReport

router = APIRouter(prefix="/v1", tags=["admin"])


def require_admin_key(x_api_key: Optional[str] = Header(None)) -> None:
    expected = (settings.ADMIN_API_KEY or "").strip()
    if not expected:
        raise HTTPException(
            status_code=503,
            detail={"error": "admin_disabled", "message": "ADMIN_API_KEY is not set"},
        )
    if not x_api_key or not hmac.compare_digest(x_api_key, expected):
        raise HTTPException(status_code=401, detail={"error": "unauthorized"})


@router.post("/feed/import", response_model=ImportReport, dependencies=[Depends(require_admin_key)])
async def import_feed(index: FeedIndex = Depends(get_feed_index)):
    """
    Download the configured feed and replace the local index.
    Blocking work runs in a worker thread; this can take minutes on a full feed.
    """
    return await asyncio.to_thread(index.import_report)


@router.get("/feed/stats", response_model=FeedStats)
def feed_stats(index: FeedIndex = Depends(get_feed_index)):
    return FeedStats(products=index.count())


@router.post("/cache/clear", dependencies=[Depends(require_admin_key)])
def cache_clear(cache: Cache = Depends(get_cache)):
    return {"deleted": cache.clear()}


@router.post("/cache/cleanup", dependencies=[Depends(require_admin_key)])
def cache_cleanup(cache: Cache = Depends(get_cache)):
    return {"deleted": cache.cleanup()}
