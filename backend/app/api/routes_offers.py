from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.core.offer_search import OfferSearch
from app.core.services import get_offer_search
from app.core.variants import search_variants
from app.schemas.offers import BotText, SearchLink, SearchResult

router = APIRouter(prefix="/v1", tags=["offers"])


def _variants_for(q: str, category: str, variants: Optional[List[str]]) -> List[str]:
    cleaned = [v.strip() for v in (variants or []) if v and v.strip()]
    if cleaned:
        return cleaned
    return search_variants(category or q)


@router.get("/offers", response_model=SearchResult)
async def offers(
    q: str = Query(..., min_length=1, max_length=200),
    max_price: Optional[float] = Query(None, gt=0),
    category: str = "",
    variants: Optional[List[str]] = Query(None),
    search: OfferSearch = Depends(get_offer_search),
):
    """
    Returns up to SEARCH_MAX_RESULTS offers (own site first, then cheapest
    relevant external offers) plus "browse more" links.
    """
    return await search.search(q, max_price, category, _variants_for(q, category, variants))


@router.get("/offers/links", response_model=List[SearchLink])
def offer_links(
    q: str = Query(..., min_length=1, max_length=200),
    max_price: Optional[float] = Query(None, gt=0),
    search: OfferSearch = Depends(get_offer_search),
):
    return search.generate_search_links(q, max_price)


@router.get("/offers/bot", response_model=BotText)
async def offers_for_bot(
    q: str = Query(..., min_length=1, max_length=200),
    max_price: Optional[float] = Query(None, gt=0),
    category: str = "",
    search: OfferSearch = Depends(get_offer_search),
):
    """
    Same search, rendered as the plain text block the prompt builder embeds.
    """
    result = await search.search(q, max_price, category, _variants_for(q, category, None))
    return BotText(query=q, text=search.format_results_for_bot(result))
