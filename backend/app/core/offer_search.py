"""
Offer aggregation: own site first, then Amazon PA-API, the local feed index
and the comparison-site scrapers, merged into one small price-capped result.
"""
import asyncio
import logging
import time
from typing import Awaitable, Dict, List, Optional, Sequence, Set, Tuple
from urllib.parse import quote_plus

from pydantic import ValidationError

from app.core.cache import Cache, make_key, normalize_query
from app.core.config import Settings
from app.core.feed_index import FeedIndex
from app.core.paapi import PAAPIClient
from app.core.relevance import is_accessory, is_accessory_requested, is_relevant_product
from app.core.retailers import (
    AMAZON_ICON,
    COMPARISON_ICON,
    MARKETPLACE_ICON,
    OWN_SITE_ICON,
    dedupe_offers,
    is_valid_offer,
    key_for_dedupe,
    title_merchant_key,
)
from app.core.scrapers import Scraper
from app.schemas.offers import Offer, SearchLink, SearchResult

logger = logging.getLogger(__name__)


class OfferSearch:
    def __init__(
        self,
        config: Settings,
        cache: Cache,
        *,
        scraper: Optional[Scraper] = None,
        paapi: Optional[PAAPIClient] = None,
        feed_index: Optional[FeedIndex] = None,
    ):
        self.config = config
        self.cache = cache
        self.scraper = scraper
        self.paapi = paapi
        self.feed_index = feed_index

    # ─── public ──────────────────────────────────────────────────────

    def cache_key(self, query: str, max_price: Optional[float], category: str) -> str:
        q = normalize_query(query) if self.config.CACHE_NORMALIZE_QUERIES else query
        c = normalize_query(category) if self.config.CACHE_NORMALIZE_QUERIES else category
        price = "" if max_price is None else f"{float(max_price):.2f}"
        return make_key("offers", q, price, c, self.config.SEARCH_MAX_RESULTS)

    async def search(
        self,
        query: str,
        max_price: Optional[float] = None,
        category: str = "",
        variants: Optional[Sequence[str]] = None,
    ) -> SearchResult:
        """
        Search all sources for `query`. Never raises for source failures; a dead
        source only means fewer results.
        """
        cache_key = self.cache_key(query, max_price, category)
        cached = self.cache.get(cache_key)
        if cached is not None:
            try:
                result = SearchResult.model_validate(cached)
                logger.info("Offer search cache hit for %r", query)
                return result
            except ValidationError:
                logger.warning("Cached offer search for %r is malformed; dropping it", query)
                self.cache.delete(cache_key)

        max_results = max(1, self.config.SEARCH_MAX_RESULTS)
        results: List[Offer] = []
        seen: Set[str] = set()

        # 1) own site gets the priority slots
        own = await self._guarded("own site", self._own_site(query, max_price))
        own_cap = min(max_results, self.config.SEARCH_OWN_PRIORITY)
        self._fill(results, seen, own, max_price, own_cap)

        # 2) remaining slots from external sources, relevance filtered
        remaining = max_results - len(results)
        if remaining > 0:
            fetched = await self._fetch_external(query, max_price, variants or [], remaining)
            keyword = category or query
            accessory_query = is_accessory_requested(query)
            for label, offers in fetched:
                if len(results) >= max_results:
                    break
                relevant = [o for o in offers if self._is_relevant(o, keyword, accessory_query)]
                dropped = len(offers) - len(relevant)
                if dropped:
                    logger.debug("%s: relevance filter dropped %d of %d", label, dropped, len(offers))
                self._fill(results, seen, relevant, max_price, max_results)

        # 3) final safety passes
        if max_price is not None:
            results = [o for o in results if o.price <= max_price]
        results = [o for o in results if is_valid_offer(o)]
        results = dedupe_offers(results)[:max_results]

        result = SearchResult(
            query=query,
            max_price=max_price,
            results=results,
            search_links=self.generate_search_links(query, max_price),
            total_found=len(results),
            timestamp=int(time.time()),
        )

        # Empty results are not cached so a source outage heals on the next request
        if results:
            self.cache.set(cache_key, result.model_dump(mode="json"), "offers")
        logger.info("Offer search completed for %r: %d results", query, len(results))
        return result

    def generate_search_links(self, query: str, max_price: Optional[float] = None) -> List[SearchLink]:
        """
        Category search URLs for humans ("browse more"), budget-annotated where the site supports it.
        """
        q = quote_plus(query)
        links: List[SearchLink] = [
            SearchLink(
                name=self.config.OWN_SITE_NAME,
                url=f"{self.config.OWN_SITE_URL.rstrip('/')}/search?q={q}",
                icon=OWN_SITE_ICON,
            )
        ]

        amazon = f"https://www.amazon.de/s?k={q}"
        if self.config.AMAZON_PARTNER_TAG:
            amazon += f"&tag={quote_plus(self.config.AMAZON_PARTNER_TAG)}"
        if max_price is not None:
            # price range filter in cents
            amazon += f"&rh=p_36%3A-{int(round(max_price * 100))}"
        links.append(SearchLink(name="Amazon.de", url=amazon, icon=AMAZON_ICON))

        idealo = f"https://www.idealo.de/preisvergleich/MainSearchProductCategory.html?q={q}"
        if max_price is not None:
            idealo += f"&maxPrice={int(max_price)}"
        links.append(SearchLink(name="idealo.de", url=idealo, icon=COMPARISON_ICON))

        ebay = f"https://www.ebay.de/sch/i.html?_nkw={q}"
        if max_price is not None:
            ebay += f"&_udhi={int(max_price)}"
        links.append(SearchLink(name="eBay.de", url=ebay, icon=MARKETPLACE_ICON))

        geizhals = f"https://geizhals.de/?fs={q}"
        if max_price is not None:
            geizhals += f"&bpmax={int(max_price)}"
        links.append(SearchLink(name="geizhals.de", url=geizhals, icon=COMPARISON_ICON))

        return links

    @staticmethod
    def format_results_for_bot(result: SearchResult) -> str:
        """
        Plain list for the LLM prompt. English labels and emoji only, so the
        text does not pull the model towards a particular answer language.
        """
        if not result.results and not result.search_links:
            return "No products found."

        lines: List[str] = []
        if result.results:
            lines.append("🛒 Top Offers:")
            lines.append("")
            for i, o in enumerate(result.results, start=1):
                lines.append(f"{i}. {o.source_icon or '🔗'} **{o.title}**")
                lines.append(f"   💰 Price: {o.price_formatted}")
                lines.append(f"   🏬 Store: {o.source}")
                if o.link:
                    lines.append(f"   🔗 Link: {o.link}")
                lines.append("")

        if result.search_links:
            lines.append("")
            lines.append("🔎 Category Links:")
            for link in result.search_links:
                lines.append(f"• {link.icon} [{link.name}]({link.url})")

        return "\n".join(lines) + "\n"

    # ─── sources ─────────────────────────────────────────────────────

    async def _own_site(self, query: str, max_price: Optional[float]) -> List[Offer]:
        if self.scraper is None:
            return []
        return await self.scraper.search_own_site(query, max_price)

    async def _guarded(self, label: str, coro: Awaitable[List[Offer]]) -> List[Offer]:
        try:
            return await coro
        except Exception:
            logger.exception("%s search failed", label)
            return []

    def _feed_search(self, query: str, max_price: Optional[float], variants: Sequence[str], limit: int) -> List[Offer]:
        if len(variants) >= 2:
            return self.feed_index.search_multiple(list(variants), max_price, limit)
        return self.feed_index.search(query, max_price, limit)

    async def _fetch_external(
        self,
        query: str,
        max_price: Optional[float],
        variants: Sequence[str],
        remaining: int,
    ) -> List[Tuple[str, List[Offer]]]:
        """
        Run all external sources concurrently under one deadline. The returned
        list keeps slot priority order: Amazon, feed index, fallback scrapers.
        """
        fetch_limit = remaining * max(1, self.config.SEARCH_OVERFETCH_FACTOR)
        jobs: List[Tuple[str, Awaitable[List[Offer]]]] = []

        if self.paapi is not None and self.paapi.enabled:
            jobs.append(("amazon", self.paapi.search(query, max_price, fetch_limit)))
        if self.feed_index is not None:
            jobs.append((
                "feed",
                asyncio.to_thread(self._feed_search, query, max_price, variants, fetch_limit),
            ))
        if self.scraper is not None:
            for name in self.config.SEARCH_FALLBACK_SOURCES:
                jobs.append((name, self.scraper.search_source(name, query, max_price)))

        if not jobs:
            return []

        tasks: Dict[str, asyncio.Task] = {
            label: asyncio.ensure_future(self._guarded(label, coro)) for label, coro in jobs
        }
        _, pending = await asyncio.wait(tasks.values(), timeout=self.config.SEARCH_DEADLINE_SECONDS)
        for task in pending:
            task.cancel()

        out: List[Tuple[str, List[Offer]]] = []
        for label, task in tasks.items():
            if task in pending:
                logger.warning("%s search missed the %.1fs deadline", label, self.config.SEARCH_DEADLINE_SECONDS)
                out.append((label, []))
            else:
                out.append((label, task.result()))
        return out

    @staticmethod
    def _is_relevant(offer: Offer, keyword: str, accessory_query: bool) -> bool:
        # Category rules describe the device itself, so they only apply to device searches
        if accessory_query:
            return True
        return not is_accessory(offer.title) and is_relevant_product(offer.title, keyword)

    @staticmethod
    def _fill(
        results: List[Offer],
        seen: Set[str],
        candidates: List[Offer],
        max_price: Optional[float],
        cap: int,
    ) -> None:
        for o in candidates:
            if len(results) >= cap:
                return
            if not is_valid_offer(o):
                continue
            if max_price is not None and o.price > max_price:
                continue
            keys = {key_for_dedupe(o), title_merchant_key(o)}
            if keys & seen:
                continue
            seen |= keys
            results.append(o)
