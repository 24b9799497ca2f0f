from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional
from urllib.parse import quote_plus, urljoin

import httpx
from bs4 import BeautifulSoup, Tag

from app.core.prices import format_eur, parse_european_price
from app.core.retailers import COMPARISON_ICON, OWN_SITE_ICON
from app.schemas.offers import Offer

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "de-DE,de;q=0.9,en;q=0.8",
}


@dataclass(frozen=True)
class ScrapeSource:
    name: str
    base_url: str
    search_path: str          # format string with {q}
    item_selector: str
    title_selector: str
    price_selector: str
    link_selector: str = "a[href]"
    image_selector: str = "img[src]"
    icon: str = COMPARISON_ICON

    def search_url(self, query: str) -> str:
        return self.base_url.rstrip("/") + self.search_path.format(q=quote_plus(query))


SCRAPE_SOURCES: Dict[str, ScrapeSource] = {
    "idealo": ScrapeSource(
        name="idealo.de",
        base_url="https://www.idealo.de",
        search_path="/preisvergleich/MainSearchProductCategory.html?q={q}",
        item_selector="div.offerList-item, article.productOffers",
        title_selector=".offerList-item-description, a.productOffers-listItemTitleLink",
        price_selector=".offerList-item-price, .productOffers-listItemOfferPrice",
    ),
    "geizhals": ScrapeSource(
        name="geizhals.de",
        base_url="https://geizhals.de",
        search_path="/?fs={q}",
        item_selector="div.listview__item, article.product",
        title_selector="a.listview__name, span.product__name",
        price_selector=".listview__price, .product__price",
    ),
}


def own_site_source(name: str, base_url: str) -> ScrapeSource:
    return ScrapeSource(
        name=name,
        base_url=base_url,
        search_path="/search?q={q}",
        item_selector="div.product, article.offer, div.deal",
        title_selector="h2, h3, a.title",
        price_selector=".price",
        icon=OWN_SITE_ICON,
    )


def _first_text(item: Tag, selector: str) -> str:
    node = item.select_one(selector)
    return node.get_text(" ", strip=True) if node else ""


def _first_attr(item: Tag, selector: str, attr: str) -> str:
    node = item.select_one(selector)
    if not node:
        return ""
    value = node.get(attr) or ""
    return value.strip() if isinstance(value, str) else ""


def parse_results(html: str, source: ScrapeSource, max_price: Optional[float] = None) -> List[Offer]:
    """
    Extract offers from a search result page. Links and images are resolved
    against the source's base URL; items without title or price, or above
    `max_price`, are skipped.
    """
    soup = BeautifulSoup(html, "lxml")
    out: List[Offer] = []

    for item in soup.select(source.item_selector):
        title = _first_text(item, source.title_selector)
        price = parse_european_price(_first_text(item, source.price_selector))
        if not title or price is None:
            continue
        if max_price is not None and price > max_price:
            continue

        href = _first_attr(item, source.link_selector, "href")
        src = _first_attr(item, source.image_selector, "src")
        base = source.base_url.rstrip("/") + "/"

        out.append(
            Offer(
                title=title,
                price=price,
                price_formatted=format_eur(price),
                link=urljoin(base, href) if href else "",
                image=urljoin(base, src) if src else None,
                source=source.name,
                source_icon=source.icon,
            )
        )
    return out


class Scraper:
    """
    Fetches search pages of the own site and the fallback comparison sites.
    All methods return [] on any fetch problem.
    """

    def __init__(
        self,
        *,
        own_site_name: str,
        own_site_url: str,
        timeout: float = 15.0,
        sources: Optional[Dict[str, ScrapeSource]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.own_site = own_site_source(own_site_name, own_site_url)
        self.sources = sources if sources is not None else SCRAPE_SOURCES
        self.timeout = timeout
        self._transport = transport

    async def fetch_page(self, url: str) -> Optional[str]:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                max_redirects=3,
                headers=BROWSER_HEADERS,
                transport=self._transport,
            ) as client:
                r = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning("Page fetch failed for %s: %s", url, e)
            return None

        if r.status_code != 200:
            logger.warning("Page fetch for %s returned %s", url, r.status_code)
            return None
        return r.text

    async def _search(self, source: ScrapeSource, query: str, max_price: Optional[float]) -> List[Offer]:
        html = await self.fetch_page(source.search_url(query))
        if not html:
            return []
        try:
            return parse_results(html, source, max_price)
        except Exception:
            logger.exception("Parsing %s results failed", source.name)
            return []

    async def search_own_site(self, query: str, max_price: Optional[float] = None) -> List[Offer]:
        return await self._search(self.own_site, query, max_price)

    async def search_source(self, name: str, query: str, max_price: Optional[float] = None) -> List[Offer]:
        source = self.sources.get(name)
        if source is None:
            logger.warning("Unknown scrape source %r", name)
            return []
        return await self._search(source, query, max_price)
