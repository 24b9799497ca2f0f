from __future__ import annotations

import re
from typing import List, Optional, Set
from urllib.parse import urlparse

from app.schemas.offers import Offer

# Display glyphs per source family
OWN_SITE_ICON = "🏪"
AMAZON_ICON = "📦"
PARTNER_ICON = "🏷️"
COMPARISON_ICON = "🔍"
MARKETPLACE_ICON = "🛒"
DEFAULT_ICON = "🔗"

# Label used when a feed row carries no merchant name
PARTNER_STORE_LABEL = "Partner-Shop"


def normalize_retailer_name(source: Optional[str]) -> Optional[str]:
    """
    Normalize merchant strings coming from feeds and scrapers so:
      - "AMAZON.DE", "Amazon.de Marketplace" => "Amazon.de"
      - "otto.de", "OTTO" => "OTTO"
      - "MediaMarkt DE" => "MediaMarkt"
    """
    if not source:
        return source

    s = re.sub(r"\s+", " ", source).strip()
    low = s.lower()

    if "amazon" in low:
        return "Amazon.de"

    if low in ("otto", "otto.de") or low.startswith("otto "):
        return "OTTO"

    if "mediamarkt" in low or "media markt" in low:
        return "MediaMarkt"

    if "saturn" in low:
        return "Saturn"

    # Country suffixes feed merchants like to append
    s = re.sub(r"\s+(DE|AT|Deutschland)$", "", s)
    return s


def is_absolute_url(url: Optional[str]) -> bool:
    if not url:
        return False
    parsed = urlparse(url.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_valid_offer(o: Offer) -> bool:
    """
    Offers without a title, a positive price or an absolute link never reach the caller.
    """
    return bool((o.title or "").strip()) and o.price > 0 and is_absolute_url(o.link)


def title_merchant_key(o: Offer) -> str:
    title = re.sub(r"\s+", " ", (o.title or "").strip().lower())
    merchant = (normalize_retailer_name(o.source) or "").strip().lower()
    return f"title::{title}::src::{merchant}"


def key_for_dedupe(o: Offer) -> str:
    if o.link and o.link.strip():
        link = o.link.strip().lower().rstrip("/")
        return f"link::{link}"
    return title_merchant_key(o)


def dedupe_offers(offers: List[Offer]) -> List[Offer]:
    """
    First occurrence wins. An offer counts as a duplicate when either its
    link or its title|merchant pair was already seen.
    """
    seen: Set[str] = set()
    out: List[Offer] = []
    for o in offers:
        keys = {key_for_dedupe(o), title_merchant_key(o)}
        if keys & seen:
            continue
        seen |= keys
        out.append(o)
    return out
