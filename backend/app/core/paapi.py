"""
Amazon Product Advertising API 5.0 client (SearchItems).

Requests are signed with AWS Signature Version 4:
  canonical request -> string to sign -> HMAC chain derived signing key -> signature
"""
import hashlib
import hmac
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from app.core.logger import truncate_body
from app.core.prices import coerce_amount, format_eur, parse_display_price
from app.core.retailers import AMAZON_ICON
from app.schemas.offers import Offer

logger = logging.getLogger(__name__)

ALGORITHM = "AWS4-HMAC-SHA256"
SERVICE = "ProductAdvertisingAPI"
SEARCH_PATH = "/paapi5/searchitems"
SEARCH_TARGET = "com.amazon.paapi5.v1.ProductAdvertisingAPIv1.SearchItems"
CONTENT_TYPE = "application/json; charset=utf-8"
CONTENT_ENCODING = "amz-1.0"

RESOURCES = [
    "Images.Primary.Large",
    "ItemInfo.Title",
    "Offers.Listings.Price",
]


def _sha256_hex(data: str) -> str:
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def _hmac(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def derive_signing_key(secret_key: str, date: str, region: str, service: str) -> bytes:
    k_date = _hmac(("AWS4" + secret_key).encode("utf-8"), date)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, "aws4_request")


def sign_request(
    *,
    access_key: str,
    secret_key: str,
    region: str,
    host: str,
    method: str,
    path: str,
    payload: str,
    target: str = SEARCH_TARGET,
    service: str = SERVICE,
    now: Optional[datetime] = None,
) -> Dict[str, str]:
    """
    Returns the full header set (signed headers + Authorization) for one request.
    """
    now = now or datetime.now(timezone.utc)
    timestamp = now.strftime("%Y%m%dT%H%M%SZ")
    date = now.strftime("%Y%m%d")

    headers = {
        "content-encoding": CONTENT_ENCODING,
        "content-type": CONTENT_TYPE,
        "host": host,
        "x-amz-date": timestamp,
        "x-amz-target": target,
    }

    names = sorted(headers)
    canonical_headers = "".join(f"{k}:{headers[k].strip()}\n" for k in names)
    signed_headers = ";".join(names)

    canonical_request = "\n".join([
        method.upper(),
        path,
        "",  # no query string
        canonical_headers,
        signed_headers,
        _sha256_hex(payload),
    ])

    credential_scope = f"{date}/{region}/{service}/aws4_request"
    string_to_sign = "\n".join([
        ALGORITHM,
        timestamp,
        credential_scope,
        _sha256_hex(canonical_request),
    ])

    signing_key = derive_signing_key(secret_key, date, region, service)
    signature = hmac.new(signing_key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

    return {
        "Content-Encoding": CONTENT_ENCODING,
        "Content-Type": CONTENT_TYPE,
        "Host": host,
        "X-Amz-Date": timestamp,
        "X-Amz-Target": target,
        "Authorization": (
            f"{ALGORITHM} Credential={access_key}/{credential_scope}, "
            f"SignedHeaders={signed_headers}, Signature={signature}"
        ),
    }


def _dig(obj: Any, *path: Any) -> Any:
    for p in path:
        if isinstance(p, int):
            if not isinstance(obj, list) or len(obj) <= p:
                return None
        elif not isinstance(obj, dict):
            return None
        obj = obj[p] if isinstance(p, int) else obj.get(p)
    return obj


def parse_search_items(data: Dict[str, Any], max_price: Optional[float] = None) -> List[Offer]:
    """
    SearchItems response -> offers. Items without title/link/positive price, or
    above `max_price`, are dropped.
    """
    items = _dig(data, "SearchResult", "Items")
    if not isinstance(items, list):
        return []

    out: List[Offer] = []
    for item in items:
        title = _dig(item, "ItemInfo", "Title", "DisplayValue") or ""
        url = _dig(item, "DetailPageURL") or ""
        img = _dig(item, "Images", "Primary", "Large", "URL") or None

        price = coerce_amount(_dig(item, "Offers", "Listings", 0, "Price", "Amount"))
        if price is None:
            price = parse_display_price(_dig(item, "Offers", "Listings", 0, "Price", "DisplayAmount"))

        if not isinstance(title, str) or not title.strip() or not isinstance(url, str) or not url.strip():
            continue
        if price is None or price <= 0:
            continue
        if max_price is not None and price > max_price:
            continue

        out.append(
            Offer(
                title=title.strip(),
                price=price,
                price_formatted=format_eur(price),
                link=url.strip(),
                image=img if isinstance(img, str) else None,
                source="Amazon.de",
                source_icon=AMAZON_ICON,
            )
        )
    return out


class PAAPIClient:
    def __init__(
        self,
        *,
        access_key: str,
        secret_key: str,
        partner_tag: str,
        region: str = "eu-west-1",
        host: str = "webservices.amazon.de",
        marketplace: str = "www.amazon.de",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_key = access_key.strip()
        self.secret_key = secret_key.strip()
        self.partner_tag = partner_tag.strip()
        self.region = region
        self.host = host
        self.marketplace = marketplace
        self.timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.access_key and self.secret_key)

    def build_payload(self, keywords: str, limit: int) -> str:
        # Over-fetch so price/relevance filtering still leaves `limit` items
        item_count = max(10, min(30, limit * 5))
        body = {
            "Keywords": keywords,
            "Resources": RESOURCES,
            "ItemCount": item_count,
            "PartnerTag": self.partner_tag,
            "PartnerType": "Associates",
            "Marketplace": self.marketplace,
        }
        return json.dumps(body, ensure_ascii=False, separators=(",", ":"))

    async def search(self, keywords: str, max_price: Optional[float] = None, limit: int = 5) -> List[Offer]:
        """
        Never raises: transport errors, non-200 answers and unparsable bodies
        are logged and yield [].
        """
        if limit <= 0:
            limit = 5
        if not self.enabled:
            logger.warning("Amazon PA-API credentials missing; source disabled")
            return []

        payload = self.build_payload(keywords, limit)
        headers = sign_request(
            access_key=self.access_key,
            secret_key=self.secret_key,
            region=self.region,
            host=self.host,
            method="POST",
            path=SEARCH_PATH,
            payload=payload,
        )
        url = f"https://{self.host}{SEARCH_PATH}"

        t0 = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.post(url, content=payload.encode("utf-8"), headers=headers)
        except httpx.HTTPError as e:
            logger.error(
                "Amazon PA-API request failed: %s (%s) after %.3fs",
                type(e).__name__, e, time.monotonic() - t0,
            )
            return []

        dt = time.monotonic() - t0
        if r.status_code != 200:
            logger.error(
                "Amazon PA-API request failed: http_code=%s duration=%.3fs body=%s",
                r.status_code, dt, truncate_body(r.text),
            )
            return []

        try:
            data = r.json()
        except ValueError:
            logger.error("Amazon PA-API returned invalid JSON: %s", truncate_body(r.text))
            return []
        if not isinstance(data, dict):
            return []

        results = parse_search_items(data, max_price)
        results.sort(key=lambda o: o.price)
        logger.info("Amazon PA-API returned %d usable items for %r in %.3fs", len(results), keywords, dt)
        return results[:limit]
