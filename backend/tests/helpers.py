import gzip
import io
from typing import List, Optional, Sequence

from app.core.config import Settings
from app.schemas.offers import Offer

FEED_HEADER = [
    "aw_deep_link", "product_name", "aw_product_id", "merchant_product_id", "merchant_image_url",
    "description", "merchant_category", "search_price", "merchant_name", "merchant_id",
    "category_name", "category_id", "aw_image_url", "currency", "store_price", "delivery_cost",
    "merchant_deep_link", "language", "last_updated", "display_price", "data_feed_id",
]


def feed_line(
    title: str,
    price: str,
    link: str = "https://www.awin1.com/pclick.php?p=1",
    merchant: str = "Example Shop",
    image: str = "https://img.example.com/1.jpg",
    aw_image: str = "",
) -> List[str]:
    fields = [""] * len(FEED_HEADER)
    fields[0] = link
    fields[1] = title
    fields[4] = image
    fields[7] = price
    fields[8] = merchant
    fields[12] = aw_image
    fields[13] = "EUR"
    return fields


def _csv_quote(value: str) -> str:
    if any(c in value for c in ',"\n'):
        return '"' + value.replace('"', '""') + '"'
    return value


def make_feed_bytes(rows: Sequence[Sequence[str]], header: Optional[Sequence[str]] = None) -> bytes:
    lines = [header or FEED_HEADER] + list(rows)
    text = "\n".join(",".join(_csv_quote(v) for v in line) for line in lines) + "\n"
    return gzip.compress(text.encode("utf-8"))


def make_feed(rows: Sequence[Sequence[str]]) -> io.BytesIO:
    return io.BytesIO(make_feed_bytes(rows))


def offer(title: str, price: float, link: str, source: str = "Shop", icon: str = "🔗") -> Offer:
    return Offer(
        title=title,
        price=price,
        price_formatted=f"{price:.2f} €",
        link=link,
        source=source,
        source_icon=icon,
    )


def make_settings(**overrides) -> Settings:
    values = dict(
        SEARCH_MAX_RESULTS=5,
        SEARCH_OWN_PRIORITY=3,
        SEARCH_OVERFETCH_FACTOR=3,
        SEARCH_DEADLINE_SECONDS=2.0,
        SEARCH_FALLBACK_SOURCES=["idealo"],
        OWN_SITE_NAME="lak24.de",
        OWN_SITE_URL="https://lak24.de",
        AMAZON_PARTNER_TAG="shoptag-21",
        CACHE_NORMALIZE_QUERIES=True,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)
