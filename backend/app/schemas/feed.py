from typing import List, Optional

from pydantic import BaseModel


# Column positions of the Awin CSV export (see the `columns/` part of the feed URL)
COL_DEEP_LINK = 0
COL_PRODUCT_NAME = 1
COL_MERCHANT_IMAGE = 4
COL_SEARCH_PRICE = 7
COL_MERCHANT_NAME = 8
COL_AW_IMAGE = 12


class FeedRowError(ValueError):
    """Raised when a raw feed record cannot be mapped to a FeedRow."""


class FeedRow(BaseModel):
    """
    One product line of the affiliate feed, by name instead of by position.
    """
    link: str
    title: str
    image: str = ""
    price: float
    merchant: str = ""

    @classmethod
    def from_columns(cls, fields: List[str], min_columns: int = 20) -> "FeedRow":
        if len(fields) < min_columns:
            raise FeedRowError(f"expected at least {min_columns} columns, got {len(fields)}")

        image = fields[COL_MERCHANT_IMAGE].strip()
        if not image and len(fields) > COL_AW_IMAGE:
            image = fields[COL_AW_IMAGE].strip()

        raw_price = fields[COL_SEARCH_PRICE].strip().replace(",", ".")
        try:
            price = float(raw_price) if raw_price else 0.0
        except ValueError:
            raise FeedRowError(f"unparseable price {fields[COL_SEARCH_PRICE]!r}")

        return cls(
            link=fields[COL_DEEP_LINK].strip(),
            title=fields[COL_PRODUCT_NAME].strip(),
            image=image,
            price=price,
            merchant=fields[COL_MERCHANT_NAME].strip(),
        )

    def is_valid(self) -> bool:
        return bool(self.title) and bool(self.link) and self.price > 0


class ImportReport(BaseModel):
    ok: bool
    inserted: int = 0
    skipped: int = 0
    duration_seconds: float = 0.0
    error: Optional[str] = None


class FeedStats(BaseModel):
    products: int
