from pydantic import BaseModel, Field
from typing import Optional, List


class Offer(BaseModel):
    title: str
    price: float                         # EUR, always > 0 once surfaced
    price_formatted: str = ""            # e.g. "1.299,00 €" (display only)
    link: str
    image: Optional[str] = None
    source: str = ""
    source_icon: str = "🔗"


class SearchLink(BaseModel):
    name: str
    url: str
    icon: str = "🔗"


class SearchResult(BaseModel):
    query: str
    max_price: Optional[float] = None
    results: List[Offer] = Field(default_factory=list)
    search_links: List[SearchLink] = Field(default_factory=list)
    total_found: int = 0
    timestamp: int = 0


class BotText(BaseModel):
    query: str
    text: str
