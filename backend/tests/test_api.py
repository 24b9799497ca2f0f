import os
import tempfile
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from app.core.cache import Cache
from app.core.config import settings
from app.core.feed_index import FeedIndex
from app.core.offer_search import OfferSearch
from app.core.services import get_cache, get_feed_index, get_offer_search
from app.main import app
from tests.helpers import feed_line, make_feed, make_settings, offer


class FakeScraper:
    def __init__(self, own):
        self.own = own

    async def search_own_site(self, query, max_price=None):
        return list(self.own)

    async def search_source(self, name, query, max_price=None):
        return []


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.cache = Cache(os.path.join(self.tmp.name, "cache"))
        self.index = FeedIndex(os.path.join(self.tmp.name, "feed.db"))
        self.index.import_feed(make_feed([
            feed_line("Acer Aspire 3 Laptop Notebook", "349,00", link="https://shop.example/acer"),
        ]))
        self.search = OfferSearch(
            make_settings(),
            self.cache,
            scraper=FakeScraper([offer("Lenovo IdeaPad 5 Laptop", 450.0, "https://lak24.de/deal/5", "lak24.de")]),
            feed_index=self.index,
        )
        app.dependency_overrides[get_offer_search] = lambda: self.search
        app.dependency_overrides[get_feed_index] = lambda: self.index
        app.dependency_overrides[get_cache] = lambda: self.cache
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()
        self.tmp.cleanup()


class TestMeta(ApiTestCase):
    def test_root_and_health(self):
        self.assertEqual(self.client.get("/").json()["status"], "ok")
        self.assertEqual(self.client.get("/health").json(), {"ok": True})

    def test_version(self):
        body = self.client.get("/version").json()
        self.assertEqual(body["version"], settings.APP_VERSION)


class TestOffers(ApiTestCase):
    def test_offers(self):
        r = self.client.get("/v1/offers", params={"q": "Laptop", "max_price": 500})
        self.assertEqual(r.status_code, 200)
        body = r.json()
        self.assertEqual(
            [o["title"] for o in body["results"]],
            ["Lenovo IdeaPad 5 Laptop", "Acer Aspire 3 Laptop Notebook"],
        )
        self.assertEqual(body["total_found"], 2)
        self.assertEqual(body["max_price"], 500)
        self.assertEqual(len(body["search_links"]), 5)

    def test_query_validation(self):
        self.assertEqual(self.client.get("/v1/offers").status_code, 422)
        self.assertEqual(self.client.get("/v1/offers", params={"q": ""}).status_code, 422)
        self.assertEqual(self.client.get("/v1/offers", params={"q": "tv", "max_price": -1}).status_code, 422)

    def test_links(self):
        r = self.client.get("/v1/offers/links", params={"q": "TV", "max_price": 300})
        names = [l["name"] for l in r.json()]
        self.assertEqual(names, ["lak24.de", "Amazon.de", "idealo.de", "eBay.de", "geizhals.de"])

    def test_bot_text(self):
        body = self.client.get("/v1/offers/bot", params={"q": "Laptop"}).json()
        self.assertEqual(body["query"], "Laptop")
        self.assertIn("🛒 Top Offers:", body["text"])
        self.assertIn("Lenovo IdeaPad 5 Laptop", body["text"])


class TestAdmin(ApiTestCase):
    def test_disabled_without_key(self):
        with patch.object(settings, "ADMIN_API_KEY", ""):
            r = self.client.post("/v1/cache/clear", headers={"X-API-Key": "anything"})
        self.assertEqual(r.status_code, 503)

    def test_wrong_key(self):
        with patch.object(settings, "ADMIN_API_KEY", "s3cret"):
            self.assertEqual(self.client.post("/v1/cache/clear").status_code, 401)
            r = self.client.post("/v1/cache/clear", headers={"X-API-Key": "nope"})
        self.assertEqual(r.status_code, 401)

    def test_cache_clear_and_cleanup(self):
        self.cache.set("a", {"x": 1})
        self.cache.set("b", {"x": 2})
        with patch.object(settings, "ADMIN_API_KEY", "s3cret"):
            r = self.client.post("/v1/cache/clear", headers={"X-API-Key": "s3cret"})
            self.assertEqual(r.json(), {"deleted": 2})
            r = self.client.post("/v1/cache/cleanup", headers={"X-API-Key": "s3cret"})
            self.assertEqual(r.json(), {"deleted": 0})

    def test_feed_import_without_url_reports_failure(self):
        with patch.object(settings, "ADMIN_API_KEY", "s3cret"):
            r = self.client.post("/v1/feed/import", headers={"X-API-Key": "s3cret"})
        self.assertEqual(r.status_code, 200)
        self.assertFalse(r.json()["ok"])
        self.assertEqual(self.index.count(), 1)

    def test_feed_stats(self):
        body = self.client.get("/v1/feed/stats").json()
        self.assertEqual(body, {"products": 1})


if __name__ == "__main__":
    unittest.main()
