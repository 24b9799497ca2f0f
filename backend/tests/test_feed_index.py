import io
import os
import tempfile
import unittest

import httpx

from app.core.feed_index import FeedIndex, build_match_expression, normalize_search_text
from app.core.retailers import PARTNER_ICON, PARTNER_STORE_LABEL
from tests.helpers import feed_line, make_feed, make_feed_bytes


class FeedIndexTestCase(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.tmp.name, "data", "feed.db")
        self.index = FeedIndex(self.db_path, batch_size=2)

    def tearDown(self):
        self.tmp.cleanup()


class TestImport(FeedIndexTestCase):
    def test_invalid_rows_are_discarded(self):
        feed = make_feed([
            feed_line("Dell Latitude 5420 Notebook", "499,99", link="https://shop.example/1"),
            feed_line("Lenovo IdeaPad 3", "0", link="https://shop.example/2"),
            feed_line("", "199,00", link="https://shop.example/3"),
        ])
        self.assertEqual(self.index.import_feed(feed), 1)
        self.assertEqual(self.index.count(), 1)

    def test_missing_link_and_short_rows_are_skipped(self):
        short = ["https://shop.example/9", "Too Short Row", "", "", "", "", "", "10,00", "Shop"]
        feed = make_feed([
            feed_line("No Link Product", "10,00", link=""),
            short,
            feed_line("Valid Product Name", "10,00", link="https://shop.example/4"),
        ])
        report = self.index.import_report(feed)
        self.assertTrue(report.ok)
        self.assertEqual(report.inserted, 1)
        self.assertEqual(report.skipped, 2)

    def test_comma_decimal_and_image_fallback(self):
        feed = make_feed([
            feed_line("Samsung Galaxy A15", "189,90", link="https://shop.example/a15",
                      image="", aw_image="https://aw.example/a15.jpg"),
        ])
        self.index.import_feed(feed)
        [offer] = self.index.search("samsung galaxy")
        self.assertAlmostEqual(offer.price, 189.90)
        self.assertEqual(offer.price_formatted, "189,90 €")
        self.assertEqual(offer.image, "https://aw.example/a15.jpg")

    def test_unparseable_price_is_skipped(self):
        feed = make_feed([
            feed_line("Broken Price Product", "n/a", link="https://shop.example/x"),
            feed_line("Good Price Product", "12,50", link="https://shop.example/y"),
        ])
        self.assertEqual(self.index.import_feed(feed), 1)

    def test_reimport_replaces_previous_generation(self):
        self.index.import_feed(make_feed([
            feed_line(f"Old Product {i}", "10,00", link=f"https://shop.example/old/{i}") for i in range(5)
        ]))
        self.assertEqual(self.index.count(), 5)

        self.index.import_feed(make_feed([
            feed_line("New Product Alpha", "20,00", link="https://shop.example/new/1"),
        ]))
        self.assertEqual(self.index.count(), 1)
        self.assertEqual(self.index.search("old product"), [])

    def test_batches_commit_all_rows(self):
        rows = [feed_line(f"Batch Product {i}", "5,00", link=f"https://shop.example/b/{i}") for i in range(7)]
        self.assertEqual(self.index.import_feed(make_feed(rows)), 7)
        self.assertEqual(self.index.count(), 7)

    def test_broken_stream_returns_zero(self):
        self.index.import_feed(make_feed([feed_line("Existing Product", "9,99", link="https://shop.example/e")]))
        report = self.index.import_report(io.BytesIO(b"this is not gzip"))
        self.assertFalse(report.ok)
        self.assertEqual(report.inserted, 0)
        self.assertIsNotNone(report.error)

    def test_missing_feed_url_disables_import(self):
        self.assertEqual(self.index.import_feed(), 0)
        report = self.index.import_report()
        self.assertFalse(report.ok)

    def test_import_from_local_path(self):
        path = os.path.join(self.tmp.name, "feed.csv.gz")
        with open(path, "wb") as f:
            f.write(make_feed_bytes([feed_line("Local File Product", "3,00", link="https://shop.example/l")]))
        self.assertEqual(self.index.import_feed(path), 1)

    def test_import_from_url(self):
        body = make_feed_bytes([
            feed_line("Downloaded Product One", "15,00", link="https://shop.example/d1"),
            feed_line("Downloaded Product Two", "25,00", link="https://shop.example/d2"),
        ])
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, content=body)

        index = FeedIndex(
            self.db_path,
            feed_url="https://feeds.example/download/feed.csv.gz",
            transport=httpx.MockTransport(handler),
        )
        self.assertEqual(index.import_feed(), 2)
        self.assertEqual(seen, ["https://feeds.example/download/feed.csv.gz"])

    def test_download_error_returns_zero(self):
        index = FeedIndex(
            self.db_path,
            feed_url="https://feeds.example/feed.csv.gz",
            transport=httpx.MockTransport(lambda request: httpx.Response(403, text="forbidden")),
        )
        self.assertEqual(index.import_feed(), 0)


class TestSearch(FeedIndexTestCase):
    def setUp(self):
        super().setUp()
        self.index.import_feed(make_feed([
            feed_line("Dell Laptop 15", "499,00", link="https://shop.example/dell", merchant=""),
            feed_line("Universal Laptop Tasche Schwarz", "19,99", link="https://shop.example/tasche"),
            feed_line("Laptop Hülle Grau", "14,99", link="https://shop.example/huelle"),
            feed_line("Lenovo IdeaPad Laptop", "399,00", link="https://shop.example/lenovo"),
        ]))

    def titles(self, offers):
        return {o.title for o in offers}

    def test_negative_terms_exclude_rows(self):
        found = self.index.search("laptop -tasche -hülle", None, 10)
        self.assertEqual(self.titles(found), {"Dell Laptop 15", "Lenovo IdeaPad Laptop"})

    def test_hyphenated_query_with_exclusion(self):
        found = self.index.search("Laptop-tasche -hülle", None, 10)
        self.assertEqual(self.titles(found), {"Universal Laptop Tasche Schwarz"})

    def test_all_positive_terms_required(self):
        found = self.index.search("lenovo laptop", None, 10)
        self.assertEqual(self.titles(found), {"Lenovo IdeaPad Laptop"})

    def test_prefix_match(self):
        found = self.index.search("lapt", None, 10)
        self.assertEqual(len(found), 4)

    def test_max_price(self):
        found = self.index.search("laptop", 100, 10)
        self.assertEqual(self.titles(found), {"Universal Laptop Tasche Schwarz", "Laptop Hülle Grau"})
        self.assertTrue(all(o.price <= 100 for o in found))

    def test_limit(self):
        self.assertEqual(len(self.index.search("laptop", None, 2)), 2)

    def test_short_or_only_negative_terms_return_nothing(self):
        self.assertEqual(self.index.search("tv", None, 10), [])
        self.assertEqual(self.index.search("-laptop", None, 10), [])
        self.assertEqual(self.index.search("", None, 10), [])

    def test_offer_shape(self):
        [dell] = self.index.search("dell", None, 10)
        self.assertEqual(dell.source, PARTNER_STORE_LABEL)
        self.assertEqual(dell.source_icon, PARTNER_ICON)
        self.assertEqual(dell.price_formatted, "499,00 €")
        self.assertEqual(dell.link, "https://shop.example/dell")


class TestSearchMultiple(FeedIndexTestCase):
    def setUp(self):
        super().setUp()
        self.index.import_feed(make_feed([
            feed_line("Samsung Galaxy A15", "199,00", link="https://shop.example/s1"),
            feed_line("samsung  galaxy a15 ", "189,00", link="https://shop.example/s2", merchant="Other Shop"),
            feed_line("Apple iPhone 13", "499,00", link="https://shop.example/i13"),
            feed_line("Xiaomi Redmi Note 13", "179,00", link="https://shop.example/x1"),
            feed_line("Xiaomi Redmi 13C", "129,00", link="https://shop.example/x2"),
            feed_line("Samsung Galaxy S23 Silikon Case", "9,99", link="https://shop.example/case"),
        ]))
        self.queries = ["Samsung Galaxy", "Apple iPhone", "Xiaomi Redmi"]

    def test_titles_unique_and_sorted(self):
        found = self.index.search_multiple(self.queries, 300, 4)
        self.assertLessEqual(len(found), 4)
        normalized = [" ".join(o.title.lower().split()) for o in found]
        self.assertEqual(len(normalized), len(set(normalized)))
        prices = [o.price for o in found]
        self.assertEqual(prices, sorted(prices))
        self.assertTrue(all(o.price <= 300 for o in found))

    def test_limit_is_respected(self):
        self.assertEqual(len(self.index.search_multiple(self.queries, None, 2)), 2)

    def test_empty_queries(self):
        self.assertEqual(self.index.search_multiple([], None, 5), [])
        self.assertEqual(self.index.search_multiple(["  "], None, 5), [])


class TestMatchExpression(unittest.TestCase):
    def test_build(self):
        self.assertEqual(
            build_match_expression("iPhone 15 Pro -Hülle"),
            '("iphone"* AND "pro"*) NOT "hülle"*',
        )

    def test_quotes_are_escaped_away(self):
        self.assertEqual(build_match_expression('"samsung" tv'), '("samsung"*)')

    def test_no_positive_terms(self):
        self.assertIsNone(build_match_expression("-case -cover"))
        self.assertIsNone(build_match_expression("a b c"))

    def test_normalize(self):
        self.assertEqual(normalize_search_text("  Smart-TV,  55 Zoll! "), "smart-tv 55 zoll")


if __name__ == "__main__":
    unittest.main()
