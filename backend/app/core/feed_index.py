"""
Local full-text index over the Awin affiliate product feed.

The feed is a gzip-compressed CSV export (header line + one product per line).
`import_feed` replaces the whole index with the current feed generation,
`search` / `search_multiple` answer keyword queries against it with BM25
ranking and a price cap.

Imports are not safe to run concurrently with each other. Reads during an
import are allowed but may observe the table mid-replacement.
"""
import csv
import gzip
import io
import logging
import math
import re
import sqlite3
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional, Union

import httpx
from pydantic import ValidationError

from app.core.prices import format_eur
from app.core.retailers import PARTNER_ICON, PARTNER_STORE_LABEL, normalize_retailer_name
from app.schemas.feed import FeedRow, FeedRowError, ImportReport
from app.schemas.offers import Offer

logger = logging.getLogger(__name__)

TABLE = "feed_products"

# Product descriptions in the feed can be very long
CSV_FIELD_LIMIT = 10 * 1024 * 1024

FeedSource = Union[str, Path, BinaryIO]


def normalize_search_text(q: str) -> str:
    """
    Lowercase, collapse whitespace, drop punctuation except € and the minus
    sign (a leading minus marks an excluded term).
    """
    q = (q or "").strip().lower()
    q = re.sub(r"[^\w\s€-]", " ", q)
    q = re.sub(r"\s+", " ", q)
    return q.strip()


def _quote(term: str) -> str:
    return '"' + term.replace('"', '""') + '"*'


def build_match_expression(query: str) -> Optional[str]:
    """
    "iphone 15 pro -hülle" -> ("iphone"* AND "pro"*) NOT "hülle"*

    Terms of two characters or fewer are dropped. Returns None when no
    positive term is left.
    """
    words = [
        w for w in normalize_search_text(query).split(" ")
        if len(w.lstrip("-")) > 2 and re.search(r"\w", w)
    ]

    pos: List[str] = []
    neg: List[str] = []
    for w in words:
        if w.startswith("-"):
            neg.append("NOT " + _quote(w.lstrip("-")))
        else:
            pos.append(_quote(w))

    if not pos:
        return None

    match = "(" + " AND ".join(pos) + ")"
    if neg:
        match += " " + " ".join(neg)
    return match


class FeedIndex:
    def __init__(
        self,
        db_path: str,
        *,
        feed_url: str = "",
        batch_size: int = 10000,
        min_columns: int = 20,
        download_timeout: float = 300.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.db_path = str(db_path)
        self.feed_url = (feed_url or "").strip()
        self.batch_size = max(1, int(batch_size))
        self.min_columns = min_columns
        self.download_timeout = download_timeout
        self._transport = transport

        self._init_db()

    # ─── storage ─────────────────────────────────────────────────────

    def _connect(self) -> sqlite3.Connection:
        # Autocommit mode: transactions are opened/closed explicitly
        conn = sqlite3.connect(self.db_path, timeout=30, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        try:
            conn.execute(
                f"""
                CREATE VIRTUAL TABLE IF NOT EXISTS {TABLE} USING fts5(
                    title,
                    price UNINDEXED,
                    link UNINDEXED,
                    image UNINDEXED,
                    source UNINDEXED
                )
                """
            )
        finally:
            conn.close()

    def count(self) -> int:
        conn = self._connect()
        try:
            return int(conn.execute(f"SELECT COUNT(*) FROM {TABLE}").fetchone()[0])
        finally:
            conn.close()

    # ─── import ──────────────────────────────────────────────────────

    @contextmanager
    def _download(self, url: str) -> Iterator[BinaryIO]:
        with tempfile.TemporaryFile() as tmp:
            with httpx.Client(
                timeout=self.download_timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                with client.stream("GET", url) as r:
                    r.raise_for_status()
                    for chunk in r.iter_bytes():
                        tmp.write(chunk)
            tmp.seek(0)
            yield tmp

    @contextmanager
    def _open_feed(self, source: FeedSource) -> Iterator[io.TextIOBase]:
        """
        Yields the decompressed feed as text, whatever the source is:
        an http(s) URL, a local .gz path, or an open binary stream.
        """
        if isinstance(source, (str, Path)) and str(source).startswith(("http://", "https://")):
            with self._download(str(source)) as raw:
                with gzip.GzipFile(fileobj=raw) as gz:
                    yield io.TextIOWrapper(gz, encoding="utf-8", errors="replace", newline="")
        elif isinstance(source, (str, Path)):
            with gzip.open(source, "rt", encoding="utf-8", errors="replace", newline="") as f:
                yield f
        else:
            with gzip.GzipFile(fileobj=source) as gz:
                yield io.TextIOWrapper(gz, encoding="utf-8", errors="replace", newline="")

    def import_report(self, source: Optional[FeedSource] = None) -> ImportReport:
        """
        Replace the index with the rows of `source` (defaults to the configured feed URL).

        Delete-all and the inserts run in one transaction that is committed every
        `batch_size` rows. On any failure the open transaction is rolled back and
        the report says ok=False; rows committed by earlier batches stay, so the
        index content is indeterminate after a failed import.
        """
        t0 = time.monotonic()

        if source is None:
            if not self.feed_url:
                logger.error("Feed URL is empty; feed import disabled")
                return ImportReport(ok=False, error="feed url not configured")
            source = self.feed_url

        csv.field_size_limit(CSV_FIELD_LIMIT)

        inserted = 0
        skipped = 0
        conn = self._connect()
        try:
            with self._open_feed(source) as stream:
                reader = csv.reader(stream)
                next(reader, None)  # header

                conn.execute("BEGIN")
                conn.execute(f"DELETE FROM {TABLE}")
                insert = f"INSERT INTO {TABLE} (title, price, link, image, source) VALUES (?, ?, ?, ?, ?)"

                for fields in reader:
                    if not fields or not any(f.strip() for f in fields):
                        continue
                    try:
                        row = FeedRow.from_columns(fields, self.min_columns)
                    except (FeedRowError, ValidationError):
                        skipped += 1
                        continue
                    if not row.is_valid():
                        skipped += 1
                        continue

                    conn.execute(insert, (row.title, row.price, row.link, row.image, row.merchant))
                    inserted += 1

                    if inserted % self.batch_size == 0:
                        conn.execute("COMMIT")
                        conn.execute("BEGIN")
                        logger.info("Feed import progress: %d rows", inserted)

                conn.execute("COMMIT")

            conn.execute(f"INSERT INTO {TABLE}({TABLE}) VALUES('optimize')")

        except Exception as e:
            if conn.in_transaction:
                try:
                    conn.execute("ROLLBACK")
                except sqlite3.Error:
                    logger.exception("Feed import rollback failed; index state is indeterminate")
            logger.exception("Feed import failed after %d rows", inserted)
            return ImportReport(
                ok=False,
                inserted=0,
                skipped=skipped,
                duration_seconds=round(time.monotonic() - t0, 3),
                error=str(e)[:500],
            )
        finally:
            conn.close()

        duration = round(time.monotonic() - t0, 3)
        logger.info("Imported %d products from feed (%d skipped) in %.1fs", inserted, skipped, duration)
        return ImportReport(ok=True, inserted=inserted, skipped=skipped, duration_seconds=duration)

    def import_feed(self, source: Optional[FeedSource] = None) -> int:
        """
        Import and return the number of inserted rows; 0 means the import failed
        (or the feed had no valid rows).
        """
        return self.import_report(source).inserted

    # ─── search ──────────────────────────────────────────────────────

    def _row_to_offer(self, row: sqlite3.Row) -> Offer:
        price = float(row["price"])
        source = normalize_retailer_name(row["source"] or "") or PARTNER_STORE_LABEL
        return Offer(
            title=row["title"],
            price=price,
            price_formatted=format_eur(price),
            link=row["link"],
            image=row["image"] or None,
            source=source,
            source_icon=PARTNER_ICON,
        )

    def search(self, query: str, max_price: Optional[float] = None, limit: int = 5) -> List[Offer]:
        if limit <= 0:
            limit = 5

        match = build_match_expression(query)
        if match is None:
            return []

        # bm25(): lower is better; ties broken by cheapest
        sql = f"SELECT title, price, link, image, source, bm25({TABLE}) AS score FROM {TABLE} WHERE {TABLE} MATCH ?"
        params: list = [match]
        if max_price is not None:
            sql += " AND CAST(price AS REAL) <= ?"
            params.append(float(max_price))
        sql += " ORDER BY score ASC, CAST(price AS REAL) ASC LIMIT ?"
        params.append(int(limit))

        conn = self._connect()
        try:
            rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.error("Feed search failed for %r: %s", query, e)
            return []
        finally:
            conn.close()

        return [self._row_to_offer(r) for r in rows]

    def search_multiple(self, queries: List[str], max_price: Optional[float] = None, limit: int = 5) -> List[Offer]:
        """
        Fan a generic intent out into several precise queries, merge, drop
        duplicate titles (first wins) and keep the cheapest `limit`.
        """
        if limit <= 0:
            limit = 5
        queries = [q for q in queries if q and q.strip()]
        if not queries:
            return []

        per_query = max(1, math.ceil(limit / len(queries)))
        merged: List[Offer] = []
        seen = set()
        for q in queries:
            for offer in self.search(q, max_price, per_query):
                key = re.sub(r"\s+", " ", offer.title.strip().lower())
                if key in seen:
                    continue
                seen.add(key)
                merged.append(offer)

        merged.sort(key=lambda o: o.price)
        return merged[:limit]
