import hashlib
import json
import logging
import os
import re
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

CACHE_SUFFIX = ".cache"

DEFAULT_TTLS: Dict[str, int] = {
    "offers": 3600,
    "translate": 86400,
    "default": 1800,
}


def normalize_query(text: str) -> str:
    """
    Stable form of free text for cache keys:
    trim, lowercase, collapse whitespace, drop punctuation (keeps € and -).
    """
    s = (text or "").strip().lower()
    s = re.sub(r"[^\w\s€-]", " ", s)
    s = re.sub(r"\s+", " ", s)
    return s.strip()


def make_key(prefix: str, *parts: Any) -> str:
    joined = "|".join("" if p is None else str(p) for p in parts)
    return f"{prefix}_{hashlib.md5(joined.encode('utf-8')).hexdigest()}"


class Cache:
    """
    File based key/value cache with a TTL per category.

    Every entry is one JSON file: {key, value, created_at, expires_at, category}.
    Expired or unreadable entries are removed lazily on read.
    """

    def __init__(
        self,
        storage_path: str,
        *,
        enabled: bool = True,
        ttls: Optional[Dict[str, int]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.path = Path(storage_path)
        self.enabled = enabled
        self.ttls = {**DEFAULT_TTLS, **(ttls or {})}
        self._clock = clock

        if self.enabled:
            self.path.mkdir(parents=True, exist_ok=True)

    def _file_for(self, key: str) -> Path:
        return self.path / (hashlib.md5(key.encode("utf-8")).hexdigest() + CACHE_SUFFIX)

    def _read(self, file: Path) -> Optional[dict]:
        try:
            data = json.loads(file.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        if not isinstance(data, dict) or "expires_at" not in data or "value" not in data:
            return None
        try:
            data["expires_at"] = float(data["expires_at"])
        except (TypeError, ValueError):
            return None
        return data

    def get(self, key: str) -> Any:
        if not self.enabled:
            return None

        file = self._file_for(key)
        if not file.exists():
            return None

        data = self._read(file)
        if data is None:
            logger.warning("Dropping unreadable cache entry %s", file.name)
            self.delete(key)
            return None

        if self._clock() >= data["expires_at"]:
            self.delete(key)
            return None

        return data["value"]

    def set(self, key: str, value: Any, category: str = "default", ttl: Optional[int] = None) -> None:
        if not self.enabled:
            return

        if ttl is None:
            ttl = self.ttls.get(category, self.ttls["default"])
        now = self._clock()
        entry = {
            "key": key,
            "value": value,
            "created_at": now,
            "expires_at": now + ttl,
            "category": category,
        }

        # Write to a temp file and swap it in: concurrent writers end up last-write-wins
        tmp = None
        try:
            fd, tmp = tempfile.mkstemp(dir=self.path, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(entry, f, ensure_ascii=False)
            os.replace(tmp, self._file_for(key))
        except (OSError, TypeError, ValueError) as e:
            logger.error("Cache write failed for %s: %s", key, e)
            if tmp is not None:
                try:
                    os.unlink(tmp)
                except FileNotFoundError:
                    pass

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def delete(self, key: str) -> None:
        try:
            self._file_for(key).unlink()
        except FileNotFoundError:
            pass

    def clear(self) -> int:
        deleted = 0
        if not self.path.is_dir():
            return 0
        for file in self.path.glob("*" + CACHE_SUFFIX):
            file.unlink(missing_ok=True)
            deleted += 1
        return deleted

    def cleanup(self) -> int:
        """
        Remove expired and corrupt entries. Returns how many were deleted.
        """
        deleted = 0
        if not self.path.is_dir():
            return 0
        now = self._clock()
        for file in self.path.glob("*" + CACHE_SUFFIX):
            data = self._read(file)
            if data is None or now >= data["expires_at"]:
                file.unlink(missing_ok=True)
                deleted += 1
        return deleted
