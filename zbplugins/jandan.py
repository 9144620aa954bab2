"""A store of picture links keyed by the CRC-64 of their URL."""

from __future__ import annotations

import sqlite3
import threading
from typing import Iterable

PAGE_URL = "http://jandan.net/pic"

_MASK64 = (1 << 64) - 1
_ISO_POLY = 0xD800000000000000  # reversed ISO 3309 polynomial


def _make_table(poly: int) -> tuple[int, ...]:
    table = []
    for i in range(256):
        crc = i
        for _ in range(8):
            crc = (crc >> 1) ^ poly if crc & 1 else crc >> 1
        table.append(crc)
    return tuple(table)


_ISO_TABLE = _make_table(_ISO_POLY)


def picture_id(url: str) -> int:
    """The CRC-64 (ISO table) of the UTF-8 bytes of url, as an unsigned int."""
    crc = _MASK64
    for byte in url.encode("utf-8"):
        crc = _ISO_TABLE[(crc ^ byte) & 0xFF] ^ (crc >> 8)
    return ~crc & _MASK64


def _signed(value: int) -> int:
    return value - (1 << 64) if value >= 1 << 63 else value


class PictureStore:
    """Picture URLs in an sqlite table named ``picture``."""

    def __init__(self, db_path):
        self._lock = threading.RLock()
        self._db = sqlite3.connect(str(db_path), check_same_thread=False)
        with self._lock:
            self._db.execute(
                "CREATE TABLE IF NOT EXISTS picture (id INTEGER PRIMARY KEY, url TEXT)"
            )
            self._db.commit()

    def __enter__(self) -> "PictureStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def add(self, url: str) -> int:
        """Store url and return its id."""
        key = picture_id(url)
        with self._lock:
            self._db.execute(
                "INSERT OR REPLACE INTO picture (id, url) VALUES (?, ?)", (_signed(key), url)
            )
            self._db.commit()
        return key

    def contains(self, url: str) -> bool:
        """Whether url has been stored."""
        with self._lock:
            row = self._db.execute(
                "SELECT 1 FROM picture WHERE id = ?", (_signed(picture_id(url)),)
            ).fetchone()
        return row is not None

    def random_url(self) -> str:
        """A randomly chosen stored URL; LookupError when there is none."""
        with self._lock:
            row = self._db.execute(
                "SELECT url FROM picture ORDER BY RANDOM() LIMIT 1"
            ).fetchone()
        if row is None:
            raise LookupError("no pictures")
        return row[0]

    def count(self) -> int:
        """Number of stored pictures."""
        with self._lock:
            return self._db.execute("SELECT COUNT(*) FROM picture").fetchone()[0]

    def add_page(self, urls: Iterable[str]) -> bool:
        """Store the URLs of one page in order.

        Stops at the first URL already known and returns False, since every
        later one is known too; returns True when all were new.
        """
        for url in urls:
            if self.contains(url):
                return False
            self.add(url)
        return True

    def close(self) -> None:
        with self._lock:
            self._db.close()