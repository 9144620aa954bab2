"""An index of local pictures grouped in class folders, keyed by difference hash."""

from __future__ import annotations

import io
import os
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from PIL import Image

IMAGE_SUFFIXES = (".jpg", ".jpeg", ".png", ".gif", ".webp")


def is_image_name(name: str) -> bool:
    """Whether a file name has one of the picture suffixes, in any case."""
    return name.lower().endswith(IMAGE_SUFFIXES)


def difference_hash(image: Image.Image) -> int:
    """64-bit difference hash of an image as a signed integer.

    The image is shrunk to 9x8 grey pixels; each bit tells whether a pixel is
    darker than its right neighbour, the first comparison being the top bit.
    """
    grey = image.convert("RGB").resize((9, 8), Image.BILINEAR).convert("L")
    pixels = list(grey.getdata())
    value = 0
    for y in range(8):
        row = pixels[y * 9:(y + 1) * 9]
        for left, right in zip(row, row[1:]):
            value = (value << 1) | (1 if left < right else 0)
    return value - (1 << 64) if value >= 1 << 63 else value


@dataclass(frozen=True)
class SetuEntry:
    """One indexed picture; path is relative to the picture root."""

    img_id: int
    name: str
    path: str


def _quote(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class SetuIndex:
    """One sqlite table per class folder, holding its pictures."""

    def __init__(self, db_path):
        self.db_path = Path(db_path)
        self._lock = threading.RLock()
        self._db: Optional[sqlite3.Connection] = None

    def __enter__(self) -> "SetuIndex":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _conn(self) -> sqlite3.Connection:
        if self._db is None:
            self._db = sqlite3.connect(str(self.db_path), check_same_thread=False)
        return self._db

    def _create(self, name: str, drop: bool) -> None:
        db = self._conn()
        if drop:
            db.execute(f"DROP TABLE IF EXISTS {_quote(name)}")
        db.execute(
            f"CREATE TABLE IF NOT EXISTS {_quote(name)} "
            "(imgid INTEGER PRIMARY KEY, name TEXT, path TEXT)"
        )
        db.commit()

    def scan_all(self, root) -> None:
        """Rebuild the whole index from every folder below root."""
        root = Path(root)
        with self._lock:
            self.close()
            if self.db_path.exists():
                self.db_path.unlink()
            for dirpath, dirnames, _ in os.walk(root):
                dirnames.sort()
                for dirname in dirnames:
                    relpath = (Path(dirpath) / dirname).relative_to(root).as_posix()
                    self._create(dirname, drop=False)
                    self._scan(root, relpath, dirname)

    def scan_class(self, root, name: str) -> None:
        """Rebuild the index of the class folder root/name."""
        with self._lock:
            self._scan(Path(root), name, name)

    def _scan(self, root: Path, relpath: str, name: str) -> None:
        folder = root / relpath
        entries = sorted(folder.iterdir(), key=lambda p: p.name)
        self._create(name, drop=True)
        db = self._conn()
        for entry in entries:
            if entry.is_dir() or not is_image_name(entry.name):
                continue
            with Image.open(io.BytesIO(entry.read_bytes())) as image:
                image.load()
                img_id = difference_hash(image)
            db.execute(
                f"INSERT OR REPLACE INTO {_quote(name)} (imgid, name, path) VALUES (?, ?, ?)",
                (img_id, entry.name, f"{relpath}/{entry.name}"),
            )
            db.commit()

    def classes(self) -> list[str]:
        """Names of the indexed classes, sorted."""
        with self._lock:
            if self._db is None and not self.db_path.exists():
                return []
            rows = self._conn().execute(
                "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
            ).fetchall()
        return [row[0] for row in rows]

    def _check(self, name: str) -> None:
        if name not in self.classes():
            raise LookupError(f"no such class: {name}")

    def pick(self, name: str) -> SetuEntry:
        """A random picture of a class; LookupError for unknown or empty classes."""
        with self._lock:
            self._check(name)
            row = self._conn().execute(
                f"SELECT imgid, name, path FROM {_quote(name)} ORDER BY RANDOM() LIMIT 1"
            ).fetchone()
        if row is None:
            raise LookupError(f"class {name} is empty")
        return SetuEntry(*row)

    def count(self, name: str) -> int:
        """Number of pictures in a class; LookupError for unknown classes."""
        with self._lock:
            self._check(name)
            return self._conn().execute(f"SELECT COUNT(*) FROM {_quote(name)}").fetchone()[0]

    def summary(self) -> str:
        """A numbered list of classes with their picture counts."""
        lines = ["所有本地setu分类"]
        with self._lock:
            for i, name in enumerate(self.classes()):
                try:
                    lines.append(f"{i:02d}. {name}({self.count(name)})")
                except (LookupError, sqlite3.Error):
                    lines.append(f"{i:02d}. {name}(error)")
        return "\n".join(lines)

    def close(self) -> None:
        with self._lock:
            if self._db is not None:
                self._db.close()
                self._db = None