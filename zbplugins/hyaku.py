"""The hundred poems of the Ogura anthology."""

from __future__ import annotations

import csv
from dataclasses import astuple, dataclass
from pathlib import Path

BED = "https://gitcode.net/u011570312/OguraHyakuninIsshu/-/raw/master/"
POEM_COUNT = 100

_LABELS = (
    ("●", "番号"),
    ("◉", "歌人"),
    ("○", "上の句"),
    ("○", "下の句"),
    ("◎", "上の句ひらがな"),
    ("◎", "下の句ひらがな"),
)


@dataclass(frozen=True)
class Poem:
    """One poem as stored in the anthology table."""

    number: str
    poet: str
    kami: str
    shimo: str
    kami_kana: str
    shimo_kana: str

    def __str__(self) -> str:
        return "".join(
            f"{bullet}{label}：{value}\n"
            for (bullet, label), value in zip(_LABELS, astuple(self))
        )


def load_poems(path) -> list[Poem]:
    """Read the anthology table, checking it holds poems 1 to 100 in order.

    Raises ValueError when the table is malformed.
    """
    with Path(path).open(newline="", encoding="utf-8") as handle:
        records = list(csv.reader(handle))
    records = records[1:]  # header
    if len(records) != POEM_COUNT:
        raise ValueError("invalid csvfile")
    poems = []
    for expected, record in enumerate(records, start=1):
        if len(record) != len(_LABELS):
            raise ValueError("invalid csvfile")
        if int(record[0]) != expected:
            raise ValueError("invalid csvfile")
        poems.append(Poem(*record))
    return poems


def image_urls(number: int) -> tuple[str, str]:
    """The picture and the calligraphy image of poem number (1 to 100)."""
    if number < 1 or number > POEM_COUNT:
        raise ValueError("超出范围")
    return f"{BED}img/{number:03d}.jpg", f"{BED}img/{number:03d}.png"