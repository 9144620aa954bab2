"""Per-group galleries of "wife" pictures and the daily draw among them."""

from __future__ import annotations

import hashlib
import random
from datetime import date
from pathlib import Path

_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def group_folder(group_id: int) -> str:
    """The group number written in base 36, the name of its folder."""
    value = abs(int(group_id))
    digits = []
    while True:
        value, rest = divmod(value, 36)
        digits.append(_DIGITS[rest])
        if value == 0:
            break
    text = "".join(reversed(digits))
    return "-" + text if group_id < 0 else text


def clean_wife_name(text: str, command: str) -> str:
    """The name following the last occurrence of command, without spaces or slashes."""
    compact = text.replace(" ", "")
    pos = compact.rfind(command)
    if pos < 0:
        return ""
    name = compact[pos + len(command):]
    return name.replace("/", "").replace("\\", "")


def pick_index(nickname: str, today: date, count: int) -> int:
    """An index below count fixed for a nickname on a given day."""
    if count <= 0:
        raise ValueError("count must be positive")
    key = f"{nickname}{today.year}{today.month}{today.day}"
    digest = hashlib.md5(key.encode("utf-8")).digest()
    seed = int.from_bytes(digest[:8], "little", signed=True)
    return random.Random(seed).randrange(count)


class WifeGallery:
    """Pictures stored as files under base/<group folder>/<name>."""

    def __init__(self, base):
        self.base = Path(base)

    def _folder(self, group_id: int) -> Path:
        return self.base / group_folder(group_id)

    def names(self, group_id: int) -> list[str]:
        """Names of the pictures of a group, sorted; empty when there are none."""
        folder = self._folder(group_id)
        if not folder.is_dir():
            return []
        return sorted(entry.name for entry in folder.iterdir())

    def draw(self, group_id: int, nickname: str, today: date) -> Path:
        """The picture drawn for nickname today; LookupError when the group has none."""
        names = self.names(group_id)
        if not names:
            raise LookupError("一个wife也没有哦~")
        index = 0 if len(names) == 1 else pick_index(nickname, today, len(names))
        return self._folder(group_id) / names[index]

    def add(self, group_id: int, name: str, data: bytes) -> Path:
        """Store picture data under name, replacing any picture of that name."""
        if not name:
            raise ValueError("没有找到wife的名字！")
        folder = self._folder(group_id)
        folder.mkdir(parents=True, exist_ok=True)
        target = folder / name
        target.write_bytes(data)
        return target

    def remove(self, group_id: int, name: str) -> None:
        """Delete a picture; FileNotFoundError when it does not exist."""
        if not name:
            raise ValueError("没有找到wife的名字！")
        (self._folder(group_id) / name).unlink()