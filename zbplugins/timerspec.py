"""Group reminder timers: the packed schedule fields and the parsing of spoken dates."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass

_EN_MASK = 0x800000
_MONTH_MASK = 0x780000
_DAY_MASK = 0x07C000
_WEEK_MASK = 0x003800
_HOUR_MASK = 0x0007C0
_MINUTE_MASK = 0x00003F

_CHINESE_DIGITS = "零一二三四五六七八九十"
_EVERY = "每"


def _field(packed: int, mask: int, shift: int, all_ones: int) -> int:
    value = (packed & mask) >> shift
    return -1 if value == all_ones else value


def _store(packed: int, value: int, mask: int, shift: int) -> int:
    return ((value << shift) & mask) | (packed & (0xFFFFFF ^ mask))


@dataclass
class Timer:
    """A reminder; month, day, week, hour and minute use -1 for "every"."""

    id: int = 0
    emdwhm: int = 0
    self_id: int = 0
    group_id: int = 0
    alert: str = ""
    cron: str = ""
    url: str = ""

    @property
    def en(self) -> bool:
        return self.emdwhm & _EN_MASK != 0

    @en.setter
    def en(self, value: bool) -> None:
        if value:
            self.emdwhm |= _EN_MASK
        else:
            self.emdwhm &= 0x7FFFFF

    @property
    def month(self) -> int:
        return _field(self.emdwhm, _MONTH_MASK, 19, 0b1111)

    @month.setter
    def month(self, value: int) -> None:
        self.emdwhm = _store(self.emdwhm, value, _MONTH_MASK, 19)

    @property
    def day(self) -> int:
        return _field(self.emdwhm, _DAY_MASK, 14, 0b11111)

    @day.setter
    def day(self, value: int) -> None:
        self.emdwhm = _store(self.emdwhm, value, _DAY_MASK, 14)

    @property
    def week(self) -> int:
        """Weekday with Sunday as 0."""
        return _field(self.emdwhm, _WEEK_MASK, 11, 0b111)

    @week.setter
    def week(self, value: int) -> None:
        self.emdwhm = _store(self.emdwhm, value, _WEEK_MASK, 11)

    @property
    def hour(self) -> int:
        return _field(self.emdwhm, _HOUR_MASK, 6, 0b11111)

    @hour.setter
    def hour(self, value: int) -> None:
        self.emdwhm = _store(self.emdwhm, value, _HOUR_MASK, 6)

    @property
    def minute(self) -> int:
        return _field(self.emdwhm, _MINUTE_MASK, 0, 0b111111)

    @minute.setter
    def minute(self, value: int) -> None:
        self.emdwhm = _store(self.emdwhm, value, _MINUTE_MASK, 0)

    def timer_info(self) -> str:
        """Canonical description used as the identity of the timer."""
        if self.cron:
            return f"[{self.group_id}]{self.cron}"
        return (
            f"[{self.group_id}]{self.month}月{self.day}日{self.week}周"
            f"{self.hour}:{self.minute}"
        )

    def timer_id(self) -> int:
        """32-bit id derived from the md5 of timer_info()."""
        digest = hashlib.md5(self.timer_info().encode("utf-8")).digest()
        return int.from_bytes(digest[:4], "little")


def filled_cron_timer(cron: str, alert: str, url: str, bot_id: int, group_id: int) -> Timer:
    """A timer driven by a cron expression."""
    return Timer(self_id=bot_id, group_id=group_id, alert=alert, cron=cron, url=url)


def filled_timer(date_strs, bot_id: int, group_id: int, match_date_only: bool) -> Timer:
    """Build a timer from the groups of a reminder command match.

    On invalid input the returned timer is disabled and ``alert`` names the problem.
    """
    month_str = date_strs[1]
    day_week_str = date_strs[2]
    hour_str = date_strs[3]
    minute_str = date_strs[4]

    timer = Timer()
    mon = chinese_num_to_int(month_str)
    if (mon != -1 and mon <= 0) or mon > 12:
        timer.alert = "月份非法！"
        return timer
    timer.month = mon

    if len(day_week_str) == 4:  # e.g. 二十五日: drop the middle 十 and the 日
        d = chinese_num_to_int(day_week_str[0] + day_week_str[2])
        if (d != -1 and d <= 0) or d > 31:
            timer.alert = "日期非法1！"
            return timer
        timer.day = d
    elif day_week_str.endswith("日"):
        d = chinese_num_to_int(day_week_str[:-1])
        if (d != -1 and d <= 0) or d > 31:
            timer.alert = "日期非法2！"
            return timer
        timer.day = d
    elif day_week_str.startswith(_EVERY):
        timer.week = -1
    else:
        w = chinese_num_to_int(day_week_str[1:])
        if w == 7:
            w = 0
        if w < 0 or w > 6:
            timer.alert = "星期非法！"
            return timer
        timer.week = w

    if len(hour_str) == 3:
        hour_str = hour_str[0] + hour_str[2]
    h = chinese_num_to_int(hour_str)
    if h < -1 or h > 23:
        timer.alert = "小时非法！"
        return timer
    timer.hour = h

    if len(minute_str) == 3:
        minute_str = minute_str[0] + minute_str[2]
    minute = chinese_num_to_int(minute_str)
    if minute < -1 or minute > 59:
        timer.alert = "分钟非法！"
        return timer
    timer.minute = minute

    if not match_date_only:
        url_str = date_strs[5] or ""
        if url_str:
            # the group starts with 用, three bytes in UTF-8
            timer.url = url_str.encode("utf-8")[3:].decode("utf-8", errors="replace")
            if not timer.url.startswith("http"):
                timer.url = "illegal"
                return timer
        timer.alert = date_strs[6]
        timer.en = True
    timer.self_id = bot_id
    timer.group_id = group_id
    return timer


def _atoi(text: str) -> int:
    if re.fullmatch(r"[+-]?[0-9]+", text):
        return int(text)
    return 0


def chinese_num_to_int(text: str) -> int:
    """Convert a one- or two-character number, Chinese or Arabic, to int.

    "每" alone means -1, "每二" means -2 and so on.
    """
    if not text:
        raise ValueError("empty number")
    first = text[0]
    if first.isdecimal():
        return _atoi(text)
    if first == _EVERY:
        return -chinese_char_to_int(text[1]) if len(text) == 2 else -1
    if len(text) == 1:
        return chinese_char_to_int(first)
    ten = chinese_char_to_int(first)
    if ten != 10:
        ten *= 10
    ones = chinese_char_to_int(text[1])
    if ones == 10:
        ones = 0
    return ten + ones


def chinese_char_to_int(char: str) -> int:
    """Map 零..十 to 0..10, 日/天 to 7 and anything else to 0."""
    if char in ("日", "天"):
        return 7
    index = _CHINESE_DIGITS.find(char)
    return index if index >= 0 else 0