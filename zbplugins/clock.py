"""A clock that keeps group reminder timers, persists them and fires them."""

from __future__ import annotations

import re
import sqlite3
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from .schedule import next_wake_time, should_fire
from .timerspec import Timer

Message = list
Sender = Callable[[int, int, Message], object]

_AT_ALL = {"type": "at", "data": {"qq": "all"}}


def compose_message(timer: Timer) -> Message:
    """The message a firing timer sends: @all, its alert and an optional image."""
    segments: Message = [
        {"type": "at", "data": dict(_AT_ALL["data"])},
        {"type": "text", "data": {"text": timer.alert}},
    ]
    if timer.url:
        segments.append({"type": "image", "data": {"file": timer.url, "cache": "0"}})
    return segments


# ---------------------------------------------------------------------------
# cron expressions

_MONTH_NAMES = {
    name: i + 1
    for i, name in enumerate(
        ["JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC"]
    )
}
_DOW_NAMES = {name: i for i, name in enumerate(["SUN", "MON", "TUE", "WED", "THU", "FRI", "SAT"])}

_DESCRIPTORS = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}

_DURATION_UNITS = {
    "h": 3600.0,
    "m": 60.0,
    "s": 1.0,
    "ms": 1e-3,
    "us": 1e-6,
    "µs": 1e-6,
    "ns": 1e-9,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ms|us|µs|ns|h|m|s)")


def _parse_duration(text: str) -> timedelta:
    pos = 0
    seconds = 0.0
    if not text:
        raise ValueError(f"invalid duration {text!r}")
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None:
            raise ValueError(f"invalid duration {text!r}")
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    # sub-second intervals are rounded up to one second and truncated to whole seconds
    return timedelta(seconds=max(1, int(seconds)))


def _parse_value(text: str, names: dict) -> int:
    upper = text.upper()
    if upper in names:
        return names[upper]
    if not text.isdigit():
        raise ValueError(f"failed to parse int from {text}")
    return int(text)


def _parse_field(expr: str, low: int, high: int, names: dict) -> tuple[frozenset, bool]:
    values: set[int] = set()
    star = False
    for part in expr.split(","):
        range_part, _, step_part = part.partition("/")
        step = 1
        if step_part:
            if not step_part.isdigit() or int(step_part) == 0:
                raise ValueError(f"invalid step in {part!r}")
            step = int(step_part)
        if range_part in ("*", "?"):
            start, end = low, high
            star = star or not step_part
        else:
            first, dash, last = range_part.partition("-")
            start = _parse_value(first, names)
            if dash:
                end = _parse_value(last, names)
            elif step_part:
                end = high
            else:
                end = start
        if start < low or end > high:
            raise ValueError(f"value out of range ({low}-{high}): {part}")
        if start > end:
            raise ValueError(f"beginning of range after end: {part}")
        values.update(range(start, end + 1, step))
    return frozenset(values), star


@dataclass(frozen=True)
class _CronSchedule:
    minutes: frozenset = frozenset()
    hours: frozenset = frozenset()
    days: frozenset = frozenset()
    months: frozenset = frozenset()
    weekdays: frozenset = frozenset()
    day_star: bool = False
    weekday_star: bool = False
    every: Optional[timedelta] = None

    @classmethod
    def parse(cls, spec: str) -> "_CronSchedule":
        spec = spec.strip()
        if spec.startswith("@every "):
            return cls(every=_parse_duration(spec[len("@every "):].strip()))
        if spec.startswith("@"):
            if spec not in _DESCRIPTORS:
                raise ValueError(f"unrecognized descriptor: {spec}")
            spec = _DESCRIPTORS[spec]
        fields = spec.split()
        if len(fields) != 5:
            raise ValueError(f"expected exactly 5 fields, found {len(fields)}: {spec}")
        minutes, _ = _parse_field(fields[0], 0, 59, {})
        hours, _ = _parse_field(fields[1], 0, 23, {})
        days, day_star = _parse_field(fields[2], 1, 31, {})
        months, _ = _parse_field(fields[3], 1, 12, _MONTH_NAMES)
        weekdays, weekday_star = _parse_field(fields[4], 0, 6, _DOW_NAMES)
        return cls(minutes, hours, days, months, weekdays, day_star, weekday_star)

    def _day_matches(self, date: datetime) -> bool:
        dom = date.day in self.days
        dow = (date.weekday() + 1) % 7 in self.weekdays
        if self.day_star or self.weekday_star:
            return dom and dow
        return dom or dow

    def next_after(self, now: datetime) -> Optional[datetime]:
        if self.every is not None:
            return now + self.every
        current = now.replace(second=0, microsecond=0) + timedelta(minutes=1)
        limit = current + timedelta(days=366 * 5)
        while current < limit:
            if current.month not in self.months:
                year = current.year + current.month // 12
                month = current.month % 12 + 1
                current = current.replace(year=year, month=month, day=1, hour=0, minute=0)
                continue
            if not self._day_matches(current):
                current = current.replace(hour=0, minute=0) + timedelta(days=1)
                continue
            if current.hour not in self.hours:
                current = current.replace(minute=0) + timedelta(hours=1)
                continue
            if current.minute not in self.minutes:
                current += timedelta(minutes=1)
                continue
            return current
        return None


# ---------------------------------------------------------------------------
# the clock


@dataclass
class _Entry:
    timer: Timer
    stop: threading.Event = field(default_factory=threading.Event)


class Clock:
    """Keeps reminder timers in memory and in an sqlite table named ``timer``."""

    def __init__(self, db_path, sender: Sender):
        self._sender = sender
        self._lock = threading.RLock()
        self._entries: dict[int, _Entry] = {}
        self._db = sqlite3.connect(str(db_path), check_same_thread=False)
        with self._lock:
            self._db.execute(
                "CREATE TABLE IF NOT EXISTS timer ("
                "id INTEGER PRIMARY KEY, emdwhm INTEGER, sid INTEGER, gid INTEGER, "
                "alert TEXT, cron TEXT, url TEXT)"
            )
            self._db.commit()
            rows = self._db.execute(
                "SELECT id, emdwhm, sid, gid, alert, cron, url FROM timer"
            ).fetchall()
        for row in rows:
            self.register_timer(Timer(*row), save=False)

    def __enter__(self) -> "Clock":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def register_timer(self, timer: Timer, save: bool) -> bool:
        """Schedule a timer; with save it gets its canonical id and is stored.

        A timer with the same key registered earlier is disabled. Returns
        False when a cron expression cannot be parsed, with the reason in
        ``timer.alert``.
        """
        if save:
            timer.id = timer.timer_id()
        key = timer.id
        with self._lock:
            previous = self._entries.get(key)
        if previous is not None and previous.timer is not timer:
            previous.timer.en = False
            previous.stop.set()

        entry = _Entry(timer)
        if timer.cron:
            try:
                schedule = _CronSchedule.parse(timer.cron)
            except ValueError as err:
                timer.alert = str(err)
                return False
            try:
                if save:
                    self.add_timer_into_db(timer)
                self._put(entry)
            except sqlite3.Error:
                return False
            self._start(self._run_cron, entry, schedule)
            return True

        if save:
            try:
                self.add_timer_into_db(timer)
            except sqlite3.Error:
                pass
        self._put(entry)
        self._start(self._run_dated, entry)
        return True

    def cancel_timer(self, key: int) -> bool:
        """Stop a timer and delete it from memory and from the table."""
        with self._lock:
            entry = self._entries.pop(key, None)
            if entry is None:
                return False
            if not entry.timer.cron:
                entry.timer.en = False
            entry.stop.set()
            try:
                self._db.execute("DELETE FROM timer WHERE id = ?", (key,))
                self._db.commit()
            except sqlite3.Error:
                return False
        return True

    def list_timers(self, group_id: int) -> list[str]:
        """Human readable schedules of the timers belonging to a group."""
        with self._lock:
            timers = [entry.timer for entry in self._entries.values()]
        lines = []
        for timer in timers:
            if timer.group_id != group_id:
                continue
            info = timer.timer_info()
            text = info[info.index("]") + 1:] + "\n"
            text = text.replace("-1", "每")
            text = text.replace("月0日0周", "月周天")
            text = text.replace("月0日", "月")
            text = text.replace("日0周", "日")
            lines.append(text)
        return lines

    def get_timer(self, key: int) -> Optional[Timer]:
        """The timer registered under key, or None."""
        with self._lock:
            entry = self._entries.get(key)
        return entry.timer if entry is not None else None

    def add_timer_into_db(self, timer: Timer) -> None:
        """Store (or replace) a timer row."""
        with self._lock:
            self._db.execute(
                "INSERT OR REPLACE INTO timer (id, emdwhm, sid, gid, alert, cron, url) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    timer.id,
                    timer.emdwhm,
                    timer.self_id,
                    timer.group_id,
                    timer.alert,
                    timer.cron,
                    timer.url,
                ),
            )
            self._db.commit()

    def add_timer_into_map(self, timer: Timer) -> None:
        """Keep a timer in memory under its id."""
        self._put(_Entry(timer))

    def close(self) -> None:
        """Stop every running timer and close the database."""
        with self._lock:
            for entry in self._entries.values():
                entry.stop.set()
            self._db.close()

    # -- internals --------------------------------------------------------

    def _put(self, entry: _Entry) -> None:
        with self._lock:
            self._entries[entry.timer.id] = entry

    @staticmethod
    def _start(target, *args) -> None:
        threading.Thread(target=target, args=args, daemon=True).start()

    def _send(self, timer: Timer) -> None:
        self._sender(timer.self_id, timer.group_id, compose_message(timer))

    def _run_dated(self, entry: _Entry) -> None:
        timer = entry.timer
        while timer.en and not entry.stop.is_set():
            now = datetime.now()
            wake = next_wake_time(timer, now)
            if entry.stop.wait(max(0.0, (wake - now).total_seconds())):
                return
            if should_fire(timer, datetime.now()):
                self._send(timer)

    def _run_cron(self, entry: _Entry, schedule: _CronSchedule) -> None:
        while not entry.stop.is_set():
            now = datetime.now()
            wake = schedule.next_after(now)
            if wake is None:
                return
            if entry.stop.wait(max(0.0, (wake - now).total_seconds())):
                return
            self._send(entry.timer)