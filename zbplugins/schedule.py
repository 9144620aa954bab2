"""Computing when a date-based reminder next wakes, and whether it fires now."""

from __future__ import annotations

from datetime import datetime, timedelta

from .timerspec import Timer

_DAY = timedelta(days=1)
_HOUR = timedelta(hours=1)
_MINUTE = timedelta(minutes=1)


def _weekday(date: datetime) -> int:
    """Weekday with Sunday as 0."""
    return (date.weekday() + 1) % 7


def _normalized(year, month, day, hour, minute, second, microsecond, tzinfo) -> datetime:
    """Build a datetime, carrying out-of-range fields over like a calendar would."""
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    start = datetime(year, month, 1, tzinfo=tzinfo)
    return start + timedelta(
        days=day - 1, hours=hour, minutes=minute, seconds=second, microseconds=microsecond
    )


def _add_date(date: datetime, years: int, months: int, days: int) -> datetime:
    return _normalized(
        date.year + years,
        date.month + months,
        date.day + days,
        date.hour,
        date.minute,
        date.second,
        date.microsecond,
        date.tzinfo,
    )


def first_week(date: datetime, weekday: int) -> datetime:
    """The first day of date's month falling on weekday (Sunday is 0)."""
    day = date - timedelta(days=date.day - 1)
    while _weekday(day) != weekday:
        day += _DAY
    return day


def next_wake_time(timer: Timer, now: datetime) -> datetime:
    """The moment after now at which the timer should next be checked."""
    date = now
    m, d, h, mn, w = timer.month, timer.day, timer.hour, timer.minute, timer.week

    unit = timedelta(0)
    if mn >= 0:
        if h < 0:
            unit = _HOUR
        elif d < 0 or w < 0:
            unit = _DAY
        elif d == 0 and w >= 0:
            delta = _DAY * (w - _weekday(date))
            if delta < timedelta(0):
                delta = _DAY * 7
            unit += delta
    else:
        unit = _MINUTE

    stable = 0
    if mn < 0:
        mn = date.minute
    if h < 0:
        h = date.hour
    else:
        stable |= 0x8
    if d < 0:
        d = date.day
    elif d > 0:
        stable |= 0x4
    else:
        d = date.day
        if w >= 0:
            stable |= 0x2
    if m < 0:
        m = date.month
    else:
        stable |= 0x1

    if stable == 0b0101:
        if timer.day != now.day or timer.month != now.month:
            h = 0
    elif stable == 0b1001:
        if timer.month != now.month:
            d = 0
    elif stable == 0b0001:
        if timer.month != now.month:
            d = 0
            h = 0

    date = _normalized(date.year, m, d, h, mn, date.second, date.microsecond, date.tzinfo)
    if unit > timedelta(0):
        date += unit

    if date <= now:
        if timer.month < 0:
            if timer.day > 0 or (timer.day == 0 and timer.week >= 0):
                date = _add_date(date, 0, 1, 0)
            elif timer.day < 0 or timer.week < 0:
                if timer.hour > 0:
                    date = _add_date(date, 0, 0, 1)
                elif timer.minute > 0:
                    date += _HOUR
        else:
            date = _add_date(date, 1, 0, 0)

    if stable & 0x8 and date.hour != h:
        if stable & 0x4 == 0:
            date = _add_date(date, 0, 0, 1) - _HOUR
        elif stable & 0x2 == 0:
            date = _add_date(date, 0, 0, 7) - _HOUR
        else:
            date = _add_date(date, 1, 0, 0) - _HOUR

    if stable & 0x4 and date.day != d:
        date = _add_date(date, 1, 0, -1)

    if stable & 0x2 and _weekday(date) != w:
        date = first_week(_add_date(date, 1, 0, 0), w)

    if date <= now:
        date = now + _MINUTE
    return date


def should_fire(timer: Timer, now: datetime) -> bool:
    """Whether an enabled date-based timer matches the moment now."""
    if not timer.en:
        return False
    if timer.month >= 0 and timer.month != now.month:
        return False
    if timer.day < 0 or timer.day == now.day:
        pass
    elif timer.day == 0:
        if timer.week >= 0 and timer.week != _weekday(now):
            return False
    else:
        return False
    if timer.hour >= 0 and timer.hour != now.hour:
        return False
    return timer.minute < 0 or timer.minute == now.minute