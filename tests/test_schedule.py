from datetime import datetime

from zbplugins.schedule import first_week, next_wake_time, should_fire
from zbplugins.timerspec import Timer


def make(month=-1, day=-1, week=-1, hour=-1, minute=-1, en=True):
    t = Timer()
    t.month = month
    t.day = day
    t.week = week
    t.hour = hour
    t.minute = minute
    t.en = en
    return t


NOW = datetime(2022, 6, 13, 10, 0, 0)  # a Monday


def test_next_wake_time_from_source():
    t = Timer()
    t.month = -1
    t.week = 6
    t.hour = 16
    t.minute = 30
    wake = next_wake_time(t, NOW)
    assert wake > NOW
    assert wake == datetime(2022, 6, 18, 16, 30)


def test_every_minute():
    wake = next_wake_time(make(), datetime(2022, 6, 13, 10, 5, 7))
    assert wake == datetime(2022, 6, 13, 10, 6, 7)


def test_hourly():
    wake = next_wake_time(make(minute=30), datetime(2022, 6, 13, 10, 45))
    assert wake == datetime(2022, 6, 13, 11, 30)


def test_daily():
    wake = next_wake_time(make(hour=8, minute=0), NOW)
    assert wake == datetime(2022, 6, 14, 8, 0)


def test_fixed_date():
    wake = next_wake_time(make(month=12, day=25, week=0, hour=0, minute=0), NOW)
    assert wake == datetime(2022, 12, 25, 0, 0)


def test_always_in_future():
    for t in (make(), make(minute=0), make(hour=0, minute=0), make(month=1, day=1, week=0, hour=0, minute=0)):
        assert next_wake_time(t, NOW) > NOW


def test_first_week():
    assert first_week(datetime(2022, 6, 20, 9, 15), 6) == datetime(2022, 6, 4, 9, 15)
    assert first_week(datetime(2022, 6, 20), 3) == datetime(2022, 6, 1)


def test_should_fire_daily():
    t = make(hour=8, minute=0)
    assert should_fire(t, datetime(2022, 6, 13, 8, 0)) is True
    assert should_fire(t, datetime(2022, 6, 13, 8, 1)) is False


def test_should_fire_disabled():
    assert should_fire(make(hour=8, minute=0, en=False), datetime(2022, 6, 13, 8, 0)) is False


def test_should_fire_weekly():
    t = make(day=0, week=1, hour=9, minute=0)
    assert should_fire(t, datetime(2022, 6, 13, 9, 0)) is True
    assert should_fire(t, datetime(2022, 6, 14, 9, 0)) is False


def test_should_fire_month_and_day():
    t = make(month=6, day=13, week=0, hour=-1, minute=-1)
    assert should_fire(t, datetime(2022, 6, 13, 23, 59)) is True
    assert should_fire(t, datetime(2022, 7, 13, 23, 59)) is False
    assert should_fire(t, datetime(2022, 6, 14, 0, 0)) is False