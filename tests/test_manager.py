import random

import pytest

from zbplugins.manager import (
    MAX_BAN_MINUTES,
    ManagerStore,
    apply_gist_option,
    apply_verify_option,
    ban_seconds,
    check_new_user,
    draw_member,
    gist_url,
    parse_join_answer,
    unescape_forward,
    welcome_to_cq,
)


@pytest.fixture
def store(tmp_path):
    s = ManagerStore(tmp_path / "config.db")
    yield s
    s.close()


def test_welcome_round_trip_and_replace(store):
    assert store.welcome(1) is None
    store.set_welcome(1, "hello {at}")
    assert store.welcome(1) == "hello {at}"
    store.set_welcome(1, "again")
    assert store.welcome(1) == "again"


def test_farewell_is_separate_from_welcome(store):
    store.set_welcome(2, "hi")
    store.set_farewell(2, "bye")
    assert store.welcome(2) == "hi"
    assert store.farewell(2) == "bye"
    assert store.farewell(3) is None


def test_members(store):
    assert not store.has_github_user("octo")
    store.add_member(10, "octo")
    assert store.has_github_user("octo")


def test_welcome_to_cq():
    text = welcome_to_cq("{at}{nickname} {uid} {gid} {groupname}", 123, "nick", 456, "grp")
    assert text == "[CQ:at,qq=123]nick 123 456 grp"
    avatar = welcome_to_cq("{avatar}", 123, "n", 1, "g")
    assert avatar == "[CQ:image,file=http://q4.qlogo.cn/g?b=qq&nk=123&s=640]"


def test_ban_units_are_consistent():
    assert ban_seconds(1, "小时") == ban_seconds(60, "分钟")
    assert ban_seconds(1, "天") == ban_seconds(24, "h")
    assert ban_seconds(5, "whatever") == ban_seconds(5, "min")


def test_ban_capped():
    assert ban_seconds(30, "天") == MAX_BAN_MINUTES * 60
    assert ban_seconds(43199, "分钟") == 43199 * 60


def test_unescape_forward():
    assert unescape_forward("&#91;CQ:face,id=1&#93;") == "[CQ:face,id=1]"


def test_gist_url_shape():
    url = gist_url("octo", "abc", 1234)
    assert url.startswith("https://gist.githubusercontent.com/octo/abc/raw/")
    name = url.rsplit("/", 1)[1]
    assert len(name) == 32 and all(c in "0123456789abcdef" for c in name)
    assert gist_url("octo", "abc", 1235) != url


def test_parse_join_answer():
    assert parse_join_answer("问题：q\n答案：octo/abc") == ("octo", "abc")
    with pytest.raises(ValueError):
        parse_join_answer("答案：octoabc")
    with pytest.raises(ValueError):
        parse_join_answer("答案：/abc")


def test_check_new_user_accepts_and_records(store):
    calls = []

    def fetch(url):
        calls.append(url)
        return b"1000"

    ok, reason = check_new_user(store, 7, 99, "octo", "h", fetch, 1100)
    assert (ok, reason) == (True, "")
    assert calls == [gist_url("octo", "h", 99)]
    assert store.has_github_user("octo")
    assert check_new_user(store, 8, 99, "octo", "h", fetch, 1100) == (False, "该github用户已入群")


def test_check_new_user_failures(store):
    assert check_new_user(store, 1, 1, "a", "h", lambda u: "1000", 1601) == (False, "时间戳超时")
    assert check_new_user(store, 1, 1, "a", "h", lambda u: "abc", 0) == (
        False,
        "时间戳格式错误: abc",
    )

    def broken(url):
        raise OSError("down")

    assert check_new_user(store, 1, 1, "a", "h", broken, 0) == (False, "无法连接到gist: down")
    assert not store.has_github_user("a")


def test_verify_option():
    assert apply_verify_option(0, "开启") == 1
    assert apply_verify_option(1, "关闭") == 0
    assert apply_verify_option(5, "maybe") is None


def test_gist_option():
    assert apply_gist_option(0, "启用") == 0x10
    closed = apply_gist_option(0x11, "禁用")
    assert closed & 1 == 1
    assert apply_gist_option(0, "x") is None


def test_draw_member_from_recent():
    members = [{"user_id": i, "last_sent_time": i} for i in range(12)]
    for seed in range(30):
        who = draw_member(members, random.Random(seed))
        assert who["last_sent_time"] >= 2


def test_draw_member_empty():
    with pytest.raises(ValueError):
        draw_member([], random.Random(0))