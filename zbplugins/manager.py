"""Group management helpers: welcome texts, ban lengths, switches and gist joins."""

from __future__ import annotations

import hashlib
import re
import sqlite3
from typing import Callable, Optional, Sequence, Union

HELP = (
    "====群管====\n"
    "- 禁言@QQ 1分钟\n"
    "- 解除禁言 @QQ\n"
    "- 我要自闭 1分钟\n"
    "- 开启全员禁言\n"
    "- 解除全员禁言\n"
    "- 升为管理@QQ\n"
    "- 取消管理@QQ\n"
    "- 修改名片@QQ XXX\n"
    "- 修改头衔@QQ XXX\n"
    "- 申请头衔 XXX\n"
    "- 踢出群聊@QQ\n"
    "- 退出群聊 1234@bot\n"
    "- 群聊转发 1234 XXX\n"
    "- 私聊转发 0000 XXX\n"
    "- 列出所有提醒\n"
    "- 翻牌\n"
    "- 设置欢迎语XXX\n"
    "- 测试欢迎语\n"
    "- 设置告别辞 参数同设置欢迎语\n"
    "- 测试告别辞\n"
    "- [开启 | 关闭]入群验证"
)

MAX_BAN_MINUTES = 43199  # a ban lasts at most just under a month

_GIST_RAW = "https://gist.githubusercontent.com/{}/{}/raw/{}"
_ANSWER_MARK = "答案："
_ENABLE_WORDS = ("开启", "打开", "启用")
_DISABLE_WORDS = ("关闭", "关掉", "禁用")
_INT_RE = re.compile(r"[+-]?[0-9]+")

_HOUR_UNITS = ("小时", "hour", "hours", "h")
_DAY_UNITS = ("天", "day", "days", "d")


class ManagerStore:
    """Welcome and farewell texts per group, and members admitted through gist."""

    def __init__(self, db_path):
        self._db = sqlite3.connect(str(db_path), check_same_thread=False)
        self._db.executescript(
            "CREATE TABLE IF NOT EXISTS welcome (gid INTEGER PRIMARY KEY, msg TEXT);"
            "CREATE TABLE IF NOT EXISTS farewell (gid INTEGER PRIMARY KEY, msg TEXT);"
            "CREATE TABLE IF NOT EXISTS member (qq INTEGER PRIMARY KEY, ghun TEXT);"
        )
        self._db.commit()

    def __enter__(self) -> "ManagerStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _set(self, table: str, group_id: int, text: str) -> None:
        self._db.execute(
            f"INSERT OR REPLACE INTO {table} (gid, msg) VALUES (?, ?)", (group_id, text)
        )
        self._db.commit()

    def _get(self, table: str, group_id: int) -> Optional[str]:
        row = self._db.execute(
            f"SELECT msg FROM {table} WHERE gid = ?", (group_id,)
        ).fetchone()
        return row[0] if row else None

    def set_welcome(self, group_id: int, text: str) -> None:
        """Store the welcome template of a group, replacing any earlier one."""
        self._set("welcome", group_id, text)

    def welcome(self, group_id: int) -> Optional[str]:
        """The welcome template of a group, or None."""
        return self._get("welcome", group_id)

    def set_farewell(self, group_id: int, text: str) -> None:
        """Store the farewell template of a group, replacing any earlier one."""
        self._set("farewell", group_id, text)

    def farewell(self, group_id: int) -> Optional[str]:
        """The farewell template of a group, or None."""
        return self._get("farewell", group_id)

    def has_github_user(self, ghun: str) -> bool:
        """Whether a github user name has already been admitted."""
        row = self._db.execute("SELECT 1 FROM member WHERE ghun = ?", (ghun,)).fetchone()
        return row is not None

    def add_member(self, qq: int, ghun: str) -> None:
        """Record that qq joined as github user ghun."""
        self._db.execute(
            "INSERT OR REPLACE INTO member (qq, ghun) VALUES (?, ?)", (qq, ghun)
        )
        self._db.commit()

    def close(self) -> None:
        self._db.close()


def welcome_to_cq(
    template: str, user_id: int, nickname: str, group_id: int, group_name: str
) -> str:
    """Expand {at} {nickname} {avatar} {uid} {gid} {groupname} into CQ text."""
    uid = str(user_id)
    replacements = (
        ("{at}", f"[CQ:at,qq={uid}]"),
        ("{nickname}", nickname),
        ("{avatar}", f"[CQ:image,file=http://q4.qlogo.cn/g?b=qq&nk={uid}&s=640]"),
        ("{uid}", uid),
        ("{gid}", str(group_id)),
        ("{groupname}", group_name),
    )
    text = template
    for key, value in replacements:
        text = text.replace(key, value)
    return text


def ban_seconds(amount: int, unit: str) -> int:
    """Seconds of a ban of amount units; unknown units count as minutes."""
    minutes = int(amount)
    if unit in _HOUR_UNITS:
        minutes *= 60
    elif unit in _DAY_UNITS:
        minutes *= 60 * 24
    if minutes >= MAX_BAN_MINUTES + 1:
        minutes = MAX_BAN_MINUTES
    return minutes * 60


def unescape_forward(content: str) -> str:
    """Undo the escaping of square brackets in forwarded CQ text."""
    return content.replace("&#91;", "[").replace("&#93;", "]")


def gist_url(ghun: str, gist_hash: str, group_id: int) -> str:
    """Raw URL of the gist file named after the md5 of the group number."""
    name = hashlib.md5(str(group_id).encode("ascii")).hexdigest()
    return _GIST_RAW.format(ghun, gist_hash, name)


def parse_join_answer(comment: str) -> tuple[str, str]:
    """Split the answer of a join request into (github user, gist hash).

    Raises ValueError when the answer is not of the form user/hash.
    """
    pos = comment.find(_ANSWER_MARK)
    if pos < 0:
        raise ValueError("格式错误!")
    answer = comment[pos + len(_ANSWER_MARK):]
    divider = answer.find("/")
    if divider <= 0:
        raise ValueError("格式错误!")
    return answer[:divider], answer[divider + 1:]


def check_new_user(
    store: ManagerStore,
    qq: int,
    group_id: int,
    ghun: str,
    gist_hash: str,
    fetch: Callable[[str], Union[bytes, str]],
    now: float,
) -> tuple[bool, str]:
    """Verify a gist holding a unix timestamp within 600 s of now.

    Returns (accepted, reason); an accepted user is recorded in the store.
    """
    if store.has_github_user(ghun):
        return False, "该github用户已入群"
    try:
        data = fetch(gist_url(ghun, gist_hash, group_id))
    except Exception as err:  # any failure to reach the gist is reported
        return False, "无法连接到gist: " + str(err)
    text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
    if not _INT_RE.fullmatch(text):
        return False, "时间戳格式错误: " + text
    stamp = int(text)
    if abs(int(now - stamp)) < 600:
        store.add_member(qq, ghun)
        return True, ""
    return False, "时间戳超时"


def apply_verify_option(data: int, option: str) -> Optional[int]:
    """Switch the join quiz bit; None for an unknown option word."""
    if option in _ENABLE_WORDS:
        return data | 1
    if option in _DISABLE_WORDS:
        return data & 0x7FFFFFFF_FFFFFFFE
    return None


def apply_gist_option(data: int, option: str) -> Optional[int]:
    """Switch the gist auto-approval bit; None for an unknown option word."""
    if option in _ENABLE_WORDS:
        return data | 0x10
    if option in _DISABLE_WORDS:
        return data & 0x7FFFFFFF_FFFFFFFD
    return None


def draw_member(members: Sequence[dict], rng) -> dict:
    """Pick one of the ten members who spoke most recently."""
    if not members:
        raise ValueError("no members")
    ordered = sorted(members, key=lambda m: int(m.get("last_sent_time", 0)))
    recent = ordered[max(0, len(ordered) - 10):]
    return recent[rng.randrange(len(recent))]