"""Wording of image classification scores."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

HSO_IMAGE = "https://gchat.qpic.cn/gchatpic_new//--4234EDEC5F147A4C319A41149D7E0EA9/0"
THRESHOLD = 0.3


@dataclass(frozen=True)
class Scores:
    """Class probabilities of one picture."""

    drawings: float = 0.0
    hentai: float = 0.0
    neutral: float = 0.0
    porn: float = 0.0
    sexy: float = 0.0


def _flags(scores: Scores) -> list[str]:
    flags = []
    if scores.hentai > THRESHOLD:
        flags.append("hentai")
    if scores.porn > THRESHOLD:
        flags.append("porn")
    if scores.sexy > THRESHOLD:
        flags.append("hso")
    return flags


def judge(scores: Scores) -> str:
    """The verdict given when someone asks for a rating."""
    if scores.neutral > THRESHOLD:
        return "普通哦"
    if scores.drawings > THRESHOLD or scores.neutral < THRESHOLD:
        kind = "二次元"
    else:
        kind = "三次元"
    return "".join([kind] + [" " + flag for flag in _flags(scores)])


def auto_judge(scores: Scores) -> Optional[str]:
    """The unprompted remark on a picture, or None when nothing stands out."""
    if scores.neutral > THRESHOLD:
        return None
    kind = "二次元" if scores.drawings > THRESHOLD else "三次元"
    flags = _flags(scores)
    if not flags:
        return None
    return "".join([kind] + [" " + flag for flag in flags])