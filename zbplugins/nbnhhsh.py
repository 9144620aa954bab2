"""Guessing what a pinyin-initial abbreviation stands for."""

from __future__ import annotations

import json
from typing import Any

import requests

GUESS_API = "https://lab.magiconch.com/api/nbnhhsh/guess"
TIMEOUT = 30


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def extract_guesses(payload: Any) -> list[str]:
    """The translations of the first entry, else its partial guesses."""
    if not isinstance(payload, list) or not payload or not isinstance(payload[0], dict):
        return []
    first = payload[0]
    values = first["trans"] if "trans" in first else first.get("inputting")
    if values is None:
        return []
    if not isinstance(values, list):
        values = [values]
    return [_as_text(value) for value in values]


def guess(text: str) -> list[str]:
    """Ask the guessing service what text stands for."""
    response = requests.post(GUESS_API, data={"text": text}, timeout=TIMEOUT)
    try:
        payload = json.loads(response.content)
    except ValueError:
        return []
    return extract_guesses(payload)