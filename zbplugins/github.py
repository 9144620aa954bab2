"""Searching GitHub repositories and describing the best hit."""

from __future__ import annotations

import json
from typing import Mapping
from urllib.parse import urlencode

import requests

SEARCH_API = "https://api.github.com/search/repositories"
PREVIEW_PREFIX = "https://opengraph.githubassets.com/0/"
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/88.0.4324.182 Safari/537.36"
)
TIMEOUT = 30


def notnull(text: str, default: str) -> str:
    """text, or default when text is empty."""
    return text if text else default


def search_url(query: str) -> str:
    """The search API URL for query."""
    return SEARCH_API + "?" + urlencode({"q": query})


def _text(value) -> str:
    return value if isinstance(value, str) else ""


def _number(value) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


def format_repo(repo: Mapping) -> str:
    """A short text summary of one repository record."""
    license_info = repo.get("license")
    license_key = _text(license_info.get("key")) if isinstance(license_info, Mapping) else ""
    return (
        f"{_text(repo.get('full_name'))}\n"
        f"Description: {_text(repo.get('description'))}\n"
        f"Star/Fork/Issue: {_number(repo.get('watchers'))}/{_number(repo.get('forks'))}"
        f"/{_number(repo.get('open_issues'))}\n"
        f"Language: {notnull(_text(repo.get('language')), 'None')}\n"
        f"License: {notnull(license_key.upper(), 'None')}\n"
        f"Last pushed: {_text(repo.get('pushed_at'))}\n"
        f"Jump: {_text(repo.get('html_url'))}\n"
    )


def fetch(url: str, headers: Mapping[str, str]) -> bytes:
    """GET url; raises RuntimeError on any status other than 200."""
    response = requests.get(url, headers=dict(headers), timeout=TIMEOUT)
    if response.status_code != 200:
        raise RuntimeError(f"code {response.status_code}")
    return response.content


def search_repo(query: str) -> dict:
    """The first repository matching query.

    Raises LookupError when nothing matches.
    """
    body = fetch(search_url(query), {"User-Agent": USER_AGENT})
    info = json.loads(body)
    items = info.get("items") or []
    if _number(info.get("total_count")) == 0 or not items:
        raise LookupError("没有找到这样的仓库")
    return items[0]