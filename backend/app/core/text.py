# backend/app/core/text.py
import html
import re
from typing import Any

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")
_CJK_RE = re.compile(r"[\u4e00-\u9fff]")

# Script heuristics per language tag prefix; languages without an entry
# are matched by their tag only.
SCRIPT_PATTERNS = {
    "zh": _CJK_RE,
    "ja": re.compile(r"[\u3040-\u30ff]"),
    "ko": re.compile(r"[\uac00-\ud7af]"),
}


def clean_upstream_text(value: Any) -> str:
    """Strip tags and decode HTML entities from a short upstream string.

    Meant for titles, term names and excerpts, not full post bodies.
    ``{"rendered": ...}`` wrappers are unwrapped; anything that is not a
    string after that yields an empty string.
    """
    if isinstance(value, dict):
        value = value.get("rendered")
    if not isinstance(value, str):
        return ""
    return html.unescape(_TAG_RE.sub("", value)).strip()


def normalize_text(text: Any) -> str:
    if not isinstance(text, str):
        return ""
    return _WS_RE.sub(" ", text.lower()).strip()


def matches_script(text: str, language: str) -> bool:
    pattern = SCRIPT_PATTERNS.get(language.lower().split("-")[0])
    return bool(pattern and text and pattern.search(text))


def count_keyword_hits(normalized_text: str, keywords) -> int:
    """Number of distinct keywords occurring as substrings of the text.

    ``normalized_text`` must already be passed through ``normalize_text``.
    """
    if not normalized_text:
        return 0
    hits = 0
    for keyword in keywords:
        k = normalize_text(keyword)
        if k and k in normalized_text:
            hits += 1
    return hits
