"""Text normalization shared by the extractors and the dedupe engine."""

import re
from urllib.parse import urlparse

_HORIZONTAL_WS = re.compile(r"[ \t\u00a0\u3000\f\v]+")
_MANY_NEWLINES = re.compile(r"\n{3,}")
_LEADING_FENCE = re.compile(r"^```[^\n]*\n")
_TRAILING_FENCE = re.compile(r"\n?```$")
_EDGE_BACKTICKS = re.compile(r"^`+|`+$")
_ANY_WS = re.compile(r"\s+")

# numbering in front of a title: "1.", "2)", keycap digits, circled digits, pictographs, bullets
_TITLE_PREFIX = re.compile(
    r"^(?:\s*(?:\d+\s*(?:\ufe0f?\u20e3|[.)、:：])|[\u2460-\u2469]|[\U0001F300-\U0001FAFF]|[-*#]))+\s*"
)
_TITLE_LABEL = re.compile(r"^(?:例\s*\d+\s*[:：]\s*|case\s*\d+\s*[:：]\s*|案例\s*\d+\s*[:：]\s*)", re.IGNORECASE)
_TITLE_SUFFIX = re.compile(r"\s*\((?:#\d+|duplicate)\)\s*$", re.IGNORECASE)
_HTML_TAG = re.compile(r"<[^>]*>|<[^>]*$")
_MD_LINK = re.compile(r"\[([^\]]+)\]\([^)]*\)")


def normalize_text(text):
    """Unify line endings, collapse horizontal whitespace and blank-line runs, trim."""
    if not text or not isinstance(text, str):
        return ""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _HORIZONTAL_WS.sub(" ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = _MANY_NEWLINES.sub("\n\n", text)
    return text.strip()


def normalize_prompt(text):
    """Comparison form of a prompt: fences stripped, whitespace collapsed, lower-cased."""
    if not text:
        return ""
    text = text.strip()
    text = _LEADING_FENCE.sub("", text)
    text = _TRAILING_FENCE.sub("", text)
    text = _EDGE_BACKTICKS.sub("", text)
    return _ANY_WS.sub(" ", text).lower().strip()


def is_truncated_prompt(prompt_a, prompt_b, length_threshold=10, normalized=False):
    """True if one prompt is a prefix of the other and they differ by at least length_threshold chars."""
    norm_a = prompt_a if normalized else normalize_prompt(prompt_a)
    norm_b = prompt_b if normalized else normalize_prompt(prompt_b)
    if abs(len(norm_a) - len(norm_b)) < length_threshold:
        return False
    return norm_a.startswith(norm_b) or norm_b.startswith(norm_a)


def clean_title(title):
    if not title:
        return ""
    cleaned = _HTML_TAG.sub("", title)
    cleaned = _MD_LINK.sub(r"\1", cleaned)
    cleaned = _TITLE_PREFIX.sub("", cleaned)
    cleaned = _TITLE_LABEL.sub("", cleaned)
    cleaned = _TITLE_SUFFIX.sub("", cleaned)
    return _ANY_WS.sub(" ", cleaned).strip()


def normalize_source_path(url):
    """host + path, lower-cased, without scheme, query or trailing slash."""
    if not url:
        return ""
    parsed = urlparse(url.strip())
    if not parsed.netloc:
        return url.strip().lower().rstrip("/")
    host = parsed.netloc.lower()
    if host.startswith("www."):
        host = host[4:]
    return f"{host}{parsed.path}".lower().rstrip("/")
